"""Configuration management for coursegraph.

Config resolution order (highest priority first):
1. Programmatic (CoursegraphConfig constructed in code)
2. Environment variables (COURSEGRAPH_MAX_DEPTH, COURSEGRAPH_SCOPE, etc.)
3. Config file (~/.config/coursegraph/config.json, managed by `coursegraph config`)
4. Hardcoded defaults
"""

import json
import logging
import os
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any


logger = logging.getLogger(__name__)


# =============================================================================
# Config file location
# =============================================================================

CONFIG_DIR = Path.home() / ".config" / "coursegraph"
CONFIG_FILE = CONFIG_DIR / "config.json"


# =============================================================================
# Config sections
# =============================================================================


@dataclass
class RenderConfig:
    """Resolution engine settings.

    - max_depth: deepest kid nesting followed before reporting a cycle
    - log_inline_errors: log a warning for every inline error produced
    """

    max_depth: int = 64
    log_inline_errors: bool = True


@dataclass
class ExpressionsConfig:
    """Expression language settings."""

    max_source_length: int = 10_000


@dataclass
class DefaultsConfig:
    """CLI defaults."""

    graph_path: str = ""  # empty = must be given on the command line
    scope: str = ""


# =============================================================================
# Main config class
# =============================================================================


@dataclass
class CoursegraphConfig:
    """Top-level coursegraph configuration.

    Examples:
        # Package use, no files needed
        config = CoursegraphConfig(render=RenderConfig(max_depth=16))

        # CLI use, loads from ~/.config/coursegraph/config.json
        config = CoursegraphConfig.load()
    """

    render: RenderConfig = field(default_factory=RenderConfig)
    expressions: ExpressionsConfig = field(default_factory=ExpressionsConfig)
    defaults: DefaultsConfig = field(default_factory=DefaultsConfig)

    @classmethod
    def load(cls) -> "CoursegraphConfig":
        """Load config from file + env vars.

        Priority: env var values > config.json values > defaults.
        """
        config = cls()

        # Layer 1: Load from config file if it exists
        if CONFIG_FILE.exists():
            try:
                with open(CONFIG_FILE) as f:
                    data = json.load(f)
                _apply_dict(config, data)
            except (json.JSONDecodeError, OSError, ValueError) as exc:
                logger.warning("Failed to load config from %s: %s", CONFIG_FILE, exc)

        # Layer 2: Env var overrides
        if val := os.environ.get("COURSEGRAPH_MAX_DEPTH"):
            try:
                config.render.max_depth = int(val)
            except ValueError:
                logger.warning("Invalid COURSEGRAPH_MAX_DEPTH=%r, ignoring", val)
        if val := os.environ.get("COURSEGRAPH_LOG_INLINE_ERRORS"):
            parsed = _parse_bool(val)
            if parsed is None:
                logger.warning("Invalid COURSEGRAPH_LOG_INLINE_ERRORS=%r, ignoring", val)
            else:
                config.render.log_inline_errors = parsed
        if val := os.environ.get("COURSEGRAPH_MAX_SOURCE_LENGTH"):
            try:
                config.expressions.max_source_length = int(val)
            except ValueError:
                logger.warning("Invalid COURSEGRAPH_MAX_SOURCE_LENGTH=%r, ignoring", val)
        if val := os.environ.get("COURSEGRAPH_GRAPH_PATH"):
            config.defaults.graph_path = val
        if val := os.environ.get("COURSEGRAPH_SCOPE"):
            config.defaults.scope = val

        return config

    def save(self) -> None:
        """Save config to ~/.config/coursegraph/config.json."""
        CONFIG_DIR.mkdir(parents=True, exist_ok=True)
        with open(CONFIG_FILE, "w") as f:
            json.dump(self.to_dict(), f, indent=2)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dict for display."""
        return {
            "render": asdict(self.render),
            "expressions": asdict(self.expressions),
            "defaults": asdict(self.defaults),
        }


# =============================================================================
# Config dict application
# =============================================================================

_SECTIONS = ("render", "expressions", "defaults")


def _parse_bool(value: str) -> bool | None:
    lowered = value.strip().lower()
    if lowered in ("1", "true", "yes", "on"):
        return True
    if lowered in ("0", "false", "no", "off"):
        return False
    return None


def _apply_dict(config: CoursegraphConfig, data: dict) -> None:
    """Apply a dict of values onto a CoursegraphConfig."""
    for section_name in _SECTIONS:
        values = data.get(section_name)
        if not isinstance(values, dict):
            continue
        section = getattr(config, section_name)
        for k, v in values.items():
            if not hasattr(section, k):
                logger.warning("Unknown config key %s.%s, ignoring", section_name, k)
                continue
            current = getattr(section, k)
            if isinstance(current, bool):
                v = v if isinstance(v, bool) else _parse_bool(str(v))
                if v is None:
                    raise ValueError(f"{section_name}.{k} must be a boolean")
            elif isinstance(current, int):
                v = int(v)
            setattr(section, k, v)


# =============================================================================
# Global config singleton
# =============================================================================

_config: CoursegraphConfig | None = None


def get_config() -> CoursegraphConfig:
    """Get the global CoursegraphConfig instance.

    First call loads from file + env vars. Subsequent calls return cached instance.
    Use configure() to replace the global config programmatically.
    """
    global _config
    if _config is None:
        _config = CoursegraphConfig.load()
    return _config


def configure(config: CoursegraphConfig) -> None:
    """Set the global CoursegraphConfig programmatically."""
    global _config
    _config = config


def reset_config() -> None:
    """Reset the global config (forces reload on next get_config())."""
    global _config
    _config = None
