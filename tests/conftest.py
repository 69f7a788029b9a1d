"""Shared fixtures: keep every test away from the real user config."""

import pytest

import coursegraph.config as config_module
from coursegraph.config import reset_config


@pytest.fixture(autouse=True)
def isolated_config(tmp_path, monkeypatch):
    """Point the config file at a temp dir and clear COURSEGRAPH_* env vars."""
    config_dir = tmp_path / "config"
    config_file = config_dir / "config.json"
    monkeypatch.setattr(config_module, "CONFIG_DIR", config_dir)
    monkeypatch.setattr(config_module, "CONFIG_FILE", config_file)
    for name in (
        "COURSEGRAPH_MAX_DEPTH",
        "COURSEGRAPH_LOG_INLINE_ERRORS",
        "COURSEGRAPH_MAX_SOURCE_LENGTH",
        "COURSEGRAPH_GRAPH_PATH",
        "COURSEGRAPH_SCOPE",
    ):
        monkeypatch.delenv(name, raising=False)
    reset_config()
    yield config_file
    reset_config()
