"""Load serialized content graphs from YAML or JSON.

The ingestion parser that turns authored markup into a graph lives outside
this package. This module reads its serialized output:

    version: "2024-01-01"        # optional
    nodes:
      - id: quiz
        tag: Vertical
        attributes: {title: Quiz}
        provenance: [{file: quiz.olx, line: 1}]
        kids:
          - Some intro text                 # text run
          - {ref: q1}                       # reference
          - {ref: /shared, overrides: {title: Shared}}
          - {html: p, kids: [Hello]}        # markup fragment
          - {node: {id: note, tag: Markdown}}   # inline component

Kids may also be given in their explicit ``{type: ...}`` form.
"""

import json
import logging
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from ..core.models import StaticNode
from .store import ContentGraphStore

logger = logging.getLogger(__name__)


class GraphFormatError(ValueError):
    """A serialized graph document is malformed."""


def _normalize_kid(kid: Any, where: str) -> dict[str, Any]:
    if isinstance(kid, str):
        return {"type": "text", "text": kid}
    if not isinstance(kid, dict):
        raise GraphFormatError(f"{where}: kid must be a string or mapping, got {kid!r}")
    if "type" in kid:
        data = dict(kid)
        if data["type"] == "html":
            data["kids"] = _normalize_kids(data.get("kids", []), where)
        elif data["type"] == "node":
            data["node"] = _normalize_node(data["node"], where)
        return data
    if "ref" in kid:
        return {
            "type": "block",
            "id": kid["ref"],
            "overrides": kid.get("overrides") or {},
        }
    if "text" in kid:
        return {"type": "text", "text": str(kid["text"])}
    if "html" in kid:
        return {
            "type": "html",
            "tag": kid["html"],
            "attributes": kid.get("attributes") or {},
            "kids": _normalize_kids(kid.get("kids", []), where),
        }
    if "node" in kid:
        return {"type": "node", "node": _normalize_node(kid["node"], where)}
    raise GraphFormatError(
        f"{where}: cannot tell what kind of kid {kid!r} is "
        "(expected one of ref, text, html, node)"
    )


def _normalize_kids(kids: Any, where: str) -> list[dict[str, Any]]:
    if kids is None:
        return []
    if not isinstance(kids, list):
        raise GraphFormatError(f"{where}: kids must be a list")
    return [_normalize_kid(k, f"{where}.kids[{i}]") for i, k in enumerate(kids)]


def _normalize_node(raw: Any, where: str) -> dict[str, Any]:
    if not isinstance(raw, dict):
        raise GraphFormatError(f"{where}: node must be a mapping")
    key = raw.get("id", raw.get("key"))
    if not key or "tag" not in raw:
        raise GraphFormatError(f"{where}: node needs both 'id' and 'tag'")
    return {
        "key": key,
        "tag": raw["tag"],
        "attributes": raw.get("attributes") or {},
        "kids": _normalize_kids(raw.get("kids"), f"{where}[{key}]"),
        "provenance": raw.get("provenance") or [],
    }


def graph_from_dict(data: dict[str, Any]) -> ContentGraphStore:
    """Build a store from a parsed graph document.

    Raises:
        GraphFormatError: If the document does not describe a valid graph
    """
    if not isinstance(data, dict) or not isinstance(data.get("nodes"), list):
        raise GraphFormatError("Graph document must be a mapping with a 'nodes' list")

    nodes = []
    for i, raw in enumerate(data["nodes"]):
        normalized = _normalize_node(raw, f"nodes[{i}]")
        try:
            nodes.append(StaticNode.model_validate(normalized))
        except ValidationError as e:
            raise GraphFormatError(f"nodes[{i}] ({normalized['key']}): {e}") from e

    try:
        return ContentGraphStore(nodes, version=data.get("version"))
    except ValueError as e:
        raise GraphFormatError(str(e)) from e


def load_graph(path: Path | str) -> ContentGraphStore:
    """Load a graph from a ``.yaml``/``.yml`` or ``.json`` file."""
    path = Path(path)
    with open(path) as f:
        if path.suffix == ".json":
            data = json.load(f)
        else:
            data = yaml.safe_load(f)
    store = graph_from_dict(data)
    logger.info("Loaded %d nodes from %s", len(store), path)
    return store
