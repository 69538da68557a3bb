"""Nested table of contents used by 2003-and-later manuals.

The portal returns the tree as JSON alongside a cover page.  Node keys have
changed casing over the years, so both spellings are accepted.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any
from urllib.parse import urlencode, urljoin

import requests

from manualgrab.constants import (
    WORKSHOP_COVER_URL,
    WORKSHOP_DOCUMENT_URL,
    WORKSHOP_TREE_URL,
)
from manualgrab.download import atomic_write
from manualgrab.errors import PlanAcquisitionFailure
from manualgrab.tree import ContentNode, NodeKind

REQUEST_TIMEOUT = 60
_DOCUMENT_TYPES = {"document", "doc", "page", "topic"}


@dataclass
class ModernTree:
    root: ContentNode
    payload: Any
    cover_html: str
    params: dict[str, str] = field(default_factory=dict)

    def resolve_url(self, ref: str) -> str:
        """Turn a node's source reference into a fetchable URL."""
        if ref.startswith(("http://", "https://")):
            return ref
        if ref.startswith("/"):
            return urljoin(WORKSHOP_DOCUMENT_URL, ref)
        return f"{WORKSHOP_DOCUMENT_URL}?{urlencode({**self.params, 'docId': ref})}"


def _pick(obj: dict, *keys: str):
    for key in keys:
        if obj.get(key) not in (None, ""):
            return obj[key]
    return None


def node_from_payload(obj: dict, fallback_id: str) -> ContentNode:
    """Build a :class:`ContentNode` from one JSON tree node."""
    if not isinstance(obj, dict):
        raise PlanAcquisitionFailure(f"Unexpected tree node at {fallback_id}: {obj!r}")

    node_id = str(_pick(obj, "id", "Id", "ID") or fallback_id)
    title = str(_pick(obj, "title", "Title", "name", "Name") or node_id)
    ref = _pick(obj, "docRef", "DocRef", "url", "Url", "href")
    raw_children = _pick(obj, "children", "Children", "nodes", "Nodes")
    declared = str(_pick(obj, "type", "Type") or "").lower()

    if raw_children is not None and not isinstance(raw_children, list):
        raise PlanAcquisitionFailure(f"Children of {node_id} are not a list")

    if not raw_children and (declared in _DOCUMENT_TYPES or ref):
        return ContentNode(node_id, title, NodeKind.DOCUMENT, [], str(ref) if ref else None)

    children = [
        node_from_payload(child, f"{node_id}.{i}")
        for i, child in enumerate(raw_children or [])
    ]
    return ContentNode(node_id, title, NodeKind.CATEGORY, children, None)


def parse_tree(payload: Any) -> ContentNode:
    if isinstance(payload, dict) and isinstance(payload.get("tree"), (dict, list)):
        payload = payload["tree"]
    if isinstance(payload, list):
        payload = {"id": "root", "title": "Workshop Manual", "children": payload}
    return node_from_payload(payload, "root")


def fetch_tree_and_cover(http: requests.Session, params: dict[str, str]) -> ModernTree:
    """Download the table of contents tree and the manual's cover page.

    Raises :class:`PlanAcquisitionFailure` if either request fails or the
    tree cannot be parsed.
    """
    try:
        resp = http.get(WORKSHOP_TREE_URL, params=params, timeout=REQUEST_TIMEOUT)
        resp.raise_for_status()
        payload = resp.json()

        cover = http.get(WORKSHOP_COVER_URL, params=params, timeout=REQUEST_TIMEOUT)
        cover.raise_for_status()
    except requests.RequestException as exc:
        raise PlanAcquisitionFailure(f"Could not fetch table of contents: {exc}") from exc
    except ValueError as exc:
        raise PlanAcquisitionFailure(f"Table of contents is not valid JSON: {exc}") from exc

    root = parse_tree(payload)
    return ModernTree(root=root, payload=payload, cover_html=cover.text, params=dict(params))


def write_index_files(output: Path, tree: ModernTree) -> None:
    atomic_write(
        output / "toc.json",
        json.dumps(tree.payload, indent=2).encode("utf-8"),
    )
    atomic_write(output / "cover.html", tree.cover_html.encode("utf-8"))
