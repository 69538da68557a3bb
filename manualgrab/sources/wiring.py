"""Wiring diagram table of contents.

The wiring viewer lists its diagrams either as a nested tree (read exactly
like the workshop tree) or as a flat list where each diagram names the
folder it belongs to.  Flat lists are grouped into one category per folder,
in the order the folders first appear.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any
from urllib.parse import urlencode

import requests

from manualgrab.constants import WIRING_PAGE_URL, WIRING_TOC_URL
from manualgrab.download import atomic_write
from manualgrab.errors import PlanAcquisitionFailure
from manualgrab.sources.modern import node_from_payload
from manualgrab.tree import ContentNode, NodeKind

REQUEST_TIMEOUT = 60
ROOT_TITLE = "Wiring Diagrams"

_CHILD_KEYS = ("children", "Children", "nodes", "Nodes")
_GROUP_KEYS = ("Folder", "folder", "Group", "group", "Category", "category")
_REF_KEYS = ("Number", "number", "Page", "page", "docRef", "DocRef", "url", "Url", "href")


@dataclass
class WiringToc:
    root: ContentNode
    payload: Any
    params: dict[str, str] = field(default_factory=dict)

    def resolve_url(self, ref: str) -> str:
        if ref.startswith(("http://", "https://")):
            return ref
        return f"{WIRING_PAGE_URL}?{urlencode({**self.params, 'page': ref})}"


def _first(obj: dict, keys) -> Any:
    for key in keys:
        if obj.get(key) not in (None, ""):
            return obj[key]
    return None


def _is_nested(payload: Any) -> bool:
    if isinstance(payload, dict):
        return True
    return any(isinstance(e, dict) and _first(e, _CHILD_KEYS) is not None for e in payload)


def _diagram(entry: Any, fallback_id: str) -> ContentNode:
    if not isinstance(entry, dict):
        raise PlanAcquisitionFailure(f"Unexpected wiring entry at {fallback_id}: {entry!r}")
    ref = _first(entry, _REF_KEYS)
    node_id = str(_first(entry, ("id", "Id", "ID")) or ref or fallback_id)
    title = str(_first(entry, ("Title", "title", "Description", "description", "name")) or node_id)
    return ContentNode(node_id, title, NodeKind.DOCUMENT, [], str(ref) if ref else None)


def parse_toc(payload: Any) -> ContentNode:
    """Normalize a wiring table of contents into a :class:`ContentNode` tree."""
    if isinstance(payload, dict) and isinstance(payload.get("toc"), (dict, list)):
        payload = payload["toc"]
    if not isinstance(payload, (dict, list)) or not payload:
        raise PlanAcquisitionFailure("Wiring table of contents is empty")

    if _is_nested(payload):
        if isinstance(payload, list):
            payload = {"id": "wiring", "title": ROOT_TITLE, "children": payload}
        return node_from_payload(payload, "wiring")

    root = ContentNode("wiring", ROOT_TITLE, NodeKind.CATEGORY, [], None)
    folders: dict[str, ContentNode] = {}
    for i, entry in enumerate(payload):
        node = _diagram(entry, f"wiring.{i}")
        group = _first(entry, _GROUP_KEYS)
        if group is None:
            root.children.append(node)
            continue
        group = str(group)
        if group not in folders:
            folders[group] = ContentNode(
                f"wiring/{group}", group, NodeKind.CATEGORY, [], None
            )
            root.children.append(folders[group])
        folders[group].children.append(node)
    return root


def fetch_table_of_contents(http: requests.Session, params: dict[str, str]) -> WiringToc:
    """Download the wiring table of contents for the configured book.

    Raises :class:`PlanAcquisitionFailure` if the request fails or the
    payload cannot be read.
    """
    try:
        resp = http.get(WIRING_TOC_URL, params=params, timeout=REQUEST_TIMEOUT)
        resp.raise_for_status()
        payload = resp.json()
    except requests.RequestException as exc:
        raise PlanAcquisitionFailure(f"Could not fetch wiring table of contents: {exc}") from exc
    except ValueError as exc:
        raise PlanAcquisitionFailure(f"Wiring table of contents is not valid JSON: {exc}") from exc

    return WiringToc(root=parse_toc(payload), payload=payload, params=dict(params))


def write_index_files(output: Path, toc: WiringToc) -> None:
    output.mkdir(parents=True, exist_ok=True)
    atomic_write(output / "toc.json", json.dumps(toc.payload, indent=2).encode("utf-8"))
