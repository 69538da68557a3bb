"""Alphabetical index used by pre-2003 manuals.

Older manuals have no tree, only one HTML page listing every document
alphabetically.  Besides the document list we keep the page as-is and a
copy whose links point at the files the download step will write, so the
saved manual can be browsed offline.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from urllib.parse import quote, urljoin

import requests
from bs4 import BeautifulSoup

from manualgrab.download import PDF_SUFFIX, atomic_write
from manualgrab.errors import PlanAcquisitionFailure
from manualgrab.tree import FlatDocumentEntry, plan_index

REQUEST_TIMEOUT = 60
_HEADINGS = ("h1", "h2", "h3", "h4", "h5", "h6")
_SKIP_SCHEMES = ("#", "javascript:", "mailto:")


@dataclass
class LegacyIndex:
    index_url: str
    document_list: list[FlatDocumentEntry] = field(default_factory=list)
    page_html: str = ""
    modified_html: str = ""

    def resolve_url(self, ref: str) -> str:
        return urljoin(self.index_url, ref)


def _document_anchors(soup: BeautifulSoup):
    """Yield ``(anchor, group_label)`` for every document link in order.

    The group label is the text of the closest preceding heading, or the
    name of the closest preceding ``<a name=...>`` letter anchor.
    """
    group = ""
    for el in soup.find_all(list(_HEADINGS) + ["a"]):
        if el.name in _HEADINGS:
            group = el.get_text(" ", strip=True)
            continue
        href = (el.get("href") or "").strip()
        if not href:
            if el.get("name"):
                group = el["name"].strip()
            continue
        if href.lower().startswith(_SKIP_SCHEMES):
            continue
        if not el.get_text(strip=True):
            continue
        yield el, group


def local_href(rel_path) -> str:
    return "./" + quote(f"{rel_path}{PDF_SUFFIX}")


def parse_index(page_html: str, index_url: str) -> LegacyIndex:
    soup = BeautifulSoup(page_html, "html.parser")
    anchors = []
    entries = []
    for anchor, group in _document_anchors(soup):
        anchors.append(anchor)
        entries.append(
            FlatDocumentEntry(
                title=anchor.get_text(" ", strip=True),
                source_ref=anchor["href"].strip(),
                group_label=group,
            )
        )

    if not entries:
        raise PlanAcquisitionFailure(
            f"No documents found in the alphabetical index at {index_url}"
        )

    index = LegacyIndex(index_url=index_url, document_list=entries, page_html=page_html)
    for anchor, step in zip(anchors, plan_index(entries, index.resolve_url)):
        anchor["href"] = local_href(step.rel_path)
        if anchor.has_attr("target"):
            del anchor["target"]
    index.modified_html = str(soup)
    return index


def fetch_alphabetical_index(
    http: requests.Session, index_url: str, raw_cookie: str = ""
) -> LegacyIndex:
    """Download and parse the alphabetical index at *index_url*.

    *raw_cookie* is sent verbatim; the content host expects the header
    exactly as the browser sent it.
    """
    headers = {"Cookie": raw_cookie} if raw_cookie else {}
    try:
        resp = http.get(index_url, headers=headers, timeout=REQUEST_TIMEOUT)
        resp.raise_for_status()
    except requests.RequestException as exc:
        raise PlanAcquisitionFailure(
            f"Could not fetch alphabetical index {index_url}: {exc}"
        ) from exc
    if "charset" not in resp.headers.get("Content-Type", "").lower():
        # requests assumes ISO-8859-1 for text/html without a charset
        resp.encoding = resp.apparent_encoding
    return parse_index(resp.text, index_url)


def write_index_files(output: Path, index: LegacyIndex) -> None:
    # usable ToC
    atomic_write(output / "AAA_Table_Of_Contents.html", index.modified_html.encode("utf-8"))
    # original ToC
    atomic_write(output / "AA_originalTableOfContents.html", index.page_html.encode("utf-8"))
    atomic_write(
        output / "AA_alphabeticalIndex.json",
        json.dumps([e.to_dict() for e in index.document_list], indent=2).encode("utf-8"),
    )
