"""Save a planned manual to disk, one page at a time.

Every node of the plan is visited once, in pre-order, on a single shared
browser page.  Categories become directories; documents become a PDF (and
optionally the rendered HTML) next to their siblings.

Chromium only prints to PDF when headless.  In a headed or attached browser
we fall back to a full-page screenshot compiled into a PDF with ``img2pdf``.
"""

from __future__ import annotations

import contextlib
import enum
import logging
import os
import tempfile
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable

import img2pdf
from playwright.sync_api import Error as PlaywrightError

from manualgrab.chrome import elapsed
from manualgrab.errors import NodeFailure
from manualgrab.tree import ContentNode, NodeKind, PlanStep, plan_index, plan_tree

# Suppress img2pdf alpha-channel warnings (very noisy for large documents).
logging.getLogger("img2pdf").setLevel(logging.ERROR)

PDF_SUFFIX = ".pdf"
HTML_SUFFIX = ".html"

PDF_OPTIONS = {
    "format": "Letter",
    "print_background": True,
    "margin": {"top": "0.4in", "bottom": "0.4in", "left": "0.4in", "right": "0.4in"},
}


@dataclass
class SaveOptions:
    save_html: bool = False
    ignore_save_errors: bool = False
    skip_existing: bool = False


class NodeStatus(str, enum.Enum):
    SAVED = "saved"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass
class NodeOutcome:
    node_id: str
    status: NodeStatus
    path: str | None = None
    error: str | None = None


@dataclass
class TraversalResult:
    outcomes: list[NodeOutcome] = field(default_factory=list)

    def record(self, node_id: str, status: NodeStatus, path=None, error=None) -> NodeOutcome:
        outcome = NodeOutcome(node_id, status, str(path) if path else None, error)
        self.outcomes.append(outcome)
        return outcome

    def _with(self, status: NodeStatus) -> list[NodeOutcome]:
        return [o for o in self.outcomes if o.status is status]

    @property
    def saved(self) -> list[NodeOutcome]:
        return self._with(NodeStatus.SAVED)

    @property
    def skipped(self) -> list[NodeOutcome]:
        return self._with(NodeStatus.SKIPPED)

    @property
    def failed(self) -> list[NodeOutcome]:
        return self._with(NodeStatus.FAILED)

    def summary(self) -> str:
        text = (
            f"{len(self.saved)} saved, {len(self.skipped)} skipped, "
            f"{len(self.failed)} failed"
        )
        if self.failed:
            text += ": " + ", ".join(o.node_id for o in self.failed)
        return text


def atomic_write(path: Path, data: bytes) -> Path:
    """Write *data* to *path* so readers never see a partial file.

    The parent directory must already exist.
    """
    path = Path(path)
    fd, tmp = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".part")
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(data)
        os.replace(tmp, path)
    except BaseException:
        with contextlib.suppress(FileNotFoundError):
            os.unlink(tmp)
        raise
    return path


def compile_pdf(image_data: list[bytes]) -> bytes:
    """Compile captured image bytes into a PDF with img2pdf."""
    if not image_data:
        raise RuntimeError("No page images were captured.")
    return img2pdf.convert(image_data)


def render_pdf(page) -> bytes:
    """Print the current page to PDF, falling back to a screenshot."""
    try:
        return page.pdf(**PDF_OPTIONS)
    except PlaywrightError as exc:
        print(f"[manualgrab]   PDF printing unavailable ({exc}); using a screenshot")
        return compile_pdf([page.screenshot(full_page=True, type="png")])


def artifact_path(base: Path, suffix: str) -> Path:
    # Titles often contain dots, so never use with_suffix here.
    return base.with_name(base.name + suffix)


def save_document(page, step: PlanStep, base: Path, options: SaveOptions) -> Path:
    if not step.url:
        raise ValueError(f"Document {step.node_id} has no source reference")

    response = page.goto(step.url, wait_until="load")
    if response is not None and not response.ok:
        raise RuntimeError(f"HTTP {response.status} for {step.url}")

    if options.save_html:
        atomic_write(artifact_path(base, HTML_SUFFIX), page.content().encode("utf-8"))
    return atomic_write(artifact_path(base, PDF_SUFFIX), render_pdf(page))


def build_plan(source, resolve_url: Callable[[str], str]) -> list[PlanStep]:
    if isinstance(source, ContentNode):
        return plan_tree(source, resolve_url)
    return plan_index(list(source), resolve_url)


def persist(
    source,
    output_root: Path,
    page,
    options: SaveOptions | None = None,
    *,
    resolve_url: Callable[[str], str],
) -> TraversalResult:
    """Save a tree root or a flat document list under *output_root*.

    Raises :class:`NodeFailure` on the first failing node unless
    ``options.ignore_save_errors`` is set.
    """
    options = options or SaveOptions()
    return execute_plan(build_plan(source, resolve_url), Path(output_root), page, options)


def execute_plan(
    steps: list[PlanStep], output_root: Path, page, options: SaveOptions
) -> TraversalResult:
    result = TraversalResult()
    total = sum(1 for s in steps if s.kind is NodeKind.DOCUMENT)
    done = 0
    t_total = time.time()

    for step in steps:
        target = output_root / step.rel_path
        label = str(step.rel_path)

        if step.kind is NodeKind.DOCUMENT:
            done += 1
            pdf_path = artifact_path(target, PDF_SUFFIX)
            if options.skip_existing and pdf_path.exists() and pdf_path.stat().st_size > 0:
                result.record(step.node_id, NodeStatus.SKIPPED, pdf_path)
                print(f"[manualgrab] [{done}/{total}] Skipping existing {label}")
                continue
            print(f"[manualgrab] [{done}/{total}] Saving {label}")

        t_node = time.time()
        try:
            if step.kind is NodeKind.CATEGORY:
                is_root = not step.rel_path.parts
                target.mkdir(parents=is_root, exist_ok=True)
                path = target
            else:
                path = save_document(page, step, target, options)
        except Exception as exc:
            error = f"{type(exc).__name__}: {exc}"
            if not options.ignore_save_errors:
                failed = NodeOutcome(step.node_id, NodeStatus.FAILED, str(target), error)
                raise NodeFailure(f"Failed to save {label}: {exc}", result, failed) from exc
            result.record(step.node_id, NodeStatus.FAILED, target, error)
            print(f"[manualgrab]   Warning: could not save {label}: {exc}")
            continue

        result.record(step.node_id, NodeStatus.SAVED, path)
        if step.kind is NodeKind.DOCUMENT:
            print(f"[manualgrab]   Done ({elapsed(t_node)})")

    print(f"[manualgrab] Saved {done} documents in {elapsed(t_total)}")
    return result
