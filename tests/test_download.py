"""Tests for saving a planned manual to disk."""
import pytest
from playwright.sync_api import Error as PlaywrightError

from manualgrab.download import (
    NodeStatus,
    SaveOptions,
    atomic_write,
    compile_pdf,
    persist,
    render_pdf,
)
from manualgrab.errors import NodeFailure
from manualgrab.tree import FlatDocumentEntry

from conftest import FakePage, FakeResponse, cat, doc, resolve, tiny_png

A1_URL = resolve("ref-a1")


def snapshot(root):
    return {
        str(p.relative_to(root)): p.read_bytes()
        for p in sorted(root.rglob("*"))
        if p.is_file()
    }


class WriteCheckingPage(FakePage):
    """Asserts the target directory exists whenever a page is opened."""

    def __init__(self, output, expected_dirs):
        super().__init__()
        self.output = output
        self.expected_dirs = expected_dirs

    def goto(self, url, wait_until=None):
        assert self.output.joinpath(self.expected_dirs[url]).is_dir()
        return super().goto(url, wait_until)


class TestPersistTree:
    def test_saves_every_node_once(self, tmp_path, sample_tree, fake_page):
        result = persist(sample_tree, tmp_path, fake_page, resolve_url=resolve)
        assert [o.node_id for o in result.outcomes] == ["root", "A", "a1", "a2", "B", "b1", "Bx", "c"]
        assert all(o.status is NodeStatus.SAVED for o in result.outcomes)
        assert sorted(fake_page.visits) == sorted(
            resolve(f"ref-{n}") for n in ("a1", "a2", "b1", "c")
        )
        assert (tmp_path / "Engine" / "Engine Overview.pdf").read_bytes().startswith(b"%PDF")
        assert (tmp_path / "Brakes" / "Empty").is_dir()
        assert (tmp_path / "Wiring Notes.pdf").exists()
        assert not list(tmp_path.rglob("*.html"))

    def test_directories_exist_before_children_load(self, tmp_path, sample_tree):
        expected = {
            resolve("ref-a1"): "Engine",
            resolve("ref-a2"): "Engine",
            resolve("ref-b1"): "Brakes",
            resolve("ref-c"): ".",
        }
        page = WriteCheckingPage(tmp_path, expected)
        result = persist(sample_tree, tmp_path, page, resolve_url=resolve)
        assert not result.failed

    def test_creates_missing_output_root(self, tmp_path, sample_tree, fake_page):
        out = tmp_path / "new" / "manual"
        persist(sample_tree, out, fake_page, resolve_url=resolve)
        assert (out / "Engine" / "Engine Removal.pdf").exists()

    def test_save_html(self, tmp_path, sample_tree, fake_page):
        persist(sample_tree, tmp_path, fake_page, SaveOptions(save_html=True), resolve_url=resolve)
        html = tmp_path / "Engine" / "Engine Overview.html"
        assert A1_URL in html.read_text()
        assert (tmp_path / "Engine" / "Engine Overview.pdf").exists()

    def test_title_with_dots_keeps_full_name(self, tmp_path, fake_page):
        root = cat("r", [doc("v", "Section 303-01A. Engine 2.0L")])
        persist(root, tmp_path, fake_page, resolve_url=resolve)
        assert (tmp_path / "Section 303-01A. Engine 2.0L.pdf").exists()


class TestFailurePolicy:
    def test_first_failure_aborts(self, tmp_path, sample_tree):
        page = FakePage(fail_urls={A1_URL})
        with pytest.raises(NodeFailure) as info:
            persist(sample_tree, tmp_path, page, resolve_url=resolve)
        result = info.value.result
        assert [o.node_id for o in result.outcomes] == ["root", "A"]
        assert info.value.failed.node_id == "a1"
        assert info.value.failed.status is NodeStatus.FAILED
        assert "navigation" in info.value.failed.error
        assert page.visits == [A1_URL]

    def test_failure_on_last_node_still_short_of_full_tree(self, tmp_path, sample_tree):
        page = FakePage(fail_urls={resolve("ref-c")})
        with pytest.raises(NodeFailure) as info:
            persist(sample_tree, tmp_path, page, resolve_url=resolve)
        result = info.value.result
        assert len(result.outcomes) == 7
        assert "c" not in [o.node_id for o in result.outcomes]
        assert not result.failed
        assert info.value.failed.node_id == "c"
        assert not (tmp_path / "Wiring Notes.pdf").exists()

    def test_ignore_errors_continues(self, tmp_path, sample_tree):
        page = FakePage(fail_urls={A1_URL})
        result = persist(
            sample_tree, tmp_path, page, SaveOptions(ignore_save_errors=True), resolve_url=resolve
        )
        assert len(result.outcomes) == 8
        assert [o.node_id for o in result.failed] == ["a1"]
        assert len(page.visits) == 4
        assert (tmp_path / "Engine" / "Engine Removal.pdf").exists()
        assert not (tmp_path / "Engine" / "Engine Overview.pdf").exists()
        assert "1 failed: a1" in result.summary()

    def test_http_error_status_fails_node(self, tmp_path):
        class ErrorPage(FakePage):
            def goto(self, url, wait_until=None):
                super().goto(url, wait_until)
                return FakeResponse(status=404)

        root = cat("r", [doc("x")])
        result = persist(
            root, tmp_path, ErrorPage(), SaveOptions(ignore_save_errors=True), resolve_url=resolve
        )
        assert "HTTP 404" in result.failed[0].error

    def test_document_without_reference_fails(self, tmp_path, fake_page):
        root = cat("r", [doc("x")])
        root.children[0].source_ref = None
        with pytest.raises(NodeFailure, match="no source reference"):
            persist(root, tmp_path, fake_page, resolve_url=resolve)


class TestRerun:
    def test_rerun_is_idempotent(self, tmp_path, sample_tree):
        persist(sample_tree, tmp_path, FakePage(), resolve_url=resolve)
        first = snapshot(tmp_path)
        persist(sample_tree, tmp_path, FakePage(), resolve_url=resolve)
        assert snapshot(tmp_path) == first
        assert not list(tmp_path.rglob("*.part"))

    def test_failed_revisit_leaves_previous_artifact(self, tmp_path, sample_tree):
        persist(sample_tree, tmp_path, FakePage(), resolve_url=resolve)
        first = snapshot(tmp_path)
        persist(
            sample_tree, tmp_path, FakePage(fail_urls={A1_URL}),
            SaveOptions(ignore_save_errors=True), resolve_url=resolve,
        )
        assert snapshot(tmp_path) == first

    def test_skip_existing(self, tmp_path, sample_tree):
        persist(sample_tree, tmp_path, FakePage(), resolve_url=resolve)
        (tmp_path / "Wiring Notes.pdf").unlink()
        page = FakePage()
        result = persist(
            sample_tree, tmp_path, page, SaveOptions(skip_existing=True), resolve_url=resolve
        )
        assert page.visits == [resolve("ref-c")]
        assert len(result.skipped) == 3
        assert len(result.outcomes) == 8


class TestFlatList:
    def test_flat_entries_saved_in_root(self, tmp_path, fake_page):
        entries = [
            FlatDocumentEntry("ABS", "abs.htm", "A"),
            FlatDocumentEntry("Brakes", "brakes.htm", "B"),
        ]
        result = persist(entries, tmp_path, fake_page, resolve_url=resolve)
        assert len(result.saved) == 2
        assert (tmp_path / "A - ABS.pdf").exists()
        assert (tmp_path / "B - Brakes.pdf").exists()
        assert fake_page.visits == [resolve("abs.htm"), resolve("brakes.htm")]


class TestPdfRendering:
    def test_falls_back_to_screenshot(self):
        class HeadedPage(FakePage):
            def pdf(self, **kwargs):
                raise PlaywrightError("PDF generation is only supported for Headless Chromium")

        data = render_pdf(HeadedPage())
        assert data.startswith(b"%PDF")

    def test_compile_pdf(self):
        assert compile_pdf([tiny_png()]).startswith(b"%PDF")

    def test_compile_pdf_requires_images(self):
        with pytest.raises(RuntimeError):
            compile_pdf([])


class TestAtomicWrite:
    def test_replaces_content(self, tmp_path):
        target = tmp_path / "a.pdf"
        atomic_write(target, b"one")
        atomic_write(target, b"two")
        assert target.read_bytes() == b"two"
        assert [p.name for p in tmp_path.iterdir()] == ["a.pdf"]

    def test_requires_parent(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            atomic_write(tmp_path / "missing" / "a.pdf", b"x")
