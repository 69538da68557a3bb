"""
Shared fakes for manualgrab tests.

Playwright and requests are replaced by small in-memory stand-ins that
record what was asked of them, so no browser or network is needed.
"""
import json
import struct
import zlib
from urllib.parse import urlparse

import pytest
import requests

from manualgrab.tree import ContentNode, NodeKind


# ── HTTP ────────────────────────────────────────────────────────────────────


def make_response(url, body="", status=200):
    resp = requests.Response()
    resp.status_code = status
    resp.url = url
    resp.encoding = "utf-8"
    if not isinstance(body, (str, bytes)):
        body = json.dumps(body)
    resp._content = body.encode("utf-8") if isinstance(body, str) else body
    return resp


class FakeHttp:
    """Minimal ``requests.Session`` replacement keyed by URL."""

    def __init__(self, routes=None):
        self.routes = dict(routes or {})
        self.headers = {}
        self.calls = []

    def get(self, url, params=None, headers=None, timeout=None):
        self.calls.append({"url": url, "params": params, "headers": headers})
        route = self.routes.get(url)
        if route is None:
            raise requests.ConnectionError(f"no route for {url}")
        if isinstance(route, Exception):
            raise route
        return route


# ── Browser ─────────────────────────────────────────────────────────────────


class FakeResponse:
    def __init__(self, status=200):
        self.status = status
        self.ok = status < 400


class FakePage:
    """Records navigations; fails on URLs listed in *fail_urls*."""

    def __init__(self, fail_urls=(), redirects=None, evaluate_result=None):
        self.fail_urls = set(fail_urls)
        self.redirects = dict(redirects or {})
        self.evaluate_result = evaluate_result
        self.visits = []
        self.url = "about:blank"
        self.viewport = None
        self.default_timeout = None
        self.routes = []
        self.closed = False

    def goto(self, url, wait_until=None):
        self.visits.append(url)
        if url in self.fail_urls:
            raise RuntimeError(f"navigation to {url} failed")
        self.url = self.redirects.get(url, url)
        return None

    def content(self):
        return f"<html><body>{self.url}</body></html>"

    def pdf(self, **kwargs):
        return b"%PDF-1.4 " + self.url.encode("utf-8")

    def screenshot(self, **kwargs):
        return tiny_png()

    def evaluate(self, script):
        return self.evaluate_result

    def set_viewport_size(self, size):
        self.viewport = size

    def set_default_timeout(self, ms):
        self.default_timeout = ms

    def route(self, pattern, handler):
        self.routes.append((pattern, handler))

    def close(self):
        self.closed = True


def _host_matches(domain, url):
    host = urlparse(url).hostname or ""
    return host.endswith(domain.lstrip("."))


class FakeContext:
    def __init__(self, cookies=None):
        self.jar = list(cookies or [])
        self.added_cookies = []
        self.init_scripts = []
        self.routes = []
        self.pages = []
        self.storage_paths = []
        self.closed = False

    def cookies(self, urls=None):
        if urls is None:
            return list(self.jar)
        return [c for c in self.jar if _host_matches(c["domain"], urls)]

    def add_cookies(self, cookies):
        self.added_cookies.extend(cookies)

    def add_init_script(self, script=None, path=None):
        self.init_scripts.append(script)

    def route(self, url, handler):
        self.routes.append((url, handler))

    def new_page(self):
        page = FakePage()
        self.pages.append(page)
        return page

    def storage_state(self, path=None):
        self.storage_paths.append(path)

    def close(self):
        self.closed = True


class FakeBrowser:
    def __init__(self, contexts=None, context_cls=FakeContext):
        self.contexts = list(contexts or [])
        self.context_cls = context_cls
        self.context_kwargs = []
        self.closed = False

    def new_context(self, **kwargs):
        self.context_kwargs.append(kwargs)
        ctx = self.context_cls()
        self.contexts.append(ctx)
        return ctx

    def close(self):
        self.closed = True


class FakeChromium:
    def __init__(self, browser=None, connect_error=None):
        self.browser = browser or FakeBrowser()
        self.connect_error = connect_error
        self.launch_kwargs = None
        self.connected_to = None

    def launch(self, **kwargs):
        self.launch_kwargs = kwargs
        return self.browser

    def connect_over_cdp(self, endpoint):
        self.connected_to = endpoint
        if self.connect_error:
            raise self.connect_error
        return self.browser


class FakePlaywright:
    def __init__(self, chromium=None):
        self.chromium = chromium or FakeChromium()


# ── Images ──────────────────────────────────────────────────────────────────


def _png_chunk(kind, data):
    body = kind + data
    return struct.pack(">I", len(data)) + body + struct.pack(">I", zlib.crc32(body) & 0xFFFFFFFF)


def tiny_png():
    """A valid 1x1 RGB PNG (no alpha, which img2pdf rejects)."""
    header = struct.pack(">IIBBBBB", 1, 1, 8, 2, 0, 0, 0)
    pixels = zlib.compress(b"\x00\xff\x00\x00")
    return (
        b"\x89PNG\r\n\x1a\n"
        + _png_chunk(b"IHDR", header)
        + _png_chunk(b"IDAT", pixels)
        + _png_chunk(b"IEND", b"")
    )


# ── Fixtures ────────────────────────────────────────────────────────────────


def doc(node_id, title=None):
    return ContentNode(node_id, title or node_id, NodeKind.DOCUMENT, [], f"ref-{node_id}")


def cat(node_id, children, title=None):
    return ContentNode(node_id, title or node_id, NodeKind.CATEGORY, list(children))


def resolve(ref):
    return f"https://content.example/{ref}"


@pytest.fixture()
def sample_tree():
    """Eight nodes: root, two sections (one with an empty subsection), four pages."""
    return cat("root", [
        cat("A", [doc("a1", "Engine Overview"), doc("a2", "Engine Removal")], title="Engine"),
        cat("B", [doc("b1", "Brake Pads"), cat("Bx", [], title="Empty")], title="Brakes"),
        doc("c", "Wiring Notes"),
    ], title="Manual")


@pytest.fixture()
def fake_page():
    return FakePage()
