"""Tests for the session bridge."""
import requests

from manualgrab.constants import CONTENT_URL, COOKIE_SOURCE_URLS, PORTAL_URL, USER_AGENT
from manualgrab.cookies import Cookie, Credentials, transform_cookie_string
from manualgrab.session import SessionBridge

from conftest import FakeContext


class TestApply:
    def test_sets_default_cookie_header(self):
        bridge = SessionBridge()
        bridge.apply(transform_cookie_string("a=1;b=2"))
        assert isinstance(bridge.http, requests.Session)
        assert bridge.http.headers["Cookie"] == "a=1; b=2"
        assert bridge.http.headers["User-Agent"] == USER_AGENT

    def test_reapply_replaces_credentials(self):
        bridge = SessionBridge()
        bridge.apply(transform_cookie_string("a=1"))
        bridge.apply(transform_cookie_string("b=2"))
        assert bridge.http.headers["Cookie"] == "b=2"
        assert bridge.raw_header == "b=2"

    def test_raw_header_empty_before_apply(self):
        assert SessionBridge().raw_header == ""


class TestBrowserCookies:
    def test_binds_each_cookie_to_every_origin(self):
        bridge = SessionBridge()
        bridge.apply(transform_cookie_string("a=1; b=2"))
        cookies = bridge.browser_cookies()
        assert len(cookies) == 2 * len(COOKIE_SOURCE_URLS)
        assert {c["url"] for c in cookies} == set(COOKIE_SOURCE_URLS)
        assert {"name": "a", "value": "1", "url": PORTAL_URL} in cookies

    def test_cookie_with_domain_kept_once(self):
        bridge = SessionBridge()
        bridge.apply(Credentials("x", (Cookie("x", "1", domain=".example.com"),), "x=1"))
        assert bridge.browser_cookies() == [
            {"name": "x", "value": "1", "domain": ".example.com", "path": "/"}
        ]

    def test_no_credentials_no_cookies(self):
        assert SessionBridge().browser_cookies() == []


class TestHarvest:
    def test_prefers_known_origin(self):
        ctx = FakeContext([
            {"name": "SID", "value": "portal", "domain": ".dealerconnection.com"},
            {"name": "CDN", "value": "content", "domain": ".fordservicecontent.com"},
        ])
        creds = SessionBridge().harvest(ctx)
        assert creds.processed_header == "SID=portal"

    def test_second_origin_used_when_first_empty(self):
        ctx = FakeContext([{"name": "CDN", "value": "c", "domain": ".fordservicecontent.com"}])
        creds = SessionBridge().harvest(ctx)
        assert creds.processed_header == "CDN=c"
        assert ctx.cookies(CONTENT_URL)

    def test_falls_back_to_domain_filter(self):
        # Scoped to a subdomain neither known origin matches.
        ctx = FakeContext([
            {"name": "EDGE", "value": "e", "domain": "cdn.fordservicecontent.com"},
            {"name": "other", "value": "o", "domain": "example.org"},
        ])
        creds = SessionBridge().harvest(ctx)
        assert creds
        assert creds.processed_header == "EDGE=e"

    def test_returns_none_when_nothing_matches(self):
        ctx = FakeContext([{"name": "other", "value": "o", "domain": "example.org"}])
        assert SessionBridge().harvest(ctx) is None

    def test_empty_context(self):
        assert SessionBridge().harvest(FakeContext()) is None
