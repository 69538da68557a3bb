"""Session bridge between the HTTP client and the browser context.

The bridge owns the run's :class:`~manualgrab.cookies.Credentials`.  Applying
credentials pins the ``Cookie`` header on the shared ``requests.Session``;
the browser manager asks the bridge for Playwright-shaped cookies when it
creates a managed context.
"""

from __future__ import annotations

import requests

from manualgrab.constants import (
    COOKIE_DOMAIN_HINTS,
    COOKIE_SOURCE_URLS,
    USER_AGENT,
)
from manualgrab.cookies import Credentials, serialize_cookies, transform_cookie_string


class SessionBridge:
    """Holds the current credentials and the HTTP session that uses them."""

    def __init__(self, http: requests.Session | None = None) -> None:
        self.http = http if http is not None else requests.Session()
        self.http.headers["User-Agent"] = USER_AGENT
        self.credentials: Credentials | None = None

    @property
    def raw_header(self) -> str:
        return self.credentials.raw_header if self.credentials else ""

    def apply(self, credentials: Credentials) -> None:
        """Make *credentials* the cookies every later request carries."""
        self.credentials = credentials
        self.http.headers["Cookie"] = credentials.processed_header

    def browser_cookies(self) -> list[dict[str, str]]:
        """Return the current cookies shaped for ``context.add_cookies``.

        Records parsed from a header carry no domain, so each one is bound
        to every portal origin.
        """
        if not self.credentials:
            return []
        out: list[dict[str, str]] = []
        for cookie in self.credentials.cookies:
            if cookie.domain:
                out.append({
                    "name": cookie.name,
                    "value": cookie.value,
                    "domain": cookie.domain,
                    "path": cookie.path,
                })
                continue
            for url in COOKIE_SOURCE_URLS:
                out.append({"name": cookie.name, "value": cookie.value, "url": url})
        return out

    def harvest(self, context) -> Credentials | None:
        """Read portal cookies out of an already-open browser *context*.

        Known origins are queried first.  If none of them yields cookies,
        every cookie whose domain contains one of ``COOKIE_DOMAIN_HINTS`` is
        used instead.  That fallback is a substring heuristic and can pick
        up cookies from unrelated subdomains of the same sites.

        Returns ``None`` when nothing matches.
        """
        for url in COOKIE_SOURCE_URLS:
            header = serialize_cookies(context.cookies(url))
            if header:
                return transform_cookie_string(header)

        fallback = [
            cookie
            for cookie in context.cookies()
            if cookie.get("domain")
            and any(hint in cookie["domain"] for hint in COOKIE_DOMAIN_HINTS)
        ]
        header = serialize_cookies(fallback)
        if not header:
            return None
        return transform_cookie_string(header)
