"""Portal URLs and browser fingerprint values shared across modules."""

from __future__ import annotations

import os

USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36"
)
SEC_CH_UA = '"Chromium";v="124", "Google Chrome";v="124", "Not-A.Brand";v="99"'
ACCEPT_LANGUAGE = "en,zh-CN;q=0.9,zh;q=0.8"

VIEWPORT = {"width": 1366, "height": 768}

#: Authenticated landing page; a successful login stays on this origin.
PORTAL_URL = "https://www.fordtechservice.dealerconnection.com"
#: Content-delivery host serving the manual pages themselves.
CONTENT_URL = "https://www.fordservicecontent.com"

#: Origins queried (in order) when harvesting cookies from a live browser.
COOKIE_SOURCE_URLS = (PORTAL_URL, CONTENT_URL)
#: Domain substrings for the fallback cookie filter.
COOKIE_DOMAIN_HINTS = ("dealerconnection.com", "fordservicecontent.com")

#: Marker in the landing URL when the subscription has lapsed.
SUBSCRIPTION_EXPIRED_MARKER = "subscriptionExpired"
EXPIRY_SELECTOR = "#pts-page > ul > li > b"

WORKSHOP_TREE_URL = f"{PORTAL_URL}/Workshop/TreeAndCover/Tree"
WORKSHOP_COVER_URL = f"{PORTAL_URL}/Workshop/TreeAndCover/Cover"
WORKSHOP_DOCUMENT_URL = f"{CONTENT_URL}/pubs/content/Document"

WIRING_TOC_URL = f"{CONTENT_URL}/wiring/TableofContent"
WIRING_PAGE_URL = f"{CONTENT_URL}/wiring/Page"
#: Subdirectory of the output holding the wiring diagrams.
WIRING_DIR = "Wiring"

#: Banner image the modern viewer loads on every page.
BLOCKED_IMAGE = "**/FordEcat.jpg"

#: Placeholder value shipped in the example config.
PLACEHOLDER_INDEX_URL = "https://www.fordservicecontent.com/pubs/content/....."

#: First model year served by the nested table of contents.
MODERN_ERA_START = 2003

DEFAULT_REMOTE_DEBUGGING_URL = "http://127.0.0.1:9222"
PROXY_SERVER = "localhost:8888"


def _env_flag(name: str, default: bool) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() not in ("0", "false", "no", "off", "")


ENV_HEADLESS_BROWSER = _env_flag("MANUALGRAB_HEADLESS", True)
ENV_USE_PROXY = _env_flag("MANUALGRAB_USE_PROXY", False)
