"""Browser context lifecycle.

A run uses exactly one Playwright browser context, obtained in one of two
ways:

- **managed**: we launch Chromium ourselves, mask the usual automation
  fingerprints, inject the portal cookies and persist the storage state to
  ``.cache/`` on shutdown so the next run starts from it.
- **remote**: we attach over CDP to a Chrome the user already has open and
  borrow its first context.  Nothing is injected and nothing is closed; the
  cookies are read *from* that context instead (see
  :meth:`manualgrab.session.SessionBridge.harvest`).
"""

from __future__ import annotations

import enum
import time
from pathlib import Path

from playwright.sync_api import Error as PlaywrightError

from manualgrab.constants import (
    ACCEPT_LANGUAGE,
    DEFAULT_REMOTE_DEBUGGING_URL,
    PROXY_SERVER,
    SEC_CH_UA,
    USER_AGENT,
    VIEWPORT,
)
from manualgrab.errors import FatalSetup

STORAGE_STATE_FILE = "playwright-storage-state.json"
DEFAULT_TIMEOUT_MS = 60_000

LAUNCH_ARGS = [
    # Wiring SVGs are served cross-origin.
    "--disable-web-security",
    "--disable-blink-features=AutomationControlled",
    "--disable-features=Translate,BackForwardCache",
    "--start-maximized",
    "--disable-extensions",
    "--no-default-browser-check",
    "--no-first-run",
]

# Runs before any page script.
STEALTH_SCRIPT = """
(() => {
    Object.defineProperty(navigator, 'webdriver', { get: () => undefined });
    Object.defineProperty(navigator, 'platform', { get: () => 'Win32' });
    Object.defineProperty(navigator, 'language', { get: () => 'en-US' });
    Object.defineProperty(navigator, 'languages', { get: () => ['en-US', 'en'] });
    Object.defineProperty(navigator, 'hardwareConcurrency', { get: () => 8 });
    Object.defineProperty(navigator, 'deviceMemory', { get: () => 8 });
    Object.defineProperty(navigator, 'plugins', {
        get: () => [
            { name: 'Chrome PDF Plugin' },
            { name: 'Chrome PDF Viewer' },
            { name: 'Native Client' },
        ],
    });
    if (navigator.userAgent.includes('HeadlessChrome')) {
        const patchedUA = navigator.userAgent.replace('HeadlessChrome', 'Chrome');
        Object.defineProperty(navigator, 'userAgent', { get: () => patchedUA });
    }
})();
"""


class BrowserMode(str, enum.Enum):
    MANAGED = "managed"
    REMOTE = "remote"


class ContextState(enum.Enum):
    UNINITIALIZED = "uninitialized"
    MANAGED = "managed"
    ATTACHED = "attached"
    CLOSED = "closed"


def elapsed(start: float) -> str:
    """Format elapsed time since *start* as a human-readable string."""
    secs = time.time() - start
    if secs < 60:
        return f"{secs:.1f}s"
    mins = int(secs // 60)
    remainder = secs % 60
    return f"{mins}m {remainder:.1f}s"


def is_network_url(url: str) -> bool:
    return not url.startswith("file:")


def rewrite_client_hints(route) -> None:
    """Route handler pinning ``sec-ch-ua`` on an outgoing request."""
    headers = route.request.all_headers()
    headers["sec-ch-ua"] = SEC_CH_UA
    route.continue_(headers=headers)


class BrowserManager:
    """Owns the run's browser context from creation to teardown."""

    def __init__(
        self,
        playwright,
        *,
        mode: BrowserMode = BrowserMode.MANAGED,
        cache_dir: Path,
        headless: bool = True,
        use_proxy: bool = False,
        cdp_url: str = DEFAULT_REMOTE_DEBUGGING_URL,
    ) -> None:
        self._pw = playwright
        self.mode = BrowserMode(mode)
        self.cache_dir = Path(cache_dir)
        self.headless = headless
        self.use_proxy = use_proxy
        self.cdp_url = cdp_url
        self.state = ContextState.UNINITIALIZED
        self.browser = None
        self.context = None

    @property
    def storage_state_path(self) -> Path:
        return self.cache_dir / STORAGE_STATE_FILE

    @property
    def is_attached(self) -> bool:
        return self.state is ContextState.ATTACHED

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    def open(self, bridge):
        """Create (managed) or borrow (remote) the browser context."""
        if self.state is not ContextState.UNINITIALIZED:
            raise RuntimeError(f"Browser context already {self.state.value}")
        if self.mode is BrowserMode.REMOTE:
            self._attach()
        else:
            self._launch(bridge)
        return self.context

    def _launch(self, bridge) -> None:
        print("[manualgrab] Creating a chromium instance …")
        self.browser = self._pw.chromium.launch(
            args=LAUNCH_ARGS,
            headless=self.headless,
            proxy={"server": PROXY_SERVER} if self.use_proxy else None,
            ignore_default_args=["--enable-automation"],
        )

        storage_state = None
        if self.storage_state_path.exists():
            storage_state = str(self.storage_state_path)
            print(f"[manualgrab] Restoring session state from {storage_state}")

        self.context = self.browser.new_context(
            user_agent=USER_AGENT,
            viewport=VIEWPORT,
            screen=VIEWPORT,
            device_scale_factor=1,
            locale="en-US",
            timezone_id="America/New_York",
            color_scheme="light",
            java_script_enabled=True,
            ignore_https_errors=True,
            extra_http_headers={
                "sec-ch-ua": SEC_CH_UA,
                "accept-language": ACCEPT_LANGUAGE,
            },
            storage_state=storage_state,
        )
        self.context.add_init_script(script=STEALTH_SCRIPT)
        self.context.route(is_network_url, rewrite_client_hints)
        self.state = ContextState.MANAGED
        self.inject_cookies(bridge)

    def _attach(self) -> None:
        print(f"[manualgrab] Connecting to an existing Chrome instance at {self.cdp_url} …")
        try:
            self.browser = self._pw.chromium.connect_over_cdp(self.cdp_url)
        except PlaywrightError as exc:
            raise FatalSetup(
                f"Failed to connect to Chrome via {self.cdp_url}. "
                "Make sure Chrome is started with --remote-debugging-port "
                f"and retry.\n{exc}"
            ) from exc

        contexts = self.browser.contexts
        if contexts:
            self.context = contexts[0]
        else:
            print(
                "[manualgrab] Warning: no existing Chrome contexts were found. "
                "Creating a fresh one; log into the portal manually if needed."
            )
            self.context = self.browser.new_context(viewport=VIEWPORT, screen=VIEWPORT)
        self.state = ContextState.ATTACHED

    def inject_cookies(self, bridge) -> None:
        """Push the bridge's cookies into a managed context.

        Attached contexts are never written to.
        """
        if self.state is not ContextState.MANAGED:
            return
        cookies = bridge.browser_cookies()
        if cookies:
            self.context.add_cookies(cookies)

    # ------------------------------------------------------------------
    # Pages
    # ------------------------------------------------------------------

    def new_page(self):
        if self.state not in (ContextState.MANAGED, ContextState.ATTACHED):
            raise RuntimeError(f"No usable browser context ({self.state.value})")
        page = self.context.new_page()
        if self.is_attached:
            # CDP connections don't always come with a viewport.
            page.set_viewport_size(VIEWPORT)
        page.set_default_timeout(DEFAULT_TIMEOUT_MS)
        return page

    # ------------------------------------------------------------------
    # Teardown
    # ------------------------------------------------------------------

    def close(self) -> None:
        if self.is_attached:
            print("[manualgrab] Leaving remote Chrome session running.")
            return
        if self.state is not ContextState.MANAGED:
            return
        print("[manualgrab] Closing browser")
        try:
            self.context.storage_state(path=str(self.storage_state_path))
        finally:
            self.context.close()
            self.browser.close()
            self.state = ContextState.CLOSED
