"""Check that the browser session is actually logged into the portal."""

from __future__ import annotations

import enum
import sys
from dataclasses import dataclass
from urllib.parse import urlparse

from playwright.sync_api import Error as PlaywrightError

from manualgrab.constants import EXPIRY_SELECTOR, PORTAL_URL, SUBSCRIPTION_EXPIRED_MARKER
from manualgrab.errors import AuthenticationFailure


class AuthStatus(enum.Enum):
    AUTHENTICATED = "authenticated"
    SUBSCRIPTION_EXPIRED = "subscription_expired"
    LOGIN_FAILED = "login_failed"


@dataclass
class AuthResult:
    status: AuthStatus
    url: str
    message: str | None = None

    @property
    def ok(self) -> bool:
        return self.status is AuthStatus.AUTHENTICATED


def wait_for_enter() -> None:
    """Block until the user presses Enter."""
    sys.stdout.write("Press Enter to continue...")
    sys.stdout.flush()
    sys.stdin.readline()
    print("Continuing...")


def _origin(url: str) -> str:
    parts = urlparse(url)
    return f"{parts.scheme}://{parts.netloc}".lower()


def classify(url: str, landing_url: str = PORTAL_URL) -> AuthStatus:
    if SUBSCRIPTION_EXPIRED_MARKER in url:
        return AuthStatus.SUBSCRIPTION_EXPIRED
    if _origin(url) != _origin(landing_url):
        return AuthStatus.LOGIN_FAILED
    return AuthStatus.AUTHENTICATED


def verify(page, *, landing_url: str = PORTAL_URL, wait_for_user=wait_for_enter) -> AuthResult:
    """Open *landing_url* and report whether the session is logged in.

    If the first navigation fails (typically a consent or bot-check page
    still waiting for the user) we block once on *wait_for_user* and try
    exactly one more time.
    """
    try:
        page.goto(landing_url, wait_until="load")
    except PlaywrightError:
        wait_for_user()
        try:
            page.goto(landing_url, wait_until="load")
        except PlaywrightError as exc:
            raise AuthenticationFailure(
                f"Could not open {landing_url} after manual intervention: {exc}"
            ) from exc

    url = page.url
    status = classify(url, landing_url)
    message = None
    if status is AuthStatus.SUBSCRIPTION_EXPIRED:
        message = page.evaluate(
            f"document.querySelector({EXPIRY_SELECTOR!r})?.innerText?.trim()"
        )
    return AuthResult(status=status, url=url, message=message or None)


def require_authenticated(result: AuthResult) -> None:
    """Raise :class:`AuthenticationFailure` unless *result* is a login."""
    if result.status is AuthStatus.SUBSCRIPTION_EXPIRED:
        detail = f"\n{result.message}" if result.message else ""
        raise AuthenticationFailure(
            "Looks like your subscription has expired. Re-subscribe to "
            "download manuals. If you just want to download a workshop "
            "manual, you may be able to do so without re-subscribing: run "
            "with --no-cookie-test." + detail
        )
    if result.status is AuthStatus.LOGIN_FAILED:
        raise AuthenticationFailure(
            f"Failed to log in with the provided cookies (landed on {result.url})."
        )
