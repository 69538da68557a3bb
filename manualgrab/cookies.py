"""Cookie header parsing.

Turns a raw ``Cookie:`` header copied from a logged-in browser into the two
shapes the rest of the program needs: structured records for Playwright and
a normalized header string for ``requests``.
"""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True)
class Cookie:
    name: str
    value: str
    domain: str | None = None
    path: str = "/"


@dataclass(frozen=True)
class Credentials:
    raw_header: str
    cookies: tuple[Cookie, ...] = field(default_factory=tuple)
    processed_header: str = ""

    def __bool__(self) -> bool:
        return bool(self.cookies)


def collapse_header(text: str) -> str:
    """Join a header pasted over several lines into one logical line."""
    return " ".join(text.strip().splitlines())


def transform_cookie_string(raw: str) -> Credentials:
    """Parse *raw* (``a=1; b=2``) into :class:`Credentials`.

    Malformed segments (empty, no ``=``, empty name) are dropped without
    failing the whole header.  Values may themselves contain ``=``.
    """
    cookies: list[Cookie] = []
    for segment in raw.split(";"):
        segment = segment.strip()
        if not segment or "=" not in segment:
            continue
        name, value = segment.split("=", 1)
        name = name.strip()
        if not name:
            continue
        cookies.append(Cookie(name=name, value=value.strip()))

    return Credentials(
        raw_header=raw,
        cookies=tuple(cookies),
        processed_header=serialize_cookies(cookies),
    )


def serialize_cookies(records) -> str:
    """Serialize cookie records (dataclasses or Playwright dicts)."""
    parts = []
    for record in records:
        if isinstance(record, dict):
            parts.append(f"{record['name']}={record['value']}")
        else:
            parts.append(f"{record.name}={record.value}")
    return "; ".join(parts)
