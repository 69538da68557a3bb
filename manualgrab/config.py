"""Manual config file loading.

The config is a JSON file::

    {
        "workshop": {"modelYear": "2011", "book": "...", ...},
        "pre_2003": {"alphabeticalIndexURL": "https://..."},
        "wiring": {"environment": "...", ...}
    }

Every ``workshop`` key except ``modelYear`` is forwarded as a query
parameter to the table-of-contents and document endpoints.
The wiring diagrams reuse a few workshop keys (``WiringBookCode``,
``contentlanguage``, ``contentmarket``, ``languageOdysseyCode``) on top of
the ``wiring`` section.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path

from manualgrab.constants import MODERN_ERA_START, PLACEHOLDER_INDEX_URL
from manualgrab.errors import FatalSetup


class ConfigError(FatalSetup):
    """The config file is missing, unreadable or incomplete."""


@dataclass
class Config:
    model_year: int
    workshop: dict[str, str] = field(default_factory=dict)
    alphabetical_index_url: str = ""
    wiring: dict[str, str] = field(default_factory=dict)

    @property
    def is_modern(self) -> bool:
        return self.model_year >= MODERN_ERA_START

    @property
    def workshop_params(self) -> dict[str, str]:
        return {k: str(v) for k, v in self.workshop.items() if k != "modelYear"}

    @property
    def wiring_book(self) -> str:
        return str(self.workshop.get("WiringBookCode") or "")

    @property
    def wiring_params(self) -> dict[str, str]:
        params = {k: str(v) for k, v in self.wiring.items()}
        shared = {
            "book": "WiringBookCode",
            "contentlanguage": "contentlanguage",
            "contentmarket": "contentmarket",
            "languageCode": "languageOdysseyCode",
        }
        for key, source in shared.items():
            if self.workshop.get(source) not in (None, ""):
                params[key] = str(self.workshop[source])
        return params


def load_config(path: Path, validate: bool = True) -> Config:
    try:
        data = json.loads(Path(path).read_text(encoding="utf-8"))
    except OSError as exc:
        raise ConfigError(f"Could not read config file {path}: {exc}") from exc
    except ValueError as exc:
        raise ConfigError(f"Config file {path} is not valid JSON: {exc}") from exc

    if not isinstance(data, dict):
        raise ConfigError(f"Config file {path} must contain a JSON object")

    workshop = data.get("workshop") or {}
    pre_2003 = data.get("pre_2003") or {}
    wiring = data.get("wiring") or {}
    if not all(isinstance(s, dict) for s in (workshop, pre_2003, wiring)):
        raise ConfigError("'workshop', 'pre_2003' and 'wiring' must be JSON objects")

    try:
        model_year = int(workshop.get("modelYear"))
    except (TypeError, ValueError) as exc:
        raise ConfigError("workshop.modelYear must be a year, e.g. \"2011\"") from exc

    config = Config(
        model_year=model_year,
        workshop=dict(workshop),
        alphabetical_index_url=str(pre_2003.get("alphabeticalIndexURL") or ""),
        wiring=dict(wiring),
    )
    if validate:
        validate_config(config)
    return config


def validate_config(config: Config) -> None:
    if config.is_modern:
        missing = [k for k, v in config.workshop_params.items() if v == ""]
        if missing:
            raise ConfigError(f"Empty workshop parameters: {', '.join(sorted(missing))}")
        return
    url = config.alphabetical_index_url
    if not url or url == PLACEHOLDER_INDEX_URL:
        raise ConfigError(
            "Please set the URL for the pre-2003 alphabetical index in the config file."
        )
    if not url.startswith(("http://", "https://")):
        raise ConfigError(f"pre_2003.alphabeticalIndexURL is not a URL: {url}")
