"""End-to-end download of one workshop manual."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from pathlib import Path

from playwright.sync_api import sync_playwright

from manualgrab import auth
from manualgrab.chrome import BrowserManager, BrowserMode, elapsed
from manualgrab.config import Config, load_config
from manualgrab.constants import (
    BLOCKED_IMAGE,
    DEFAULT_REMOTE_DEBUGGING_URL,
    ENV_HEADLESS_BROWSER,
    ENV_USE_PROXY,
    PLACEHOLDER_INDEX_URL,
    WIRING_DIR,
)
from manualgrab.cookies import collapse_header, transform_cookie_string
from manualgrab.download import SaveOptions, TraversalResult, persist
from manualgrab.errors import FatalSetup, NodeFailure
from manualgrab.session import SessionBridge
from manualgrab.sources import legacy, modern, select_source, wiring


@dataclass
class RunOptions:
    config_path: Path
    output_path: Path
    cookie_path: Path | None = None
    do_workshop: bool = True
    do_wiring: bool = True
    validate_params: bool = True
    cookie_test: bool = True
    save: SaveOptions = field(default_factory=SaveOptions)
    browser_mode: BrowserMode = BrowserMode.MANAGED
    remote_debugging_url: str = DEFAULT_REMOTE_DEBUGGING_URL
    cache_dir: Path = field(default_factory=lambda: Path.cwd() / ".cache")


def ensure_dir(path: Path, what: str) -> Path:
    try:
        path.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise FatalSetup(f"Error creating {what} directory {path}: {exc}") from exc
    return path


def load_cookie_file(bridge: SessionBridge, path: Path) -> None:
    print("[manualgrab] Processing cookies …")
    try:
        raw = collapse_header(Path(path).read_text(encoding="utf-8"))
    except OSError as exc:
        raise FatalSetup(f"Could not read cookie file {path}: {exc}") from exc
    credentials = transform_cookie_string(raw)
    if not credentials:
        raise FatalSetup(f"No cookies found in {path}")
    bridge.apply(credentials)


def harvest_cookies(bridge: SessionBridge, context) -> None:
    credentials = bridge.harvest(context)
    if credentials is None:
        raise FatalSetup(
            "Could not find any portal cookies inside the connected Chrome "
            "session. Please log into the portal in that browser and try again."
        )
    bridge.apply(credentials)
    print("[manualgrab] Loaded cookies from the active Chrome session.")


def modern_workshop(
    config: Config, output: Path, bridge: SessionBridge, page, options: SaveOptions
) -> TraversalResult:
    print("[manualgrab] Downloading and processing table of contents …")
    tree = modern.fetch_tree_and_cover(bridge.http, config.workshop_params)
    modern.write_index_files(output, tree)

    print("[manualgrab] Saving manual files …")
    return persist(tree.root, output, page, options, resolve_url=tree.resolve_url)


def legacy_workshop(
    config: Config, output: Path, bridge: SessionBridge, page, options: SaveOptions
) -> TraversalResult:
    print("[manualgrab] Downloading and processing alphabetical index …")
    index = legacy.fetch_alphabetical_index(
        bridge.http, config.alphabetical_index_url, bridge.raw_header
    )
    legacy.write_index_files(output, index)

    print("[manualgrab] Saving manual files …")
    return persist(
        index.document_list, output, page, options, resolve_url=index.resolve_url
    )


def wiring_manual(
    config: Config, output: Path, bridge: SessionBridge, page, options: SaveOptions
) -> TraversalResult:
    print("[manualgrab] Fetching wiring table of contents …")
    toc = wiring.fetch_table_of_contents(bridge.http, config.wiring_params)
    target = output / WIRING_DIR
    wiring.write_index_files(target, toc)

    print("[manualgrab] Saving wiring diagrams …")
    return persist(toc.root, target, page, options, resolve_url=toc.resolve_url)


def run(options: RunOptions) -> TraversalResult | None:
    """Download the manual described by *options*.

    Returns the workshop and wiring outcomes combined, or ``None`` when
    both downloads were skipped.  Fatal problems raise a
    :class:`~manualgrab.errors.ManualGrabError`.
    """
    t_total = time.time()
    config = load_config(options.config_path, options.validate_params)
    remote = options.browser_mode is BrowserMode.REMOTE

    if options.do_workshop and not config.is_modern and (
        config.alphabetical_index_url in ("", PLACEHOLDER_INDEX_URL)
    ):
        raise FatalSetup(
            "Please set the URL for the pre-2003 alphabetical index in the config file."
        )
    if options.do_wiring and not config.wiring_book:
        raise FatalSetup(
            "Please set workshop.WiringBookCode in the config file, or pass --no-wiring."
        )

    bridge = SessionBridge()
    if remote:
        print("[manualgrab] Using cookies from the connected Chrome session …")
    else:
        if options.cookie_path is None:
            raise FatalSetup("A cookie file is required when using managed mode.")
        load_cookie_file(bridge, options.cookie_path)

    output = ensure_dir(Path(options.output_path), "output")
    cache_dir = ensure_dir(Path(options.cache_dir), "cache")

    results: list[TraversalResult] = []
    with sync_playwright() as pw:
        manager = BrowserManager(
            pw,
            mode=options.browser_mode,
            cache_dir=cache_dir,
            headless=ENV_HEADLESS_BROWSER,
            use_proxy=ENV_USE_PROXY,
            cdp_url=options.remote_debugging_url,
        )
        context = manager.open(bridge)
        try:
            if remote:
                harvest_cookies(bridge, context)

            if options.cookie_test:
                print("[manualgrab] Attempting to log into the portal …")
                page = manager.new_page()
                try:
                    auth.require_authenticated(auth.verify(page))
                finally:
                    page.close()
                print("[manualgrab] Login ok!")

            if options.do_workshop:
                results.append(_workshop(config, output, bridge, manager, options.save))
                print("[manualgrab] Saved workshop manual!")
            else:
                print("[manualgrab] Skipping workshop manual download.")

            if options.do_wiring:
                print("[manualgrab] Saving wiring manual …")
                try:
                    results.append(_wiring(config, output, bridge, manager, options.save))
                except NodeFailure as exc:
                    exc.result = _combine(results + [exc.result])
                    raise
                print("[manualgrab] Saved wiring manual!")
            else:
                print("[manualgrab] Skipping wiring manual download.")
        finally:
            manager.close()

    print(f"[manualgrab] Total time: {elapsed(t_total)}")
    return _combine(results) if results else None


def _combine(results: list[TraversalResult]) -> TraversalResult:
    return TraversalResult([o for r in results for o in r.outcomes])


def _workshop(config, output, bridge, manager, save) -> TraversalResult:
    source = select_source(config.model_year)
    if source == "legacy":
        print("[manualgrab] Downloading pre-2003 workshop manual …")
        manager.inject_cookies(bridge)

    page = manager.new_page()
    try:
        if source == "modern":
            page.route(BLOCKED_IMAGE, lambda route: route.abort())
            return modern_workshop(config, output, bridge, page, save)
        return legacy_workshop(config, output, bridge, page, save)
    finally:
        page.close()


def _wiring(config, output, bridge, manager, save) -> TraversalResult:
    manager.inject_cookies(bridge)
    page = manager.new_page()
    try:
        return wiring_manual(config, output, bridge, page, save)
    finally:
        page.close()
