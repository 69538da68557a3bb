"""CLI entry point for manualgrab."""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

from manualgrab.chrome import BrowserMode
from manualgrab.constants import DEFAULT_REMOTE_DEBUGGING_URL
from manualgrab.download import SaveOptions
from manualgrab.errors import ManualGrabError, NodeFailure
from manualgrab.runner import RunOptions, run


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="manualgrab",
        description=(
            "Download the full workshop manual and wiring diagrams for your car as PDF/HTML. "
            "Requires a valid portal subscription."
        ),
    )
    parser.add_argument("-c", "--config", required=True, help="Path to your config file.")
    parser.add_argument(
        "-s",
        "--cookie-file",
        default=None,
        help="File containing your portal Cookie header (required in managed mode).",
    )
    parser.add_argument(
        "-o",
        "--output",
        required=True,
        help="Directory to download the manual into. Should be empty unless resuming.",
    )
    parser.add_argument("--no-workshop", action="store_true", help="Skip the workshop manual.")
    parser.add_argument(
        "--no-wiring", action="store_true", help="Skip downloading the wiring diagrams."
    )
    parser.add_argument(
        "--no-params-validation", action="store_true", help="Skip validating the config file."
    )
    parser.add_argument(
        "--no-cookie-test",
        action="store_true",
        help="Skip trying to log into the portal before downloading.",
    )
    parser.add_argument(
        "--save-html", action="store_true", help="Save .html files along with .pdf files."
    )
    parser.add_argument(
        "-i",
        "--ignore-save-errors",
        action="store_true",
        help="Keep going when a page fails to save or print.",
    )
    parser.add_argument(
        "--resume",
        action="store_true",
        help="Skip documents whose PDF already exists in the output directory.",
    )
    parser.add_argument(
        "--browser-mode",
        type=str.lower,
        choices=[m.value for m in BrowserMode],
        default=BrowserMode.MANAGED.value,
        help=(
            "Start our own browser (managed) or connect to your running "
            "Chrome (remote). Default: managed."
        ),
    )
    parser.add_argument(
        "--remote-debugging-url",
        default=DEFAULT_REMOTE_DEBUGGING_URL,
        help=f"Remote debugging endpoint for remote mode (default: {DEFAULT_REMOTE_DEBUGGING_URL}).",
    )
    return parser


def parse_args(argv: list[str] | None = None) -> RunOptions:
    parser = build_parser()
    args = parser.parse_args(argv)

    mode = BrowserMode(args.browser_mode)
    if mode is BrowserMode.MANAGED and not args.cookie_file:
        parser.error("--cookie-file is required when using managed mode")

    return RunOptions(
        config_path=Path(args.config),
        output_path=Path(args.output),
        cookie_path=Path(args.cookie_file) if args.cookie_file else None,
        do_workshop=not args.no_workshop,
        do_wiring=not args.no_wiring,
        validate_params=not args.no_params_validation,
        cookie_test=not args.no_cookie_test,
        save=SaveOptions(
            save_html=args.save_html,
            ignore_save_errors=args.ignore_save_errors,
            skip_existing=args.resume,
        ),
        browser_mode=mode,
        remote_debugging_url=args.remote_debugging_url,
    )


def main(argv: list[str] | None = None) -> None:
    options = parse_args(argv)
    try:
        result = run(options)
    except NodeFailure as exc:
        print(f"Error: {exc}", file=sys.stderr)
        print(f"[manualgrab] {exc.result.summary()}", file=sys.stderr)
        if exc.failed is not None:
            print(f"[manualgrab] Stopped at {exc.failed.node_id} ({exc.failed.error})", file=sys.stderr)
        print("Re-run with --ignore-save-errors to skip failing pages.", file=sys.stderr)
        sys.exit(1)
    except ManualGrabError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        sys.exit(1)

    if result is not None:
        print(f"[manualgrab] {result.summary()}")
        if result.failed:
            print(
                f"[manualgrab] Warning: {len(result.failed)} pages failed to save: "
                + ", ".join(o.path or o.node_id for o in result.failed)
            )
    sys.exit(0)


if __name__ == "__main__":
    main()
