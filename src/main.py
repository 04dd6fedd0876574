"""CLI entrypoint for AutoAnswer."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
from datetime import datetime, timezone
from pathlib import Path

from autoanswer.config import ANSWER_PROVIDER, AUTO_SUBMIT, DEFAULT_BROWSER, LOG_ROOT
from autoanswer.exchange_log import ExchangeLog
from autoanswer.provider import StaticAnswerProvider, build_provider
from autoanswer.runner import fill_html, run_autofill


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Discover form controls on a page and fill them with answers.")
    target = parser.add_mutually_exclusive_group(required=True)
    target.add_argument("--url", help="Page to open in a browser and fill.")
    target.add_argument("--html", help="Path to a static HTML file to fill offline.")
    parser.add_argument(
        "--answers",
        help="JSON file with preloaded answers; without it answers come from --provider.",
    )
    parser.add_argument(
        "--provider",
        choices=("openai", "gemini"),
        default=ANSWER_PROVIDER,
        help="Model backend used when no answers file is given.",
    )
    parser.add_argument("--out", help="Where to write the filled HTML (offline mode only).")
    parser.add_argument(
        "--auto-submit",
        action=argparse.BooleanOptionalAction,
        default=AUTO_SUBMIT,
        help="Submit the first touched form after filling.",
    )
    parser.add_argument(
        "--skip-submit",
        action="store_true",
        help="Never submit and suppress change events while filling.",
    )
    parser.add_argument("--include-screenshot", action="store_true", help="Attach a page screenshot to the request.")
    parser.add_argument("--focus", help="CSS selector of the focused control (offline mode).")
    parser.add_argument("--selection", help="CSS selector of the selected block (offline mode).")
    parser.add_argument("--headless", action="store_true", help="Run the browser in headless mode.")
    parser.add_argument(
        "--browser",
        default=DEFAULT_BROWSER,
        help="Browser engine to use (chrome, chromium, firefox, or webkit).",
    )
    parser.add_argument("--profile-dir", help="Optional user data directory to reuse between runs.")
    parser.add_argument("--timeout-ms", type=int, default=15000, help="Timeout for page loads.")
    parser.add_argument("--log-level", default="INFO", help="Python logging level.")
    return parser.parse_args()


def main() -> None:
    args = parse_args()
    log_file = _configure_logging(args.log_level)
    logging.info("Log file: %s", log_file)
    _validate_args(args)

    provider = StaticAnswerProvider.from_file(args.answers) if args.answers else build_provider(args.provider)
    exchange_log = ExchangeLog()

    if args.url:
        result = asyncio.run(
            run_autofill(
                args.url,
                provider,
                auto_submit=args.auto_submit,
                skip_submit=args.skip_submit,
                headless=args.headless,
                browser=args.browser,
                include_screenshot=args.include_screenshot,
                timeout_ms=args.timeout_ms,
                profile_dir=args.profile_dir,
                exchange_log=exchange_log,
            )
        )
    else:
        html = Path(args.html).expanduser().read_text(encoding="utf-8")
        result, filled_html = asyncio.run(
            fill_html(
                html,
                provider,
                auto_submit=args.auto_submit,
                skip_submit=args.skip_submit,
                focused=args.focus,
                selection=args.selection,
                exchange_log=exchange_log,
            )
        )
        if args.out:
            Path(args.out).expanduser().write_text(filled_html, encoding="utf-8")
            logging.info("Filled HTML written to %s", args.out)

    for entry in exchange_log.entries():
        logging.debug("Exchange: %s", json.dumps(entry.to_dict(), default=str))
    print(json.dumps(result.model_dump(), indent=2))
    if not result.ok:
        raise SystemExit(1)


def _validate_args(args: argparse.Namespace) -> None:
    for label, value in (("HTML file", args.html), ("Answers file", args.answers)):
        if not value:
            continue
        path = Path(value).expanduser()
        if not path.is_file():
            raise SystemExit(f"{label} not found: {path}")
    if args.out and not args.html:
        raise SystemExit("--out is only supported together with --html")
    if args.profile_dir:
        profile_path = Path(args.profile_dir).expanduser()
        if profile_path.exists() and not profile_path.is_dir():
            raise SystemExit(f"Profile directory must be a directory path: {profile_path}")


def _configure_logging(log_level: str) -> Path:
    level = getattr(logging, log_level.upper(), logging.INFO)
    log_dir = LOG_ROOT
    log_dir.mkdir(exist_ok=True)
    log_file = log_dir / f"autoanswer-{datetime.now(timezone.utc).strftime('%Y%m%d-%H%M%S')}.log"
    formatter = logging.Formatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s")
    stream_handler = logging.StreamHandler()
    stream_handler.setFormatter(formatter)
    file_handler = logging.FileHandler(log_file, encoding="utf-8")
    file_handler.setFormatter(formatter)
    logging.basicConfig(level=level, handlers=[stream_handler, file_handler])
    return log_file


if __name__ == "__main__":
    main()
