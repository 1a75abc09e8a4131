"""Command-line entry point for the lot crawler."""

import argparse
import asyncio
import logging
import re
import sys
from typing import Any, Optional, Sequence

from prometheus_client import start_http_server
from pydantic import ValidationError

from lotcrawler.config import Settings
from lotcrawler.crawler import run_crawl
from lotcrawler.logging_config import setup_logging

logger = logging.getLogger(__name__)

URL_PATTERN = re.compile(r"^https?://", re.IGNORECASE)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="lotcrawler",
        description="Crawl marketplace categories and save filtered lots to a semicolon-delimited file",
    )
    parser.add_argument("urls", nargs="*", help="Category URLs to crawl (default: all front page categories)")
    parser.add_argument("-u", "--url", dest="extra_urls", action="append", default=[], help="Category URL to crawl (repeatable)")
    parser.add_argument("--output", help="Output file (default: lots.txt)")
    parser.add_argument("--delay-min", type=float, help="Minimum delay between pages, seconds (default: 1.0)")
    parser.add_argument("--delay-max", type=float, help="Maximum delay between pages, seconds (default: 2.5)")
    parser.add_argument("--rub-eur", type=float, help="RUB to EUR exchange rate (default: 0.011)")
    parser.add_argument("--imgur-client-id", help="Imgur client id (enables image upload)")
    parser.add_argument("--imgur-access-token", help="Imgur access token (enables image upload)")
    parser.add_argument("--imgur-client-secret", help="Imgur client secret (enables image upload)")
    parser.add_argument("--upload-images", action="store_true", help="Upload lot images to Imgur")
    parser.add_argument("-l", "--lang", choices=["en", "ru"], type=str.lower, help="Keep only lots in this language")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    parser.add_argument("--proxies-file", help="Proxy list for image uploads (default: proxies.txt)")
    parser.add_argument("--image-dir", help="Image staging directory (default: imgs)")
    parser.add_argument("--metrics-port", type=int, help="Expose Prometheus metrics on this port")
    return parser


def settings_overrides(args: argparse.Namespace) -> dict[str, Any]:
    """Map parsed flags to Settings fields; unset flags keep environment values."""
    overrides: dict[str, Any] = {}
    for flag, field_name in (
        ("output", "output"),
        ("delay_min", "delay_min"),
        ("delay_max", "delay_max"),
        ("rub_eur", "rub_eur_rate"),
        ("imgur_client_id", "imgur_client_id"),
        ("imgur_access_token", "imgur_access_token"),
        ("imgur_client_secret", "imgur_client_secret"),
        ("lang", "lang"),
        ("proxies_file", "proxies_file"),
        ("image_dir", "image_dir"),
        ("metrics_port", "metrics_port"),
    ):
        value = getattr(args, flag)
        if value is not None:
            overrides[field_name] = value

    if args.upload_images or args.imgur_client_id or args.imgur_access_token or args.imgur_client_secret:
        overrides["upload_images"] = True
    if args.verbose:
        overrides["verbose"] = True

    urls = list(args.urls) + list(args.extra_urls)
    if urls:
        overrides["target_urls"] = urls
    return overrides


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_intermixed_args(argv)

    bad_urls = [u for u in args.urls if not URL_PATTERN.match(u)]
    if bad_urls:
        parser.error(f"not an http(s) URL: {', '.join(bad_urls)}")

    try:
        settings = Settings(**settings_overrides(args))
    except ValidationError as e:
        parser.error(f"invalid configuration:\n{e}")

    setup_logging(settings.log_level, settings.log_dir, settings.verbose)

    if settings.metrics_port:
        start_http_server(settings.metrics_port)
        logger.info(f"Metrics exposed on port {settings.metrics_port}")

    try:
        stats = asyncio.run(run_crawl(settings))
    except KeyboardInterrupt:
        logger.warning("Interrupted")
        return 130
    except Exception:
        logger.exception("Crawl failed")
        return 1

    logger.info(
        f"Crawl summary: {stats.categories} categories, {stats.pages} pages, "
        f"{stats.written} lots written, {stats.duplicates} duplicates, "
        f"{stats.filtered_language} filtered by language, {stats.filtered_price} filtered by price"
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
