"""Run orchestration: setup, category selection and the sequential crawl."""

from __future__ import annotations

import asyncio
import logging
import random
from pathlib import Path
from typing import Awaitable, Callable, List, Optional

import httpx

from lotcrawler.config import ConfigurationError, Settings
from lotcrawler.ingest.base import Category, ListingExtractor
from lotcrawler.ingest.category_scanner import CategoryScanner, CrawlStats
from lotcrawler.ingest.detail_page import DetailEnricher
from lotcrawler.ingest.http_client import RateLimitedFetcher, create_client
from lotcrawler.ingest.image_uploader import ImageUploader, prepare_staging_dir
from lotcrawler.ingest.marketplaces.funpay import FunPayExtractor
from lotcrawler.ingest.proxy_manager import ProxyInfo, load_proxies
from lotcrawler.ingest.rate_limiter import PageThrottle
from lotcrawler.normalize.processor import LotNormalizer
from lotcrawler.output.writer import LotWriter

logger = logging.getLogger(__name__)


async def discover_categories(
    settings: Settings,
    fetcher: RateLimitedFetcher,
    extractor: ListingExtractor,
) -> List[Category]:
    """
    Get the categories to crawl.

    Explicit target URLs map one-to-one to categories named after the URL
    path; otherwise the site's front page is scanned for category links.

    Raises:
        FetchError: If the front page cannot be fetched
    """
    if settings.target_urls:
        return [Category.from_url(url) for url in settings.target_urls]

    html = await fetcher.fetch(settings.base_url, max_retries=settings.page_max_retries)
    return extractor.parse_categories(html, settings.base_url)


def build_uploader(
    settings: Settings,
    staging_dir: Path,
    client: httpx.AsyncClient,
    proxies: List[ProxyInfo],
    client_factory: Callable[..., httpx.AsyncClient] = httpx.AsyncClient,
    rng: Optional[random.Random] = None,
) -> Optional[ImageUploader]:
    """Build the image uploader, or None when upload is off or not configured."""
    if not settings.upload_enabled:
        return None
    try:
        return ImageUploader.from_settings(
            settings,
            staging_dir,
            client,
            proxies,
            rng=rng,
            client_factory=client_factory,
        )
    except ConfigurationError as e:
        logger.warning(f"Image upload disabled: {e}")
        return None


async def run_crawl(
    settings: Settings,
    client: Optional[httpx.AsyncClient] = None,
    extractor: Optional[ListingExtractor] = None,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    rng: Optional[random.Random] = None,
    upload_client_factory: Callable[..., httpx.AsyncClient] = httpx.AsyncClient,
) -> CrawlStats:
    """
    Crawl every category and stream accepted lots to the output file.

    Categories, pages, lots and images are processed strictly one at a time.
    Setup failures (staging directory, output file, front page) propagate.

    Args:
        settings: Run configuration
        client: HTTP client for site pages (created from settings if omitted)
        extractor: Site layout extractor (FunPay by default)
        sleep: Awaitable sleep used for every delay
        rng: Randomness source for delays, backoff and proxy choice
        upload_client_factory: Factory for image-host clients

    Returns:
        CrawlStats for the run
    """
    staging_dir = prepare_staging_dir(settings.image_dir)
    proxies = load_proxies(settings.proxies_file)
    extractor = extractor or FunPayExtractor()
    rng = rng or random.Random()

    own_client = client is None
    if own_client:
        client = create_client(settings)

    stats = CrawlStats()
    try:
        fetcher = RateLimitedFetcher(client, settings.base_url, sleep=sleep, rng=rng)
        uploader = build_uploader(settings, staging_dir, client, proxies, upload_client_factory, rng)
        enricher = DetailEnricher(
            fetcher=fetcher,
            extractor=extractor,
            base_url=settings.base_url,
            max_retries=settings.detail_max_retries,
            uploader=uploader,
            max_images=settings.max_images_per_lot,
            upload_delay=settings.upload_delay,
            sleep=sleep,
        )
        normalizer = LotNormalizer(settings.rub_eur_rate, settings.lang)
        throttle = PageThrottle(settings.delay_min, settings.delay_max, sleep=sleep, rng=rng)

        categories = await discover_categories(settings, fetcher, extractor)
        logger.info(f"Categories to crawl: {len(categories)}")

        with LotWriter(settings.output) as writer:
            scanner = CategoryScanner(
                fetcher=fetcher,
                extractor=extractor,
                normalizer=normalizer,
                sink=writer,
                throttle=throttle,
                base_url=settings.base_url,
                enricher=enricher,
                page_max_retries=settings.page_max_retries,
                stats=stats,
            )
            for category in categories:
                await scanner.scan_category(category)

        logger.info(f"Total lots saved: {stats.written}")
        logger.info(f"Done. Output saved to {Path(settings.output).resolve()}")
    finally:
        if own_client:
            await client.aclose()

    return stats
