"""Lot detail page enrichment: full description, seller link and images."""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Iterable, List, Optional
from urllib.parse import urlparse

from lotcrawler import metrics
from lotcrawler.ingest.base import ListingExtractor, Lot
from lotcrawler.ingest.http_client import FetchError, RateLimitedFetcher
from lotcrawler.ingest.image_uploader import ImageUploader, UploadError

logger = logging.getLogger(__name__)

ACCEPTED_IMAGE_EXTENSIONS = (".jpeg", ".jpg", ".gif", ".png", ".apng", ".tiff")
MAX_IMAGES_PER_LOT = 5


def is_accepted_image(url: str) -> bool:
    """Check the extension of the URL path against the upload allowlist."""
    ext = urlparse(url).path.split(".")[-1].lower()
    return f".{ext}" in ACCEPTED_IMAGE_EXTENSIONS


def is_user_avatar(url: str) -> bool:
    return "avatar" in url.lower()


def select_image_urls(candidates: Iterable[str], limit: int = MAX_IMAGES_PER_LOT) -> List[str]:
    """
    Filter image candidates for upload.

    Keeps accepted extensions only, drops avatars and duplicates, and returns
    at most ``limit`` URLs in discovery order.
    """
    selected: List[str] = []
    for url in candidates:
        if not is_accepted_image(url) or is_user_avatar(url) or url in selected:
            continue
        selected.append(url)
        if len(selected) >= limit:
            break
    return selected


class DetailEnricher:
    """Fetches a lot's detail page and merges its fields into the lot."""

    def __init__(
        self,
        fetcher: RateLimitedFetcher,
        extractor: ListingExtractor,
        base_url: str,
        max_retries: int = 3,
        uploader: Optional[ImageUploader] = None,
        max_images: int = MAX_IMAGES_PER_LOT,
        upload_delay: float = 1.5,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.fetcher = fetcher
        self.extractor = extractor
        self.base_url = base_url
        self.max_retries = max_retries
        self.uploader = uploader
        self.max_images = max_images
        self.upload_delay = upload_delay
        self._sleep = sleep

    async def enrich(self, lot: Lot) -> bool:
        """
        Enrich a lot in place from its detail page.

        A failed fetch is logged and the lot keeps its listing-page data.

        Returns:
            True if the detail page was fetched and applied
        """
        if not lot.lot_url:
            return False

        try:
            html = await self.fetcher.fetch(lot.lot_url, max_retries=self.max_retries)
        except FetchError as e:
            metrics.record_detail_failure()
            logger.warning(f"Detail page fetch failed for {lot.lot_url}: {e}")
            return False

        detail = self.extractor.parse_detail(html, self.base_url)

        if detail.description and detail.description != lot.title:
            lot.description = detail.description
        if detail.seller_url:
            lot.seller = detail.seller_url

        if self.uploader is not None:
            image_urls = select_image_urls(detail.image_urls, self.max_images)
            lot.images = await self.upload_images(image_urls)

        return True

    async def upload_images(self, image_urls: List[str]) -> List[str]:
        """Upload images one by one; failures are logged and skipped."""
        links: List[str] = []
        for i, src in enumerate(image_urls):
            if i > 0 and self.upload_delay > 0:
                await self._sleep(self.upload_delay)
            try:
                link = await self.uploader.upload(src)
            except UploadError as e:
                metrics.record_image_upload(False)
                logger.warning(f"Image upload failed for {src}: {e}")
                continue
            metrics.record_image_upload(True)
            links.append(link)
        return links
