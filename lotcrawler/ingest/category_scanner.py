"""Category crawl loop: pagination, end-of-listing detection and per-lot processing."""

import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Protocol

from lotcrawler import metrics
from lotcrawler.ingest.base import Category, ExtractionError, ListingExtractor, Lot
from lotcrawler.ingest.detail_page import DetailEnricher
from lotcrawler.ingest.http_client import FetchError, RateLimitedFetcher
from lotcrawler.ingest.rate_limiter import PageThrottle
from lotcrawler.logging_config import get_logger
from lotcrawler.normalize.processor import REASON_LANGUAGE, REASON_PRICE, LotNormalizer

logger = logging.getLogger(__name__)

STOP_EMPTY_PAGE = "empty_page"
STOP_WRAP_AROUND = "wrap_around"
STOP_FETCH_ERROR = "fetch_error"


class LotSink(Protocol):
    def write(self, lot: Lot) -> None:
        ...


class CrawlState(str, Enum):
    """Where a category crawl currently is."""

    FETCHING_PAGE = "fetching_page"
    EXTRACTING = "extracting"
    FILTERING = "filtering"
    DONE = "done"


def build_page_url(category_url: str, page: int) -> str:
    """Page 1 is the category URL itself; later pages add a page parameter."""
    if page <= 1:
        return category_url
    separator = "&" if "?" in category_url else "?"
    return f"{category_url}{separator}page={page}"


@dataclass
class CrawlCursor:
    """Mutable per-category crawl state. Never shared between categories."""

    category: Category
    page: int = 1
    override_url: Optional[str] = None
    seen: set[str] = field(default_factory=set)
    state: CrawlState = CrawlState.FETCHING_PAGE

    def next_page_url(self) -> str:
        """URL of the current page; a pending override is used once and cleared."""
        url = self.override_url or build_page_url(self.category.url, self.page)
        self.override_url = None
        return url

    def is_wrap_around(self, lots: List[Lot]) -> bool:
        """True when a later page starts with a lot this category already saw."""
        return self.page > 1 and bool(lots) and lots[0].identity_key in self.seen

    def mark_seen(self, lot: Lot) -> bool:
        """Record the lot's identity. Returns False if it was already seen."""
        key = lot.identity_key
        if key in self.seen:
            return False
        self.seen.add(key)
        return True


@dataclass
class CrawlStats:
    """Counters for one crawl run."""

    categories: int = 0
    pages: int = 0
    lots_extracted: int = 0
    duplicates: int = 0
    filtered_language: int = 0
    filtered_price: int = 0
    written: int = 0
    failed_categories: List[str] = field(default_factory=list)


@dataclass
class CategoryResult:
    """Outcome of one category crawl."""

    category: Category
    pages: int = 0
    written: int = 0
    stop_reason: Optional[str] = None


class CategoryScanner:
    """Crawls categories page by page and emits filtered, enriched lots."""

    def __init__(
        self,
        fetcher: RateLimitedFetcher,
        extractor: ListingExtractor,
        normalizer: LotNormalizer,
        sink: LotSink,
        throttle: PageThrottle,
        base_url: str,
        enricher: Optional[DetailEnricher] = None,
        page_max_retries: int = 5,
        stats: Optional[CrawlStats] = None,
    ):
        self.fetcher = fetcher
        self.extractor = extractor
        self.normalizer = normalizer
        self.sink = sink
        self.throttle = throttle
        self.base_url = base_url
        self.enricher = enricher
        self.page_max_retries = page_max_retries
        self.stats = stats or CrawlStats()

    async def scan_category(self, category: Category) -> CategoryResult:
        """
        Crawl one category until an empty page, a wrap-around or a fetch failure.

        Args:
            category: Category to crawl

        Returns:
            CategoryResult with page count, written lots and stop reason
        """
        log = get_logger(__name__, category=category.name)
        cursor = CrawlCursor(category=category)
        result = CategoryResult(category=category)
        self.stats.categories += 1
        log.info(f"Crawling category {category.name} -> {category.url}")

        while True:
            cursor.state = CrawlState.FETCHING_PAGE
            page_url = cursor.next_page_url()
            start = time.perf_counter()
            try:
                html = await self.fetcher.fetch(page_url, max_retries=self.page_max_retries)
            except FetchError as e:
                metrics.record_page_fetch("error")
                log.warning(f"Page {cursor.page} fetch failed ({page_url}): {e}")
                self.stats.failed_categories.append(category.name)
                result.stop_reason = STOP_FETCH_ERROR
                break
            metrics.record_page_fetch("success", time.perf_counter() - start)
            self.stats.pages += 1
            result.pages += 1

            cursor.state = CrawlState.EXTRACTING
            try:
                lots = self.extractor.extract_lots(html, category.name, self.base_url, page_url)
            except ExtractionError:
                log.info(f"Page {cursor.page}: no lots found, end of listing")
                result.stop_reason = STOP_EMPTY_PAGE
                break

            if not lots:
                log.info(f"Page {cursor.page}: empty, end of listing")
                result.stop_reason = STOP_EMPTY_PAGE
                break

            if cursor.is_wrap_around(lots):
                log.info(f"Page {cursor.page} repeats the first page, stopping")
                result.stop_reason = STOP_WRAP_AROUND
                break

            cursor.state = CrawlState.FILTERING
            self.stats.lots_extracted += len(lots)
            saved_on_page = 0
            for lot in lots:
                if await self.process_lot(lot, cursor):
                    saved_on_page += 1
            result.written += saved_on_page
            log.info(f"Page {cursor.page}: saved {saved_on_page} lots (total {self.stats.written})")

            load_more_url = self.extractor.get_load_more_url(html, self.base_url)
            if load_more_url:
                cursor.override_url = load_more_url
                log.debug(f"Load more -> {load_more_url}")

            cursor.page += 1
            await self.throttle.wait()

        cursor.state = CrawlState.DONE
        return result

    async def process_lot(self, lot: Lot, cursor: CrawlCursor) -> bool:
        """
        Dedupe, filter, enrich and write one lot.

        Order: dedup -> language filter -> price filter/conversion -> detail
        page. Filtered lots never trigger a detail page fetch.

        Returns:
            True if the lot was written
        """
        if not lot.has_text:
            logger.debug(f"Skipping lot without title or description: {lot.lot_url}")
            return False

        if not cursor.mark_seen(lot):
            self.stats.duplicates += 1
            metrics.record_lot("duplicate")
            return False

        reason = self.normalizer.normalize(lot)
        if reason == REASON_LANGUAGE:
            self.stats.filtered_language += 1
        elif reason == REASON_PRICE:
            self.stats.filtered_price += 1
        if reason:
            metrics.record_lot(reason)
            logger.debug(f"Filtered ({reason}): {lot.title!r} {lot.price} {lot.currency}")
            return False

        if self.enricher is not None:
            await self.enricher.enrich(lot)

        self.sink.write(lot)
        self.stats.written += 1
        metrics.record_lot("written")
        return True
