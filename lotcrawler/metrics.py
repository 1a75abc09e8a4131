"""Prometheus metrics for the lot crawler."""

from prometheus_client import Counter, Histogram, Info

# Application info
app_info = Info("lot_crawler", "Lot crawler application info")
app_info.info({"version": "0.1.0", "name": "lot-crawler"})

# Page metrics
pages_fetched_total = Counter(
    "lot_crawler_pages_fetched_total",
    "Total number of listing page fetches",
    ["status"],
)

page_fetch_duration_seconds = Histogram(
    "lot_crawler_page_fetch_duration_seconds",
    "Time spent fetching listing pages (including rate-limit backoff)",
    buckets=[0.5, 1.0, 2.0, 5.0, 10.0, 30.0, 60.0],
)

rate_limit_retries_total = Counter(
    "lot_crawler_rate_limit_retries_total",
    "Total number of requests retried after HTTP 429",
)

# Lot metrics
lots_processed_total = Counter(
    "lot_crawler_lots_processed_total",
    "Total number of lots by processing outcome",
    ["outcome"],
)

detail_fetch_failures_total = Counter(
    "lot_crawler_detail_fetch_failures_total",
    "Total number of failed lot detail page fetches",
)

# Image metrics
image_uploads_total = Counter(
    "lot_crawler_image_uploads_total",
    "Total number of image upload attempts",
    ["status"],
)


def record_page_fetch(status: str, duration_seconds: float | None = None) -> None:
    """Record a listing page fetch outcome."""
    pages_fetched_total.labels(status=status).inc()
    if duration_seconds is not None:
        page_fetch_duration_seconds.observe(duration_seconds)


def record_lot(outcome: str) -> None:
    """Record what happened to one extracted lot."""
    lots_processed_total.labels(outcome=outcome).inc()


def record_rate_limit_retry() -> None:
    rate_limit_retries_total.inc()


def record_detail_failure() -> None:
    detail_fetch_failures_total.inc()


def record_image_upload(success: bool) -> None:
    image_uploads_total.labels(status="success" if success else "failure").inc()
