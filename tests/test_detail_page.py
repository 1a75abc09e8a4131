"""Tests for detail page enrichment and image selection."""

from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from conftest import BASE_URL, load_fixture
from lotcrawler.ingest.base import Lot
from lotcrawler.ingest.detail_page import (
    DetailEnricher,
    is_accepted_image,
    select_image_urls,
)
from lotcrawler.ingest.http_client import FetchError, RateLimitedFetcher
from lotcrawler.ingest.image_uploader import UploadError
from lotcrawler.ingest.marketplaces.funpay import FunPayExtractor


def make_lot(**kwargs) -> Lot:
    values = {
        "category": "/chips/1/",
        "title": "Gold 1000 EU server",
        "description": "Gold 1000 EU server",
        "price": "12,50",
        "currency": "€",
        "lot_url": "https://funpay.com/lots/offer?id=102",
    }
    values.update(kwargs)
    return Lot(**values)


def make_enricher(fetcher, uploader=None, sleep=None):
    return DetailEnricher(
        fetcher=fetcher,
        extractor=FunPayExtractor(),
        base_url=BASE_URL,
        uploader=uploader,
        sleep=sleep or AsyncMock(),
    )


@pytest.mark.parametrize(
    "url,accepted",
    [
        ("https://funpay.com/img/a.jpg", True),
        ("https://funpay.com/img/a.JPEG", True),
        ("https://funpay.com/img/a.png?v=3", True),
        ("https://funpay.com/img/a.apng", True),
        ("https://funpay.com/img/a.tiff", True),
        ("https://funpay.com/img/a.gif", True),
        ("https://funpay.com/img/a.webp", False),
        ("https://funpay.com/img/a.svg", False),
        ("https://funpay.com/img/noext", False),
    ],
)
def test_is_accepted_image(url, accepted):
    assert is_accepted_image(url) is accepted


def test_select_image_urls_filters_and_caps():
    candidates = [
        "https://s.funpay.com/avatar/1.jpg",
        "https://funpay.com/img/1.jpg",
        "https://funpay.com/img/1.jpg",
        "https://funpay.com/img/banner.svg",
        "https://funpay.com/img/2.png",
        "https://funpay.com/img/3.gif",
        "https://funpay.com/img/4.jpeg",
        "https://funpay.com/img/5.tiff",
        "https://funpay.com/img/6.png",
    ]

    assert select_image_urls(candidates) == [
        "https://funpay.com/img/1.jpg",
        "https://funpay.com/img/2.png",
        "https://funpay.com/img/3.gif",
        "https://funpay.com/img/4.jpeg",
        "https://funpay.com/img/5.tiff",
    ]


@pytest.mark.asyncio
async def test_enrich_applies_detail_fields():
    fetcher = MagicMock()
    fetcher.fetch = AsyncMock(return_value=load_fixture("lot_detail.html"))
    lot = make_lot()

    assert await make_enricher(fetcher).enrich(lot) is True

    fetcher.fetch.assert_awaited_once_with("https://funpay.com/lots/offer?id=102", max_retries=3)
    assert lot.description == "Full description text"
    assert lot.seller == "https://funpay.com/users/555/"
    # No uploader: images untouched
    assert lot.images == []


@pytest.mark.asyncio
async def test_enrich_keeps_description_equal_to_title():
    html = load_fixture("lot_detail.html").replace("Full description text", "Gold 1000 EU server")
    fetcher = MagicMock()
    fetcher.fetch = AsyncMock(return_value=html)
    lot = make_lot(description="Listing description")

    await make_enricher(fetcher).enrich(lot)

    assert lot.description == "Listing description"


@pytest.mark.asyncio
async def test_enrich_failure_keeps_listing_data():
    fetcher = MagicMock()
    fetcher.fetch = AsyncMock(side_effect=FetchError("https://funpay.com/lots/offer?id=102", "HTTP 404", 404))
    lot = make_lot()

    assert await make_enricher(fetcher).enrich(lot) is False

    assert lot.description == "Gold 1000 EU server"
    assert lot.seller is None
    assert lot.images == []


@pytest.mark.asyncio
async def test_enrich_without_url_skips_fetch():
    fetcher = MagicMock()
    fetcher.fetch = AsyncMock()

    assert await make_enricher(fetcher).enrich(make_lot(lot_url="")) is False
    fetcher.fetch.assert_not_awaited()


@pytest.mark.asyncio
async def test_enrich_uploads_selected_images():
    fetcher = MagicMock()
    fetcher.fetch = AsyncMock(return_value=load_fixture("lot_detail.html"))
    uploader = MagicMock()
    uploader.upload = AsyncMock(side_effect=[
        "https://i.imgur.com/a.jpg",
        UploadError("Image host error: {}"),
        "https://i.imgur.com/c.png",
    ])
    sleep = AsyncMock()
    lot = make_lot()

    await make_enricher(fetcher, uploader=uploader, sleep=sleep).enrich(lot)

    assert [call.args[0] for call in uploader.upload.await_args_list] == [
        "https://funpay.com/img/shot1.jpg",
        "https://cdn.funpay.com/img/bg.PNG",
        "https://funpay.com/img/li-shot.png",
    ]
    assert lot.images == ["https://i.imgur.com/a.jpg", "https://i.imgur.com/c.png"]
    # Delay between consecutive uploads only
    assert sleep.await_count == 2
    sleep.assert_awaited_with(1.5)


@pytest.mark.asyncio
async def test_enrich_with_uploader_and_no_images():
    fetcher = MagicMock()
    fetcher.fetch = AsyncMock(return_value=load_fixture("empty_listing.html"))
    uploader = MagicMock()
    uploader.upload = AsyncMock()
    lot = make_lot()

    await make_enricher(fetcher, uploader=uploader).enrich(lot)

    uploader.upload.assert_not_awaited()
    assert lot.images == []
    assert lot.description == "Gold 1000 EU server"


@pytest.mark.asyncio
async def test_enrich_malformed_lot_url_keeps_lot():
    client = httpx.AsyncClient(transport=httpx.MockTransport(lambda request: httpx.Response(200, text="")))
    fetcher = RateLimitedFetcher(client, BASE_URL, sleep=AsyncMock())
    lot = make_lot(lot_url="https://funpay.com:abc/lots/offer?id=1")

    try:
        assert await make_enricher(fetcher).enrich(lot) is False
    finally:
        await client.aclose()

    assert lot.description == "Gold 1000 EU server"
    assert lot.seller is None
