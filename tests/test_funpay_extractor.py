"""Tests for the FunPay page extractor."""

import pytest

from conftest import BASE_URL, load_fixture
from lotcrawler.ingest.base import Category, ExtractionError
from lotcrawler.ingest.marketplaces.funpay import FunPayExtractor


@pytest.fixture
def extractor():
    return FunPayExtractor()


def test_extract_cards(extractor):
    lots = extractor.extract_lots(load_fixture("listing_page1.html"), "/chips/1/", BASE_URL)

    assert [lot.lot_url for lot in lots] == [
        "https://funpay.com/lots/offer?id=101",
        "https://funpay.com/lots/offer?id=102",
        "https://funpay.com/lots/offer?id=103",
        "https://funpay.com/lots/offer?id=104",
    ]
    first = lots[0]
    assert first.category == "/chips/1/"
    assert first.title == "Аккаунт с редкими скинами"
    assert first.description == first.title
    assert (first.price, first.currency) == ("350", "₽")
    assert (lots[1].price, lots[1].currency) == ("12,50", "€")
    assert all(lot.seller is None and lot.images == [] for lot in lots)


def test_extract_table_fallback(extractor):
    lots = extractor.extract_lots(load_fixture("listing_table.html"), "/items/", BASE_URL)

    assert len(lots) == 2
    sword, potions = lots
    assert sword.title == "Rare sword +15"
    assert sword.description == "Rare sword +15"
    assert (sword.price, sword.currency) == ("7.99", "€")
    assert sword.lot_url == "https://funpay.com/lot/301"
    assert potions.title == "Bundle of potions"
    assert (potions.price, potions.currency) == ("450", "руб")
    assert potions.lot_url == ""
    assert potions.identity_key == "Bundle of potions"


def test_empty_page_raises(extractor):
    page_url = "https://funpay.com/chips/1/?page=9"
    with pytest.raises(ExtractionError) as exc_info:
        extractor.extract_lots(load_fixture("empty_listing.html"), "/chips/1/", BASE_URL, page_url)
    assert exc_info.value.url == page_url


def test_parse_categories(extractor):
    categories = extractor.parse_categories(load_fixture("front_page.html"), BASE_URL)

    assert set(categories) == {
        Category(name="Валюта", url="https://funpay.com/chips/"),
        Category(name="Dota 2", url="https://funpay.com/lots/81/"),
        Category(name="World of Warcraft", url="https://funpay.com/chips/2/"),
    }


def test_load_more_url(extractor):
    assert extractor.get_load_more_url(load_fixture("listing_page2.html"), BASE_URL) == (
        "https://funpay.com/chips/1/more?after=102"
    )
    assert extractor.get_load_more_url(load_fixture("listing_page1.html"), BASE_URL) is None


def test_parse_detail(extractor):
    detail = extractor.parse_detail(load_fixture("lot_detail.html"), BASE_URL)

    assert detail.description == "Full description text"
    assert detail.seller_url == "https://funpay.com/users/555/"
    assert detail.image_urls == [
        "https://s.funpay.com/avatar/555.jpg",
        "https://funpay.com/img/shot1.jpg",
        "https://funpay.com/img/shot1.jpg",
        "https://funpay.com/img/banner.svg",
        "https://cdn.funpay.com/img/bg.PNG",
        "https://funpay.com/img/li-shot.png",
    ]


def test_parse_detail_without_fields(extractor):
    detail = extractor.parse_detail(load_fixture("empty_listing.html"), BASE_URL)

    assert detail.description == ""
    assert detail.seller_url is None
    assert detail.image_urls == []


def test_category_from_url_uses_path():
    category = Category.from_url("https://funpay.com/chips/1/")
    assert category.name == "/chips/1/"
    assert category.url == "https://funpay.com/chips/1/"
