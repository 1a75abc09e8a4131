"""FunPay page layout: categories, listing cards, load-more control and lot details."""

import logging
import re
from typing import Iterable, List, Optional
from urllib.parse import urljoin

from selectolax.parser import HTMLParser, Node

from lotcrawler.ingest.base import Category, ExtractionError, ListingExtractor, Lot, LotDetail
from lotcrawler.ingest.http_client import resolve_url
from lotcrawler.normalize.processor import split_price

logger = logging.getLogger(__name__)

CATEGORY_LINK_SELECTOR = "a.fp-item, a.tc-item, nav a"

# Card layout (showcase tables, offer cards)
CARD_SELECTOR = (
    "div.showcase-table a.tc-item, div.showcase-table div.tc-item, "
    "div.tc-item, a.tc-item, div.offer-card, div.card-item"
)
CARD_TITLE_SELECTOR = (
    ".tc-item-title, .card-title, .offer-title, .tc-desc-text, .showcase-item-title"
)
CARD_DESCRIPTION_SELECTOR = (
    ".tc-item-description, .card-desc, .offer-desc, .tc-desc-text, .showcase-item-desc"
)
CARD_PRICE_SELECTOR = (
    ".tc-item-price, .tc-price, .card-price, .offer-price, .showcase-item-price"
)
CARD_LINK_SELECTOR = "a[href*='/lot/'], a[href*='/listing/'], a"

# Table layout fallback
TABLE_ROW_SELECTOR = "table tbody tr"
TABLE_LINK_SELECTOR = "a[href*='/lot/'], a[href*='/listing/']"

LOAD_MORE_SELECTOR = "button[data-url]"

# Detail page
DETAIL_DESCRIPTION_SELECTOR = (
    "#content div.col-md-5.col-sm-9 div.param-list > div:nth-child(3) > div"
)
DETAIL_SELLER_SELECTOR = "#content div.chat-header div.media-user-name a"
DETAIL_IMG_SELECTOR = "#content img"
DETAIL_BACKGROUND_SELECTOR = '#content [style*="background-image"]'
DETAIL_PARAM_LIST_ITEM_SELECTOR = "#content .param-list ul li"

IMG_SRC_ATTRIBUTES = ("src", "data-src", "data-original")
BACKGROUND_IMAGE_PATTERN = re.compile(r"background-image\s*:\s*url\(([^)]+)\)", re.IGNORECASE)
STYLE_URL_PATTERN = re.compile(r"url\(([^)]+)\)", re.IGNORECASE)
URL_JUNK_PATTERN = re.compile(r"['\"\s]")


def _unique_nodes(nodes: Iterable[Node]) -> List[Node]:
    """Drop nodes matched by more than one selector of a group, keeping first position."""
    seen: set[int] = set()
    out: List[Node] = []
    for node in nodes:
        if node.mem_id in seen:
            continue
        seen.add(node.mem_id)
        out.append(node)
    return out


def _text(node: Optional[Node]) -> str:
    return node.text().strip() if node is not None else ""


def _joined_text(nodes: Iterable[Node]) -> str:
    return "".join(node.text() for node in nodes).strip()


def _style_url(style: str, pattern: re.Pattern) -> Optional[str]:
    match = pattern.search(style)
    if not match or not match.group(1):
        return None
    url = URL_JUNK_PATTERN.sub("", match.group(1))
    return url or None


class FunPayExtractor(ListingExtractor):
    """Extractor for funpay.com category and lot pages."""

    site_name = "funpay"

    def parse_categories(self, html: str, base_url: str) -> List[Category]:
        parser = HTMLParser(html)
        categories = []
        for link in _unique_nodes(parser.css(CATEGORY_LINK_SELECTOR)):
            href = link.attributes.get("href")
            if not href or href.startswith("/login"):
                continue
            name = _text(link)
            if name:
                categories.append(Category(name=name, url=urljoin(base_url, href)))
        return categories

    def extract_lots(self, html: str, category_name: str, base_url: str, page_url: str = "") -> List[Lot]:
        parser = HTMLParser(html)
        lots = self._parse_cards(parser, category_name, base_url)
        if not lots:
            lots = self._parse_table(parser, category_name, base_url)
        if not lots:
            raise ExtractionError(page_url or base_url)
        return lots

    def _parse_cards(self, parser: HTMLParser, category_name: str, base_url: str) -> List[Lot]:
        lots = []
        for card in _unique_nodes(parser.css(CARD_SELECTOR)):
            title = _text(card.css_first(CARD_TITLE_SELECTOR))
            description = _joined_text(card.css(CARD_DESCRIPTION_SELECTOR)) or title
            price, currency = split_price(_joined_text(card.css(CARD_PRICE_SELECTOR)))

            link = card.css_first(CARD_LINK_SELECTOR)
            href = (link.attributes.get("href") if link is not None else None) or ""
            if not href and card.tag == "a":
                href = card.attributes.get("href") or ""
            lot_url = urljoin(base_url, href) if href else ""

            if title or description:
                lots.append(Lot(
                    category=category_name,
                    title=title,
                    description=description,
                    price=price,
                    currency=currency,
                    lot_url=lot_url,
                ))
        return lots

    def _parse_table(self, parser: HTMLParser, category_name: str, base_url: str) -> List[Lot]:
        lots = []
        for row in parser.css(TABLE_ROW_SELECTOR):
            cells = row.css("td")
            # First cell holds the description (possibly wrapped in a link)
            title = _text(cells[0]) if cells else ""
            price, currency = split_price(_text(cells[-1]) if cells else "")

            link = row.css_first(TABLE_LINK_SELECTOR)
            href = (link.attributes.get("href") if link is not None else None) or ""
            lot_url = urljoin(base_url, href) if href else ""

            if title or price:
                lots.append(Lot(
                    category=category_name,
                    title=title,
                    description=title,
                    price=price,
                    currency=currency,
                    lot_url=lot_url,
                ))
        return lots

    def get_load_more_url(self, html: str, base_url: str) -> Optional[str]:
        button = HTMLParser(html).css_first(LOAD_MORE_SELECTOR)
        if button is None:
            return None
        data_url = (button.attributes.get("data-url") or "").strip()
        return urljoin(base_url, data_url) if data_url else None

    def parse_detail(self, html: str, base_url: str) -> LotDetail:
        parser = HTMLParser(html)

        description = _joined_text(parser.css(DETAIL_DESCRIPTION_SELECTOR))

        seller_url = None
        seller_link = parser.css_first(DETAIL_SELLER_SELECTOR)
        if seller_link is not None:
            href = seller_link.attributes.get("href")
            if href:
                seller_url = urljoin(base_url, href)

        return LotDetail(
            description=description,
            seller_url=seller_url,
            image_urls=self._image_candidates(parser, base_url),
        )

    def _image_candidates(self, parser: HTMLParser, base_url: str) -> List[str]:
        candidates: List[str] = []

        # 1) plain <img>, with lazy-load fallbacks
        for img in parser.css(DETAIL_IMG_SELECTOR):
            src = next((img.attributes.get(a) for a in IMG_SRC_ATTRIBUTES if img.attributes.get(a)), None)
            if src and not src.startswith("data:"):
                candidates.append(resolve_url(src, base_url))

        # 2) inline background-image styles
        for el in parser.css(DETAIL_BACKGROUND_SELECTOR):
            url = _style_url(el.attributes.get("style") or "", BACKGROUND_IMAGE_PATTERN)
            if url:
                candidates.append(resolve_url(url, base_url))

        # 3) param-list items styled with url(...)
        for li in parser.css(DETAIL_PARAM_LIST_ITEM_SELECTOR):
            url = _style_url(li.attributes.get("style") or "", STYLE_URL_PATTERN)
            if url:
                candidates.append(resolve_url(url, base_url))

        return candidates
