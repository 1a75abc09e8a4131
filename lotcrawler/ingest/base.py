"""Base data model and extractor interface for marketplace lots."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import List, Optional
from urllib.parse import urlparse


class ExtractionError(Exception):
    """Raised when a listing page does not yield any lot records."""

    def __init__(self, url: str, message: str = "no lots found"):
        super().__init__(f"{message}: {url}")
        self.url = url


@dataclass(frozen=True)
class Category:
    """A group of lots crawled from one target URL."""

    name: str
    url: str

    @classmethod
    def from_url(cls, url: str) -> "Category":
        """Build a category for a user-supplied URL, named after its path."""
        return cls(name=urlparse(url).path, url=url)


@dataclass
class Lot:
    """One listing record extracted from the marketplace."""

    category: str
    title: str
    description: str
    price: str
    currency: str
    lot_url: str = ""
    seller: Optional[str] = None
    images: List[str] = field(default_factory=list)

    @property
    def identity_key(self) -> str:
        """Deduplication key: the lot URL, or the title when there is none."""
        return self.lot_url or self.title

    @property
    def has_text(self) -> bool:
        return bool(self.title or self.description)


@dataclass
class LotDetail:
    """Fields read from a lot detail page."""

    description: str = ""
    seller_url: Optional[str] = None
    image_urls: List[str] = field(default_factory=list)  # absolute, discovery order


class ListingExtractor(ABC):
    """Site-layout specific page-to-records extraction.

    Keeps selector logic out of the crawl, retry and filter code.
    """

    site_name: str = ""

    @abstractmethod
    def parse_categories(self, html: str, base_url: str) -> List[Category]:
        """
        Parse the front page and return the site's category links.

        Args:
            html: Front page HTML
            base_url: Base URL for resolving relative links

        Returns:
            Categories in page order
        """
        raise NotImplementedError

    @abstractmethod
    def extract_lots(self, html: str, category_name: str, base_url: str, page_url: str = "") -> List[Lot]:
        """
        Parse a listing page into lots, in page order.

        Raises:
            ExtractionError: If the page yields no lots
        """
        raise NotImplementedError

    def get_load_more_url(self, html: str, base_url: str) -> Optional[str]:
        """
        Get the URL offered by a "load more" control on a listing page.

        Returns:
            Absolute URL that replaces the computed next page URL once, or None
        """
        return None  # Override in subclasses

    @abstractmethod
    def parse_detail(self, html: str, base_url: str) -> LotDetail:
        """Parse a lot detail page."""
        raise NotImplementedError
