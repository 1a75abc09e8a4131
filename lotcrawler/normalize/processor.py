"""Normalize lot prices and filter lots by language and minimum value."""

import logging
import math
import re
from typing import Optional

from lotcrawler.ingest.base import Lot

logger = logging.getLogger(__name__)

# Not-a-number sentinel for unparseable prices. Every comparison with it is
# False, so such lots pass the minimum-value filter. This is the intended
# policy: a malformed price never excludes a lot.
PRICE_NAN = math.nan

TARGET_CURRENCY = "€"
MIN_PRICE_THRESHOLD = 2.0  # in target currency units; lots at or below are dropped

LOCAL_CURRENCY_PATTERN = re.compile(r"₽|руб", re.IGNORECASE)
CYRILLIC_PATTERN = re.compile(r"[а-яё]", re.IGNORECASE)

# Leading decimal number, the way parseFloat-style parsers read a prefix
NUMBER_PREFIX_PATTERN = re.compile(r"[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?")
WHITESPACE_PATTERN = re.compile(r"\s+")

REASON_LANGUAGE = "filtered_language"
REASON_PRICE = "filtered_price"


def _is_amount_char(ch: str) -> bool:
    # Whitespace is part of the amount ("1 234 ₽")
    return ch in "0123456789,." or ch.isspace()


def split_price(text: str) -> tuple[str, str]:
    """
    Split price text into amount and currency marker.

    The boundary is the first character that is not a digit, separator or
    whitespace; both parts are trimmed.

    Examples:
        "12,50 €" -> ("12,50", "€")
        "1 234 ₽" -> ("1 234", "₽")
        "350" -> ("350", "")
    """
    for i, ch in enumerate(text):
        if not _is_amount_char(ch):
            return text[:i].strip(), text[i:].strip()
    return text.strip(), ""


def price_to_number(price: str) -> float:
    """
    Convert an amount string to a number using a dot as decimal separator.

    Whitespace is removed and commas become dots; the leading numeric prefix
    is parsed ("1.234,56" -> 1.234). Returns PRICE_NAN when nothing parses.
    """
    normalized = WHITESPACE_PATTERN.sub("", price or "").replace(",", ".")
    match = NUMBER_PREFIX_PATTERN.match(normalized)
    if not match:
        return PRICE_NAN
    try:
        value = float(match.group())
    except ValueError:
        return PRICE_NAN
    return value if math.isfinite(value) else PRICE_NAN


def has_cyrillic(text: str) -> bool:
    return bool(CYRILLIC_PATTERN.search(text))


def is_local_currency(currency: str) -> bool:
    return bool(LOCAL_CURRENCY_PATTERN.search(currency))


def is_target_currency(currency: str) -> bool:
    return TARGET_CURRENCY in currency


class LotNormalizer:
    """Applies the language filter, the minimum-value filter and RUB -> EUR conversion."""

    def __init__(self, exchange_rate: float, lang: str = "", threshold: float = MIN_PRICE_THRESHOLD):
        self.exchange_rate = exchange_rate
        self.lang = lang
        self.threshold = threshold

    def passes_language(self, lot: Lot) -> bool:
        """
        Check the lot against the language filter.

        "ru" keeps lots whose title+description contain Cyrillic letters, "en"
        keeps lots without them. No filter when unset.
        """
        if not self.lang:
            return True
        cyrillic = has_cyrillic(f"{lot.title} {lot.description}")
        if self.lang == "ru":
            return cyrillic
        if self.lang == "en":
            return not cyrillic
        return True

    def passes_price(self, lot: Lot) -> bool:
        """Check the minimum-value filter without modifying the lot."""
        amount = price_to_number(lot.price)
        if is_target_currency(lot.currency) and amount <= self.threshold:
            return False
        if is_local_currency(lot.currency) and amount * self.exchange_rate <= self.threshold:
            return False
        return True

    def convert_currency(self, lot: Lot) -> None:
        """Rewrite a local-currency price in the target currency, in place."""
        if not is_local_currency(lot.currency):
            return
        amount = price_to_number(lot.price)
        if not math.isfinite(amount):
            return
        lot.price = f"{amount * self.exchange_rate:.2f}"
        lot.currency = TARGET_CURRENCY

    def normalize(self, lot: Lot) -> Optional[str]:
        """
        Filter and convert a lot.

        Returns:
            None if the lot is kept (and converted in place), otherwise the
            rejection reason (REASON_LANGUAGE or REASON_PRICE)
        """
        if not self.passes_language(lot):
            return REASON_LANGUAGE
        if not self.passes_price(lot):
            return REASON_PRICE
        self.convert_currency(lot)
        return None
