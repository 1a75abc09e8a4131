"""Semicolon-delimited lot record stream."""

import logging
import re
from pathlib import Path
from typing import List, Optional, TextIO

from lotcrawler.ingest.base import Lot

logger = logging.getLogger(__name__)

DELIMITER = ";"
HEADER = ("category", "title", "description", "price", "currency", "lot_url", "images")
IMAGE_LINK_SEPARATOR = "|"

# Emoji and pictographic ranges, arrows, misc technical, geometric shapes,
# misc symbols/dingbats, misc symbols and arrows, variation selector-16.
DECORATIVE_PATTERN = re.compile(
    "[\U0001F300-\U0001FAFF\u2190-\u21FF\u2300-\u23FF\u25A0-\u25FF"
    "\u2600-\u27BF\u2B00-\u2BFF\uFE0F]"
)
# Each removed character is replaced by this marker, not deleted
DECORATIVE_REPLACEMENT = "|"


def strip_decorative(text: str) -> str:
    """Replace every decorative symbol with a pipe, one per character."""
    return DECORATIVE_PATTERN.sub(DECORATIVE_REPLACEMENT, text)


def escape_field(field: str) -> str:
    """Quote a field containing the delimiter, doubling internal quotes."""
    if DELIMITER in field:
        return '"' + field.replace('"', '""') + '"'
    return field


def format_record(lot: Lot) -> str:
    """Render one lot as an output line (without the trailing newline)."""
    fields = [
        strip_decorative(lot.category or ""),
        strip_decorative(lot.title or ""),
        strip_decorative(lot.description or ""),
        lot.price or "",
        lot.currency or "",
        strip_decorative(lot.lot_url or ""),
        IMAGE_LINK_SEPARATOR.join(lot.images),
    ]
    return DELIMITER.join(escape_field(f) for f in fields)


def _is_quoted(token: str) -> bool:
    if len(token) < 2 or not (token.startswith('"') and token.endswith('"')):
        return False
    return '"' not in token[1:-1].replace('""', "")


def parse_record(line: str) -> List[str]:
    """
    Split an output line back into its fields.

    Only fields holding a delimiter are quoted on output, so a quoted field
    always spans at least two delimiter-separated pieces. A field that merely
    starts with a quote is read literally. Two adjacent fields that together
    look like a quoted field (one starting, the next ending with a quote) are
    indistinguishable from it and read back as one.
    """
    pieces = line.rstrip("\n").split(DELIMITER)
    fields: List[str] = []
    i = 0
    while i < len(pieces):
        end = i
        if pieces[i].startswith('"'):
            for j in range(i + 1, len(pieces)):
                if _is_quoted(DELIMITER.join(pieces[i:j + 1])):
                    end = j
                    break
        if end > i:
            fields.append(DELIMITER.join(pieces[i:end + 1])[1:-1].replace('""', '"'))
        else:
            fields.append(pieces[i])
        i = end + 1
    return fields


class LotWriter:
    """Streaming writer: every record is flushed as soon as it is written."""

    def __init__(self, path: str | Path):
        self.path = Path(path)
        self.written = 0
        self._fh: Optional[TextIO] = None

    def open(self) -> "LotWriter":
        """Create (truncate) the output file and write the header. OSError propagates."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._fh = self.path.open("w", encoding="utf-8", newline="")
        self._fh.write(DELIMITER.join(HEADER) + "\n")
        self._fh.flush()
        return self

    def write(self, lot: Lot) -> None:
        if self._fh is None:
            raise RuntimeError("LotWriter is not open")
        self._fh.write(format_record(lot) + "\n")
        self._fh.flush()
        self.written += 1

    def close(self) -> None:
        if self._fh is not None:
            self._fh.close()
            self._fh = None

    def __enter__(self) -> "LotWriter":
        return self.open()

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
