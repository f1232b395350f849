"""Content parsing: raw document bytes to text and/or tabular rows."""

import csv
from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
import logging
from pathlib import PurePath
from typing import Any, Optional, Protocol

from finledger.domain.entities import ParsedContent
from finledger.domain.errors import UnsupportedFormat, unsupported_media_type
from finledger.domain.profiles import HEADER_KEYWORDS

logger = logging.getLogger(__name__)

HEADER_SCAN_ROWS = 20
MIN_HEADER_KEYWORDS = 2
CANDIDATE_DELIMITERS = (",", ";", "\t")


class MediaKind(str, Enum):
    PDF = "pdf"
    DELIMITED = "delimited"
    SPREADSHEET = "spreadsheet"
    TEXT = "text"


_MEDIA_TYPES = {
    "application/pdf": MediaKind.PDF,
    "text/csv": MediaKind.DELIMITED,
    "application/csv": MediaKind.DELIMITED,
    "text/tab-separated-values": MediaKind.DELIMITED,
    "text/plain": MediaKind.TEXT,
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet": MediaKind.SPREADSHEET,
    "application/vnd.ms-excel": MediaKind.SPREADSHEET,
}

_EXTENSIONS = {
    ".pdf": MediaKind.PDF,
    ".csv": MediaKind.DELIMITED,
    ".tsv": MediaKind.DELIMITED,
    ".txt": MediaKind.TEXT,
    ".xlsx": MediaKind.SPREADSHEET,
    ".xlsm": MediaKind.SPREADSHEET,
}

# Media types that say nothing about the content; the file name decides
_GENERIC_MEDIA_TYPES = {"", "application/octet-stream", "binary/octet-stream"}


@dataclass(frozen=True)
class DecodedContent:
    """Output of a decoder: text, plus a cell grid for spreadsheets."""

    text: str = ""
    grid: list[list[Any]] = field(default_factory=list)


class Decoder(Protocol):
    """Turns bytes of a known media kind into text or a cell grid."""

    def decode(self, content: bytes, media_kind: MediaKind) -> DecodedContent:
        ...


def resolve_media_kind(media_type: Optional[str], file_name: str) -> MediaKind:
    """Resolve a declared media type and file name to a media kind.

    Raises:
        UnsupportedFormat: If neither the media type nor the extension is recognized
    """
    normalized = (media_type or "").split(";")[0].strip().lower()
    extension = PurePath(file_name or "").suffix.lower()
    extension_kind = _EXTENSIONS.get(extension)

    kind = _MEDIA_TYPES.get(normalized)
    if kind is None and normalized in _GENERIC_MEDIA_TYPES:
        kind = extension_kind
    if kind is None:
        raise UnsupportedFormat(unsupported_media_type(media_type or "", file_name))

    # Browsers commonly send CSV files as text/plain or application/vnd.ms-excel
    if extension_kind == MediaKind.DELIMITED and kind in (MediaKind.TEXT, MediaKind.SPREADSHEET):
        return MediaKind.DELIMITED
    return kind


def detect_delimiter(text: str) -> str:
    """Pick the field delimiter from the first non-empty line."""
    for line in text.splitlines():
        if line.strip():
            counts = [(line.count(d), -i, d) for i, d in enumerate(CANDIDATE_DELIMITERS)]
            best_count, _, best = max(counts)
            return best if best_count > 0 else ","
    return ","


def _cell_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    return str(value).strip()


def _cell_value(value: Any) -> Any:
    if value is None:
        return ""
    if isinstance(value, (datetime, date)):
        return _cell_text(value)
    if isinstance(value, str):
        return value.strip()
    return value


def _is_blank(values: list[Any]) -> bool:
    return all(_cell_text(v) == "" for v in values)


def find_header_row(grid: list[list[Any]]) -> int:
    """Locate the header row of a spreadsheet grid.

    Exports often carry bank logos, account numbers and period lines above the
    real header. The first row among the first ``HEADER_SCAN_ROWS`` whose cells
    contain at least ``MIN_HEADER_KEYWORDS`` known header keywords wins.
    Falls back to row 0.
    """
    for index, row in enumerate(grid[:HEADER_SCAN_ROWS]):
        hits = 0
        for cell in row:
            text = _cell_text(cell).lower()
            if text and any(keyword in text for keyword in HEADER_KEYWORDS):
                hits += 1
        if hits >= MIN_HEADER_KEYWORDS:
            return index
    return 0


def _rows_from_table(header: list[Any], body: list[list[Any]]) -> list[dict[str, Any]]:
    names = [_cell_text(h) or f"column_{i + 1}" for i, h in enumerate(header)]
    rows = []
    for values in body:
        if _is_blank(values):
            continue
        row = {}
        for i, name in enumerate(names):
            row[name] = _cell_value(values[i]) if i < len(values) else ""
        rows.append(row)
    return rows


class ContentParser:
    """Turns document bytes into ParsedContent."""

    def __init__(self, decoder: Decoder):
        """Initialize content parser.

        Args:
            decoder: Byte decoder for PDF, text and spreadsheet content
        """
        self.decoder = decoder

    def parse(self, content: bytes, media_type: Optional[str], file_name: str) -> ParsedContent:
        """Parse document bytes into text and rows.

        Args:
            content: Raw document bytes
            media_type: Declared media type
            file_name: Original file name, used when the media type is generic

        Returns:
            ParsedContent with text and, for tabular inputs, rows

        Raises:
            UnsupportedFormat: If the media type is not recognized
            ContentDecodeError: If the decoder cannot read the bytes
        """
        kind = resolve_media_kind(media_type, file_name)
        decoded = self.decoder.decode(content, kind)

        if kind == MediaKind.DELIMITED:
            rows = self._delimited_rows(decoded.text)
            logger.debug("Parsed %d delimited rows from %s", len(rows), file_name)
            return ParsedContent(text=decoded.text, rows=tuple(rows))

        if kind == MediaKind.SPREADSHEET:
            rows, text = self._spreadsheet_rows(decoded.grid)
            logger.debug("Parsed %d spreadsheet rows from %s", len(rows), file_name)
            return ParsedContent(text=text, rows=tuple(rows))

        logger.debug("Parsed %d characters of text from %s", len(decoded.text), file_name)
        return ParsedContent(text=decoded.text)

    def extract_rows(
        self, content: bytes, media_type: Optional[str], file_name: str
    ) -> Optional[list[dict[str, Any]]]:
        """Return tabular rows, or None for text-only documents."""
        if resolve_media_kind(media_type, file_name) in (MediaKind.PDF, MediaKind.TEXT):
            return None
        return list(self.parse(content, media_type, file_name).rows)

    def _delimited_rows(self, text: str) -> list[dict[str, Any]]:
        delimiter = detect_delimiter(text)
        records = [
            [cell.strip() for cell in record]
            for record in csv.reader(text.splitlines(), delimiter=delimiter)
        ]
        records = [record for record in records if not _is_blank(record)]
        if not records:
            return []
        return _rows_from_table(records[0], records[1:])

    def _spreadsheet_rows(self, grid: list[list[Any]]) -> tuple[list[dict[str, Any]], str]:
        grid = [list(row) for row in grid]
        if not grid:
            return [], ""
        header_index = find_header_row(grid)
        header = grid[header_index]
        rows = _rows_from_table(header, grid[header_index + 1 :])
        lines = [
            " | ".join(_cell_text(cell) for cell in row)
            for row in grid
            if not _is_blank(row)
        ]
        return rows, "\n".join(lines)
