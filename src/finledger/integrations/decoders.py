"""Default byte decoders for PDF, delimited text and spreadsheet documents."""

from io import BytesIO
import logging
from zipfile import BadZipFile

import openpyxl
from openpyxl.utils.exceptions import InvalidFileException
import pdfplumber

from finledger.domain.content_parser import DecodedContent, MediaKind
from finledger.domain.errors import ContentDecodeError

logger = logging.getLogger(__name__)

TEXT_ENCODINGS = ("utf-8-sig", "latin-1")


def decode_text(content: bytes) -> str:
    """Decode text bytes, falling back to Latin-1 for legacy bank exports."""
    for encoding in TEXT_ENCODINGS:
        try:
            return content.decode(encoding)
        except UnicodeDecodeError:
            continue
    raise ContentDecodeError("Could not decode text content")


def read_spreadsheet(content: bytes) -> list[list]:
    """Return the cells of the first worksheet as a grid of values."""
    try:
        workbook = openpyxl.load_workbook(BytesIO(content), read_only=True, data_only=True)
    except (InvalidFileException, BadZipFile, KeyError, OSError, ValueError) as e:
        raise ContentDecodeError(f"Could not read spreadsheet: {e}") from e
    try:
        sheet = workbook.worksheets[0]
        return [list(row) for row in sheet.iter_rows(values_only=True)]
    finally:
        workbook.close()


def read_pdf_text(content: bytes) -> str:
    """Extract the text of every page of a PDF."""
    try:
        with pdfplumber.open(BytesIO(content)) as pdf:
            pages = [page.extract_text() or "" for page in pdf.pages]
    except Exception as e:
        # pdfminer raises a variety of parser errors for damaged files
        raise ContentDecodeError(f"Could not read PDF: {e}") from e
    logger.debug("Extracted text from %d PDF pages", len(pages))
    return "\n".join(pages)


class DefaultDecoder:
    """Decoder backed by the csv-compatible text codecs, openpyxl and pdfplumber."""

    def decode(self, content: bytes, media_kind: MediaKind) -> DecodedContent:
        if media_kind == MediaKind.PDF:
            return DecodedContent(text=read_pdf_text(content))
        if media_kind == MediaKind.SPREADSHEET:
            return DecodedContent(grid=read_spreadsheet(content))
        return DecodedContent(text=decode_text(content))
