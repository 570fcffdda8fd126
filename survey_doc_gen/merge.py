"""Assembly of the final PDF from the converted assignment and the attachment."""

from __future__ import annotations

import io
import logging
from typing import Union

from PyPDF2 import PdfReader, PdfWriter

from .config import MAX_LEADING_PAGES
from .errors import EmptyAttachment, InvalidSourceDocument
from .models import ConvertedDocument, MergedDocument

logger = logging.getLogger(__name__)


def _load_reader(data: bytes, label: str) -> PdfReader:
    if not data:
        raise InvalidSourceDocument(f"The {label} PDF is empty")
    try:
        reader = PdfReader(io.BytesIO(data))
        if reader.is_encrypted and not reader.decrypt(""):
            raise InvalidSourceDocument(f"The {label} PDF is encrypted")
        # Force the page tree to load so a broken file fails here.
        len(reader.pages)
    except InvalidSourceDocument:
        raise
    except Exception as exc:
        raise InvalidSourceDocument(f"Cannot read the {label} PDF: {exc}") from exc
    return reader


def merge_documents(
    converted: Union[ConvertedDocument, bytes],
    attachment: bytes,
    max_leading_pages: int = MAX_LEADING_PAGES,
) -> MergedDocument:
    """Concatenate the leading pages of *converted* with every attachment page.

    Pages are copied as page objects, so each keeps its own media box,
    rotation and content stream. The result has ``min(k, P) + Q`` pages.

    Args:
        converted: The converted assignment PDF (P pages).
        attachment: Externally supplied PDF appended in full (Q pages).
        max_leading_pages: How many leading pages (k) of *converted* to keep.

    Raises:
        ValueError: *max_leading_pages* is negative.
        InvalidSourceDocument: either input cannot be parsed as a PDF.
        EmptyAttachment: the attachment has no pages.
    """
    if max_leading_pages < 0:
        raise ValueError(f"max_leading_pages must be >= 0, got {max_leading_pages}")

    converted_bytes = converted.data if isinstance(converted, ConvertedDocument) else converted
    leading_reader = _load_reader(converted_bytes, "converted")
    attachment_reader = _load_reader(attachment, "attachment")

    attachment_pages = len(attachment_reader.pages)
    if attachment_pages == 0:
        raise EmptyAttachment("The attachment PDF has no pages")

    leading = min(max_leading_pages, len(leading_reader.pages))
    writer = PdfWriter()
    for index in range(leading):
        writer.add_page(leading_reader.pages[index])
    for page in attachment_reader.pages:
        writer.add_page(page)

    output = io.BytesIO()
    writer.write(output)

    merged = MergedDocument(
        data=output.getvalue(),
        page_count=leading + attachment_pages,
        leading_pages=leading,
        attachment_pages=attachment_pages,
    )
    logger.info(
        "Merged %d leading page(s) with %d attachment page(s)",
        leading,
        attachment_pages,
    )
    return merged
