"""Plain-text extraction from customer documents (.docx and PDF)."""

from __future__ import annotations

import hashlib
import io
import logging
import re
from typing import List, Optional, Tuple

import PyPDF2
from docx import Document
from docx.table import Table
from docx.text.paragraph import Paragraph

from .errors import CorruptDocument, EmptyExtraction
from .models import DocumentFormat, ExtractedText, SourceDocument

logger = logging.getLogger(__name__)

_BLANK_RUN = re.compile(r"[ \t ]+")


class DocumentIngester:
    """Turns an opaque document buffer into linear text.

    The format is always supplied by the caller; the buffer is never sniffed.
    """

    def extract(self, buffer: bytes, format_tag: DocumentFormat | str) -> ExtractedText:
        """Return the text of *buffer* read as *format_tag*.

        Raises:
            UnsupportedFormat: the tag is not ``wordprocessor`` or ``pdf``.
            CorruptDocument: the buffer is empty or cannot be opened.
            EmptyExtraction: the document holds no text layer.
        """
        doc_format = DocumentFormat.parse(format_tag)
        if not buffer:
            raise CorruptDocument("Document buffer is empty")

        page_count: Optional[int] = None
        if doc_format is DocumentFormat.PDF:
            text, page_count = self._process_pdf(buffer)
        else:
            text = self._process_docx(buffer)

        if not text.strip():
            raise EmptyExtraction(f"No text found in {doc_format.value} document")

        extracted = ExtractedText(
            text=text,
            source_format=doc_format,
            source_sha256=hashlib.sha256(buffer).hexdigest(),
            page_count=page_count,
        )
        logger.info(
            "Extracted %d characters from %s document%s",
            extracted.char_count,
            doc_format.value,
            f" ({page_count} pages)" if page_count is not None else "",
        )
        return extracted

    def extract_source(self, source: SourceDocument) -> ExtractedText:
        return self.extract(source.data, source.format)

    def _process_pdf(self, buffer: bytes) -> Tuple[str, int]:
        try:
            reader = PyPDF2.PdfReader(io.BytesIO(buffer))
            if reader.is_encrypted and not reader.decrypt(""):
                raise CorruptDocument("PDF is encrypted and cannot be opened without a password")
            pages = list(reader.pages)
        except CorruptDocument:
            raise
        except Exception as exc:
            raise CorruptDocument(f"Cannot open PDF: {exc}") from exc

        page_texts: List[str] = []
        for page_num, page in enumerate(pages, start=1):
            try:
                page_text = page.extract_text() or ""
            except Exception as exc:
                raise CorruptDocument(f"Cannot read text of PDF page {page_num}: {exc}") from exc
            page_texts.append(_normalise_lines(page_text))

        return "\n".join(t for t in page_texts if t), len(pages)

    def _process_docx(self, buffer: bytes) -> str:
        try:
            doc = Document(io.BytesIO(buffer))
        except Exception as exc:
            raise CorruptDocument(f"Cannot open word-processor document: {exc}") from exc

        lines: List[str] = []
        for block in doc.iter_inner_content():
            if isinstance(block, Paragraph):
                _append_line(lines, block.text)
            elif isinstance(block, Table):
                _append_table(lines, block)
        return "\n".join(lines)


def _append_line(lines: List[str], text: str) -> None:
    cleaned = _BLANK_RUN.sub(" ", text).strip()
    if cleaned:
        lines.append(cleaned)


def _append_table(lines: List[str], table: Table) -> None:
    # Merged cells are returned once per grid column; keep the first copy only.
    seen = set()
    for row in table.rows:
        for cell in row.cells:
            if cell._tc in seen:
                continue
            seen.add(cell._tc)
            for block in cell.iter_inner_content():
                if isinstance(block, Paragraph):
                    _append_line(lines, block.text)
                else:
                    _append_table(lines, block)


def _normalise_lines(text: str) -> str:
    lines: List[str] = []
    for raw in text.splitlines():
        _append_line(lines, raw)
    return "\n".join(lines)
