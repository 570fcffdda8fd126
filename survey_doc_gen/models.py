"""Byte-buffer types passed between pipeline stages."""

from __future__ import annotations

import hashlib
from dataclasses import dataclass, field
from enum import Enum
from pathlib import PurePath
from typing import Optional, Tuple

from .errors import UnsupportedFormat


class DocumentFormat(str, Enum):
    WORDPROCESSOR = "wordprocessor"
    PDF = "pdf"

    @classmethod
    def parse(cls, tag: "DocumentFormat | str") -> "DocumentFormat":
        if isinstance(tag, cls):
            return tag
        try:
            return cls(str(tag).strip().lower())
        except ValueError as exc:
            raise UnsupportedFormat(f"Unsupported document format tag: {tag!r}") from exc


_SUFFIX_FORMATS = {
    ".docx": DocumentFormat.WORDPROCESSOR,
    ".pdf": DocumentFormat.PDF,
}


def format_for_filename(filename: str) -> DocumentFormat:
    """Map a file name to its format tag (used by callers, never by the extractor)."""

    suffix = PurePath(filename).suffix.lower()
    try:
        return _SUFFIX_FORMATS[suffix]
    except KeyError as exc:
        raise UnsupportedFormat(f"Unsupported file format {suffix or '<none>'} for {filename}") from exc


@dataclass(frozen=True)
class SourceDocument:
    data: bytes = field(repr=False)
    format: DocumentFormat
    filename: Optional[str] = None

    @property
    def sha256(self) -> str:
        return hashlib.sha256(self.data).hexdigest()


@dataclass(frozen=True)
class ExtractedText:
    text: str = field(repr=False)
    source_format: DocumentFormat
    source_sha256: str
    page_count: Optional[int] = None

    @property
    def char_count(self) -> int:
        return len(self.text)


@dataclass(frozen=True)
class CleanupStats:
    page_breaks: int = 0
    rendered_page_markers: int = 0
    section_breaks: int = 0

    @property
    def total(self) -> int:
        return self.page_breaks + self.rendered_page_markers + self.section_breaks

    def __add__(self, other: "CleanupStats") -> "CleanupStats":
        return CleanupStats(
            page_breaks=self.page_breaks + other.page_breaks,
            rendered_page_markers=self.rendered_page_markers + other.rendered_page_markers,
            section_breaks=self.section_breaks + other.section_breaks,
        )


@dataclass(frozen=True)
class RenderedDocument:
    data: bytes = field(repr=False)
    unmatched_placeholders: Tuple[str, ...] = ()
    unused_fields: Tuple[str, ...] = ()
    cleanup: CleanupStats = field(default_factory=CleanupStats)

    filename_suffix = ".docx"


@dataclass(frozen=True)
class ConvertedDocument:
    data: bytes = field(repr=False)
    page_count: int

    filename_suffix = ".pdf"


@dataclass(frozen=True)
class MergedDocument:
    data: bytes = field(repr=False)
    page_count: int
    leading_pages: int
    attachment_pages: int

    filename_suffix = ".pdf"
