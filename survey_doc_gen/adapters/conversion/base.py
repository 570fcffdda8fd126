"""Base definitions for conversion backends."""

from __future__ import annotations

from ...models import ConvertedDocument, RenderedDocument


class DocumentConverter:
    """Turns a rendered word-processor document into a fixed-layout PDF.

    Implementations raise :class:`~survey_doc_gen.errors.ConversionError`
    subclasses only.
    """

    def convert(self, document: RenderedDocument) -> ConvertedDocument:
        raise NotImplementedError

    def close(self) -> None:
        """Release held connections. Backends without any keep the default."""
