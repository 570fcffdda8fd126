"""Template rendering module for generating contractor survey assignments."""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Any, Dict, List, Optional, Set, Union

from lxml import etree

from .cleanup import clean_part
from .config import MISSING_VALUE_TEXT, TEMPLATE_PATH
from .docx_package import XML_SPACE, paragraph_text_nodes, transform_package, w
from .errors import PlaceholderSyntaxError, TemplateNotFound
from .models import CleanupStats, RenderedDocument
from .record import SurveyRecord

logger = logging.getLogger(__name__)

PLACEHOLDER_PATTERN = re.compile(r"\{\{\s*([A-Za-z_][A-Za-z0-9_]*(?:\.[A-Za-z_][A-Za-z0-9_]*)*)\s*\}\}")
_XML_INVALID = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f]")
CHECKED_MARK = "☒"
UNCHECKED_MARK = "☐"


class TemplateRenderer:
    """Fills ``{{field.path}}`` placeholders of a .docx template with record values."""

    def __init__(
        self,
        template: Union[Path, str, bytes, None] = None,
        *,
        missing_value: str = MISSING_VALUE_TEXT,
    ) -> None:
        """
        Initialize renderer with template.

        Args:
            template: Path to the .docx template, or its bytes. Defaults to
                ``TEMPLATE_PATH``.
            missing_value: Text used for fields the record leaves empty.
        """
        self.template_path: Optional[Path] = None
        if isinstance(template, bytes):
            self.template_content = template
        else:
            self.template_path = Path(template) if template is not None else TEMPLATE_PATH
            self.template_content = self._load_template()
        self.missing_value = missing_value

    def _load_template(self) -> bytes:
        """Load the template file."""
        if not self.template_path.is_file():
            raise TemplateNotFound(f"Template not found: {self.template_path}")
        return self.template_path.read_bytes()

    def render(self, record: SurveyRecord) -> RenderedDocument:
        """
        Render the template with the record and strip page artifacts.

        Args:
            record: Validated survey record

        Returns:
            Rendered document bytes plus placeholder mismatch report
        """
        values = self.placeholder_values(record)
        seen: Set[str] = set()
        unmatched: Set[str] = set()
        stats: List[CleanupStats] = []

        def _transform(name: str, root: etree._Element) -> None:
            for paragraph in list(root.iter(w("p"))):
                _substitute_paragraph(paragraph, values, seen, unmatched, part=name)
            stats.append(clean_part(root))

        data = transform_package(self.template_content, _transform)

        unused = sorted(set(values) - seen)
        if unmatched:
            logger.warning("Template placeholders without record field: %s", ", ".join(sorted(unmatched)))
        if unused:
            logger.info("Record fields without template placeholder: %s", ", ".join(unused))

        cleanup = sum(stats, CleanupStats())
        logger.info(
            "Rendered template (%d placeholders filled, %d artifacts removed)",
            len(seen - unmatched),
            cleanup.total,
        )
        return RenderedDocument(
            data=data,
            unmatched_placeholders=tuple(sorted(unmatched)),
            unused_fields=tuple(unused),
            cleanup=cleanup,
        )

    def placeholder_values(self, record: SurveyRecord) -> Dict[str, str]:
        return {name: self._format_value(value) for name, value in record.iter_fields()}

    def _format_value(self, value: Any) -> str:
        if value is None:
            return self.missing_value
        if isinstance(value, bool):
            return CHECKED_MARK if value else UNCHECKED_MARK
        text = _XML_INVALID.sub("", str(value)).strip()
        return text or self.missing_value


def _substitute_paragraph(
    paragraph: etree._Element,
    values: Dict[str, str],
    seen: Set[str],
    unmatched: Set[str],
    *,
    part: str,
) -> None:
    nodes = paragraph_text_nodes(paragraph)
    text = "".join(node.text or "" for node in nodes)
    if "{{" not in text and "}}" not in text:
        return

    matches = list(PLACEHOLDER_PATTERN.finditer(text))
    leftover = PLACEHOLDER_PATTERN.sub("", text)
    if "{{" in leftover or "}}" in leftover:
        snippet = text[:120]
        raise PlaceholderSyntaxError(f"Malformed placeholder in {part}: {snippet!r}")

    # Right to left, so earlier offsets stay valid.
    for match in reversed(matches):
        name = match.group(1)
        seen.add(name)
        if name not in values:
            unmatched.add(name)
            continue
        _replace_span(nodes, match.start(), match.end(), values[name])


def _replace_span(nodes: List[etree._Element], start: int, end: int, replacement: str) -> None:
    """Replace characters ``[start, end)`` of the concatenated node text.

    The replacement goes into the node holding *start*; the rest of the span is
    cut from the following nodes, which keeps their formatting intact.
    """
    offset = 0
    placed = False
    for node in nodes:
        node_text = node.text or ""
        node_start, node_end = offset, offset + len(node_text)
        offset = node_end
        if node_end <= start or node_start >= end:
            if node_start >= end:
                break
            continue
        local_start = max(start - node_start, 0)
        local_end = min(end - node_start, len(node_text))
        if not placed:
            node.text = node_text[:local_start] + replacement + node_text[local_end:]
            placed = True
        else:
            node.text = node_text[:local_start] + node_text[local_end:]
        node.set(XML_SPACE, "preserve")
