"""Removal of markup artifacts that produce blank or extra pages.

Word and template round-trips leave three kinds of page-forcing markup:
explicit page breaks, stale ``lastRenderedPageBreak`` markers and section
boundaries of type "next page" inside the body. The body-level ``sectPr``
closes the document and is never touched.
"""

from __future__ import annotations

import logging

from lxml import etree

from .docx_package import transform_package, w
from .models import CleanupStats

logger = logging.getLogger(__name__)

_FALSE_VALUES = {"0", "false", "off"}

# Children of w:sectPr that must precede w:type (ECMA-376 CT_SectPr sequence).
_BEFORE_TYPE = {w("headerReference"), w("footerReference"), w("footnotePr"), w("endnotePr")}


def remove_page_breaks(root: etree._Element) -> int:
    removed = 0
    for br in list(root.iter(w("br"))):
        if br.get(w("type")) == "page":
            br.getparent().remove(br)
            removed += 1
    for marker in list(root.iter(w("pageBreakBefore"))):
        if marker.get(w("val"), "true").lower() in _FALSE_VALUES:
            continue
        marker.getparent().remove(marker)
        removed += 1
    return removed


def remove_last_rendered_page_breaks(root: etree._Element) -> int:
    markers = list(root.iter(w("lastRenderedPageBreak")))
    for marker in markers:
        marker.getparent().remove(marker)
    return len(markers)


def remove_section_page_breaks(root: etree._Element) -> int:
    """Make every mid-document section boundary continuous."""

    body = root.find(w("body"))
    changed = 0
    for sect_pr in list(root.iter(w("sectPr"))):
        if body is not None and sect_pr.getparent() is body:
            continue
        type_el = sect_pr.find(w("type"))
        if type_el is None:
            # An absent w:type means "nextPage".
            type_el = etree.Element(w("type"))
            index = 0
            for index, child in enumerate(sect_pr):
                if child.tag not in _BEFORE_TYPE:
                    break
            else:
                index = len(sect_pr)
            sect_pr.insert(index, type_el)
        elif type_el.get(w("val")) == "continuous":
            continue
        type_el.set(w("val"), "continuous")
        changed += 1
    return changed


def clean_part(root: etree._Element) -> CleanupStats:
    """Strip page-forcing artifacts from one parsed XML part."""

    return CleanupStats(
        page_breaks=remove_page_breaks(root),
        rendered_page_markers=remove_last_rendered_page_breaks(root),
        section_breaks=remove_section_page_breaks(root),
    )


def cleanup_document(data: bytes) -> bytes:
    """Return a copy of the .docx package *data* with page artifacts removed.

    Running it on its own output returns identical bytes.
    """
    totals = []

    def _transform(name: str, root: etree._Element) -> None:
        totals.append(clean_part(root))

    cleaned = transform_package(data, _transform)
    stats = sum(totals, CleanupStats())
    if stats.total:
        logger.info(
            "Removed %d page break(s), %d rendered-page marker(s), %d section break(s)",
            stats.page_breaks,
            stats.rendered_page_markers,
            stats.section_breaks,
        )
    return cleaned
