"""Low-level access to the XML parts of a .docx (OOXML) package.

Parts are rewritten in place and every other ZIP member is copied with its
original metadata, so re-saving an unchanged package is deterministic.
"""

from __future__ import annotations

import io
import re
import zipfile
from typing import Callable, Dict, Iterator, List, Tuple

from lxml import etree

from .errors import MalformedTemplate

WORD_NS = "http://schemas.openxmlformats.org/wordprocessingml/2006/main"
W = "{%s}" % WORD_NS
XML_SPACE = "{http://www.w3.org/XML/1998/namespace}space"

MAIN_PART = "word/document.xml"
TEXT_PART_PATTERN = re.compile(r"^word/(document|header\d*|footer\d*|footnotes|endnotes)\.xml$")

_PARSER = etree.XMLParser(resolve_entities=False, remove_blank_text=False, huge_tree=True)

PartTransform = Callable[[str, etree._Element], None]


def w(tag: str) -> str:
    return f"{W}{tag}"


def iter_text_parts(names: List[str]) -> Iterator[str]:
    """Yield package members that carry document text, main part first."""

    if MAIN_PART in names:
        yield MAIN_PART
    for name in names:
        if name != MAIN_PART and TEXT_PART_PATTERN.match(name):
            yield name


def open_package(data: bytes) -> zipfile.ZipFile:
    try:
        archive = zipfile.ZipFile(io.BytesIO(data))
    except zipfile.BadZipFile as exc:
        raise MalformedTemplate(f"Not a word-processor package: {exc}") from exc
    if MAIN_PART not in archive.namelist():
        archive.close()
        raise MalformedTemplate(f"Package has no {MAIN_PART}")
    return archive


def parse_part(name: str, blob: bytes) -> etree._Element:
    try:
        return etree.fromstring(blob, parser=_PARSER)
    except etree.XMLSyntaxError as exc:
        raise MalformedTemplate(f"Cannot parse {name}: {exc}") from exc


def serialize_part(root: etree._Element) -> bytes:
    return etree.tostring(root, xml_declaration=True, encoding="UTF-8", standalone=True)


def transform_package(data: bytes, transform: PartTransform) -> bytes:
    """Apply *transform* to every text part of the package and return new bytes."""

    with open_package(data) as archive:
        infos = archive.infolist()
        names = [info.filename for info in infos]
        rewritten: Dict[str, bytes] = {}
        for name in iter_text_parts(names):
            root = parse_part(name, archive.read(name))
            transform(name, root)
            rewritten[name] = serialize_part(root)

        members: List[Tuple[zipfile.ZipInfo, bytes]] = []
        for info in infos:
            blob = rewritten.get(info.filename)
            if blob is None:
                blob = archive.read(info.filename)
            members.append((info, blob))

    output = io.BytesIO()
    with zipfile.ZipFile(output, "w") as out:
        for info, blob in members:
            copy = zipfile.ZipInfo(info.filename, date_time=info.date_time)
            copy.compress_type = info.compress_type
            copy.external_attr = info.external_attr
            copy.create_system = info.create_system
            out.writestr(copy, blob)
    return output.getvalue()


def owning_paragraph(node: etree._Element):
    """Closest ``w:p`` ancestor of *node* (text boxes nest paragraphs inside runs)."""

    parent = node.getparent()
    while parent is not None and parent.tag != w("p"):
        parent = parent.getparent()
    return parent


def paragraph_text_nodes(paragraph: etree._Element) -> List[etree._Element]:
    return [t for t in paragraph.iter(w("t")) if owning_paragraph(t) is paragraph]
