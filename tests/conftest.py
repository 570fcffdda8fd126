from __future__ import annotations

import copy
import io
import json
import sys
import zipfile
from pathlib import Path
from types import SimpleNamespace
from typing import Callable, Iterable, List, Optional, Sequence, Tuple

import pytest
from docx import Document
from PyPDF2 import PdfWriter
from PyPDF2.generic import DecodedStreamObject, DictionaryObject, NameObject

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from survey_doc_gen.record import SurveyRecord

A4_PORTRAIT = (595, 842)
A4_LANDSCAPE = (842, 595)

WORD_NS = "http://schemas.openxmlformats.org/wordprocessingml/2006/main"

OBJECT_NAME = "Водоканал, Реконструкция сетей"
SOURCE_TEXT = (
    "Техническое задание на инженерные изыскания\n"
    f"Наименование объекта: {OBJECT_NAME}\n"
    "Заказчик: ООО «Городские сети», ОГРН 1027700132195\n"
    "Требуется измерение шума и вибрации."
)


# ---------- PDF builders ----------

def make_pdf(
    sizes: Sequence[Tuple[float, float]],
    *,
    rotations: Optional[Sequence[int]] = None,
) -> bytes:
    writer = PdfWriter()
    for index, (width, height) in enumerate(sizes):
        writer.add_blank_page(width=width, height=height)
        if rotations and rotations[index]:
            # add_blank_page hands back a detached copy; edit the page the writer keeps.
            writer.pages[-1].rotate(rotations[index])
    buffer = io.BytesIO()
    writer.write(buffer)
    return buffer.getvalue()


def make_text_pdf(lines: Iterable[str]) -> bytes:
    """Single-page PDF with a Helvetica text layer (ASCII only)."""

    writer = PdfWriter()
    writer.add_blank_page(width=612, height=792)
    page = writer.pages[-1]
    font = DictionaryObject({
        NameObject("/Type"): NameObject("/Font"),
        NameObject("/Subtype"): NameObject("/Type1"),
        NameObject("/BaseFont"): NameObject("/Helvetica"),
    })
    page[NameObject("/Resources")] = DictionaryObject({
        NameObject("/Font"): DictionaryObject({NameObject("/F1"): writer._add_object(font)}),
    })
    ops = ["BT", "/F1 12 Tf", "14 TL", "72 720 Td"]
    for line in lines:
        ops.append(f"({line}) Tj T*")
    ops.append("ET")
    stream = DecodedStreamObject()
    stream.set_data("\n".join(ops).encode("latin-1"))
    page[NameObject("/Contents")] = writer._add_object(stream)
    buffer = io.BytesIO()
    writer.write(buffer)
    return buffer.getvalue()


@pytest.fixture()
def pdf_factory() -> Callable[..., bytes]:
    return make_pdf


# ---------- Word-processor builders ----------

def make_docx(paragraphs: Iterable[str] = (), table_rows: Optional[List[List[str]]] = None) -> bytes:
    document = Document()
    for text in paragraphs:
        document.add_paragraph(text)
    if table_rows:
        table = document.add_table(rows=len(table_rows), cols=len(table_rows[0]))
        for r, row in enumerate(table_rows):
            for c, value in enumerate(row):
                table.cell(r, c).text = value
    buffer = io.BytesIO()
    document.save(buffer)
    return buffer.getvalue()


def build_package(body_xml: str, *, footer_xml: Optional[str] = None) -> bytes:
    """Minimal .docx package from a raw ``w:body`` fragment."""

    document = (
        '<?xml version="1.0" encoding="UTF-8" standalone="yes"?>'
        f'<w:document xmlns:w="{WORD_NS}"><w:body>{body_xml}</w:body></w:document>'
    )
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w", zipfile.ZIP_DEFLATED) as archive:
        archive.writestr(
            "[Content_Types].xml",
            '<?xml version="1.0" encoding="UTF-8"?>'
            '<Types xmlns="http://schemas.openxmlformats.org/package/2006/content-types">'
            '<Default Extension="rels" ContentType="application/vnd.openxmlformats-package.relationships+xml"/>'
            '<Default Extension="xml" ContentType="application/xml"/>'
            '<Override PartName="/word/document.xml" ContentType="application/vnd.openxmlformats-'
            'officedocument.wordprocessingml.document.main+xml"/></Types>',
        )
        archive.writestr(
            "_rels/.rels",
            '<?xml version="1.0" encoding="UTF-8"?>'
            '<Relationships xmlns="http://schemas.openxmlformats.org/package/2006/relationships">'
            '<Relationship Id="rId1" Type="http://schemas.openxmlformats.org/officeDocument/2006/'
            'relationships/officeDocument" Target="word/document.xml"/></Relationships>',
        )
        archive.writestr("word/document.xml", document)
        if footer_xml is not None:
            archive.writestr(
                "word/footer1.xml",
                '<?xml version="1.0" encoding="UTF-8" standalone="yes"?>'
                f'<w:ftr xmlns:w="{WORD_NS}">{footer_xml}</w:ftr>',
            )
    return buffer.getvalue()


def read_part(package: bytes, name: str = "word/document.xml") -> str:
    with zipfile.ZipFile(io.BytesIO(package)) as archive:
        return archive.read(name).decode("utf-8")


# ---------- Records ----------

def record_payload(**overrides) -> dict:
    payload = {
        "object_name": OBJECT_NAME,
        "object_location": "г. Москва, ул. Садовая, д. 1",
        "cadastral_number": "77:01:0001001:1234",
        "area_size": "1,2 га",
        "urban_planning_activity": "Реконструкция",
        "boundary_description": None,
        "customer": {
            "name": "ООО «Городские сети»",
            "ogrn": "1027700132195",
            "address": None,
            "contact_name": None,
            "contact_phone": None,
            "contact_email": None,
        },
        "technical": {
            "description": "Сети водоснабжения",
            "excavation_depth": "3 м",
            "foundation_type": None,
            "foundation_depth": None,
            "foundation_load": None,
            "settlement_tolerance": None,
        },
        "object_info": {
            "purpose": "Водоснабжение",
            "transport_infrastructure": False,
            "dangerous_production": False,
            "fire_hazard": None,
            "responsibility_level": "Нормальный",
            "permanent_presence": "Отсутствуют",
            "technogenic_impact": None,
            "dangerous_processes": None,
        },
        "survey_types": {"hydrometeorology": False, "geology": True, "ecology": True},
        "goals": {
            "include_reconstruction": True,
            "include_agricultural_land": False,
            "include_industrial_land": False,
        },
        "survey_works": {
            "gamma_terrain": True,
            "gamma_building": False,
            "gamma_spectrometry_soil": True,
            "gamma_spectrometry_oss": False,
            "radon_terrain": True,
            "radon_building": False,
            "heavy_metals_soil": True,
            "heavy_metals_oss": False,
            "benzpyrene": True,
            "oil_products": True,
            "microbiology_soil": True,
            "air_analysis": False,
            "water_chemistry": False,
            "water_microbiology": False,
            "gas_geochemistry": False,
            "noise_level": True,
            "vibration": True,
            "emf": False,
        },
    }
    payload = copy.deepcopy(payload)
    payload.update(overrides)
    return payload


@pytest.fixture()
def valid_payload() -> dict:
    return record_payload()


@pytest.fixture()
def survey_record(valid_payload: dict) -> SurveyRecord:
    return SurveyRecord.model_validate(valid_payload)


# ---------- Fake model client ----------

class FakeMessages:
    """Stands in for ``client.messages``; replays queued replies or raises queued errors."""

    def __init__(self, replies: List[object]) -> None:
        self._replies = list(replies)
        self.calls: List[dict] = []

    def create(self, **kwargs):
        self.calls.append(copy.deepcopy(kwargs))
        reply = self._replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return SimpleNamespace(content=[SimpleNamespace(type="text", text=reply)])


def fake_client(*replies: object) -> SimpleNamespace:
    return SimpleNamespace(messages=FakeMessages(list(replies)))


def as_json(payload: dict) -> str:
    return json.dumps(payload, ensure_ascii=False)
