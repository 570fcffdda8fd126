from __future__ import annotations

import io
import logging
import zipfile

import pytest
from docx import Document

from conftest import OBJECT_NAME, build_package, read_part, record_payload
from survey_doc_gen.config import RESOURCES_DIR
from survey_doc_gen.errors import MalformedTemplate, PlaceholderSyntaxError, TemplateNotFound
from survey_doc_gen.record import SurveyRecord, field_names
from survey_doc_gen.renderer import CHECKED_MARK, UNCHECKED_MARK, TemplateRenderer


def _para(*runs: str) -> str:
    return "<w:p>" + "".join(runs) + "</w:p>"


def _run(text: str, bold: bool = False) -> str:
    props = "<w:rPr><w:b/></w:rPr>" if bold else ""
    return f'<w:r>{props}<w:t xml:space="preserve">{text}</w:t></w:r>'


def _document_text(package: bytes) -> str:
    document = Document(io.BytesIO(package))
    return "\n".join(p.text for p in document.paragraphs)


def test_simple_substitution(survey_record: SurveyRecord) -> None:
    template = build_package(_para(_run("Объект: {{object_name}}")))

    rendered = TemplateRenderer(template).render(survey_record)

    assert _document_text(rendered.data) == f"Объект: {OBJECT_NAME}"


def test_placeholder_split_across_runs_keeps_first_run_formatting(survey_record: SurveyRecord) -> None:
    template = build_package(
        _para(_run("Заказчик: {{cust", bold=True), _run("omer."), _run("name}} (ОГРН {{ customer.ogrn }})"))
    )

    rendered = TemplateRenderer(template).render(survey_record)

    document = Document(io.BytesIO(rendered.data))
    paragraph = document.paragraphs[0]
    assert paragraph.text == "Заказчик: ООО «Городские сети» (ОГРН 1027700132195)"
    assert paragraph.runs[0].bold is True
    assert "ООО «Городские сети»" in paragraph.runs[0].text


def test_flags_and_missing_values(survey_record: SurveyRecord) -> None:
    template = build_package(
        _para(_run("Шум {{survey_works.noise_level}} ЭМП {{survey_works.emf}}"))
        + _para(_run("Адрес: {{customer.address}}"))
    )

    rendered = TemplateRenderer(template, missing_value="н/д").render(survey_record)

    text = _document_text(rendered.data)
    assert f"Шум {CHECKED_MARK} ЭМП {UNCHECKED_MARK}" in text
    assert "Адрес: н/д" in text


def test_special_characters_are_escaped() -> None:
    record = SurveyRecord.model_validate(record_payload(object_location='Участок <А> & "Б"'))
    template = build_package(_para(_run("{{object_location}}")))

    rendered = TemplateRenderer(template).render(record)

    assert _document_text(rendered.data) == 'Участок <А> & "Б"'
    assert "&lt;А&gt; &amp;" in read_part(rendered.data)


def test_mismatches_are_reported_not_raised(survey_record: SurveyRecord, caplog: pytest.LogCaptureFixture) -> None:
    template = build_package(_para(_run("{{object_name}} {{customer.inn}}")))

    with caplog.at_level(logging.INFO, logger="survey_doc_gen.renderer"):
        rendered = TemplateRenderer(template).render(survey_record)

    assert rendered.unmatched_placeholders == ("customer.inn",)
    assert "customer.ogrn" in rendered.unused_fields
    assert "object_name" not in rendered.unused_fields
    # The unknown placeholder is left as written.
    assert "{{customer.inn}}" in _document_text(rendered.data)
    assert any("customer.inn" in r.getMessage() for r in caplog.records if r.levelno == logging.WARNING)


def test_footer_placeholders_rendered(survey_record: SurveyRecord) -> None:
    template = build_package(
        _para(_run("Тело")),
        footer_xml=_para(_run("Колонтитул: {{object_name}}")),
    )

    rendered = TemplateRenderer(template).render(survey_record)

    assert OBJECT_NAME in read_part(rendered.data, "word/footer1.xml")


def test_render_also_removes_page_artifacts(survey_record: SurveyRecord) -> None:
    template = build_package(
        _para(_run("{{object_name}}"), '<w:r><w:br w:type="page"/></w:r>')
        + _para('<w:r><w:lastRenderedPageBreak/><w:t>Далее</w:t></w:r>')
    )

    rendered = TemplateRenderer(template).render(survey_record)

    assert rendered.cleanup.page_breaks == 1
    assert rendered.cleanup.rendered_page_markers == 1
    xml = read_part(rendered.data)
    assert 'w:type="page"' not in xml
    assert "lastRenderedPageBreak" not in xml


@pytest.mark.parametrize(
    "text",
    ["{{object_name", "object_name}}", "{{ bad-name }}", "{{}}", "{{customer..name}}"],
)
def test_placeholder_syntax_errors(survey_record: SurveyRecord, text: str) -> None:
    template = build_package(_para(_run(text)))

    with pytest.raises(PlaceholderSyntaxError) as exc_info:
        TemplateRenderer(template).render(survey_record)
    assert exc_info.value.stage == "rendering"


def test_template_not_found(tmp_path) -> None:
    with pytest.raises(TemplateNotFound):
        TemplateRenderer(tmp_path / "missing.docx")


def _package_without_main_part() -> bytes:
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as archive:
        archive.writestr("word/styles.xml", "<styles/>")
    return buffer.getvalue()


@pytest.mark.parametrize("data", [b"not a zip", _package_without_main_part()])
def test_malformed_template(survey_record: SurveyRecord, data: bytes) -> None:
    with pytest.raises(MalformedTemplate):
        TemplateRenderer(data).render(survey_record)


def test_unparsable_document_xml(survey_record: SurveyRecord) -> None:
    template = build_package("<w:p><w:r><w:t>broken</w:r></w:p>")

    with pytest.raises(MalformedTemplate):
        TemplateRenderer(template).render(survey_record)


def test_template_loaded_from_path(tmp_path, survey_record: SurveyRecord) -> None:
    path = tmp_path / "template.docx"
    path.write_bytes(build_package(_para(_run("{{area_size}}"))))

    rendered = TemplateRenderer(path).render(survey_record)

    assert _document_text(rendered.data) == "1,2 га"


def test_bundled_template_covers_every_field(survey_record: SurveyRecord) -> None:
    rendered = TemplateRenderer(RESOURCES_DIR / "template_tz.docx").render(survey_record)

    assert rendered.unmatched_placeholders == ()
    assert rendered.unused_fields == ()
    document = Document(io.BytesIO(rendered.data))
    assert document.paragraphs[2].text == OBJECT_NAME
    cells = [cell.text for table in document.tables for row in table.rows for cell in row.cells]
    assert "1027700132195" in cells
    assert "{{" not in "".join(cells)
    assert len(field_names()) == 50
