from __future__ import annotations

import anthropic
import httpx
import pytest

from conftest import OBJECT_NAME, SOURCE_TEXT, as_json, fake_client, record_payload
from survey_doc_gen import llm
from survey_doc_gen.errors import ConfigurationError, EndpointUnavailable, InvalidResponseFormat, RateLimited
from survey_doc_gen.llm import ResponseRejected, SurveyRecordExtractor, is_verbatim, parse_record
from survey_doc_gen.models import DocumentFormat, ExtractedText
from survey_doc_gen.prompts import DEFAULT_INSTRUCTIONS, INSTRUCTIONS_VERSION

API_URL = "https://api.anthropic.com/v1/messages"


def _status_error(cls, status: int):
    request = httpx.Request("POST", API_URL)
    return cls("endpoint error", response=httpx.Response(status, request=request), body=None)


def _connection_error():
    return anthropic.APIConnectionError(request=httpx.Request("POST", API_URL))


def _extractor(*replies: object) -> SurveyRecordExtractor:
    return SurveyRecordExtractor(client=fake_client(*replies), model="test-model")


# ---------- strict parsing ----------

def test_parse_record_accepts_bare_json() -> None:
    record = parse_record(as_json(record_payload()), SOURCE_TEXT)
    assert record.object_name == OBJECT_NAME
    assert record.survey_works.noise_level is True


def test_parse_record_accepts_single_json_fence() -> None:
    reply = "```json\n" + as_json(record_payload()) + "\n```"
    assert parse_record(reply, SOURCE_TEXT).customer.ogrn == "1027700132195"


@pytest.mark.parametrize(
    "reply",
    [
        "",
        "Конечно! Вот данные: {}",
        "[1, 2, 3]",
        "{not json}",
        "```python\n{}\n```",
    ],
)
def test_parse_record_rejects_non_object_replies(reply: str) -> None:
    with pytest.raises(ResponseRejected):
        parse_record(reply, SOURCE_TEXT)


def test_parse_record_rejects_prose_around_json() -> None:
    reply = "Результат:\n" + as_json(record_payload()) + "\nГотово."
    with pytest.raises(ResponseRejected):
        parse_record(reply, SOURCE_TEXT)


def test_verbatim_object_name_kept_exactly() -> None:
    record = parse_record(as_json(record_payload()), SOURCE_TEXT)
    assert record.object_name == "Водоканал, Реконструкция сетей"


def test_paraphrased_object_name_rejected() -> None:
    reply = as_json(record_payload(object_name="Реконструкция сетей водоканала"))
    with pytest.raises(ResponseRejected, match="verbatim"):
        parse_record(reply, SOURCE_TEXT)


def test_is_verbatim_ignores_line_wrapping() -> None:
    document = "Объект: Водоканал,\nРеконструкция   сетей"
    assert is_verbatim("Водоканал, Реконструкция сетей", document)
    assert not is_verbatim("Водоканал Реконструкция сетей", document)
    assert not is_verbatim("   ", document)


# ---------- extractor ----------

def test_extract_record_single_call() -> None:
    extractor = _extractor(as_json(record_payload()))
    text = ExtractedText(text=SOURCE_TEXT, source_format=DocumentFormat.PDF, source_sha256="0" * 64)

    record = extractor.extract_record(text)

    assert record.object_name == OBJECT_NAME
    calls = extractor.client.messages.calls
    assert len(calls) == 1
    assert calls[0]["model"] == "test-model"
    assert calls[0]["temperature"] == pytest.approx(0.1)
    assert calls[0]["system"] == DEFAULT_INSTRUCTIONS.system
    assert SOURCE_TEXT in calls[0]["messages"][0]["content"]
    # The input text is untouched.
    assert text.text == SOURCE_TEXT


def test_instructions_embed_schema_and_version() -> None:
    assert DEFAULT_INSTRUCTIONS.version == INSTRUCTIONS_VERSION
    assert "survey_works" in DEFAULT_INSTRUCTIONS.system
    assert "ДОСЛОВНО" in DEFAULT_INSTRUCTIONS.system


def test_retry_after_bad_reply_uses_stricter_reminder() -> None:
    extractor = _extractor("not json at all", as_json(record_payload()))

    record = extractor.extract_record(SOURCE_TEXT)

    assert record.object_name == OBJECT_NAME
    calls = extractor.client.messages.calls
    assert len(calls) == 2
    retry_messages = calls[1]["messages"]
    assert [m["role"] for m in retry_messages] == ["user", "assistant", "user"]
    assert retry_messages[1]["content"] == "not json at all"
    assert DEFAULT_INSTRUCTIONS.reminder in retry_messages[2]["content"]


def test_missing_flag_fails_after_one_retry() -> None:
    payload = record_payload()
    del payload["survey_works"]["vibration"]
    extractor = _extractor(as_json(payload), as_json(payload))

    with pytest.raises(InvalidResponseFormat) as exc_info:
        extractor.extract_record(SOURCE_TEXT)

    assert len(extractor.client.messages.calls) == 2
    assert exc_info.value.stage == "structuring"
    assert "survey_works.vibration" in str(exc_info.value)


def test_string_flag_is_not_coerced() -> None:
    payload = record_payload()
    payload["survey_types"]["ecology"] = "true"
    extractor = _extractor(as_json(payload), as_json(payload))

    with pytest.raises(InvalidResponseFormat):
        extractor.extract_record(SOURCE_TEXT)


def test_rate_limit_retried_once() -> None:
    extractor = _extractor(_status_error(anthropic.RateLimitError, 429), as_json(record_payload()))

    assert extractor.extract_record(SOURCE_TEXT).object_name == OBJECT_NAME
    assert len(extractor.client.messages.calls) == 2


def test_rate_limit_twice_raises_rate_limited() -> None:
    extractor = _extractor(
        _status_error(anthropic.RateLimitError, 429),
        _status_error(anthropic.RateLimitError, 429),
    )

    with pytest.raises(RateLimited) as exc_info:
        extractor.extract_record(SOURCE_TEXT)

    assert exc_info.value.retryable is True
    assert len(extractor.client.messages.calls) == 2


def test_overloaded_maps_to_rate_limited() -> None:
    extractor = _extractor(
        _status_error(anthropic.InternalServerError, 529),
        _status_error(anthropic.InternalServerError, 529),
    )

    with pytest.raises(RateLimited):
        extractor.extract_record(SOURCE_TEXT)


def test_connection_error_retried_once_then_unavailable() -> None:
    extractor = _extractor(_connection_error(), _connection_error())

    with pytest.raises(EndpointUnavailable) as exc_info:
        extractor.extract_record(SOURCE_TEXT)

    assert exc_info.value.retryable is True
    assert len(extractor.client.messages.calls) == 2


def test_authentication_error_not_retried() -> None:
    extractor = _extractor(_status_error(anthropic.AuthenticationError, 401))

    with pytest.raises(EndpointUnavailable) as exc_info:
        extractor.extract_record(SOURCE_TEXT)

    assert exc_info.value.retryable is False
    assert len(extractor.client.messages.calls) == 1


def test_missing_api_key_fails_fast(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(llm, "ANTHROPIC_API_KEY", None)

    with pytest.raises(ConfigurationError):
        SurveyRecordExtractor()


def test_sdk_retries_disabled() -> None:
    extractor = SurveyRecordExtractor(api_key="sk-ant-test", timeout=5.0)
    assert extractor.client.max_retries == 0
