"""Structured extraction of survey records using Claude."""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, List, Optional

import anthropic
from anthropic import Anthropic
from pydantic import ValidationError

from .config import (
    ANTHROPIC_API_KEY,
    CLAUDE_MODEL,
    LLM_MAX_TOKENS,
    LLM_TEMPERATURE,
    LLM_TIMEOUT_SECONDS,
    require_setting,
)
from .errors import EndpointUnavailable, InvalidResponseFormat, RateLimited
from .models import ExtractedText
from .prompts import DEFAULT_INSTRUCTIONS, InstructionSet, build_user_prompt
from .record import SurveyRecord

logger = logging.getLogger(__name__)

OVERLOADED_STATUS = 529


class ResponseRejected(ValueError):
    """A model reply that failed strict parsing or validation."""


class SurveyRecordExtractor:
    """Sends extracted text to Claude and returns a validated :class:`SurveyRecord`.

    The model is treated as an untrusted source: its reply is parsed strictly
    and checked against the schema. One retry with a stricter reminder is
    allowed on a bad reply; nothing is ever defaulted.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        *,
        client: Any = None,
        model: str = CLAUDE_MODEL,
        max_tokens: int = LLM_MAX_TOKENS,
        temperature: float = LLM_TEMPERATURE,
        timeout: float = LLM_TIMEOUT_SECONDS,
    ) -> None:
        if client is None:
            api_key = require_setting("ANTHROPIC_API_KEY", api_key or ANTHROPIC_API_KEY)
            # Retries are handled here, one per call site.
            client = Anthropic(api_key=api_key, timeout=timeout, max_retries=0)
        self.client = client
        self.model = model
        self.max_tokens = max_tokens
        self.temperature = temperature

    def extract_record(
        self,
        text: ExtractedText | str,
        instructions: InstructionSet = DEFAULT_INSTRUCTIONS,
    ) -> SurveyRecord:
        """Extract a :class:`SurveyRecord` from *text*.

        Raises:
            InvalidResponseFormat: both attempts returned non-conforming replies.
            RateLimited: the endpoint is still throttling after one retry.
            EndpointUnavailable: network or authentication failure.
        """
        document_text = text.text if isinstance(text, ExtractedText) else text
        messages: List[Dict[str, Any]] = [
            {"role": "user", "content": build_user_prompt(document_text)},
        ]
        logger.info(
            "Requesting survey record from %s (instructions %s, %d chars)",
            self.model,
            instructions.version,
            len(document_text),
        )

        last_error: Optional[ResponseRejected] = None
        for attempt in (1, 2):
            response_text = self._call(instructions.system, messages)
            try:
                record = parse_record(response_text, document_text)
            except ResponseRejected as exc:
                last_error = exc
                logger.warning("Survey record rejected (attempt %d): %s", attempt, exc)
                messages = messages + [
                    {"role": "assistant", "content": response_text or "(пустой ответ)"},
                    {"role": "user", "content": f"{instructions.reminder}\n\nОшибки проверки:\n{exc}"},
                ]
                continue
            logger.info("Survey record extracted on attempt %d", attempt)
            return record

        raise InvalidResponseFormat(f"Model reply did not match the record schema: {last_error}")

    def _call(self, system: str, messages: List[Dict[str, Any]]) -> str:
        """Invoke the Messages API once, retrying a single time on transient failures."""

        for attempt in (1, 2):
            try:
                response = self.client.messages.create(
                    model=self.model,
                    max_tokens=self.max_tokens,
                    temperature=self.temperature,
                    system=system,
                    messages=messages,
                )
                return self._extract_text_from_response(response)
            except anthropic.RateLimitError as exc:
                if attempt == 1:
                    logger.warning("Rate limited by model endpoint; retrying once")
                    continue
                raise RateLimited(f"Model endpoint rate limit: {exc}") from exc
            except anthropic.APIConnectionError as exc:
                if attempt == 1:
                    logger.warning("Model endpoint connection failed (%s); retrying once", exc)
                    continue
                raise EndpointUnavailable(f"Model endpoint unreachable: {exc}", retryable=True) from exc
            except anthropic.APIStatusError as exc:
                if exc.status_code == OVERLOADED_STATUS:
                    if attempt == 1:
                        logger.warning("Model endpoint overloaded; retrying once")
                        continue
                    raise RateLimited(f"Model endpoint overloaded: {exc}") from exc
                logger.error("Model endpoint returned %s: %s", exc.status_code, exc)
                raise EndpointUnavailable(
                    f"Model endpoint error {exc.status_code}: {exc}",
                    retryable=exc.status_code >= 500,
                ) from exc
        raise AssertionError("unreachable")

    def _extract_text_from_response(self, response: Any) -> str:
        """Extract text content from Claude response, handling multiple content blocks."""
        if not hasattr(response, 'content'):
            return ""

        text_parts = []
        for block in response.content:
            if getattr(block, 'type', None) == 'text' and hasattr(block, 'text'):
                text_parts.append(block.text)

        return "\n".join(text_parts)


def parse_record(response_text: str, document_text: str) -> SurveyRecord:
    """Strictly parse *response_text* into a :class:`SurveyRecord`.

    Accepts a bare JSON object or one wrapped in a single ```json fence.
    Anything else is rejected rather than coerced.
    """
    payload = _strip_fence(response_text.strip())
    if not payload.startswith("{") or not payload.endswith("}"):
        raise ResponseRejected("reply is not a single JSON object")
    try:
        json.loads(payload)
    except json.JSONDecodeError as exc:
        raise ResponseRejected(f"reply is not valid JSON: {exc}") from exc
    try:
        record = SurveyRecord.model_validate_json(payload)
    except ValidationError as exc:
        raise ResponseRejected(_describe_validation_error(exc)) from exc

    if not is_verbatim(record.object_name, document_text):
        raise ResponseRejected("object_name is not copied verbatim from the document")
    return record


def is_verbatim(value: str, document_text: str) -> bool:
    """True when *value* occurs in *document_text* as a contiguous run of words."""

    needle = " ".join(value.split())
    return bool(needle) and needle in " ".join(document_text.split())


def _strip_fence(text: str) -> str:
    if not text.startswith("```"):
        return text
    first_newline = text.find("\n")
    if first_newline == -1 or not text.endswith("```"):
        return text
    opener = text[3:first_newline].strip().lower()
    if opener not in ("", "json"):
        return text
    return text[first_newline + 1:-3].strip()


def _describe_validation_error(exc: ValidationError) -> str:
    lines = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ())) or "<root>"
        lines.append(f"{location}: {error.get('msg')}")
    return "; ".join(lines)
