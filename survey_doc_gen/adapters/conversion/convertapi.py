"""ConvertAPI-compatible conversion backend."""

from __future__ import annotations

import base64
import binascii
import io
import logging
from typing import Any, Dict, Optional, Union

import httpx
from PyPDF2 import PdfReader

from ...config import (
    CONVERT_API_BASE_URL,
    CONVERT_API_SECRET,
    CONVERT_TIMEOUT_SECONDS,
    DOWNLOAD_TIMEOUT_SECONDS,
    require_setting,
)
from ...errors import ConversionRejected, DownloadFailed, ServiceUnavailable
from ...models import ConvertedDocument, RenderedDocument
from .base import DocumentConverter

logger = logging.getLogger(__name__)

DOCX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"
TRANSIENT_STATUSES = {429, 500, 502, 503, 504}
AUTH_STATUSES = {401, 403}


class ConvertApiConverter(DocumentConverter):
    """Converts .docx to PDF through the ConvertAPI REST endpoint."""

    def __init__(
        self,
        api_secret: Optional[str] = None,
        *,
        base_url: str = CONVERT_API_BASE_URL,
        timeout: float = CONVERT_TIMEOUT_SECONDS,
        download_timeout: float = DOWNLOAD_TIMEOUT_SECONDS,
        http_client: Optional[httpx.Client] = None,
    ) -> None:
        self._secret = require_setting("CONVERT_API_SECRET", api_secret or CONVERT_API_SECRET)
        self._endpoint = f"{base_url.rstrip('/')}/convert/docx/to/pdf"
        self._timeout = timeout
        self._download_timeout = download_timeout
        self._client = http_client or httpx.Client(timeout=timeout)

    def close(self) -> None:
        self._client.close()

    def convert(self, document: Union[RenderedDocument, bytes], filename: str = "document.docx") -> ConvertedDocument:
        data = document.data if isinstance(document, RenderedDocument) else document
        logger.info("Converting %s (%d bytes) via %s", filename, len(data), self._endpoint)

        response = self._send(
            "POST",
            self._endpoint,
            headers={"Authorization": f"Bearer {self._secret}"},
            files={"File": (filename, data, DOCX_MEDIA_TYPE)},
            data={"StoreFile": "true"},
            timeout=self._timeout,
        )
        self._check_status(response)

        try:
            payload = response.json()
        except ValueError as exc:
            raise ConversionRejected("Conversion service returned a non-JSON body") from exc

        pdf_bytes = self._result_bytes(payload)
        page_count = _count_pdf_pages(pdf_bytes)
        logger.info("Conversion finished: %d page(s), %d bytes", page_count, len(pdf_bytes))
        return ConvertedDocument(data=pdf_bytes, page_count=page_count)

    def _send(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        """Send a request, retrying once on a transport failure or transient status."""

        for attempt in (1, 2):
            try:
                response = self._client.request(method, url, **kwargs)
            except httpx.TransportError as exc:
                if attempt == 1:
                    logger.warning("Conversion service request failed (%s); retrying once", exc)
                    continue
                raise ServiceUnavailable(f"Conversion service unreachable: {exc}", retryable=True) from exc
            if response.status_code in TRANSIENT_STATUSES and attempt == 1:
                logger.warning("Conversion service returned %s; retrying once", response.status_code)
                continue
            return response
        raise AssertionError("unreachable")

    def _check_status(self, response: httpx.Response) -> None:
        status = response.status_code
        if status < 400:
            return
        detail = response.text[:300]
        logger.error("Conversion service returned %s: %s", status, detail)
        if status in AUTH_STATUSES:
            raise ServiceUnavailable(f"Conversion service rejected the credential ({status})")
        if status in TRANSIENT_STATUSES:
            raise ServiceUnavailable(f"Conversion service error {status}", retryable=True)
        if status >= 500:
            raise ServiceUnavailable(f"Conversion service error {status}")
        raise ConversionRejected(f"Conversion rejected ({status}): {detail}")

    def _result_bytes(self, payload: Dict[str, Any]) -> bytes:
        files = payload.get("Files") if isinstance(payload, dict) else None
        if not files:
            raise ConversionRejected("Conversion response carries no result files")
        result = files[0] or {}

        file_data = result.get("FileData")
        if file_data:
            try:
                return base64.b64decode(file_data, validate=True)
            except (binascii.Error, ValueError) as exc:
                raise ConversionRejected("Inline result is not valid base64") from exc

        url = result.get("Url")
        if not url:
            raise ConversionRejected("Conversion result has neither inline data nor a URL")
        return self._download(url)

    def _download(self, url: str) -> bytes:
        logger.info("Downloading converted result")
        try:
            response = self._send("GET", url, timeout=self._download_timeout, follow_redirects=True)
        except ServiceUnavailable as exc:
            raise DownloadFailed(f"Could not fetch converted result: {exc}", retryable=True) from exc
        if response.status_code >= 400:
            raise DownloadFailed(
                f"Converted result download returned {response.status_code}",
                retryable=response.status_code in TRANSIENT_STATUSES,
            )
        if not response.content.startswith(b"%PDF"):
            content_type = response.headers.get("content-type", "unknown")
            raise DownloadFailed(f"Converted result download returned {content_type} instead of a PDF", retryable=True)
        return response.content


def _count_pdf_pages(data: bytes) -> int:
    if not data.startswith(b"%PDF"):
        raise ConversionRejected("Conversion result is not a PDF")
    try:
        return len(PdfReader(io.BytesIO(data)).pages)
    except Exception as exc:
        raise ConversionRejected(f"Conversion result is not a readable PDF: {exc}") from exc
