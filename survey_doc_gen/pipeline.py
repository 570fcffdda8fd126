"""Orchestration of one document-assembly run.

A run walks ``extracting -> structuring -> rendering -> converting -> merging
-> delivering -> done`` and ends in exactly one terminal state. Intermediate
artifacts are kept according to how expensive they are to regenerate:
extracted text and the structured record are never stored, the rendered
document is stored as soon as it exists and removed on success, and the
converted/merged PDFs are stored only when a later stage fails.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Tuple
from uuid import uuid4

from .adapters.conversion import DocumentConverter
from .adapters.delivery import Deliverer, DeliveryRequest
from .adapters.storage import StorageBackend, StorageError
from .config import KEEP_ARTIFACTS_ON_SUCCESS, MAX_LEADING_PAGES
from .errors import ArtifactStoreFailed, PipelineCancelled, PipelineError
from .ingest import DocumentIngester
from .llm import SurveyRecordExtractor
from .merge import merge_documents
from .models import ConvertedDocument, MergedDocument, SourceDocument
from .renderer import TemplateRenderer

logger = logging.getLogger(__name__)

DOCX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"
PDF_MEDIA_TYPE = "application/pdf"
DEFAULT_OUTPUT_FILENAME = "survey_assignment.pdf"


class PipelineState(str, Enum):
    EXTRACTING = "extracting"
    STRUCTURING = "structuring"
    RENDERING = "rendering"
    CONVERTING = "converting"
    MERGING = "merging"
    DELIVERING = "delivering"
    DONE = "done"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (PipelineState.DONE, PipelineState.FAILED, PipelineState.CANCELLED)


@dataclass
class PipelineRequest:
    source: SourceDocument
    attachment: bytes = field(repr=False)
    max_leading_pages: Optional[int] = None
    output_filename: Optional[str] = None
    delivery: Optional[DeliveryRequest] = None


@dataclass(frozen=True)
class StageFailure:
    stage: str
    kind: str
    message: str
    retryable: bool = False

    @classmethod
    def from_error(cls, exc: PipelineError) -> "StageFailure":
        return cls(stage=exc.stage, kind=exc.kind, message=str(exc), retryable=exc.retryable)

    def describe(self) -> str:
        return f"{self.stage}/{self.kind}: {self.message}"


@dataclass(frozen=True)
class PipelineOutcome:
    run_id: str
    state: PipelineState
    document: Optional[MergedDocument] = None
    failure: Optional[StageFailure] = None
    retained: Tuple[str, ...] = ()
    history: Tuple[PipelineState, ...] = ()

    @property
    def succeeded(self) -> bool:
        return self.state is PipelineState.DONE


def artifact_key(run_id: str, name: str) -> str:
    return f"runs/{run_id}/{name}"


class _RunContext:
    """Mutable bookkeeping for a single run; never shared between runs."""

    def __init__(self, run_id: str, cancel_event: Optional[threading.Event]) -> None:
        self.run_id = run_id
        self.cancel_event = cancel_event
        self.history: List[PipelineState] = []
        self.rendered_key: Optional[str] = None
        self.converted: Optional[ConvertedDocument] = None
        self.merged: Optional[MergedDocument] = None

    def enter(self, state: PipelineState) -> None:
        self.history.append(state)
        logger.info("[%s] %s", self.run_id, state.value)

    def checkpoint(self) -> None:
        """Abort between stages (or after an outbound call) once cancellation is requested."""
        if self.cancel_event is not None and self.cancel_event.is_set():
            raise PipelineCancelled(f"Run {self.run_id} cancelled during {self.history[-1].value}")


class SurveyPipeline:
    """Sequences the stages of one run and owns its artifact lifecycle."""

    def __init__(
        self,
        ingester: DocumentIngester,
        extractor: SurveyRecordExtractor,
        renderer: TemplateRenderer,
        converter: DocumentConverter,
        storage: StorageBackend,
        deliverer: Optional[Deliverer] = None,
        *,
        max_leading_pages: int = MAX_LEADING_PAGES,
        keep_artifacts_on_success: bool = KEEP_ARTIFACTS_ON_SUCCESS,
    ) -> None:
        self.ingester = ingester
        self.extractor = extractor
        self.renderer = renderer
        self.converter = converter
        self.storage = storage
        self.deliverer = deliverer
        self.max_leading_pages = max_leading_pages
        self.keep_artifacts_on_success = keep_artifacts_on_success

    def run(
        self,
        request: PipelineRequest,
        cancel_event: Optional[threading.Event] = None,
        *,
        run_id: Optional[str] = None,
    ) -> PipelineOutcome:
        """Execute one run and report its single terminal outcome.

        Typed stage failures end the run in ``failed`` with the stage and kind
        reported as raised. Any other exception keeps the retained artifacts
        and propagates to the caller.
        """
        ctx = _RunContext(run_id or uuid4().hex, cancel_event)
        try:
            document = self._execute(request, ctx)
        except PipelineCancelled:
            self._discard(ctx)
            ctx.history.append(PipelineState.CANCELLED)
            logger.info("[%s] cancelled; intermediate artifacts discarded", ctx.run_id)
            return PipelineOutcome(
                run_id=ctx.run_id,
                state=PipelineState.CANCELLED,
                history=tuple(ctx.history),
            )
        except PipelineError as exc:
            retained = self._retain(ctx)
            ctx.history.append(PipelineState.FAILED)
            failure = StageFailure.from_error(exc)
            logger.error("[%s] failed in %s (%s): %s", ctx.run_id, failure.stage, failure.kind, failure.message)
            return PipelineOutcome(
                run_id=ctx.run_id,
                state=PipelineState.FAILED,
                failure=failure,
                retained=retained,
                history=tuple(ctx.history),
            )
        except Exception:
            self._retain(ctx)
            logger.exception("[%s] unexpected error during %s", ctx.run_id, ctx.history[-1].value if ctx.history else "start")
            raise

        retained: Tuple[str, ...] = ()
        if ctx.rendered_key is not None:
            if self.keep_artifacts_on_success or not self._remove(ctx, ctx.rendered_key):
                retained = (ctx.rendered_key,)
        ctx.history.append(PipelineState.DONE)
        logger.info("[%s] done: %d page(s)", ctx.run_id, document.page_count)
        return PipelineOutcome(
            run_id=ctx.run_id,
            state=PipelineState.DONE,
            document=document,
            retained=retained,
            history=tuple(ctx.history),
        )

    def _execute(self, request: PipelineRequest, ctx: _RunContext) -> MergedDocument:
        if ctx.cancel_event is not None and ctx.cancel_event.is_set():
            raise PipelineCancelled(f"Run {ctx.run_id} cancelled before start")

        ctx.enter(PipelineState.EXTRACTING)
        text = self.ingester.extract_source(request.source)
        ctx.checkpoint()

        ctx.enter(PipelineState.STRUCTURING)
        record = self.extractor.extract_record(text)
        ctx.checkpoint()

        ctx.enter(PipelineState.RENDERING)
        rendered = self.renderer.render(record)
        key = artifact_key(ctx.run_id, "rendered.docx")
        try:
            self.storage.put_bytes(key, rendered.data, content_type=DOCX_MEDIA_TYPE)
        except StorageError as exc:
            raise ArtifactStoreFailed(f"Could not store rendered document: {exc}") from exc
        ctx.rendered_key = key
        ctx.checkpoint()

        ctx.enter(PipelineState.CONVERTING)
        ctx.converted = self.converter.convert(rendered)
        ctx.checkpoint()

        ctx.enter(PipelineState.MERGING)
        leading = request.max_leading_pages
        if leading is None:
            leading = self.max_leading_pages
        ctx.merged = merge_documents(ctx.converted, request.attachment, leading)
        ctx.checkpoint()

        if self.deliverer is not None and request.delivery is not None:
            ctx.enter(PipelineState.DELIVERING)
            filename = request.output_filename or DEFAULT_OUTPUT_FILENAME
            self.deliverer.deliver(request.delivery, ctx.merged.data, filename)
            logger.info("[%s] delivered %s to %s", ctx.run_id, filename, request.delivery.recipient)

        return ctx.merged

    def _retain(self, ctx: _RunContext) -> Tuple[str, ...]:
        """Store what is expensive to regenerate and return the keys kept."""

        retained: List[str] = []
        if ctx.rendered_key is not None:
            retained.append(ctx.rendered_key)
        for name, artifact in (("converted.pdf", ctx.converted), ("merged.pdf", ctx.merged)):
            if artifact is None:
                continue
            key = artifact_key(ctx.run_id, name)
            try:
                self.storage.put_bytes(key, artifact.data, content_type=PDF_MEDIA_TYPE)
            except Exception:
                logger.exception("[%s] could not retain %s", ctx.run_id, name)
                continue
            retained.append(key)
        if retained:
            logger.info("[%s] retained artifacts: %s", ctx.run_id, ", ".join(retained))
        return tuple(retained)

    def _discard(self, ctx: _RunContext) -> None:
        if ctx.rendered_key is not None:
            self._remove(ctx, ctx.rendered_key)
            ctx.rendered_key = None
        ctx.converted = None
        ctx.merged = None

    def _remove(self, ctx: _RunContext, key: str) -> bool:
        """Delete an intermediate artifact; a storage failure is logged, never raised."""
        try:
            self.storage.delete(key)
        except StorageError:
            logger.exception("[%s] could not remove %s", ctx.run_id, key)
            return False
        return True
