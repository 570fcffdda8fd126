"""Typed failures raised by the document assembly pipeline.

Every stage raises a subclass of :class:`PipelineError`. The error carries the
stage name and its kind (the class name) so the orchestrator can report a
single terminal outcome without reinterpreting what a lower stage said.
"""

from __future__ import annotations


class ConfigurationError(RuntimeError):
    """Raised when a required setting or credential is missing."""


class PipelineError(Exception):
    """Base class for stage failures."""

    stage = "pipeline"
    retryable = False

    def __init__(self, message: str = "", *, retryable: bool | None = None) -> None:
        super().__init__(message or self.__class__.__name__)
        if retryable is not None:
            self.retryable = retryable

    @property
    def kind(self) -> str:
        return self.__class__.__name__


# ---------- Extraction ----------

class ExtractionError(PipelineError):
    stage = "extracting"


class UnsupportedFormat(ExtractionError):
    """The declared format tag is not one the extractor understands."""


class CorruptDocument(ExtractionError):
    """The buffer cannot be opened as a document of the declared format."""


class EmptyExtraction(ExtractionError):
    """The document opened fine but carries no text."""


# ---------- Structuring ----------

class StructuringError(PipelineError):
    stage = "structuring"


class EndpointUnavailable(StructuringError):
    """Network or authentication failure talking to the model endpoint."""


class InvalidResponseFormat(StructuringError):
    """The model reply did not satisfy the record schema after one retry."""


class RateLimited(StructuringError):
    """The model endpoint asked us to back off."""

    retryable = True


# ---------- Rendering ----------

class RenderingError(PipelineError):
    stage = "rendering"


class TemplateNotFound(RenderingError):
    pass


class MalformedTemplate(RenderingError):
    pass


class PlaceholderSyntaxError(RenderingError):
    pass


class ArtifactStoreFailed(RenderingError):
    """The rendered document could not be written to artifact storage."""

    retryable = True


# ---------- Conversion ----------

class ConversionError(PipelineError):
    stage = "converting"


class ServiceUnavailable(ConversionError):
    """Transport or authentication failure talking to the conversion service."""


class ConversionRejected(ConversionError):
    """The service reported that the input could not be rendered."""


class DownloadFailed(ConversionError):
    """The converted result could not be fetched from its reference."""


# ---------- Merging ----------

class MergeError(PipelineError):
    stage = "merging"


class InvalidSourceDocument(MergeError):
    pass


class EmptyAttachment(MergeError):
    pass


# ---------- Delivery ----------

class DeliveryError(PipelineError):
    stage = "delivering"


class DeliveryFailed(DeliveryError):
    """Raised by delivery backends when the hand-off did not go through."""


class PipelineCancelled(PipelineError):
    """The caller aborted the run."""


__all__ = [
    "ConfigurationError",
    "PipelineError",
    "ExtractionError",
    "UnsupportedFormat",
    "CorruptDocument",
    "EmptyExtraction",
    "StructuringError",
    "EndpointUnavailable",
    "InvalidResponseFormat",
    "RateLimited",
    "RenderingError",
    "TemplateNotFound",
    "MalformedTemplate",
    "PlaceholderSyntaxError",
    "ArtifactStoreFailed",
    "ConversionError",
    "ServiceUnavailable",
    "ConversionRejected",
    "DownloadFailed",
    "MergeError",
    "InvalidSourceDocument",
    "EmptyAttachment",
    "DeliveryError",
    "DeliveryFailed",
    "PipelineCancelled",
]
