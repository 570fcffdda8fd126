"""Survey assignment document generator.

Turns a customer's technical assignment into the contractor's survey
assignment PDF: text extraction, structured extraction with Claude,
template rendering, PDF conversion and page merging.
"""

__version__ = "0.1.0"

from .errors import ConfigurationError, PipelineError
from .ingest import DocumentIngester
from .llm import SurveyRecordExtractor
from .merge import merge_documents
from .models import DocumentFormat, SourceDocument
from .pipeline import PipelineOutcome, PipelineRequest, PipelineState, SurveyPipeline
from .record import SurveyRecord
from .renderer import TemplateRenderer

__all__ = [
    "ConfigurationError",
    "PipelineError",
    "DocumentIngester",
    "SurveyRecordExtractor",
    "merge_documents",
    "DocumentFormat",
    "SourceDocument",
    "PipelineOutcome",
    "PipelineRequest",
    "PipelineState",
    "SurveyPipeline",
    "SurveyRecord",
    "TemplateRenderer",
]
