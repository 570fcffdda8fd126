"""Command-line entry point: assemble one survey assignment from files on disk."""

import logging
import sys
from pathlib import Path

from .adapters.conversion import ConvertApiConverter
from .adapters.storage import LocalStorageBackend
from .config import ARTIFACTS_DIR, LOG_LEVEL, MAX_LEADING_PAGES, TEMPLATE_PATH
from .errors import ConfigurationError, PipelineError
from .ingest import DocumentIngester
from .llm import SurveyRecordExtractor
from .models import SourceDocument, format_for_filename
from .pipeline import PipelineRequest, PipelineState, SurveyPipeline
from .renderer import TemplateRenderer


def build_pipeline(template: Path, artifacts_dir: Path) -> SurveyPipeline:
    """Wire the default backends together."""
    return SurveyPipeline(
        ingester=DocumentIngester(),
        extractor=SurveyRecordExtractor(),
        renderer=TemplateRenderer(template),
        converter=ConvertApiConverter(),
        storage=LocalStorageBackend(artifacts_dir),
    )


def main():
    """Command-line interface."""
    import argparse

    parser = argparse.ArgumentParser(
        description="Generate a contractor survey assignment PDF from a customer technical assignment"
    )
    parser.add_argument(
        '--source',
        type=Path,
        required=True,
        help="Customer technical assignment (.docx or .pdf)"
    )
    parser.add_argument(
        '--attachment',
        type=Path,
        required=True,
        help="PDF appended in full after the generated pages"
    )
    parser.add_argument(
        '--output',
        type=Path,
        required=True,
        help="Where to write the merged PDF"
    )
    parser.add_argument(
        '--template',
        type=Path,
        default=TEMPLATE_PATH,
        help=f"Assignment template (default: {TEMPLATE_PATH})"
    )
    parser.add_argument(
        '--max-leading-pages',
        type=int,
        default=MAX_LEADING_PAGES,
        help=f"Pages of the generated document to keep (default: {MAX_LEADING_PAGES})"
    )
    parser.add_argument(
        '--artifacts-dir',
        type=Path,
        default=ARTIFACTS_DIR,
        help=f"Where intermediate artifacts of failed runs are kept (default: {ARTIFACTS_DIR})"
    )
    parser.add_argument(
        '--debug',
        action='store_true',
        help="Enable debug logging"
    )

    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.debug else LOG_LEVEL,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.max_leading_pages < 0:
        print("[ERROR] --max-leading-pages must be zero or greater")
        sys.exit(2)

    try:
        source = SourceDocument(
            data=args.source.read_bytes(),
            format=format_for_filename(args.source.name),
            filename=args.source.name,
        )
        attachment = args.attachment.read_bytes()
        pipeline = build_pipeline(args.template, args.artifacts_dir)
    except (OSError, ConfigurationError, PipelineError) as e:
        print(f"[ERROR] {e}")
        sys.exit(1)

    print(f"[INFO] Processing {args.source.name}")
    try:
        outcome = pipeline.run(
            PipelineRequest(
                source=source,
                attachment=attachment,
                max_leading_pages=args.max_leading_pages,
                output_filename=args.output.name,
            )
        )
    finally:
        pipeline.converter.close()

    if outcome.state is not PipelineState.DONE:
        failure = outcome.failure
        print(f"[ERROR] Run {outcome.run_id} {outcome.state.value}")
        if failure is not None:
            print(f"        {failure.describe()}")
            if failure.retryable:
                print("        The failure is transient; retrying later may succeed")
        for key in outcome.retained:
            print(f"        Kept artifact: {Path(args.artifacts_dir) / key}")
        sys.exit(1)

    args.output.parent.mkdir(parents=True, exist_ok=True)
    args.output.write_bytes(outcome.document.data)
    print(f"[OK] {outcome.document.page_count} page(s) written to: {args.output}")


if __name__ == "__main__":
    main()
