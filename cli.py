"""
Command-line interface for the invoice extraction service.

This module extracts invoice data from local image and PDF files.
"""

import json
import sys
import argparse
import mimetypes
from pathlib import Path

from dotenv import load_dotenv

from invoice_vision.core.config import ExtractionConfig, PDF_POLICIES, SCHEMA_VARIANTS
from invoice_vision.core.errors import InvoiceExtractionError
from invoice_vision.core.export import to_csv_bytes, to_xlsx_bytes
from invoice_vision.core.models import UploadedFile
from invoice_vision.core.processor import InvoiceExtractor
from invoice_vision.utils.logger import setup_logger


def load_file(path: Path, mime_type: str = None) -> UploadedFile:
    if not path.exists():
        raise FileNotFoundError(f"File not found: {path}")
    mime_type = mime_type or mimetypes.guess_type(path.name)[0] or "application/octet-stream"
    return UploadedFile(content=path.read_bytes(), mime_type=mime_type, name=path.name)


def main(argv=None):
    """Main CLI entry point for invoice extraction."""
    parser = argparse.ArgumentParser(
        description="Extract structured invoice data from images and PDFs with a vision model",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  invoice-extract invoice.png
  invoice-extract a.pdf b.jpg --format csv --output invoices.csv
  invoice-extract scan.pdf --pdf-policy rasterize

Environment Variables:
  EXTRACTION_PROVIDER - gemini (default) or openai
  GEMINI_API_KEY / OPENAI_API_KEY - API key for the selected provider
        """
    )
    parser.add_argument("files", nargs="+", help="Invoice images or PDFs to process")
    parser.add_argument("--format", choices=["json", "csv", "xlsx"], default="json",
                        help="Output format (default: json)")
    parser.add_argument("--output", help="Write output to this file instead of stdout")
    parser.add_argument("--mime-type", help="Override the detected MIME type (single file only)")
    parser.add_argument("--pdf-policy", choices=PDF_POLICIES, help="How PDFs are sent to the model")
    parser.add_argument("--schema", choices=SCHEMA_VARIANTS, help="Invoice field set")

    args = parser.parse_args(argv)

    if args.mime_type and len(args.files) > 1:
        parser.error("--mime-type can only be used with a single file")
    if args.format == "xlsx" and not args.output:
        parser.error("--output is required for xlsx output")

    load_dotenv()
    logger = setup_logger()

    try:
        config = ExtractionConfig.from_env()
        if args.pdf_policy:
            config.pdf_policy = args.pdf_policy
        if args.schema:
            config.schema_variant = args.schema
        config.require_api_key()

        uploads = [load_file(Path(f), args.mime_type) for f in args.files]
        names = [upload.name for upload in uploads]

        with InvoiceExtractor(config, logger=logger) as extractor:
            if len(uploads) == 1:
                records = [extractor.extract(uploads[0])]
                payload = records[0]
                failed = 0
            else:
                result = extractor.extract_batch(uploads)
                records, names = result.records(names)
                payload = {"invoices": result.invoices}
                failed = len(result.failed_indices)

        if args.format == "csv":
            output = to_csv_bytes(records, config.schema_variant, names)
        elif args.format == "xlsx":
            output = to_xlsx_bytes(records, config.schema_variant, names)
        else:
            output = (json.dumps(payload, indent=2, ensure_ascii=False) + "\n").encode("utf-8")

        if args.output:
            Path(args.output).write_bytes(output)
            logger.info(f"Wrote {args.format} output to {args.output}")
        else:
            sys.stdout.write(output.decode("utf-8"))

        if failed:
            logger.error(f"{failed} of {len(uploads)} file(s) failed")
            return 1
        return 0

    except InvoiceExtractionError as e:
        logger.error(f"Error: {e.message}" + (f" ({e.details})" if e.details else ""))
        return 1
    except Exception as e:
        logger.error(f"Error: {e}", exc_info=True)
        return 1


if __name__ == "__main__":
    sys.exit(main())
