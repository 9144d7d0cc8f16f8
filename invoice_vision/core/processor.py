"""
Invoice extraction pipeline.

This module contains the InvoiceExtractor class that runs one document through
normalization, the vision model call, and JSON parsing, and fans a batch of
documents out over a bounded worker pool.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

from .client import ExtractionClient
from .config import ExtractionConfig
from .errors import ClientInputError, InvoiceExtractionError
from .models import UploadedFile
from .normalizer import DocumentNormalizer
from .parser import parse_model_response


@dataclass
class BatchResult:
    """Per-file results of a batch, in input order."""

    invoices: List[Dict[str, Any]] = field(default_factory=list)
    failed_indices: List[int] = field(default_factory=list)

    @property
    def succeeded(self) -> int:
        return len(self.invoices) - len(self.failed_indices)

    @property
    def all_failed(self) -> bool:
        return bool(self.invoices) and len(self.failed_indices) == len(self.invoices)

    def records(self, names: Optional[Sequence[Optional[str]]] = None) -> Tuple[List[Any], List[Optional[str]]]:
        """
        Successful entries only, with the file name of each.

        Args:
            names: File name per input slot, same order as the batch

        Returns:
            (records, names) with failed slots removed from both
        """
        failed = set(self.failed_indices)
        names = list(names) if names is not None else [None] * len(self.invoices)
        kept = [idx for idx in range(len(self.invoices)) if idx not in failed]
        return [self.invoices[idx] for idx in kept], [names[idx] for idx in kept]


class InvoiceExtractor:
    """
    Extracts structured invoice data from images and PDFs.

    Handles:
    - Single documents, returning the parsed invoice or raising
    - Batches, isolating each file's failure into its own result slot
    """

    def __init__(self, config: ExtractionConfig, client: Optional[ExtractionClient] = None,
                 normalizer: Optional[DocumentNormalizer] = None,
                 logger: Optional[logging.Logger] = None):
        """
        Initialize the extractor.

        Args:
            config: Service configuration
            client: Extraction client (built from config if None)
            normalizer: Document normalizer (built from config if None)
            logger: Logger instance for logging output
        """
        self.config = config
        self.logger = logger or logging.getLogger("invoice-vision")
        self.normalizer = normalizer or DocumentNormalizer(
            pdf_policy=config.pdf_policy,
            raster_width=config.raster_width,
            raster_dpi=config.raster_dpi,
            logger=self.logger,
        )
        self.client = client or ExtractionClient(config, logger=self.logger)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    def close(self):
        self.client.close()

    def extract(self, uploaded: UploadedFile) -> Any:
        """
        Run a single document through the pipeline.

        Args:
            uploaded: Document received in the request

        Returns:
            Parsed model output (an InvoiceRecord dict when the model complies)

        Raises:
            InvoiceExtractionError: On any pipeline failure
        """
        label = uploaded.name or uploaded.mime_type
        self.logger.info(f"Processing: {label} ({len(uploaded.content)} bytes)")

        payload = self.normalizer.normalize(uploaded.content, uploaded.mime_type)
        if payload.mime_type != payload.source_mime_type:
            self.logger.info(f"  Sending {payload.source_mime_type} as {payload.mime_type}")
        raw_text = self.client.generate(payload)
        invoice = parse_model_response(raw_text, logger=self.logger)

        if isinstance(invoice, dict):
            if invoice.get("invoiceNumber"):
                self.logger.info(f"  Invoice #: {invoice['invoiceNumber']}")
            if isinstance(invoice.get("lineItems"), list):
                self.logger.info(f"  Line items: {len(invoice['lineItems'])}")
        self.logger.info(f"✓ Extracted invoice data from {label}")
        return invoice

    def extract_batch(self, files: Sequence[Union[UploadedFile, Dict[str, Any]]]) -> BatchResult:
        """
        Process several documents concurrently.

        Each entry may be an UploadedFile or a raw request entry; decoding
        failures of raw entries land in that entry's slot like any other error.
        Results keep input order regardless of completion order.

        Args:
            files: Documents to process

        Returns:
            BatchResult with one entry per input file
        """
        result = BatchResult(invoices=[{} for _ in files])
        if not files:
            return result

        workers = min(self.config.batch_concurrency, len(files))
        self.logger.info(f"Processing batch of {len(files)} file(s) with {workers} worker(s)")

        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="invoice") as executor:
            futures = {
                executor.submit(self._extract_slot, idx, entry): idx
                for idx, entry in enumerate(files)
            }
            for future, idx in futures.items():
                entry, failed = future.result()
                result.invoices[idx] = entry
                if failed:
                    result.failed_indices.append(idx)

        result.failed_indices.sort()
        if result.failed_indices:
            self.logger.warning(f"Batch completed with {len(result.failed_indices)} failure(s)")
        else:
            self.logger.info("All files processed successfully")
        return result

    def _extract_slot(self, idx: int, entry: Union[UploadedFile, Dict[str, Any]]):
        name = None
        try:
            if isinstance(entry, UploadedFile):
                uploaded = entry
            elif isinstance(entry, dict):
                name = entry.get("fileName")
                uploaded = UploadedFile.from_payload(entry)
            else:
                raise ClientInputError("Each file must be a JSON object.")
            name = uploaded.name
            return self.extract(uploaded), False
        except InvoiceExtractionError as e:
            self.logger.error(f"File {idx} failed: {e.message}" + (f" ({e.details})" if e.details else ""))
            return self._error_entry(idx, name, e.to_dict()), True
        except Exception as e:
            self.logger.error(f"Unexpected error processing file {idx}: {str(e)}", exc_info=True)
            return self._error_entry(idx, name, {"error": "Failed to process invoice.", "details": str(e)}), True

    @staticmethod
    def _error_entry(idx: int, name: Optional[str], body: Dict[str, Any]) -> Dict[str, Any]:
        entry: Dict[str, Any] = {"index": idx}
        if name:
            entry["fileName"] = name
        entry.update(body)
        return entry
