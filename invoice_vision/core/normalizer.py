"""
Document normalization ahead of the vision model call.

Images are forwarded unchanged. PDFs are reduced to their first page, either
as a single-page PDF (`passthrough`) or as a PNG raster (`rasterize`).
"""

import logging
import tempfile
from io import BytesIO
from typing import Optional

from pdf2image import convert_from_bytes
from pdf2image.exceptions import PDFInfoNotInstalledError, PDFPageCountError, PDFSyntaxError
from pypdf import PdfReader, PdfWriter

from .errors import ClientInputError, ConfigurationError, UnsupportedDocumentError
from .models import DocumentPayload

PDF_MIME_TYPE = "application/pdf"
PNG_MIME_TYPE = "image/png"


class DocumentNormalizer:
    """Classifies uploaded documents and prepares the payload sent to the model."""

    def __init__(self, pdf_policy: str = "passthrough", raster_width: int = 1600,
                 raster_dpi: int = 200, logger: Optional[logging.Logger] = None):
        self.pdf_policy = pdf_policy
        self.raster_width = raster_width
        self.raster_dpi = raster_dpi
        self.logger = logger or logging.getLogger("invoice-vision")

    @staticmethod
    def classify(mime_type: str) -> str:
        """
        Classify a declared MIME type.

        Returns:
            "image" or "pdf"

        Raises:
            UnsupportedDocumentError: For any other type
        """
        base_type = (mime_type or "").split(";")[0].strip().lower()
        if base_type.startswith("image/") and len(base_type) > len("image/"):
            return "image"
        if base_type == PDF_MIME_TYPE:
            return "pdf"
        raise UnsupportedDocumentError(
            "Unsupported file type.",
            f"'{mime_type}' is not supported; upload an image or a PDF",
        )

    def normalize(self, data: bytes, mime_type: str) -> DocumentPayload:
        kind = self.classify(mime_type)
        if kind == "image":
            return DocumentPayload(data=data, mime_type=mime_type.split(";")[0].strip().lower(),
                                   source_mime_type=mime_type)

        page_count = self.count_pdf_pages(data)
        if page_count > 1:
            self.logger.warning(f"PDF has {page_count} pages; only page 1 is processed, "
                                f"{page_count - 1} discarded")

        if self.pdf_policy == "rasterize":
            png = self.rasterize_first_page(data)
            return DocumentPayload(data=png, mime_type=PNG_MIME_TYPE,
                                   source_mime_type=mime_type, page_count=page_count)

        return DocumentPayload(data=self.extract_first_page(data), mime_type=PDF_MIME_TYPE,
                               source_mime_type=mime_type, page_count=page_count)

    def count_pdf_pages(self, data: bytes) -> int:
        """
        Open the PDF leniently and return its page count.

        Raises:
            ClientInputError: If the PDF cannot be read or has no pages
        """
        try:
            reader = PdfReader(BytesIO(data), strict=False)
            num_pages = len(reader.pages)
            if num_pages:
                # Touch the first page so broken page trees fail here
                _ = reader.pages[0]
        except Exception as e:
            raise ClientInputError("Could not read PDF document.", str(e))
        if num_pages == 0:
            raise ClientInputError("Could not read PDF document.", "PDF has no pages")
        return num_pages

    def extract_first_page(self, data: bytes) -> bytes:
        """Copy page one into a new single-page PDF."""
        try:
            reader = PdfReader(BytesIO(data), strict=False)
            writer = PdfWriter()
            writer.add_page(reader.pages[0])
            output = BytesIO()
            writer.write(output)
        except Exception as e:
            raise ClientInputError("Could not read PDF document.", str(e))
        self.logger.debug(f"Extracted first page PDF ({len(output.getvalue())} bytes)")
        return output.getvalue()

    def rasterize_first_page(self, data: bytes) -> bytes:
        """
        Render page one to a fixed-width PNG.

        Intermediate files live in a temporary directory that is removed on
        both success and failure.
        """
        with tempfile.TemporaryDirectory(prefix="invoice_raster_") as temp_dir:
            try:
                images = convert_from_bytes(
                    data,
                    dpi=self.raster_dpi,
                    first_page=1,
                    last_page=1,
                    size=(self.raster_width, None),
                    fmt="png",
                    output_folder=temp_dir,
                )
            except PDFInfoNotInstalledError as e:
                raise ConfigurationError("PDF conversion is not available on the server.", str(e))
            except (PDFPageCountError, PDFSyntaxError) as e:
                raise ClientInputError("Could not convert PDF to image.", str(e))

            if not images:
                raise ClientInputError("Could not convert PDF to image.", "No pages rendered")

            image = images[0]
            try:
                if image.mode not in ("RGB", "L"):
                    image = image.convert("RGB")
                buffered = BytesIO()
                image.save(buffered, format="PNG")
            finally:
                for page in images:
                    page.close()

        self.logger.info(f"Rasterized PDF page 1 to PNG ({image.width}x{image.height})")
        return buffered.getvalue()
