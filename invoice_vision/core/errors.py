"""
Error types for the invoice extraction service.

Every error knows the HTTP status it maps to and how to render itself as the
JSON error envelope returned to callers.
"""

from typing import Any, Dict, Optional


class InvoiceExtractionError(Exception):
    """Base class for all errors surfaced to callers."""

    status_code = 500

    def __init__(self, message: str, details: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"error": self.message}
        if self.details:
            body["details"] = self.details
        return body


class ConfigurationError(InvoiceExtractionError):
    """Server-side misconfiguration, e.g. a missing API key."""

    status_code = 500


class ClientInputError(InvoiceExtractionError):
    """The request body is missing fields or carries invalid data."""

    status_code = 400


class UnsupportedDocumentError(ClientInputError):
    """The declared MIME type is neither an image nor a PDF."""


class MethodNotAllowedError(InvoiceExtractionError):
    status_code = 405

    def __init__(self, method: str):
        super().__init__("Method Not Allowed", f"{method or 'UNKNOWN'} is not supported, use POST")
        self.method = method


class ExternalCallError(InvoiceExtractionError):
    """The vision model call failed in a way that retrying will not fix."""

    status_code = 500


class ExternalCallExhausted(ExternalCallError):
    """Every attempt against the vision model failed."""

    def __init__(self, attempts: int, last_error: Optional[BaseException] = None):
        details = str(last_error) if last_error else None
        super().__init__(f"Extraction failed after {attempts} attempts.", details)
        self.attempts = attempts
        self.last_error = last_error


class ResponseParseError(InvoiceExtractionError):
    """The model returned text that could not be parsed as JSON."""

    status_code = 500

    def __init__(self, raw_response: str, details: Optional[str] = None):
        super().__init__("Failed to parse model response as JSON.", details)
        self.raw_response = raw_response

    def to_dict(self) -> Dict[str, Any]:
        body = super().to_dict()
        body["rawResponse"] = self.raw_response
        return body


class TransientCallError(Exception):
    """
    Internal signal raised by client backends for failures worth retrying.

    Never leaves the extraction client; it is converted into
    ExternalCallExhausted once attempts run out.
    """
