"""
Shared pytest fixtures for the invoice vision tests.

Network calls and backoff sleeps are always mocked.
"""

import base64
import json
from io import BytesIO
from unittest.mock import MagicMock

import pytest
from pypdf import PdfWriter

ENV_VARS = [
    "EXTRACTION_PROVIDER", "GEMINI_API_KEY", "OPENAI_API_KEY", "GEMINI_MODEL", "OPENAI_MODEL",
    "GEMINI_API_URL", "INVOICE_SCHEMA", "PDF_POLICY", "PDF_RASTER_WIDTH", "PDF_RASTER_DPI",
    "EXTRACTION_MAX_ATTEMPTS", "EXTRACTION_BACKOFF_BASE", "EXTRACTION_TIMEOUT",
    "EXTRACTION_TEMPERATURE", "BATCH_CONCURRENCY", "BATCH_MAX_FILES", "CORS_ENABLED",
    "LOG_LEVEL", "DEBUG_LOG",
]

SAMPLE_INVOICE = {
    "invoiceNumber": "INV-1001",
    "vendorName": "ACME Supplies",
    "invoiceDate": "2024-03-01",
    "dueDate": "2024-03-31",
    "totalAmount": 110.0,
    "currency": "USD",
    "taxAmount": 10.0,
    "subtotal": 100.0,
    "lineItems": [
        {"product": "Widget", "quantity": 2, "unitPrice": 25.0, "totalPrice": 50.0},
        {"product": "Gadget", "quantity": 1, "unitPrice": 50.0, "totalPrice": 50.0},
    ],
}

PNG_BYTES = b"\x89PNG\r\n\x1a\nfake-image-bytes"


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Start every test from a known environment with a Gemini key configured."""
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("GEMINI_API_KEY", "test-key")
    monkeypatch.setenv("LOG_LEVEL", "CRITICAL")


@pytest.fixture
def sample_invoice():
    return json.loads(json.dumps(SAMPLE_INVOICE))


@pytest.fixture
def png_bytes():
    return PNG_BYTES


@pytest.fixture
def png_b64():
    return base64.b64encode(PNG_BYTES).decode()


def build_pdf(pages: int = 1) -> bytes:
    writer = PdfWriter()
    for _ in range(pages):
        writer.add_blank_page(width=612, height=792)
    buffer = BytesIO()
    writer.write(buffer)
    return buffer.getvalue()


@pytest.fixture
def make_pdf():
    return build_pdf


def gemini_body(text: str) -> dict:
    return {"candidates": [{"content": {"parts": [{"text": text}], "role": "model"}, "finishReason": "STOP"}]}


def http_response(status_code: int = 200, body=None, text: str = None) -> MagicMock:
    """Fake requests.Response."""
    response = MagicMock()
    response.status_code = status_code
    if body is not None:
        response.json.return_value = body
        response.text = json.dumps(body)
    else:
        response.json.side_effect = ValueError("No JSON")
        response.text = text or ""
    return response


@pytest.fixture
def gemini_ok(sample_invoice):
    return http_response(200, gemini_body(json.dumps(sample_invoice)))
