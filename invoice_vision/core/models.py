"""
Data types passed between the handler and the extraction pipeline.
"""

import base64
import binascii
import re
from dataclasses import dataclass
from typing import Any, Dict, Optional

from .errors import ClientInputError

DATA_URL_PATTERN = re.compile(r"^data:(?P<mime>[\w.+-]+/[\w.+-]+)?(?:;[^,]*)?;base64,", re.IGNORECASE)


@dataclass
class UploadedFile:
    """A single document received in a request. Lives for one request only."""

    content: bytes
    mime_type: str
    name: Optional[str] = None

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "UploadedFile":
        """
        Build an UploadedFile from a wire entry.

        Accepts `imageData` or `image` holding base64 (optionally as a data URL),
        `mimeType`, and an optional `fileName`.

        Raises:
            ClientInputError: If data or MIME type is missing or the data is not valid base64
        """
        if not isinstance(payload, dict):
            raise ClientInputError("Each file must be a JSON object.")

        encoded = payload.get("imageData") or payload.get("image")
        mime_type = payload.get("mimeType")
        name = payload.get("fileName")

        if isinstance(encoded, str):
            match = DATA_URL_PATTERN.match(encoded)
            if match:
                mime_type = mime_type or match.group("mime")
                encoded = encoded[match.end():]

        if not encoded or not mime_type:
            raise ClientInputError("Missing imageData or mimeType in request body.")
        if not isinstance(encoded, str) or not isinstance(mime_type, str):
            raise ClientInputError("imageData and mimeType must be strings.")

        return cls(content=decode_base64(encoded), mime_type=mime_type.strip(), name=name)


@dataclass
class DocumentPayload:
    """Normalized document ready to be sent to the vision model."""

    data: bytes
    mime_type: str
    source_mime_type: str
    page_count: Optional[int] = None

    def to_base64(self) -> str:
        return base64.b64encode(self.data).decode()


def decode_base64(encoded: str) -> bytes:
    """Decode standard or URL-safe base64, tolerating whitespace and missing padding."""
    cleaned = "".join(encoded.split())
    cleaned += "=" * (-len(cleaned) % 4)
    try:
        # altchars maps - and _ onto + and / before the alphabet check
        content = base64.b64decode(cleaned, altchars=b"-_", validate=True)
    except (binascii.Error, ValueError) as e:
        raise ClientInputError("imageData is not valid base64.", str(e))
    if not content:
        raise ClientInputError("imageData is empty.")
    return content
