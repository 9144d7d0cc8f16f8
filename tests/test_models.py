import base64

import pytest

from invoice_vision.core.errors import ClientInputError
from invoice_vision.core.models import DocumentPayload, UploadedFile, decode_base64


def test_from_payload_decodes_image_data(png_bytes, png_b64):
    uploaded = UploadedFile.from_payload({"imageData": png_b64, "mimeType": "image/png", "fileName": "a.png"})
    assert uploaded.content == png_bytes
    assert uploaded.mime_type == "image/png"
    assert uploaded.name == "a.png"


def test_image_alias_and_data_url(png_bytes, png_b64):
    uploaded = UploadedFile.from_payload({"image": f"data:image/jpeg;base64,{png_b64}"})
    assert uploaded.content == png_bytes
    assert uploaded.mime_type == "image/jpeg"


def test_declared_mime_type_wins_over_data_url(png_b64):
    uploaded = UploadedFile.from_payload({"imageData": f"data:image/jpeg;base64,{png_b64}",
                                          "mimeType": "image/png"})
    assert uploaded.mime_type == "image/png"


@pytest.mark.parametrize("payload", [
    {"mimeType": "image/png"},
    {"imageData": "aGVsbG8="},
    {"imageData": "", "mimeType": "image/png"},
    {"imageData": 123, "mimeType": "image/png"},
])
def test_missing_or_malformed_fields(payload):
    with pytest.raises(ClientInputError):
        UploadedFile.from_payload(payload)


def test_not_a_dict():
    with pytest.raises(ClientInputError):
        UploadedFile.from_payload(["imageData"])


def test_decode_base64_tolerates_whitespace_and_padding():
    assert decode_base64("aGVs\nbG8") == b"hello"


def test_decode_base64_urlsafe():
    encoded = base64.urlsafe_b64encode(b"\xfb\xff\xfe").decode()
    assert decode_base64(encoded) == b"\xfb\xff\xfe"


def test_decode_base64_rejects_garbage():
    with pytest.raises(ClientInputError):
        decode_base64("not*base64!")


@pytest.mark.parametrize("encoded", ["abc-!!!*", "ab_c$d", "-_-_\x00==="])
def test_decode_base64_rejects_garbage_in_urlsafe_input(encoded):
    with pytest.raises(ClientInputError) as exc_info:
        decode_base64(encoded)
    assert exc_info.value.message == "imageData is not valid base64."


def test_payload_to_base64(png_bytes, png_b64):
    payload = DocumentPayload(data=png_bytes, mime_type="image/png", source_mime_type="image/png")
    assert payload.to_base64() == png_b64
