import json

import pytest

from invoice_vision.core.errors import ResponseParseError
from invoice_vision.core.parser import parse_model_response, strip_code_fences


def test_parses_plain_json(sample_invoice):
    assert parse_model_response(json.dumps(sample_invoice)) == sample_invoice


@pytest.mark.parametrize("template", [
    "```json\n{}\n```",
    "```JSON\n{}\n```",
    "```\n{}\n```",
    "  ```json {} ```  ",
])
def test_fenced_output_matches_unfenced(sample_invoice, template):
    text = json.dumps(sample_invoice)
    fenced = template.replace("{}", text)
    assert parse_model_response(fenced) == parse_model_response(text)


@pytest.mark.parametrize("fenced, expected", [
    ("```true```", True),
    ("```null```", None),
    ("```\nfalse\n```", False),
    ("```Json\n[1, 2]\n```", [1, 2]),
])
def test_fenced_bare_literals_survive(fenced, expected):
    assert parse_model_response(fenced) == expected


def test_strip_code_fences_is_noop_without_fences():
    assert strip_code_fences('{"a": 1}') == '{"a": 1}'


def test_prose_raises_with_raw_text():
    raw = "Sorry, I could not read this invoice."
    with pytest.raises(ResponseParseError) as exc_info:
        parse_model_response(raw)

    body = exc_info.value.to_dict()
    assert body["rawResponse"] == raw
    assert exc_info.value.status_code == 500
    assert "error" in body


def test_none_raises_parse_error():
    with pytest.raises(ResponseParseError):
        parse_model_response(None)


def test_nan_is_rejected():
    with pytest.raises(ResponseParseError):
        parse_model_response('{"totalAmount": NaN}')


def test_returns_value_unmodified():
    # no semantic validation of field values
    raw = '{"invoiceDate": "not a date", "totalAmount": -5, "extra": [1, 2]}'
    assert parse_model_response(raw) == {"invoiceDate": "not a date", "totalAmount": -5, "extra": [1, 2]}
