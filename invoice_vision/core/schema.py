"""
Extraction prompt and response schema sent to the vision model.

Two field sets are supported: `basic` mirrors the first deployed field list,
`detailed` adds tax and subtotal amounts.
"""

import json
from typing import Any, Dict, List, Tuple

# (name, schema type, prompt hint)
BASIC_FIELDS: List[Tuple[str, str, str]] = [
    ("invoiceNumber", "STRING", "string | null"),
    ("vendorName", "STRING", "string | null"),
    ("invoiceDate", "STRING", "YYYY-MM-DD | null"),
    ("dueDate", "STRING", "YYYY-MM-DD | null"),
    ("totalAmount", "NUMBER", "number | null"),
    ("currency", "STRING", "string | null"),
]

DETAILED_FIELDS: List[Tuple[str, str, str]] = BASIC_FIELDS + [
    ("taxAmount", "NUMBER", "number | null"),
    ("subtotal", "NUMBER", "number | null"),
]

LINE_ITEM_FIELDS: List[Tuple[str, str, str]] = [
    ("product", "STRING", "string"),
    ("quantity", "NUMBER", "number"),
    ("unitPrice", "NUMBER", "number"),
    ("totalPrice", "NUMBER", "number"),
]

LINE_ITEMS_KEY = "lineItems"

FIELD_SETS = {
    "basic": BASIC_FIELDS,
    "detailed": DETAILED_FIELDS,
}


def _fields(variant: str) -> List[Tuple[str, str, str]]:
    try:
        return FIELD_SETS[variant]
    except KeyError:
        raise ValueError(f"Unknown schema variant: {variant}")


def invoice_fields(variant: str) -> List[str]:
    """Top-level invoice keys (excluding line items) in schema order."""
    return [name for name, _, _ in _fields(variant)]


def line_item_fields() -> List[str]:
    return [name for name, _, _ in LINE_ITEM_FIELDS]


def build_response_schema(variant: str) -> Dict[str, Any]:
    """Declarative output schema in the Gemini `responseSchema` format."""
    properties: Dict[str, Any] = {
        name: {"type": schema_type, "nullable": True}
        for name, schema_type, _ in _fields(variant)
    }
    properties[LINE_ITEMS_KEY] = {
        "type": "ARRAY",
        "items": {
            "type": "OBJECT",
            "properties": {
                name: {"type": schema_type, "nullable": True}
                for name, schema_type, _ in LINE_ITEM_FIELDS
            },
        },
    }
    return {"type": "OBJECT", "properties": properties}


def build_prompt(variant: str) -> str:
    """Fixed instruction text describing the expected JSON shape."""
    shape: Dict[str, Any] = {name: hint for name, _, hint in _fields(variant)}
    shape[LINE_ITEMS_KEY] = [{name: hint for name, _, hint in LINE_ITEM_FIELDS}]

    return f"""You are an expert invoice data extraction system. Analyze this invoice document and extract the following information in JSON format:

{json.dumps(shape, indent=2)}

Important rules:
1. Return ONLY valid JSON, with no additional text or markdown formatting.
2. If a field is not found, use null for strings and numbers.
3. Parse all monetary values as numbers.
4. Ensure dates are in YYYY-MM-DD format.
5. For lineItems, extract ALL items shown on the document; use an empty array if there are none."""
