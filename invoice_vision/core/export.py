"""
Row-oriented export of extracted invoices (CSV and XLSX).
"""

from io import BytesIO
from typing import Any, Dict, List, Optional, Sequence

import pandas as pd

from .schema import LINE_ITEMS_KEY, invoice_fields, line_item_fields

XLSX_CONTENT_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
CSV_CONTENT_TYPE = "text/csv; charset=utf-8"


def export_columns(variant: str) -> List[str]:
    return ["fileName"] + invoice_fields(variant) + line_item_fields()


def flatten_invoices(records: Sequence[Any], variant: str = "detailed",
                     file_names: Optional[Sequence[Optional[str]]] = None) -> List[Dict[str, Any]]:
    """
    Flatten invoices into one row per line item.

    Invoice-level fields are repeated on every line item row. An invoice
    without line items yields a single row with empty line item columns.
    Entries that are not dicts or carry an `error` key are skipped.

    Args:
        records: Parsed invoices (batch error entries allowed)
        variant: Schema variant selecting the invoice-level columns
        file_names: Optional source file name per record, same order as records
    """
    header_fields = invoice_fields(variant)
    item_fields = line_item_fields()
    rows: List[Dict[str, Any]] = []

    for idx, record in enumerate(records):
        if not isinstance(record, dict) or "error" in record:
            continue

        file_name = file_names[idx] if file_names and idx < len(file_names) else None
        header = {"fileName": file_name}
        header.update({name: record.get(name) for name in header_fields})

        items = record.get(LINE_ITEMS_KEY)
        items = [item for item in items if isinstance(item, dict)] if isinstance(items, list) else []

        if not items:
            rows.append({**header, **{name: None for name in item_fields}})
            continue

        for item in items:
            rows.append({**header, **{name: item.get(name) for name in item_fields}})

    return rows


def to_dataframe(records: Sequence[Any], variant: str = "detailed",
                 file_names: Optional[Sequence[Optional[str]]] = None) -> pd.DataFrame:
    return pd.DataFrame(flatten_invoices(records, variant, file_names), columns=export_columns(variant))


def to_csv_bytes(records: Sequence[Any], variant: str = "detailed",
                 file_names: Optional[Sequence[Optional[str]]] = None) -> bytes:
    return to_dataframe(records, variant, file_names).to_csv(index=False).encode("utf-8")


def to_xlsx_bytes(records: Sequence[Any], variant: str = "detailed",
                  file_names: Optional[Sequence[Optional[str]]] = None) -> bytes:
    buffer = BytesIO()
    with pd.ExcelWriter(buffer, engine="openpyxl") as writer:
        to_dataframe(records, variant, file_names).to_excel(writer, sheet_name="Invoices", index=False)
    return buffer.getvalue()
