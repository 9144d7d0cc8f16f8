import csv
import io

import pandas as pd

from invoice_vision.core.export import export_columns, flatten_invoices, to_csv_bytes, to_xlsx_bytes


def test_one_row_per_line_item(sample_invoice):
    rows = flatten_invoices([sample_invoice], file_names=["a.png"])

    assert len(rows) == 2
    assert [row["product"] for row in rows] == ["Widget", "Gadget"]
    for row in rows:
        assert row["fileName"] == "a.png"
        assert row["invoiceNumber"] == "INV-1001"
        assert row["totalAmount"] == 110.0


def test_invoice_without_line_items_yields_single_row(sample_invoice):
    sample_invoice["lineItems"] = []
    rows = flatten_invoices([sample_invoice])

    assert len(rows) == 1
    assert rows[0]["invoiceNumber"] == "INV-1001"
    assert rows[0]["product"] is None
    assert rows[0]["totalPrice"] is None


def test_error_entries_are_skipped(sample_invoice):
    records = [{"index": 0, "error": "Unsupported file type."}, sample_invoice, "garbage"]
    rows = flatten_invoices(records, file_names=["bad.txt", "good.png", None])

    assert {row["fileName"] for row in rows} == {"good.png"}


def test_basic_variant_columns():
    columns = export_columns("basic")
    assert "taxAmount" not in columns
    assert columns[:2] == ["fileName", "invoiceNumber"]
    assert columns[-4:] == ["product", "quantity", "unitPrice", "totalPrice"]


def test_csv_export(sample_invoice):
    data = to_csv_bytes([sample_invoice], "detailed", ["a.png"])
    rows = list(csv.DictReader(io.StringIO(data.decode("utf-8"))))

    assert len(rows) == 2
    assert rows[0]["vendorName"] == "ACME Supplies"
    assert rows[1]["product"] == "Gadget"


def test_xlsx_export(sample_invoice):
    data = to_xlsx_bytes([sample_invoice])
    frame = pd.read_excel(io.BytesIO(data), sheet_name="Invoices")

    assert list(frame.columns) == export_columns("detailed")
    assert len(frame) == 2
