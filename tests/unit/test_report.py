"""
Unit tests for receipts report rendering.
"""
import csv
import io

import pytest

from receiving.errors import ValidationError
from receiving.report import (
    CSV_COLUMNS, render_report, render_report_csv, render_report_xml, summarize_receipts,
)


def _row(id, received, rejected=0, supplier_id=None, **extra):
    row = {
        "id": id,
        "item_id": 1,
        "request_id": 1,
        "product_name": "Nitrile gloves",
        "quantity_ordered": 10,
        "quantity_received": received,
        "rejected_quantity": rejected,
        "invoice_number": f"NF-{id}",
        "invoice_date": "2024-06-01",
        "lot_number": None,
        "expiration_date": None,
        "supplier_id": supplier_id,
        "notes": "",
        "receipt_condition": "good",
        "quality_checked": False,
        "quality_notes": "",
        "received_by": "admin-1",
        "created_at": "2024-06-02T10:00:00+00:00",
        "idempotency_key": None,
    }
    row.update(extra)
    return row


def _report(receipts):
    return {
        "generated_at": "2024-06-15",
        "filters": {"start_date": "2024-06-01", "end_date": None, "supplier_id": None, "request_id": None},
        "summary": summarize_receipts(receipts),
        "receipts": receipts,
    }


@pytest.mark.unit
class TestSummarizeReceipts:

    def test_totals(self):
        summary = summarize_receipts([_row(1, 10, 2, supplier_id=3), _row(2, 5, 0, supplier_id=3), _row(3, 5)])
        assert summary["total_receipts"] == 3
        assert summary["total_received"] == 20
        assert summary["total_rejected"] == 2
        assert summary["rejection_rate"] == 10.0
        assert summary["receipts_by_supplier"] == {"3": 2}

    def test_empty(self):
        summary = summarize_receipts([])
        assert summary["total_receipts"] == 0
        assert summary["rejection_rate"] is None


@pytest.mark.unit
class TestRenderReport:

    def test_csv_has_header_and_one_row_per_receipt(self):
        text = render_report_csv(_report([_row(1, 4), _row(2, 6, 1)]))
        rows = list(csv.DictReader(io.StringIO(text)))
        assert list(rows[0].keys()) == CSV_COLUMNS
        assert [r["receipt_id"] for r in rows] == ["1", "2"]
        assert rows[1]["rejected_quantity"] == "1"

    def test_xml_default_template(self):
        xml = render_report_xml(_report([_row(7, 4, supplier_id=2, notes="Box <dented>")]))
        assert xml.startswith('<?xml version="1.0"')
        assert '<Receipt id="7">' in xml
        assert "<TotalReceived>4</TotalReceived>" in xml
        assert '<Filter name="start_date">2024-06-01</Filter>' in xml
        assert "Box &lt;dented&gt;" in xml

    def test_xml_custom_template(self, temp_dir):
        template = temp_dir / "custom.xml.j2"
        template.write_text("<R count=\"{{ summary.total_receipts }}\"/>\n")
        xml = render_report_xml(_report([_row(1, 1), _row(2, 2)]), template_file=template)
        assert xml == '<R count="2"/>\n'

    def test_missing_custom_template_falls_back_to_default(self, temp_dir):
        xml = render_report_xml(_report([]), template_file=temp_dir / "missing.xml.j2")
        assert "<ReceiptsReport" in xml

    def test_unknown_format(self):
        with pytest.raises(ValidationError) as exc_info:
            render_report(_report([]), "pdf")
        assert exc_info.value.field == "format"
