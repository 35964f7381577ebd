"""
Receipts report: filtered receipt listing with totals, rendered as CSV or XML.
"""
import csv
import io
import logging
from collections import Counter
from datetime import date
from pathlib import Path
from typing import Optional

from jinja2 import BaseLoader, Environment, FileSystemLoader

from .database import Database
from .errors import ValidationError

logger = logging.getLogger(__name__)

REPORT_FORMATS = ("csv", "xml")

CSV_COLUMNS = [
    "receipt_id", "created_at", "request_id", "product_name", "quantity_ordered",
    "quantity_received", "rejected_quantity", "supplier_id", "invoice_number",
    "invoice_date", "lot_number", "expiration_date", "receipt_condition",
    "received_by", "notes",
]

# Default XML report template
DEFAULT_REPORT_XML_TEMPLATE = """\
<?xml version="1.0" encoding="UTF-8"?>
<!--
  Receipts report template. Edit config/receipts_report.xml.j2 to customise.
  Template engine : Jinja2  (https://jinja.palletsprojects.com/)
  Values are XML-escaped automatically.

  Variables:
    generated_at   ISO-8601 date the report was produced
    filters        dict: start_date, end_date, supplier_id, request_id
    summary        dict: total_receipts, total_received, total_rejected,
                   rejection_rate, receipts_by_supplier
    receipts       list of receipt rows joined with their item
-->
<ReceiptsReport generatedAt="{{ generated_at }}">
  <Filters>
    {% for key, value in filters.items() if value is not none %}<Filter name="{{ key }}">{{ value }}</Filter>
    {% endfor %}
  </Filters>
  <Summary>
    <TotalReceipts>{{ summary.total_receipts }}</TotalReceipts>
    <TotalReceived>{{ summary.total_received }}</TotalReceived>
    <TotalRejected>{{ summary.total_rejected }}</TotalRejected>
    {% if summary.rejection_rate is not none %}<RejectionRate>{{ "%.2f" | format(summary.rejection_rate) }}</RejectionRate>
    {% endif %}
    <BySupplier>
      {% for supplier, count in summary.receipts_by_supplier.items() %}<Supplier id="{{ supplier }}">{{ count }}</Supplier>
      {% endfor %}
    </BySupplier>
  </Summary>
  <Receipts>
    {% for r in receipts %}
    <Receipt id="{{ r.id }}">
      <CreatedAt>{{ r.created_at }}</CreatedAt>
      <RequestId>{{ r.request_id }}</RequestId>
      <Product>{{ r.product_name }}</Product>
      <QuantityOrdered>{{ r.quantity_ordered }}</QuantityOrdered>
      <QuantityReceived>{{ r.quantity_received }}</QuantityReceived>
      <RejectedQuantity>{{ r.rejected_quantity }}</RejectedQuantity>
      <InvoiceNumber>{{ r.invoice_number }}</InvoiceNumber>
      {% if r.invoice_date %}<InvoiceDate>{{ r.invoice_date }}</InvoiceDate>
      {% endif %}
      {% if r.supplier_id is not none %}<SupplierId>{{ r.supplier_id }}</SupplierId>
      {% endif %}
      {% if r.lot_number %}<LotNumber>{{ r.lot_number }}</LotNumber>
      {% endif %}
      {% if r.expiration_date %}<ExpirationDate>{{ r.expiration_date }}</ExpirationDate>
      {% endif %}
      <Condition>{{ r.receipt_condition }}</Condition>
      <ReceivedBy>{{ r.received_by }}</ReceivedBy>
      {% if r.notes %}<Notes>{{ r.notes }}</Notes>
      {% endif %}
    </Receipt>
    {% endfor %}
  </Receipts>
</ReceiptsReport>
"""


def summarize_receipts(receipts: list[dict]) -> dict:
    """
    Totals over a list of receipt rows.

    rejection_rate is rejected / received as a percentage, or None when
    nothing was received.  Receipts without a supplier are not counted in
    receipts_by_supplier.
    """
    total_received = sum(r["quantity_received"] for r in receipts)
    total_rejected = sum(r["rejected_quantity"] for r in receipts)
    by_supplier = Counter(
        str(r["supplier_id"]) for r in receipts if r.get("supplier_id") is not None
    )
    return {
        "total_receipts": len(receipts),
        "total_received": total_received,
        "total_rejected": total_rejected,
        "rejection_rate": (
            round(total_rejected / total_received * 100, 2) if total_received else None
        ),
        "receipts_by_supplier": dict(sorted(by_supplier.items())),
    }


def _check_date(field: str, value: Optional[str]) -> None:
    if value is None:
        return
    try:
        date.fromisoformat(value)
    except ValueError:
        raise ValidationError(field, f"{field} must be a YYYY-MM-DD date (got '{value}')")


def build_report(
    db: Database,
    start_date: Optional[str] = None,
    end_date: Optional[str] = None,
    supplier_id: Optional[int] = None,
    request_id: Optional[int] = None,
) -> dict:
    """Query receipts with the given filters and return rows plus summary."""
    _check_date("startDate", start_date)
    _check_date("endDate", end_date)

    receipts = db.query_receipts(
        start_date=start_date,
        end_date=end_date,
        supplier_id=supplier_id,
        request_id=request_id,
    )
    logger.info("Receipts report: %d receipts", len(receipts))
    return {
        "generated_at": date.today().isoformat(),
        "filters": {
            "start_date": start_date,
            "end_date": end_date,
            "supplier_id": supplier_id,
            "request_id": request_id,
        },
        "summary": summarize_receipts(receipts),
        "receipts": receipts,
    }


def render_report_csv(report: dict) -> str:
    """Render the receipts of a report as CSV, one row per receipt."""
    buf = io.StringIO()
    writer = csv.DictWriter(buf, fieldnames=CSV_COLUMNS, extrasaction="ignore")
    writer.writeheader()
    for r in report["receipts"]:
        writer.writerow({**r, "receipt_id": r["id"]})
    return buf.getvalue()


def render_report_xml(report: dict, template_file: Optional[Path] = None) -> str:
    """
    Render a report as XML using the operator template (or built-in default).

    Args:
        report: Output of build_report()
        template_file: Optional path to a custom Jinja2 template file
    """
    if template_file and template_file.exists():
        env = Environment(
            loader=FileSystemLoader(str(template_file.parent)),
            autoescape=True,
            keep_trailing_newline=True,
        )
        tmpl = env.get_template(template_file.name)
    else:
        env = Environment(loader=BaseLoader(), autoescape=True, keep_trailing_newline=True)
        tmpl = env.from_string(DEFAULT_REPORT_XML_TEMPLATE)
    return tmpl.render(**report)


def render_report(report: dict, fmt: str, template_file: Optional[Path] = None) -> str:
    if fmt == "csv":
        return render_report_csv(report)
    if fmt == "xml":
        return render_report_xml(report, template_file)
    raise ValidationError("format", f"Report format must be one of {', '.join(REPORT_FORMATS)}")
