"""
Receipt payload validation.

Checks:
  Quantities:  1 <= received <= 2**63 - 1, 0 <= rejected < received,
               supplier id positive
  Invoice:     invoice number present
  Dates:       invoice date not in the future, expiration date not in the
               past and strictly after the invoice date
  Condition:   one of good / damaged / partial_damage
  Delivery:    over-delivery against the ordered quantity (warning only)

Errors block recording; warnings are reported back with the recorded receipt.
"""
import logging
from datetime import datetime, timezone
from typing import Callable, Optional

from models.receipt import RECEIPT_CONDITIONS, ReceiptIssue, ReceiptPayload
from .errors import ValidationError

logger = logging.getLogger(__name__)

# Largest value an SQLite INTEGER column can hold
MAX_INTEGER = 2**63 - 1


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class ReceiptValidator:
    """
    Produces a list of ReceiptIssue objects for a receipt payload.

    Usage:
        validator = ReceiptValidator()
        warnings = validator.validate(payload, ordered_quantity=10, already_received=4)
    """

    def __init__(
        self,
        warn_on_over_delivery: bool = True,
        clock: Callable[[], datetime] = _utc_now,
    ):
        self.warn_on_over_delivery = warn_on_over_delivery
        self.clock = clock

    def check(
        self,
        payload: ReceiptPayload,
        ordered_quantity: Optional[int] = None,
        already_received: int = 0,
    ) -> list[ReceiptIssue]:
        """Run all checks and return the combined issues list."""
        issues: list[ReceiptIssue] = []
        issues.extend(self._check_quantities(payload))
        issues.extend(self._check_invoice(payload))
        issues.extend(self._check_dates(payload))
        issues.extend(self._check_condition(payload))
        if ordered_quantity is not None and self.warn_on_over_delivery:
            issues.extend(self._check_over_delivery(payload, ordered_quantity, already_received))
        return issues

    def validate(
        self,
        payload: ReceiptPayload,
        ordered_quantity: Optional[int] = None,
        already_received: int = 0,
    ) -> list[ReceiptIssue]:
        """
        Raise ValidationError for the first error found, otherwise return
        the (possibly empty) list of warnings.
        """
        issues = self.check(payload, ordered_quantity, already_received)
        errors = [i for i in issues if i.severity == "error"]
        if errors:
            first = errors[0]
            logger.info("Receipt rejected: %s (%s)", first.description, first.field)
            raise ValidationError(first.field or "", first.description)
        return [i for i in issues if i.severity == "warning"]

    # ------------------------------------------------------------------
    # Quantity checks
    # ------------------------------------------------------------------

    def _check_quantities(self, p: ReceiptPayload) -> list[ReceiptIssue]:
        issues = []

        if p.quantity_received < 1:
            issues.append(ReceiptIssue(
                type="invalid_quantity_received",
                severity="error",
                description=f"Quantity received must be at least 1 (got {p.quantity_received})",
                field="quantityReceived",
            ))
        elif p.quantity_received > MAX_INTEGER:
            issues.append(ReceiptIssue(
                type="quantity_received_too_large",
                severity="error",
                description=f"Quantity received must be at most {MAX_INTEGER}",
                field="quantityReceived",
            ))

        # rejected < received bounds it from above as well
        if p.rejected_quantity < 0:
            issues.append(ReceiptIssue(
                type="negative_rejected_quantity",
                severity="error",
                description=f"Rejected quantity cannot be negative (got {p.rejected_quantity})",
                field="rejectedQuantity",
            ))
        elif p.rejected_quantity >= p.quantity_received:
            issues.append(ReceiptIssue(
                type="rejected_exceeds_received",
                severity="error",
                description=(
                    f"Rejected quantity ({p.rejected_quantity}) must be less than "
                    f"quantity received ({p.quantity_received})"
                ),
                field="rejectedQuantity",
            ))

        if p.supplier_id is not None and not (0 < p.supplier_id <= MAX_INTEGER):
            issues.append(ReceiptIssue(
                type="invalid_supplier_id",
                severity="error",
                description=f"Supplier id {p.supplier_id} is out of range",
                field="supplierId",
            ))

        return issues

    # ------------------------------------------------------------------
    # Invoice checks
    # ------------------------------------------------------------------

    def _check_invoice(self, p: ReceiptPayload) -> list[ReceiptIssue]:
        if not (p.invoice_number or "").strip():
            return [ReceiptIssue(
                type="missing_invoice_number",
                severity="error",
                description="Invoice number is required",
                field="invoiceNumber",
            )]
        return []

    # ------------------------------------------------------------------
    # Date checks
    # ------------------------------------------------------------------

    def _check_dates(self, p: ReceiptPayload) -> list[ReceiptIssue]:
        issues = []
        now = self.clock()

        invoice = None
        if _present(p.invoice_date):
            invoice = parse_timestamp(p.invoice_date)
            if invoice is None:
                issues.append(ReceiptIssue(
                    type="invalid_invoice_date",
                    severity="error",
                    description=f"Invoice date '{p.invoice_date}' is not a valid date",
                    field="invoiceDate",
                ))
            elif _is_after(invoice, now):
                issues.append(ReceiptIssue(
                    type="invoice_date_future",
                    severity="error",
                    description=f"Invoice date {p.invoice_date} is in the future",
                    field="invoiceDate",
                ))

        if _present(p.expiration_date):
            expiration = parse_timestamp(p.expiration_date)
            if expiration is None:
                issues.append(ReceiptIssue(
                    type="invalid_expiration_date",
                    severity="error",
                    description=f"Expiration date '{p.expiration_date}' is not a valid date",
                    field="expirationDate",
                ))
            elif _is_before(expiration, now):
                issues.append(ReceiptIssue(
                    type="expiration_date_past",
                    severity="error",
                    description=f"Expiration date {p.expiration_date} is already in the past",
                    field="expirationDate",
                ))
            elif invoice is not None and expiration[0] <= invoice[0]:
                issues.append(ReceiptIssue(
                    type="expiration_before_invoice",
                    severity="error",
                    description=(
                        f"Expiration date ({p.expiration_date}) must be after "
                        f"invoice date ({p.invoice_date})"
                    ),
                    field="expirationDate",
                ))

        return issues

    # ------------------------------------------------------------------
    # Condition / delivery checks
    # ------------------------------------------------------------------

    def _check_condition(self, p: ReceiptPayload) -> list[ReceiptIssue]:
        if p.receipt_condition and p.receipt_condition not in RECEIPT_CONDITIONS:
            return [ReceiptIssue(
                type="invalid_receipt_condition",
                severity="error",
                description=(
                    f"Receipt condition '{p.receipt_condition}' must be one of "
                    f"{', '.join(RECEIPT_CONDITIONS)}"
                ),
                field="receiptCondition",
            )]
        return []

    def _check_over_delivery(
        self,
        p: ReceiptPayload,
        ordered_quantity: int,
        already_received: int,
    ) -> list[ReceiptIssue]:
        pending = max(0, ordered_quantity - already_received)
        if p.net_quantity > pending:
            return [ReceiptIssue(
                type="over_delivery",
                severity="warning",
                description=(
                    f"Receipt exceeds the order. Ordered: {ordered_quantity}, "
                    f"already received: {already_received}, receiving: {p.net_quantity}"
                ),
                field="quantityReceived",
            )]
        return []


# ------------------------------------------------------------------
# Helpers
# ------------------------------------------------------------------

def _present(value: Optional[str]) -> bool:
    return bool(value and value.strip())


def parse_timestamp(value: Optional[str]) -> Optional[tuple[datetime, bool]]:
    """
    Parse an RFC 3339 timestamp or a plain date.

    Returns (aware datetime, date_only) or None if the value cannot be
    parsed.  Naive values are taken as UTC.
    """
    if not value:
        return None
    s = value.strip()
    for fmt in ("%Y-%m-%d", "%d/%m/%Y"):
        try:
            return datetime.strptime(s, fmt).replace(tzinfo=timezone.utc), True
        except ValueError:
            continue
    try:
        dt = datetime.fromisoformat(s.replace("Z", "+00:00").replace("z", "+00:00"))
    except ValueError:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt, False


def _is_after(parsed: tuple[datetime, bool], now: datetime) -> bool:
    dt, date_only = parsed
    if date_only:
        return dt.date() > now.date()
    return dt > now


def _is_before(parsed: tuple[datetime, bool], now: datetime) -> bool:
    dt, date_only = parsed
    if date_only:
        return dt.date() < now.date()
    return dt < now
