"""
Receipt ledger: the write and read path for receiving.

record_receipt() is the only way a receipt enters the system:

  1. Resolve the item (must belong to the request)
  2. Validate payload fields            -> ValidationError
  3. can_record_receipt(status, role)   -> AuthorizationError
  4. Item must be approved for purchase -> AuthorizationError
  5. Append one immutable row to item_receipts, audited in the same
     transaction

Over-delivery is allowed and reported as a warning.  All reads re-derive
fulfillment from the full receipt set; no running totals are kept.
"""
import logging
from collections import defaultdict
from typing import Optional, Union

from pydantic import ValidationError as PydanticValidationError

from models.fulfillment import (
    ItemFulfillment, ReceiptsOverview, RecordedReceipt, RequestReceivingStatus,
)
from models.receipt import ReceiptEvent, ReceiptPayload
from models.request import Actor
from .aggregator import summarize_fulfillment
from .calculator import compute_item_fulfillment, total_net_received
from .database import Database
from .errors import AuthorizationError, ValidationError
from .lifecycle import RequestLifecycle
from .policy import CONDITION_ROLE, can_receive_item, can_record_receipt, can_view_request
from .validator import ReceiptValidator

logger = logging.getLogger(__name__)


def to_receipt_event(row: dict) -> ReceiptEvent:
    return ReceiptEvent.model_validate(row)


def coerce_payload(payload: Union[ReceiptPayload, dict]) -> ReceiptPayload:
    """Accept a ReceiptPayload or a raw wire dict (camelCase keys)."""
    if isinstance(payload, ReceiptPayload):
        return payload
    try:
        return ReceiptPayload.model_validate(payload)
    except PydanticValidationError as exc:
        first = exc.errors()[0]
        field = ".".join(str(p) for p in first.get("loc", ())) or "payload"
        raise ValidationError(field, f"Invalid value for {field}: {first.get('msg')}") from exc


class ReceiptLedger:
    """
    Records receipts and derives item and request fulfillment from them.

    Usage:
        ledger = ReceiptLedger(Database(config.db_path))
        result = ledger.record_receipt(request_id, item_id, payload, actor)
        status = ledger.get_request_fulfillment_summary(request_id)
    """

    def __init__(
        self,
        db: Database,
        lifecycle: Optional[RequestLifecycle] = None,
        validator: Optional[ReceiptValidator] = None,
        summary_approved_only: bool = True,
    ):
        self.db = db
        self.lifecycle = lifecycle or RequestLifecycle(db)
        self.validator = validator or ReceiptValidator()
        self.summary_approved_only = summary_approved_only

    # ------------------------------------------------------------------
    # Write path
    # ------------------------------------------------------------------

    def record_receipt(
        self,
        request_id: int,
        item_id: int,
        payload: Union[ReceiptPayload, dict],
        actor: Actor,
    ) -> RecordedReceipt:
        """Validate, authorize and append one receipt event for an item."""
        payload = coerce_payload(payload)
        item = self.lifecycle.get_item(item_id, request_id=request_id)
        request_status = self.lifecycle.get_request_status(request_id)

        existing = [to_receipt_event(r) for r in self.db.list_receipts(item_id)]
        warnings = self.validator.validate(
            payload,
            ordered_quantity=item.quantity,
            already_received=total_net_received(existing),
        )

        decision = can_record_receipt(request_status, actor.role)
        if not decision.allowed:
            logger.warning(
                "Receipt denied for item %s (request %s, actor %s): %s",
                item_id, request_id, actor.id, decision.reason,
            )
            raise AuthorizationError(decision.reason, condition=decision.condition)

        item_decision = can_receive_item(item.status)
        if not item_decision.allowed:
            logger.warning("Receipt denied for item %s: %s", item_id, item_decision.reason)
            raise AuthorizationError(item_decision.reason, condition=item_decision.condition)

        if payload.idempotency_key:
            for receipt in existing:
                if receipt.idempotency_key == payload.idempotency_key:
                    logger.info(
                        "Duplicate receipt submission for item %s (key %s), returning receipt %s",
                        item_id, payload.idempotency_key, receipt.id,
                    )
                    return RecordedReceipt(
                        receipt=receipt,
                        fulfillment=self._fulfillment(item.id, item.quantity, item.product_name, existing),
                        duplicate=True,
                    )

        row, created = self.db.insert_receipt(item_id, {
            "quantity_received": payload.quantity_received,
            "rejected_quantity": payload.rejected_quantity,
            "invoice_number":    (payload.invoice_number or "").strip(),
            "invoice_date":      _clean(payload.invoice_date),
            "lot_number":        _clean(payload.lot_number),
            "expiration_date":   _clean(payload.expiration_date),
            "supplier_id":       payload.supplier_id,
            "notes":             payload.notes or "",
            "receipt_condition": payload.receipt_condition or "good",
            "quality_checked":   payload.quality_checked,
            "quality_notes":     payload.quality_notes or "",
            "received_by":       str(actor.id),
            "idempotency_key":   _clean(payload.idempotency_key),
        }, request_id=request_id)
        receipt = to_receipt_event(row)

        if created:
            logger.info(
                "Receipt %s recorded: item=%s received=%d rejected=%d invoice=%s",
                receipt.id, item_id, receipt.quantity_received,
                receipt.rejected_quantity, receipt.invoice_number,
            )
        else:
            warnings = []

        receipts = [to_receipt_event(r) for r in self.db.list_receipts(item_id)]
        return RecordedReceipt(
            receipt=receipt,
            fulfillment=self._fulfillment(item.id, item.quantity, item.product_name, receipts),
            warnings=warnings,
            duplicate=not created,
        )

    # ------------------------------------------------------------------
    # Read path
    # ------------------------------------------------------------------

    def list_receipts(
        self,
        request_id: int,
        item_id: int,
        actor: Optional[Actor] = None,
    ) -> list[ReceiptEvent]:
        """Return an item's receipts, oldest first.  Fresh read on every call."""
        self.lifecycle.get_item(item_id, request_id=request_id)
        if actor is not None:
            self._check_can_view(request_id, actor)
        return [to_receipt_event(r) for r in self.db.list_receipts(item_id)]

    def get_item_fulfillment(self, item_id: int) -> ItemFulfillment:
        item = self.lifecycle.get_item(item_id)
        receipts = [to_receipt_event(r) for r in self.db.list_receipts(item_id)]
        return self._fulfillment(item.id, item.quantity, item.product_name, receipts)

    def get_request_fulfillment_summary(
        self,
        request_id: int,
        actor: Optional[Actor] = None,
    ) -> RequestReceivingStatus:
        """
        Per-item fulfillment plus the request-level summary.

        Only items approved for purchase are considered unless the ledger
        was built with summary_approved_only=False.
        """
        self.lifecycle.get_request_status(request_id)
        if actor is not None:
            self._check_can_view(request_id, actor)

        items = self.lifecycle.list_items(request_id, approved_only=self.summary_approved_only)
        by_item: dict[int, list[ReceiptEvent]] = defaultdict(list)
        for row in self.db.list_request_receipts(request_id):
            by_item[row["item_id"]].append(to_receipt_event(row))

        fulfillments = [
            self._fulfillment(item.id, item.quantity, item.product_name, by_item[item.id])
            for item in items
        ]
        return RequestReceivingStatus(
            summary=summarize_fulfillment(fulfillments),
            items=fulfillments,
        )

    def get_receipts_overview(
        self,
        request_id: int,
        actor: Optional[Actor] = None,
    ) -> ReceiptsOverview:
        """Totals over every receipt recorded against a request."""
        self.lifecycle.get_request_status(request_id)
        if actor is not None:
            self._check_can_view(request_id, actor)
        return ReceiptsOverview(**self.db.get_receipts_overview(request_id))

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _fulfillment(
        self,
        item_id: int,
        ordered_quantity: int,
        product_name: str,
        receipts: list[ReceiptEvent],
    ) -> ItemFulfillment:
        return compute_item_fulfillment(
            ordered_quantity, receipts, item_id=item_id, product_name=product_name,
        )

    def _check_can_view(self, request_id: int, actor: Actor) -> None:
        request = self.lifecycle.get_request(request_id)
        if not can_view_request(actor, request.requester_id):
            raise AuthorizationError("Access denied", condition=CONDITION_ROLE)


def _clean(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    return value or None
