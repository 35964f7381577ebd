"""
Fulfillment calculator.

Folds an item's ordered quantity and its receipt events into an
ItemFulfillment.  Pure and deterministic: the same inputs always give the
same result, nothing is cached and the input sequence is never mutated.

Status classification (on total net accepted quantity):
  net == 0             pending
  0 < net < ordered    partial
  net == ordered       complete
  net > ordered        over_delivered
"""
from typing import Iterable, Optional

from models.fulfillment import ItemFulfillment
from models.receipt import ReceiptEvent

STATUS_PENDING        = "pending"
STATUS_PARTIAL        = "partial"
STATUS_COMPLETE       = "complete"
STATUS_OVER_DELIVERED = "over_delivered"
ALL_FULFILLMENT_STATUSES = (
    STATUS_PENDING, STATUS_PARTIAL, STATUS_COMPLETE, STATUS_OVER_DELIVERED,
)


def total_net_received(receipts: Iterable[ReceiptEvent]) -> int:
    """Sum of accepted (received minus rejected) quantity over all receipts."""
    return sum(r.quantity_received - r.rejected_quantity for r in receipts)


def classify(ordered_quantity: int, total_net: int) -> str:
    if total_net == 0:
        return STATUS_PENDING
    if total_net < ordered_quantity:
        return STATUS_PARTIAL
    if total_net == ordered_quantity:
        return STATUS_COMPLETE
    return STATUS_OVER_DELIVERED


def compute_item_fulfillment(
    ordered_quantity: int,
    receipts: Iterable[ReceiptEvent],
    item_id: Optional[int] = None,
    product_name: Optional[str] = None,
) -> ItemFulfillment:
    """Derive the fulfillment view of one item from its receipt events."""
    events = list(receipts)
    total_net = total_net_received(events)
    last_received_at = max((r.created_at for r in events), default=None)

    return ItemFulfillment(
        item_id=item_id,
        product_name=product_name,
        quantity_ordered=ordered_quantity,
        quantity_received=total_net,
        quantity_pending=max(0, ordered_quantity - total_net),
        status=classify(ordered_quantity, total_net),
        last_received_at=last_received_at,
    )
