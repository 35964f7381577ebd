"""
Request fulfillment aggregator.

Rolls per-item fulfillment up into a request-level summary.  Over-delivered
items are counted separately; folding them into "complete" is left to the
presentation layer.
"""
from typing import Iterable

from models.fulfillment import ItemFulfillment, RequestFulfillmentSummary
from .calculator import (
    STATUS_COMPLETE, STATUS_OVER_DELIVERED, STATUS_PARTIAL, STATUS_PENDING,
)


def percent_received(total_net: int, total_ordered: int) -> int:
    """
    Overall percentage received, 0 when nothing was ordered.

    Halves round up (1 of 8 is 12.5% and reports 13).  Integer arithmetic
    keeps very large quantities exact.
    """
    if total_ordered <= 0:
        return 0
    return (200 * total_net + total_ordered) // (2 * total_ordered)


def summarize_fulfillment(fulfillments: Iterable[ItemFulfillment]) -> RequestFulfillmentSummary:
    """Combine item fulfillments into a RequestFulfillmentSummary."""
    items = list(fulfillments)
    counts = {
        STATUS_PENDING: 0,
        STATUS_PARTIAL: 0,
        STATUS_COMPLETE: 0,
        STATUS_OVER_DELIVERED: 0,
    }
    for f in items:
        counts[f.status] += 1

    total_net = sum(f.quantity_received for f in items)
    total_ordered = sum(f.quantity_ordered for f in items)

    return RequestFulfillmentSummary(
        total_items=len(items),
        complete_items=counts[STATUS_COMPLETE],
        partial_items=counts[STATUS_PARTIAL],
        pending_items=counts[STATUS_PENDING],
        over_delivered_items=counts[STATUS_OVER_DELIVERED],
        percent_received=percent_received(total_net, total_ordered),
    )
