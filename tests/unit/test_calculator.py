"""
Unit tests for the fulfillment calculator.
"""
import pytest

from models.receipt import ReceiptEvent
from receiving.calculator import (
    STATUS_COMPLETE, STATUS_OVER_DELIVERED, STATUS_PARTIAL, STATUS_PENDING,
    classify, compute_item_fulfillment, total_net_received,
)


def _event(id, received, rejected=0, created_at="2024-06-01T10:00:00+00:00"):
    return ReceiptEvent(
        id=id,
        item_id=1,
        quantity_received=received,
        rejected_quantity=rejected,
        invoice_number=f"NF-{id}",
        received_by="admin-1",
        created_at=created_at,
    )


@pytest.mark.unit
class TestComputeItemFulfillment:
    """Tests for compute_item_fulfillment()."""

    def test_no_receipts_is_pending(self):
        f = compute_item_fulfillment(10, [])
        assert f.status == STATUS_PENDING
        assert f.quantity_received == 0
        assert f.quantity_pending == 10
        assert f.last_received_at is None

    def test_partial_then_still_partial_with_rejection(self):
        """Ordered 10: receive 4, then 6 with 1 rejected -> net 9, pending 1."""
        first = [_event(1, 4)]
        f = compute_item_fulfillment(10, first)
        assert f.status == STATUS_PARTIAL
        assert f.quantity_pending == 6

        both = first + [_event(2, 6, rejected=1)]
        f = compute_item_fulfillment(10, both)
        assert f.quantity_received == 9
        assert f.status == STATUS_PARTIAL
        assert f.quantity_pending == 1

    def test_exact_delivery_is_complete(self):
        f = compute_item_fulfillment(5, [_event(1, 5)])
        assert f.status == STATUS_COMPLETE
        assert f.quantity_pending == 0

    def test_over_delivery_pending_never_negative(self):
        f = compute_item_fulfillment(5, [_event(1, 7)])
        assert f.quantity_received == 7
        assert f.status == STATUS_OVER_DELIVERED
        assert f.quantity_pending == 0

    def test_last_received_at_is_most_recent(self):
        receipts = [
            _event(1, 1, created_at="2024-06-03T09:00:00+00:00"),
            _event(2, 1, created_at="2024-06-01T09:00:00+00:00"),
            _event(3, 1, created_at="2024-06-02T09:00:00+00:00"),
        ]
        f = compute_item_fulfillment(10, receipts)
        assert f.last_received_at == "2024-06-03T09:00:00+00:00"

    def test_identical_inputs_give_identical_results(self):
        receipts = [_event(1, 4), _event(2, 6, rejected=1)]
        first = compute_item_fulfillment(10, receipts, item_id=1, product_name="Gloves")
        second = compute_item_fulfillment(10, receipts, item_id=1, product_name="Gloves")
        assert first == second
        assert len(receipts) == 2

    def test_accepts_generator(self):
        f = compute_item_fulfillment(3, (_event(i, 1) for i in range(1, 4)))
        assert f.status == STATUS_COMPLETE

    def test_carries_item_identity(self):
        f = compute_item_fulfillment(2, [], item_id=42, product_name="Syringes")
        dumped = f.model_dump(by_alias=True)
        assert dumped["itemId"] == 42
        assert dumped["productName"] == "Syringes"
        assert dumped["quantityOrdered"] == 2


@pytest.mark.unit
class TestClassify:
    """Status boundaries for an ordered quantity of 10."""

    @pytest.mark.parametrize("net,expected", [
        (0, STATUS_PENDING),
        (1, STATUS_PARTIAL),
        (9, STATUS_PARTIAL),
        (10, STATUS_COMPLETE),
        (11, STATUS_OVER_DELIVERED),
        (50, STATUS_OVER_DELIVERED),
    ])
    def test_boundaries(self, net, expected):
        assert classify(10, net) == expected

    def test_total_net_received(self):
        assert total_net_received([_event(1, 5, 2), _event(2, 3)]) == 6
        assert total_net_received([]) == 0
