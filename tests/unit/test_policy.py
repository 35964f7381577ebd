"""
Unit tests for the receiving authorization policy.
"""
import pytest

from models.request import Actor
from receiving.policy import (
    CONDITION_ITEM_STATUS, CONDITION_REQUEST_STATUS, CONDITION_ROLE,
    can_receive_item, can_record_receipt, can_view_request,
)

ALLOWED = {("admin", "approved"), ("admin", "partial"), ("admin", "completed")}


@pytest.mark.unit
class TestCanRecordReceipt:
    """The full role x request status grid."""

    @pytest.mark.parametrize("role", ["admin", "requester"])
    @pytest.mark.parametrize("status", ["pending", "approved", "partial", "rejected", "completed"])
    def test_grid(self, role, status):
        decision = can_record_receipt(status, role)
        assert decision.allowed is ((role, status) in ALLOWED)
        assert decision.reason

    def test_role_reported_before_status(self):
        decision = can_record_receipt("pending", "requester")
        assert decision.condition == CONDITION_ROLE
        assert "administrators" in decision.reason

    def test_status_condition_for_admin(self):
        decision = can_record_receipt("rejected", "admin")
        assert not decision.allowed
        assert decision.condition == CONDITION_REQUEST_STATUS
        assert "rejected" in decision.reason

    def test_allowed_has_no_condition(self):
        assert can_record_receipt("completed", "admin").condition is None


@pytest.mark.unit
class TestItemAndViewRules:

    @pytest.mark.parametrize("status", ["pending", "rejected", "suspended"])
    def test_only_approved_items_receivable(self, status):
        decision = can_receive_item(status)
        assert not decision.allowed
        assert decision.condition == CONDITION_ITEM_STATUS

    def test_approved_item_receivable(self):
        assert can_receive_item("approved").allowed

    def test_view_rules(self):
        assert can_view_request(Actor(id="a", role="admin"), "someone-else")
        assert can_view_request(Actor(id="u1", role="requester"), "u1")
        assert not can_view_request(Actor(id="u2", role="requester"), "u1")
