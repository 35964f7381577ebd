"""
Receiving authorization policy.

can_record_receipt() is the single authorization check on the receipt write
path: only admins may record receipts, and only while the parent request is
approved, partial or completed.  Completed requests stay open for receiving
so late corrections can be logged against a closed request.
"""
from dataclasses import dataclass
from typing import Optional

from models.request import Actor

ROLE_ADMIN = "admin"
ROLE_REQUESTER = "requester"

RECEIVING_REQUEST_STATUSES = ("approved", "partial", "completed")
RECEIVING_ITEM_STATUS = "approved"

CONDITION_ROLE = "role"
CONDITION_REQUEST_STATUS = "request_status"
CONDITION_ITEM_STATUS = "item_status"


@dataclass(frozen=True)
class AuthorizationDecision:
    allowed: bool
    reason: str
    condition: Optional[str] = None     # which rule failed, None when allowed


def can_record_receipt(request_status: str, actor_role: str) -> AuthorizationDecision:
    """Decide whether a receipt may be recorded for this role and request status."""
    if actor_role != ROLE_ADMIN:
        return AuthorizationDecision(
            allowed=False,
            reason=f"Only administrators can record receipts (role: '{actor_role}')",
            condition=CONDITION_ROLE,
        )
    if request_status not in RECEIVING_REQUEST_STATUSES:
        return AuthorizationDecision(
            allowed=False,
            reason=(
                f"Cannot receive items of a request with status '{request_status}'. "
                f"Allowed statuses: {', '.join(RECEIVING_REQUEST_STATUSES)}"
            ),
            condition=CONDITION_REQUEST_STATUS,
        )
    return AuthorizationDecision(allowed=True, reason="Receiving allowed")


def can_receive_item(review_status: str) -> AuthorizationDecision:
    """Only items approved for purchase are eligible for receiving."""
    if review_status != RECEIVING_ITEM_STATUS:
        return AuthorizationDecision(
            allowed=False,
            reason=f"Item was not approved for purchase (status: '{review_status}')",
            condition=CONDITION_ITEM_STATUS,
        )
    return AuthorizationDecision(allowed=True, reason="Item eligible for receiving")


def can_view_request(actor: Actor, requester_id: str) -> bool:
    """Admins see every request; requesters only their own."""
    return actor.role == ROLE_ADMIN or str(actor.id) == str(requester_id)
