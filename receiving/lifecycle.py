"""
Request lifecycle: owner of purchase request and item review state.

The receiving core only reads from it (get_request_status,
get_item_ordered_quantity, get_item_review_status).  Mutations here are the
admin actions that move a request through its states:

  pending            -> approved | partial | rejected
  approved | partial -> completed
  completed          -> approved | partial      (reopen)

Items that already have receipts can be neither deleted nor re-quantified,
so the ledger never ends up pointing at a changed or missing item.
"""
import logging
from typing import Iterable, Optional

from models.request import Actor, PurchaseRequest, RequestedItem
from .database import (
    ALL_ITEM_STATUSES, Database, ITEM_APPROVED, STATUS_APPROVED, STATUS_COMPLETED,
    STATUS_PARTIAL, STATUS_PENDING, STATUS_REJECTED,
)
from .errors import (
    AuthorizationError, ConflictError, InvalidTransitionError, NotFoundError, ValidationError,
)
from .policy import CONDITION_ROLE
from .validator import MAX_INTEGER

logger = logging.getLogger(__name__)

ALLOWED_TRANSITIONS: dict[str, tuple[str, ...]] = {
    STATUS_PENDING:   (STATUS_APPROVED, STATUS_PARTIAL, STATUS_REJECTED),
    STATUS_APPROVED:  (STATUS_COMPLETED,),
    STATUS_PARTIAL:   (STATUS_COMPLETED,),
    STATUS_REJECTED:  (),
    STATUS_COMPLETED: (STATUS_APPROVED, STATUS_PARTIAL),
}


def _require_admin(actor: Actor, action: str) -> None:
    if not actor.is_admin:
        raise AuthorizationError(
            f"Only administrators can {action} (role: '{actor.role}')",
            condition=CONDITION_ROLE,
        )


def _to_item(row: dict) -> RequestedItem:
    return RequestedItem(
        id=row["id"],
        request_id=row["request_id"],
        product_name=row["product_name"],
        quantity=row["quantity"],
        status=row["status"],
        deadline=row.get("deadline"),
        admin_notes=row.get("admin_notes"),
    )


class RequestLifecycle:
    """Reads and transitions purchase requests and their items."""

    def __init__(self, db: Database):
        self.db = db

    # ------------------------------------------------------------------
    # Read contract used by the receiving core
    # ------------------------------------------------------------------

    def get_request(self, request_id: int) -> PurchaseRequest:
        row = self.db.get_request(request_id)
        if row is None:
            raise NotFoundError(f"Request not found: {request_id}")
        return PurchaseRequest(
            id=row["id"],
            requester_id=row["requester_id"],
            status=row["status"],
            observations=row.get("observations"),
            admin_notes=row.get("admin_notes"),
            completion_notes=row.get("completion_notes"),
            created_at=row["created_at"],
            reviewed_at=row.get("reviewed_at"),
            completed_at=row.get("completed_at"),
            items=[_to_item(r) for r in self.db.list_items(request_id)],
        )

    def get_request_status(self, request_id: int) -> str:
        row = self.db.get_request(request_id)
        if row is None:
            raise NotFoundError(f"Request not found: {request_id}")
        return row["status"]

    def get_item(self, item_id: int, request_id: Optional[int] = None) -> RequestedItem:
        """Return one item; when request_id is given the item must belong to it."""
        row = self.db.get_item(item_id)
        if row is None or (request_id is not None and row["request_id"] != request_id):
            raise NotFoundError(f"Item not found: {item_id}")
        return _to_item(row)

    def get_item_ordered_quantity(self, item_id: int) -> int:
        return self.get_item(item_id).quantity

    def get_item_review_status(self, item_id: int) -> str:
        return self.get_item(item_id).status

    def list_items(self, request_id: int, approved_only: bool = False) -> list[RequestedItem]:
        rows = self.db.list_items(request_id, status=ITEM_APPROVED if approved_only else None)
        return [_to_item(r) for r in rows]

    # ------------------------------------------------------------------
    # Requests
    # ------------------------------------------------------------------

    def create_request(
        self,
        requester: Actor,
        items: Iterable[dict],
        observations: Optional[str] = None,
    ) -> PurchaseRequest:
        """
        Submit a new request with its line items.

        Each item dict needs product_name and quantity; deadline is optional.
        """
        items = list(items)
        if not items:
            raise ValidationError("items", "A request needs at least one item")
        for i, item in enumerate(items):
            _check_item_fields(item, prefix=f"items[{i}].")

        request_id = self.db.create_request(requester.id, observations)
        for item in items:
            self.db.add_item(
                request_id,
                item["product_name"].strip(),
                int(item["quantity"]),
                item.get("deadline"),
            )
        self.db.log_audit(request_id, "request_created", actor=requester.id,
                          detail={"items": len(items)})
        return self.get_request(request_id)

    def transition(
        self,
        request_id: int,
        new_status: str,
        actor: Actor,
        notes: Optional[str] = None,
    ) -> PurchaseRequest:
        """Move a request to new_status if the lifecycle allows it."""
        _require_admin(actor, "change a request status")
        current = self.get_request_status(request_id)
        if new_status not in ALLOWED_TRANSITIONS.get(current, ()):
            raise InvalidTransitionError(
                f"Cannot change request status from '{current}' to '{new_status}'"
            )

        self.db.update_request_status(request_id, new_status, actor.id, notes)
        self.db.log_audit(
            request_id, "status_changed", actor=actor.id,
            detail={"from": current, "to": new_status},
        )
        logger.info("Request %s: %s -> %s (by %s)", request_id, current, new_status, actor.id)
        return self.get_request(request_id)

    # ------------------------------------------------------------------
    # Items
    # ------------------------------------------------------------------

    def add_item(
        self,
        request_id: int,
        actor: Actor,
        product_name: str,
        quantity: int,
        deadline: Optional[str] = None,
    ) -> RequestedItem:
        """Add an item to a request that is still pending review."""
        request = self.get_request(request_id)
        if not (actor.is_admin or str(actor.id) == str(request.requester_id)):
            raise AuthorizationError(
                "Only the requester or an administrator can add items",
                condition=CONDITION_ROLE,
            )
        if request.status != STATUS_PENDING:
            raise ConflictError(
                f"Items can only be added to pending requests (status: '{request.status}')"
            )
        _check_item_fields({"product_name": product_name, "quantity": quantity})

        item_id = self.db.add_item(request_id, product_name.strip(), int(quantity), deadline)
        self.db.log_audit(request_id, "item_added", actor=actor.id, item_id=item_id)
        return self.get_item(item_id)

    def review_item(
        self,
        item_id: int,
        status: str,
        actor: Actor,
        admin_notes: Optional[str] = None,
    ) -> RequestedItem:
        """Set an item's review status (admin action)."""
        _require_admin(actor, "review items")
        if status not in ALL_ITEM_STATUSES:
            raise ValidationError(
                "status", f"Item status must be one of {', '.join(sorted(ALL_ITEM_STATUSES))}"
            )
        item = self.get_item(item_id)
        self.db.update_item_review(item_id, status, admin_notes)
        self.db.log_audit(
            item.request_id, "item_reviewed", actor=actor.id, item_id=item_id,
            detail={"from": item.status, "to": status},
        )
        return self.get_item(item_id)

    def update_item_quantity(self, item_id: int, quantity: int, actor: Actor) -> RequestedItem:
        """Change the ordered quantity of an item not yet approved or received."""
        item = self.get_item(item_id)
        request = self.get_request(item.request_id)
        if not (actor.is_admin or str(actor.id) == str(request.requester_id)):
            raise AuthorizationError(
                "Only the requester or an administrator can edit items",
                condition=CONDITION_ROLE,
            )
        _check_item_fields({"product_name": item.product_name, "quantity": quantity})
        if self.db.count_receipts(item_id):
            raise ConflictError("Cannot change the quantity of an item that has receipts")
        if item.status == ITEM_APPROVED:
            raise ConflictError("Cannot change the quantity of an approved item")

        self.db.update_item_quantity(item_id, int(quantity))
        self.db.log_audit(
            item.request_id, "quantity_changed", actor=actor.id, item_id=item_id,
            detail={"from": item.quantity, "to": int(quantity)},
        )
        return self.get_item(item_id)

    def delete_item(self, item_id: int, actor: Actor) -> None:
        """Delete an item.  Refused once any receipt references it."""
        item = self.get_item(item_id)
        request = self.get_request(item.request_id)
        if not (actor.is_admin or str(actor.id) == str(request.requester_id)):
            raise AuthorizationError(
                "Only the requester or an administrator can delete items",
                condition=CONDITION_ROLE,
            )
        if self.db.count_receipts(item_id):
            raise ConflictError("Cannot delete an item that has receipts")

        self.db.delete_item(item_id)
        self.db.log_audit(item.request_id, "item_deleted", actor=actor.id, item_id=item_id)
        logger.info("Deleted item %s of request %s", item_id, item.request_id)


def _check_item_fields(item: dict, prefix: str = "") -> None:
    name = (item.get("product_name") or "").strip()
    if not name:
        raise ValidationError(f"{prefix}productName", "Product is required")
    try:
        quantity = int(item.get("quantity"))
    except (TypeError, ValueError):
        raise ValidationError(f"{prefix}quantity", "Quantity must be a whole number")
    if quantity < 1:
        raise ValidationError(f"{prefix}quantity", f"Quantity must be at least 1 (got {quantity})")
    if quantity > MAX_INTEGER:
        raise ValidationError(f"{prefix}quantity", f"Quantity must be at most {MAX_INTEGER}")
