from pydantic import BaseModel, ConfigDict, Field
from typing import Optional, List, Literal

from .receipt import ReceiptEvent, ReceiptIssue


FulfillmentStatus = Literal["pending", "partial", "complete", "over_delivered"]


class ItemFulfillment(BaseModel):
    """
    Derived receiving state of one requested item.
    Never persisted; recomputed from the receipt ledger on every read.
    """
    model_config = ConfigDict(populate_by_name=True)

    item_id: Optional[int] = Field(default=None, alias="itemId")
    product_name: Optional[str] = Field(default=None, alias="productName")
    quantity_ordered: int = Field(alias="quantityOrdered")
    quantity_received: int = Field(alias="quantityReceived")     # total net accepted
    quantity_pending: int = Field(alias="quantityPending")
    status: FulfillmentStatus
    last_received_at: Optional[str] = Field(default=None, alias="lastReceivedAt")


class RequestFulfillmentSummary(BaseModel):
    """Per-status item counts and overall percentage received for a request."""
    model_config = ConfigDict(populate_by_name=True)

    total_items: int = Field(default=0, alias="totalItems")
    complete_items: int = Field(default=0, alias="completeItems")
    partial_items: int = Field(default=0, alias="partialItems")
    pending_items: int = Field(default=0, alias="pendingItems")
    over_delivered_items: int = Field(default=0, alias="overDeliveredItems")
    percent_received: int = Field(default=0, alias="percentReceived")


class RequestReceivingStatus(BaseModel):
    """Response shape of the request receiving-status read."""
    summary: RequestFulfillmentSummary
    items: List[ItemFulfillment] = Field(default_factory=list)


class ReceiptsOverview(BaseModel):
    """Totals over every receipt recorded against one request."""
    model_config = ConfigDict(populate_by_name=True)

    total_receipts: int = Field(default=0, alias="totalReceipts")
    total_quantity: int = Field(default=0, alias="totalQuantity")     # gross received
    total_rejected: int = Field(default=0, alias="totalRejected")
    unique_suppliers: int = Field(default=0, alias="uniqueSuppliers")
    first_receipt_date: Optional[str] = Field(default=None, alias="firstReceiptDate")
    last_receipt_date: Optional[str] = Field(default=None, alias="lastReceiptDate")


class RecordedReceipt(BaseModel):
    """Result of a successful record-receipt call."""
    receipt: ReceiptEvent
    fulfillment: ItemFulfillment
    warnings: List[ReceiptIssue] = Field(default_factory=list)
    duplicate: bool = False                 # True when an idempotency key matched
