from .request import Actor, PurchaseRequest, RequestedItem
from .receipt import ReceiptEvent, ReceiptIssue, ReceiptPayload
from .fulfillment import (
    ItemFulfillment, ReceiptsOverview, RecordedReceipt,
    RequestFulfillmentSummary, RequestReceivingStatus,
)

__all__ = [
    "Actor", "PurchaseRequest", "RequestedItem",
    "ReceiptEvent", "ReceiptIssue", "ReceiptPayload",
    "ItemFulfillment", "ReceiptsOverview", "RecordedReceipt",
    "RequestFulfillmentSummary", "RequestReceivingStatus",
]
