from .calculator import compute_item_fulfillment
from .aggregator import summarize_fulfillment
from .policy import AuthorizationDecision, can_record_receipt
from .validator import ReceiptValidator
from .database import Database
from .lifecycle import RequestLifecycle
from .ledger import ReceiptLedger
from .errors import (
    AuthorizationError, ConflictError, InvalidTransitionError, NotFoundError,
    ReceivingError, ValidationError,
)

__all__ = [
    "compute_item_fulfillment", "summarize_fulfillment",
    "AuthorizationDecision", "can_record_receipt",
    "ReceiptValidator", "Database", "RequestLifecycle", "ReceiptLedger",
    "AuthorizationError", "ConflictError", "InvalidTransitionError", "NotFoundError",
    "ReceivingError", "ValidationError",
]
