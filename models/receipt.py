from pydantic import BaseModel, ConfigDict, Field
from typing import Optional, Literal


ReceiptCondition = Literal["good", "damaged", "partial_damage"]
RECEIPT_CONDITIONS = ("good", "damaged", "partial_damage")


class ReceiptPayload(BaseModel):
    """
    Inbound "record receipt" payload as sent by the UI.

    Keys are lower-camelCase on the wire.  Dates stay as strings here
    (RFC 3339 or YYYY-MM-DD) and are parsed by ReceiptValidator so that a
    bad date is reported against the field that carried it.
    """
    model_config = ConfigDict(populate_by_name=True)

    quantity_received: int = Field(alias="quantityReceived")
    invoice_number: Optional[str] = Field(default="", alias="invoiceNumber")
    invoice_date: Optional[str] = Field(default=None, alias="invoiceDate")
    lot_number: Optional[str] = Field(default=None, alias="lotNumber")
    expiration_date: Optional[str] = Field(default=None, alias="expirationDate")
    supplier_id: Optional[int] = Field(default=None, alias="supplierId")
    notes: Optional[str] = ""
    receipt_condition: Optional[str] = Field(default="good", alias="receiptCondition")
    quality_checked: bool = Field(default=False, alias="qualityChecked")
    quality_notes: Optional[str] = Field(default="", alias="qualityNotes")
    rejected_quantity: int = Field(default=0, alias="rejectedQuantity")
    # Client-generated key so a double-submitted form records once
    idempotency_key: Optional[str] = Field(default=None, alias="idempotencyKey")

    @property
    def net_quantity(self) -> int:
        return self.quantity_received - self.rejected_quantity


class ReceiptEvent(BaseModel):
    """
    One recorded delivery against a requested item.

    Receipt events are append-only: there is no update or delete path.
    Corrections are recorded as a new event.
    """
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    id: int
    item_id: int = Field(alias="itemId")
    quantity_received: int = Field(alias="quantityReceived")
    rejected_quantity: int = Field(default=0, alias="rejectedQuantity")
    invoice_number: str = Field(alias="invoiceNumber")
    invoice_date: Optional[str] = Field(default=None, alias="invoiceDate")
    lot_number: Optional[str] = Field(default=None, alias="lotNumber")
    expiration_date: Optional[str] = Field(default=None, alias="expirationDate")
    supplier_id: Optional[int] = Field(default=None, alias="supplierId")
    notes: Optional[str] = ""
    receipt_condition: ReceiptCondition = Field(default="good", alias="receiptCondition")
    quality_checked: bool = Field(default=False, alias="qualityChecked")
    quality_notes: str = Field(default="", alias="qualityNotes")
    received_by: str = Field(alias="receivedBy")
    created_at: str = Field(alias="createdAt")          # ISO 8601 UTC
    idempotency_key: Optional[str] = Field(default=None, alias="idempotencyKey")

    @property
    def net_quantity(self) -> int:
        """Accepted quantity: received minus rejected."""
        return self.quantity_received - self.rejected_quantity


SeverityLevel = Literal["error", "warning"]


class ReceiptIssue(BaseModel):
    """A single validation finding for a receipt payload."""
    type: str                               # e.g. "missing_invoice_number", "over_delivery"
    severity: SeverityLevel
    description: str                        # Human-readable explanation
    field: Optional[str] = None             # Wire name of the affected field
