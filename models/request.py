from pydantic import BaseModel, ConfigDict, Field
from typing import Optional, List, Literal


RequestStatus = Literal["pending", "approved", "partial", "rejected", "completed"]
ItemReviewStatus = Literal["pending", "approved", "rejected", "suspended"]
ActorRole = Literal["admin", "requester"]

REQUEST_STATUSES = ("pending", "approved", "partial", "rejected", "completed")
ITEM_REVIEW_STATUSES = ("pending", "approved", "rejected", "suspended")
ACTOR_ROLES = ("admin", "requester")


class Actor(BaseModel):
    """The user performing an operation. Always passed explicitly."""
    id: str
    role: str                               # admin | requester

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"


class RequestedItem(BaseModel):
    """One line of a purchase request."""
    model_config = ConfigDict(populate_by_name=True)

    id: int
    request_id: int = Field(alias="requestId")
    product_name: str = Field(alias="productName")
    quantity: int                           # ordered quantity, fixed once approved
    status: ItemReviewStatus = "pending"
    deadline: Optional[str] = None          # YYYY-MM-DD
    admin_notes: Optional[str] = Field(default=None, alias="adminNotes")


class PurchaseRequest(BaseModel):
    """
    A purchase request as owned by the request lifecycle.
    The receiving core only reads status and id from it.
    """
    model_config = ConfigDict(populate_by_name=True)

    id: int
    requester_id: str = Field(alias="requesterId")
    status: RequestStatus = "pending"
    observations: Optional[str] = None
    admin_notes: Optional[str] = Field(default=None, alias="adminNotes")
    completion_notes: Optional[str] = Field(default=None, alias="completionNotes")
    created_at: str = Field(alias="createdAt")           # ISO 8601
    reviewed_at: Optional[str] = Field(default=None, alias="reviewedAt")
    completed_at: Optional[str] = Field(default=None, alias="completedAt")
    items: List[RequestedItem] = Field(default_factory=list)
