"""
Pydantic models for receiving API requests.
"""
from pydantic import BaseModel, ConfigDict, Field
from typing import Optional, List


class ItemCreate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    product_name: str = Field(alias="productName")
    quantity: int
    deadline: Optional[str] = None     # YYYY-MM-DD


class RequestCreate(BaseModel):
    observations: Optional[str] = None
    items: List[ItemCreate]


class StatusUpdate(BaseModel):
    status: str   # approved | partial | rejected | completed
    notes: Optional[str] = None


class ItemReview(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    status: str   # pending | approved | rejected | suspended
    admin_notes: Optional[str] = Field(default=None, alias="adminNotes")


class QuantityUpdate(BaseModel):
    quantity: int
