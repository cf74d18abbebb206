from datetime import datetime
from enum import Enum
from typing import List, Optional, Union

from pydantic import BaseModel, Field
from pydantic.alias_generators import to_camel


class OrderStatus(str, Enum):
    PAYMENT_RECEIVED = "PAYMENT_RECEIVED"
    TO_SHIP = "TO_SHIP"
    SHIPPING = "SHIPPING"
    TO_DELIVER = "TO_DELIVER"
    DELIVERED = "DELIVERED"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"

    @property
    def display_name(self) -> str:
        return STATUS_DISPLAY_NAMES[self]


STATUS_DISPLAY_NAMES = {
    OrderStatus.PAYMENT_RECEIVED: "Payment Received",
    OrderStatus.TO_SHIP: "To Ship",
    OrderStatus.SHIPPING: "Shipping",
    OrderStatus.TO_DELIVER: "To Deliver",
    OrderStatus.DELIVERED: "Delivered",
    OrderStatus.COMPLETED: "Completed",
    OrderStatus.CANCELLED: "Cancelled",
}

# Notification types written by the dispatcher
ORDER_UPDATE = "order_update"
ORDER_CANCELLED = "order_cancelled"


class CamelModel(BaseModel):
    """Documents are stored with camelCase keys; Python code uses snake_case."""

    class Config:
        alias_generator = to_camel
        populate_by_name = True

    def to_document(self) -> dict:
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")


# --- Requests ---

class OrderItemCreate(CamelModel):
    product_id: Optional[str] = None
    name: str
    quantity: int = Field(gt=0)
    price: float = Field(ge=0)
    image_url: str = ""

class OrderCreate(CamelModel):
    buyer_id: str = Field(min_length=1)
    seller_id: Optional[str] = None
    items: List[OrderItemCreate]
    payment_method: str
    delivery_address: str = ""
    # Computed from the items when omitted
    total_amount: Optional[float] = Field(default=None, ge=0)

class StatusUpdate(CamelModel):
    status: OrderStatus
    notes: Optional[str] = None

class CancelRequest(CamelModel):
    reason: str = ""


# --- Documents / Responses ---

class StatusHistoryEntry(CamelModel):
    status: str
    timestamp: int
    notes: str

class Notification(CamelModel):
    user_id: str
    type: str
    title: str
    message: str
    order_id: str
    timestamp: int
    read: bool = False
    # Cancellation snapshot
    name: Optional[str] = None
    price: Optional[float] = None
    quantity: Optional[int] = None
    quantity_unit: Optional[str] = None
    image_url: Optional[str] = None
    cancel_reason: Optional[str] = None
    # Counterparty cross-reference
    seller_id: Optional[str] = None
    buyer_id: Optional[str] = None

    def to_document(self) -> dict:
        # Cross-references passed explicitly as None are written as null
        unset = {name for name, value in self if value is None and name not in self.model_fields_set}
        return self.model_dump(by_alias=True, exclude=unset, mode="json")

class OrderResponse(CamelModel):
    order_id: str
    # Legacy orders may lack a buyer; the dispatcher treats that as nothing to notify
    buyer_id: Optional[str] = None
    seller_id: Optional[str] = None
    items: List[dict] = []
    total_amount: float = 0.0
    status: Optional[str] = None
    payment_method: Optional[str] = None
    delivery_address: Optional[str] = None
    cancel_reason: Optional[str] = None
    # Epoch milliseconds, or a datetime when the store returns native timestamps
    created_at: Optional[Union[int, datetime]] = None
    updated_at: Optional[Union[int, datetime]] = None
    cancelled_at: Optional[Union[int, datetime]] = None
    estimated_delivery: Optional[Union[int, datetime]] = None

class TransitionResponse(CamelModel):
    order_id: str
    status: str
    updated_at: int
    notifications: List[str] = []
