# bakery/models/order.py
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional
from uuid import UUID
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from .base import TimeStampedModel

class OrderStatus(str, Enum):
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    PREPARING = "PREPARING"
    READY = "READY"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"

class PaymentMethod(str, Enum):
    CASH = "CASH"
    MOBILE_MONEY = "MOBILE_MONEY"
    CARD = "CARD"

class PaymentStatus(str, Enum):
    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"

    @property
    def is_terminal(self) -> bool:
        return self in (PaymentStatus.COMPLETED, PaymentStatus.FAILED)

class OrderItem(BaseModel):
    """Snapshot of a purchased product, immutable once the order exists"""
    id: Optional[UUID] = None
    product_id: Optional[UUID]
    product_name: str
    quantity: int
    price: Decimal
    subtotal: Decimal

    model_config = ConfigDict(from_attributes=True)

class Payment(TimeStampedModel):
    """Payment attached one-to-one to an order"""
    id: UUID
    order_id: UUID
    method: PaymentMethod
    status: PaymentStatus = PaymentStatus.PENDING
    amount: Decimal
    transaction_id: Optional[str] = None
    transaction_ref: Optional[str] = None
    phone_number: Optional[str] = None
    operator: Optional[str] = None
    failure_reason: Optional[str] = None
    completed_at: Optional[datetime] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)

class Order(TimeStampedModel):
    """Customer order with its line items and payment"""
    id: UUID
    order_number: str
    status: OrderStatus = OrderStatus.PENDING
    customer_name: str
    customer_email: Optional[str] = None
    customer_phone: str
    subtotal: Decimal
    delivery_fee: Decimal
    total: Decimal
    is_delivery: bool = False
    delivery_address: Optional[str] = None
    delivery_time: Optional[datetime] = None
    notes: Optional[str] = None
    admin_notes: Optional[str] = None
    completed_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    items: List[OrderItem] = []
    payment: Optional[Payment] = None

class OrderLine(BaseModel):
    product_id: UUID
    quantity: int = Field(..., gt=0)

class CreateOrderRequest(BaseModel):
    customer_name: str = Field(..., min_length=3, max_length=100)
    customer_email: Optional[str] = Field(None, max_length=255, pattern=r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
    customer_phone: str = Field(..., min_length=8, max_length=20)
    items: List[OrderLine] = Field(..., min_length=1)
    is_delivery: bool = False
    delivery_address: Optional[str] = Field(None, max_length=500)
    delivery_time: Optional[datetime] = None
    notes: Optional[str] = Field(None, max_length=1000)
    payment_method: PaymentMethod
    phone_number: Optional[str] = Field(None, max_length=20)
    operator: Optional[str] = Field(None, max_length=50)

    @field_validator("customer_name", "customer_phone", mode="before")
    @classmethod
    def _strip(cls, value):
        return value.strip() if isinstance(value, str) else value

    @model_validator(mode="after")
    def _check_delivery_and_payment(self):
        if self.is_delivery and not self.delivery_address:
            raise ValueError("A delivery address is required for delivery orders")
        if self.payment_method == PaymentMethod.MOBILE_MONEY and not (self.phone_number and self.operator):
            raise ValueError("Phone number and operator are required for mobile money")
        return self

class UpdateOrderStatusRequest(BaseModel):
    status: OrderStatus
    admin_notes: Optional[str] = Field(None, max_length=1000)

class InitiatePaymentRequest(BaseModel):
    order_id: UUID
