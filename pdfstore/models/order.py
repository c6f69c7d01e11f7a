from enum import Enum
from uuid import uuid4
from sqlmodel import SQLModel, Field
from typing import Optional
from datetime import datetime

from pdfstore.utils.clock import timestamp_type, utcnow


class OrderStatus(str, Enum):
    pending = "pending"
    success = "success"
    failed = "failed"


class Gateway(str, Enum):
    stripe = "stripe"
    razorpay = "razorpay"


def _new_order_id() -> str:
    return uuid4().hex


class Order(SQLModel, table=True):
    __tablename__ = "pdf_order"

    id: str = Field(default_factory=_new_order_id, primary_key=True)

    # exactly one of user_id / guest_email is set
    user_id: Optional[int] = Field(default=None, foreign_key="user.id", index=True)
    guest_email: Optional[str] = Field(default=None, index=True)

    item_id: int = Field(foreign_key="item.id", index=True)
    amount: float = Field(nullable=False)
    currency: str = Field(default="INR")

    gateway: str  # stripe | razorpay
    gateway_order_id: Optional[str] = Field(default=None, index=True)
    gateway_payment_id: Optional[str] = Field(default=None, index=True)
    gateway_signature: Optional[str] = None

    status: str = Field(default=OrderStatus.pending.value, index=True)

    created_at: datetime = Field(default_factory=utcnow, sa_type=timestamp_type())
    updated_at: datetime = Field(default_factory=utcnow, sa_type=timestamp_type())
    verified_at: Optional[datetime] = Field(default=None, sa_type=timestamp_type())

    @property
    def is_guest(self) -> bool:
        return self.user_id is None

    @property
    def amount_minor(self) -> int:
        # paise
        return int(round(self.amount * 100))
