from sqlmodel import SQLModel, Field
from typing import Optional
from datetime import datetime

from pdfstore.utils.clock import timestamp_type, utcnow

SUPPORTED_CURRENCY = "INR"


class PaymentSettings(SQLModel, table=True):
    """Single admin-controlled row (id=1). A missing row means "not configured"."""

    id: Optional[int] = Field(default=1, primary_key=True)

    payments_enabled: bool = Field(default=False)

    razorpay_enabled: bool = Field(default=False)
    razorpay_key_id: Optional[str] = None
    razorpay_key_secret: Optional[str] = None

    stripe_enabled: bool = Field(default=False)
    stripe_publishable_key: Optional[str] = None
    stripe_secret_key: Optional[str] = None

    currency: str = Field(default=SUPPORTED_CURRENCY)

    updated_at: datetime = Field(default_factory=utcnow, sa_type=timestamp_type())
