from pydantic import BaseModel, EmailStr, model_validator
from typing import Literal, Optional

from pdfstore.models.order import Gateway


class PublicPaymentSettings(BaseModel):
    payments_enabled: bool
    razorpay_enabled: bool
    razorpay_key_id: Optional[str] = None
    stripe_enabled: bool
    stripe_publishable_key: Optional[str] = None
    currency: str


class PaymentSettingsResponse(BaseModel):
    # null means the admin never configured payments
    settings: Optional[PublicPaymentSettings] = None


class PaymentSettingsUpdate(BaseModel):
    payments_enabled: Optional[bool] = None
    razorpay_enabled: Optional[bool] = None
    razorpay_key_id: Optional[str] = None
    razorpay_key_secret: Optional[str] = None
    stripe_enabled: Optional[bool] = None
    stripe_publishable_key: Optional[str] = None
    stripe_secret_key: Optional[str] = None


class CreateOrderSchema(BaseModel):
    item_id: int
    amount: float
    purchase_type: Literal["user", "guest"]
    guest_email: Optional[EmailStr] = None
    user_id: Optional[int] = None
    payment_gateway: Gateway

    @model_validator(mode="after")
    def check_buyer(self):
        if self.purchase_type == "guest":
            if not self.guest_email:
                raise ValueError("guest_email is required for guest purchases")
            if self.user_id is not None:
                raise ValueError("guest purchases cannot carry a user_id")
        else:
            if self.user_id is None:
                raise ValueError("user_id is required for user purchases")
            if self.guest_email:
                raise ValueError("user purchases cannot carry a guest_email")
        return self


class VerifyPaymentSchema(BaseModel):
    order_id: str
    payment_gateway: Gateway
    payment_id: str
    signature: Optional[str] = None


class VerifyPaymentResponse(BaseModel):
    success: bool
    order_id: str
    status: str


class DownloadLinkResponse(BaseModel):
    url: str
    expires_in: int
