import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlmodel import Session

from pdfstore.database import get_session
from pdfstore.dependencies.admin import require_admin
from pdfstore.models.payment_settings import SUPPORTED_CURRENCY, PaymentSettings
from pdfstore.schemas.payment_schemas import PaymentSettingsUpdate
from pdfstore.utils.clock import as_utc, utcnow

logger = logging.getLogger(__name__)

router = APIRouter()


def _serialize(payment_settings: PaymentSettings):
    return {
        "payments_enabled": payment_settings.payments_enabled,
        "razorpay_enabled": payment_settings.razorpay_enabled,
        "razorpay_key_id": payment_settings.razorpay_key_id,
        "razorpay_key_secret": payment_settings.razorpay_key_secret,
        "stripe_enabled": payment_settings.stripe_enabled,
        "stripe_publishable_key": payment_settings.stripe_publishable_key,
        "stripe_secret_key": payment_settings.stripe_secret_key,
        "currency": payment_settings.currency,
        "updated_at": as_utc(payment_settings.updated_at),
    }


@router.get("/payment-settings")
def get_payment_settings(
    session: Session = Depends(get_session),
    admin=Depends(require_admin),
):
    payment_settings = session.get(PaymentSettings, 1)
    if not payment_settings:
        return {"configured": False, "settings": None}
    return {"configured": True, "settings": _serialize(payment_settings)}


@router.put("/payment-settings")
def update_payment_settings(
    payload: PaymentSettingsUpdate,
    session: Session = Depends(get_session),
    admin=Depends(require_admin),
):
    payment_settings = session.get(PaymentSettings, 1)

    if not payment_settings:
        payment_settings = PaymentSettings(id=1)

    for field, value in payload.model_dump(exclude_unset=True).items():
        if isinstance(value, str):
            value = value.strip() or None
        setattr(payment_settings, field, value)

    if payment_settings.razorpay_enabled and not (
        payment_settings.razorpay_key_id and payment_settings.razorpay_key_secret
    ):
        raise HTTPException(400, "Razorpay needs both key id and key secret")

    if payment_settings.stripe_enabled and not (
        payment_settings.stripe_publishable_key and payment_settings.stripe_secret_key
    ):
        raise HTTPException(400, "Stripe needs both publishable and secret key")

    payment_settings.currency = SUPPORTED_CURRENCY
    payment_settings.updated_at = utcnow()

    session.add(payment_settings)
    session.commit()
    session.refresh(payment_settings)

    logger.info(
        f"Payment settings updated by admin {admin.id}: "
        f"payments={payment_settings.payments_enabled} "
        f"razorpay={payment_settings.razorpay_enabled} "
        f"stripe={payment_settings.stripe_enabled}"
    )

    return {
        "message": "Payment settings updated successfully",
        "settings": _serialize(payment_settings),
    }
