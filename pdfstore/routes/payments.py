import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlmodel import Session, select

from pdfstore.database import get_session
from pdfstore.models.item import Item
from pdfstore.models.order import Order, OrderStatus
from pdfstore.models.payment_settings import PaymentSettings
from pdfstore.models.user import User
from pdfstore.schemas.payment_schemas import (
    CreateOrderSchema,
    PaymentSettingsResponse,
    PublicPaymentSettings,
    VerifyPaymentResponse,
    VerifyPaymentSchema,
)
from pdfstore.services.download_service import find_owned_order
from pdfstore.services.gateways import (
    GatewayNotConfigured,
    GatewayUnavailable,
    PaymentStillProcessing,
    build_gateway,
)
from pdfstore.services.purchase_email_service import send_purchase_success_email
from pdfstore.services.verification_service import verify_order_payment
from pdfstore.utils.clock import as_utc
from pdfstore.utils.token import get_current_user, get_optional_user

logger = logging.getLogger(__name__)

router = APIRouter()


def get_gateway_builder():
    """Swapped out in tests to hand back gateways with fake SDK clients."""
    return build_gateway


@router.get("/settings", response_model=PaymentSettingsResponse)
def get_payment_settings(session: Session = Depends(get_session)):
    # read on every call: a stale copy could offer a gateway an admin just disabled
    payment_settings = session.get(PaymentSettings, 1)

    if not payment_settings:
        return PaymentSettingsResponse(settings=None)

    return PaymentSettingsResponse(
        settings=PublicPaymentSettings(
            payments_enabled=payment_settings.payments_enabled,
            razorpay_enabled=payment_settings.razorpay_enabled,
            razorpay_key_id=payment_settings.razorpay_key_id,
            stripe_enabled=payment_settings.stripe_enabled,
            stripe_publishable_key=payment_settings.stripe_publishable_key,
            currency=payment_settings.currency,
        )
    )


@router.post("/create-order")
def create_order(
    payload: CreateOrderSchema,
    session: Session = Depends(get_session),
    current_user: Optional[User] = Depends(get_optional_user),
    gateway_builder=Depends(get_gateway_builder),
):
    # 1. Gateway must be usable right now
    payment_settings = session.get(PaymentSettings, 1)
    try:
        gateway = gateway_builder(payment_settings, payload.payment_gateway.value)
    except GatewayNotConfigured as e:
        raise HTTPException(503, str(e))

    # 2. Price comes from the DB only
    item = session.get(Item, payload.item_id)
    if not item or item.status != "published":
        raise HTTPException(404, "Item not available")

    if round(payload.amount, 2) != round(item.price, 2):
        raise HTTPException(400, "Item price has changed, please reload")

    # 3. Buyer identity
    if payload.purchase_type == "user":
        if current_user is None:
            raise HTTPException(401, "Login required for account purchases")
        if current_user.id != payload.user_id:
            raise HTTPException(403, "user_id does not match the logged in user")

    order = Order(
        user_id=payload.user_id if payload.purchase_type == "user" else None,
        guest_email=payload.guest_email if payload.purchase_type == "guest" else None,
        item_id=item.id,
        amount=item.price,
        currency=payment_settings.currency,
        gateway=gateway.name,
        status=OrderStatus.pending.value,
    )
    session.add(order)
    session.commit()
    session.refresh(order)

    # 4. Gateway side order / intent
    try:
        correlation = gateway.open_checkout(order, item)
    except GatewayUnavailable as e:
        logger.error(f"Order {order.id}: {e}")
        order.status = OrderStatus.failed.value
        session.add(order)
        session.commit()
        raise HTTPException(502, "Payment gateway unavailable, please try again")

    order.gateway_order_id = correlation.pop("gateway_order_id")
    session.add(order)
    session.commit()

    logger.info(
        f"Order {order.id} created for item {item.id} "
        f"({payload.purchase_type}) via {order.gateway}"
    )

    return {
        "order_id": order.id,
        "gateway": order.gateway,
        "amount": order.amount,
        "currency": order.currency,
        **correlation,
    }


@router.post("/verify-payment", response_model=VerifyPaymentResponse)
def verify_payment(
    payload: VerifyPaymentSchema,
    session: Session = Depends(get_session),
    current_user: Optional[User] = Depends(get_optional_user),
    gateway_builder=Depends(get_gateway_builder),
):
    order = session.get(Order, payload.order_id)
    if not order:
        raise HTTPException(404, "Order not found")

    # account orders settle only for their owner; guests hold no token
    if not order.is_guest:
        if current_user is None:
            raise HTTPException(401, "Login required to verify this order")
        if current_user.id != order.user_id:
            raise HTTPException(403, "This order belongs to another user")

    if order.gateway != payload.payment_gateway.value:
        raise HTTPException(400, "Gateway does not match the order")

    gateway = None
    if order.status == OrderStatus.pending.value:
        try:
            gateway = gateway_builder(
                session.get(PaymentSettings, 1),
                order.gateway,
                require_enabled=False,
            )
        except GatewayNotConfigured as e:
            raise HTTPException(503, str(e))

    try:
        result = verify_order_payment(
            session=session,
            order=order,
            gateway=gateway,
            payment_id=payload.payment_id,
            signature=payload.signature,
        )
    except PaymentStillProcessing as e:
        logger.info(f"Order {order.id}: {e}")
        raise HTTPException(409, "Payment is still processing, try again shortly")
    except GatewayUnavailable as e:
        logger.error(f"Order {order.id}: {e}")
        raise HTTPException(502, "Payment gateway unavailable, please try again")

    if result.verified and result.transitioned:
        item = session.get(Item, order.item_id)
        user = session.get(User, order.user_id) if order.user_id else None
        send_purchase_success_email(order, item, user)

    return VerifyPaymentResponse(
        success=result.verified,
        order_id=order.id,
        status=order.status,
    )


@router.get("/owned/{item_id}")
def owned_item(
    item_id: int,
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    order = find_owned_order(session, current_user, item_id)
    return {
        "owned": order is not None,
        "order_id": order.id if order else None,
    }


@router.get("/my-orders")
def my_orders(
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    rows = session.exec(
        select(Order, Item)
        .join(Item, Item.id == Order.item_id)
        .where(Order.user_id == current_user.id)
        .where(Order.status == OrderStatus.success.value)
        .order_by(Order.created_at.desc())
    ).all()

    return [
        {
            "order_id": order.id,
            "item_id": item.id,
            "item_title": item.title,
            "amount": order.amount,
            "currency": order.currency,
            "gateway": order.gateway,
            "purchased_at": as_utc(order.verified_at),
        }
        for order, item in rows
    ]
