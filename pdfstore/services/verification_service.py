import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy import update
from sqlmodel import Session

from pdfstore.models.order import Order, OrderStatus
from pdfstore.services.gateways import VERIFIED
from pdfstore.utils.clock import utcnow

logger = logging.getLogger(__name__)


@dataclass
class VerificationResult:
    order: Order
    verified: bool
    # True only for the one call that moved the order out of pending
    transitioned: bool = False


def _settle(
    session: Session,
    order: Order,
    status: OrderStatus,
    payment_id: str,
    signature: Optional[str],
) -> bool:
    """
    Single permitted write on an order: pending -> terminal.

    The WHERE clause on status makes a racing duplicate call a no-op, so two
    verifications of the same order can never both transition it.
    """
    now = utcnow()
    values = {
        "status": status.value,
        "gateway_payment_id": payment_id,
        "gateway_signature": signature,
        "updated_at": now,
    }
    if status == OrderStatus.success:
        values["verified_at"] = now

    result = session.execute(
        update(Order)
        .where(Order.id == order.id)
        .where(Order.status == OrderStatus.pending.value)
        .values(**values)
    )
    session.commit()
    session.refresh(order)
    return result.rowcount == 1


def verify_order_payment(
    *,
    session: Session,
    order: Order,
    gateway,
    payment_id: str,
    signature: Optional[str] = None,
) -> VerificationResult:
    """
    Confirm with the gateway that `order` was paid, and settle it.

    Idempotent: a terminal order is reported as-is without contacting the
    gateway. GatewayUnavailable from the gateway propagates and leaves the
    order pending.
    """
    if order.status == OrderStatus.success.value:
        logger.info(f"Order {order.id} already verified")
        return VerificationResult(order=order, verified=True)

    if order.status == OrderStatus.failed.value:
        logger.info(f"Order {order.id} already failed")
        return VerificationResult(order=order, verified=False)

    outcome = gateway.confirm(order, payment_id, signature)
    status = OrderStatus.success if outcome == VERIFIED else OrderStatus.failed

    transitioned = _settle(session, order, status, payment_id, signature)

    if transitioned:
        logger.info(f"Order {order.id} -> {order.status} via {order.gateway}")
    else:
        # lost the race; report whatever the winner wrote
        logger.info(f"Order {order.id} was settled concurrently as {order.status}")

    return VerificationResult(
        order=order,
        verified=order.status == OrderStatus.success.value,
        transitioned=transitioned,
    )
