import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from slugify import slugify
from sqlmodel import Session, select

from pdfstore.models.item import Item
from pdfstore.models.order import Order, OrderStatus
from pdfstore.models.user import User
from pdfstore.services import r2_client
from pdfstore.utils.clock import as_utc, utcnow

logger = logging.getLogger(__name__)

GUEST_DOWNLOAD_WINDOW = timedelta(minutes=10)
SIGNED_URL_TTL = 60  # seconds


class DownloadRefused(Exception):
    def __init__(self, status_code: int, detail: str):
        super().__init__(detail)
        self.status_code = status_code
        self.detail = detail


@dataclass
class SignedDownload:
    url: str
    expires_in: int


def download_path(order_id: str) -> str:
    return f"/payments/download?order_id={order_id}"


def guest_window_closes_at(order: Order) -> Optional[datetime]:
    if order.verified_at is None:
        return None
    return as_utc(order.verified_at) + GUEST_DOWNLOAD_WINDOW


def find_owned_order(session: Session, user: User, item_id: int) -> Optional[Order]:
    """The account holder's successful order for an item, if any."""
    return session.exec(
        select(Order)
        .where(Order.user_id == user.id)
        .where(Order.item_id == item_id)
        .where(Order.status == OrderStatus.success.value)
        .order_by(Order.verified_at.desc())
    ).first()


def authorize_download(
    session: Session,
    order_id: str,
    user: Optional[User],
    now: Optional[datetime] = None,
) -> Order:
    """
    The order, if `user` (None for guests) may download its item right now.
    Raises DownloadRefused otherwise.
    """
    order = session.get(Order, order_id)

    if not order or order.status != OrderStatus.success.value:
        logger.warning(f"Download refused for order {order_id}: not a paid order")
        raise DownloadRefused(404, "No paid order found")

    if order.is_guest:
        closes_at = guest_window_closes_at(order)
        if as_utc(now or utcnow()) >= closes_at:
            logger.warning(f"Download refused for guest order {order_id}: window closed")
            raise DownloadRefused(410, "Download link expired")
        return order

    if user is None:
        raise DownloadRefused(401, "Login required to download this order")

    if order.user_id != user.id:
        logger.warning(f"User {user.id} tried to download order {order_id}")
        raise DownloadRefused(403, "This order belongs to another user")

    return order


def sign_download(session: Session, order: Order) -> SignedDownload:
    item = session.get(Item, order.item_id)
    if not item or not item.file_key:
        raise DownloadRefused(404, "File not available")

    url = r2_client.to_presigned_url(
        item.file_key,
        expires=SIGNED_URL_TTL,
        filename=f"{slugify(item.title) or 'document'}.pdf",
    )
    logger.info(f"Signed {SIGNED_URL_TTL}s download for order {order.id}")
    return SignedDownload(url=url, expires_in=SIGNED_URL_TTL)
