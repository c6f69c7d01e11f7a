from typing import Optional

from pdfstore.config import settings
from pdfstore.models.item import Item
from pdfstore.models.order import Order
from pdfstore.models.user import User
from pdfstore.services.download_service import GUEST_DOWNLOAD_WINDOW, download_path
from pdfstore.services.email_service import send_email
from pdfstore.utils.template import render_template

MY_ORDERS_PATH = "/user/orders"


def send_purchase_success_email(
    order: Order,
    item: Item,
    user: Optional[User] = None,
) -> bool:
    """Guest or account buyer gets the download link for a verified order."""
    to = user.email if user else order.guest_email
    if order.is_guest:
        download_url = f"{settings.base_url}{download_path(order.id)}"
    else:
        # account downloads need a login, which a mail client never carries
        download_url = f"{settings.frontend_url}{MY_ORDERS_PATH}"

    html = render_template(
        "user_emails/pdf_purchase_success.html",
        store_name=settings.STORE_NAME,
        item_title=item.title,
        order_id=order.id,
        amount=order.amount,
        currency=order.currency,
        guest=order.is_guest,
        window_minutes=int(GUEST_DOWNLOAD_WINDOW.total_seconds() // 60),
        download_url=download_url,
    )

    return send_email(
        to=to,
        subject=f"Your PDF is ready: {item.title}",
        html=html,
    )
