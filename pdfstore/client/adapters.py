"""
Gateway adapters: one `initiate(order)` capability over two hosted checkouts.

The hosted UI itself (Stripe.js card confirmation, Razorpay Checkout) is
injected per modal as a `HostedCheckout`: `open(options)` blocks until the
buyer finishes and returns the gateway's callback payload, or None when the
buyer dismisses it. Tests pass fakes that answer deterministically.
"""
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Union

from pdfstore.client.errors import CheckoutError, ConfigurationError
from pdfstore.client.gateway_config import (
    CARD_GATEWAY,
    REGIONAL_GATEWAY,
    GatewayConfigProvider,
)

logger = logging.getLogger(__name__)

STORE_NAME = "PDF Store"
THEME_COLOR = "#0ea5e9"


class HostedCheckout:
    def open(self, options: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        raise NotImplementedError


@dataclass(frozen=True)
class CheckoutOrder:
    """What the server handed back from create-order, plus display details."""

    order_id: str
    gateway: str
    amount: float
    currency: str
    item_title: str
    buyer_email: Optional[str] = None
    buyer_name: Optional[str] = None
    correlation: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class PaymentCompleted:
    gateway: str
    reference: str
    signature: Optional[str] = None
    # card gateway only; advisory, the server re-checks it
    intent: Optional[Dict[str, Any]] = None


@dataclass(frozen=True)
class PaymentAbandoned:
    gateway: str


CheckoutOutcome = Union[PaymentCompleted, PaymentAbandoned]


def _valid_key(key) -> bool:
    return isinstance(key, str) and key.strip() != ""


class CardGatewayAdapter:
    gateway = CARD_GATEWAY

    def __init__(self, hosted: HostedCheckout, config: GatewayConfigProvider):
        self.hosted = hosted
        self.config = config

    def preflight(self) -> str:
        """The publishable key, checked before any order is created."""
        settings = self.config.settings
        publishable_key = settings.stripe_publishable_key if settings else None

        if not _valid_key(publishable_key):
            logger.error(
                f"Stripe publishable key invalid: type={type(publishable_key).__name__}"
            )
            raise ConfigurationError("Stripe payment is not configured. Please contact support.")
        return publishable_key

    def initiate(self, order: CheckoutOrder) -> CheckoutOutcome:
        publishable_key = self.preflight()

        client_secret = order.correlation.get("client_secret")
        if not _valid_key(client_secret):
            raise ConfigurationError("Stripe checkout was not initialised for this order.")

        result = self.hosted.open({
            "publishable_key": publishable_key,
            "client_secret": client_secret,
            "receipt_email": order.buyer_email,
        })

        if result is None:
            logger.info(f"Order {order.order_id}: card checkout dismissed")
            return PaymentAbandoned(gateway=self.gateway)

        error = result.get("error")
        if error:
            raise CheckoutError(error.get("message") or "Card payment failed")

        intent = result.get("paymentIntent") or {}
        if intent.get("status") != "succeeded":
            raise CheckoutError(f"Card payment not completed ({intent.get('status')})")

        return PaymentCompleted(
            gateway=self.gateway,
            reference=intent["id"],
            intent=intent,
        )


class RegionalGatewayAdapter:
    gateway = REGIONAL_GATEWAY

    def __init__(self, hosted: HostedCheckout, config: GatewayConfigProvider):
        self.hosted = hosted
        self.config = config

    def initiate(self, order: CheckoutOrder) -> CheckoutOutcome:
        settings = self.config.settings
        key = order.correlation.get("razorpay_key") or (
            settings.razorpay_key_id if settings else None
        )
        if not _valid_key(key):
            raise ConfigurationError("Razorpay payment is not configured. Please contact support.")

        razorpay_order_id = order.correlation.get("razorpay_order_id")
        if not razorpay_order_id:
            raise ConfigurationError("Razorpay checkout was not initialised for this order.")

        result = self.hosted.open({
            "key": key,
            "amount": str(int(round(order.amount * 100))),  # paise
            "currency": order.currency,
            "name": STORE_NAME,
            "description": order.item_title,
            "order_id": razorpay_order_id,
            "prefill": {
                "name": order.buyer_name or "",
                "email": order.buyer_email or "",
            },
            "theme": {"color": THEME_COLOR},
        })

        if result is None:
            logger.info(f"Order {order.order_id}: Razorpay checkout dismissed")
            return PaymentAbandoned(gateway=self.gateway)

        return PaymentCompleted(
            gateway=self.gateway,
            reference=result["razorpay_payment_id"],
            signature=result.get("razorpay_signature"),
        )
