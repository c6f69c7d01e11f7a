"""
Server-side wrappers around the two payment gateway SDKs.

Each gateway is built per request from the admin-controlled PaymentSettings
row, so there is no module-level SDK client holding stale credentials.
Both expose the same two calls:

    open_checkout(order, item)  -> dict of correlation ids for the client
    confirm(order, payment_id, signature) -> "verified" | "rejected"

`confirm` raises GatewayUnavailable when the gateway cannot give a final
answer yet (network failure, 5xx, payment still processing).
"""
import logging
from typing import Any, Dict, Optional

import razorpay
import requests
import stripe

from pdfstore.models.item import Item
from pdfstore.models.order import Gateway, Order
from pdfstore.models.payment_settings import PaymentSettings

logger = logging.getLogger(__name__)

VERIFIED = "verified"
REJECTED = "rejected"

RAZORPAY_PAID_STATUSES = {"captured", "authorized"}
STRIPE_FAILED_STATUSES = {"canceled", "requires_payment_method"}


class GatewayNotConfigured(Exception):
    """The requested gateway is disabled or is missing credentials."""


class GatewayUnavailable(Exception):
    """The gateway could not give a definitive answer; safe to retry."""


class PaymentStillProcessing(GatewayUnavailable):
    """The gateway knows the payment but has not finished it."""


class RazorpayGateway:
    name = Gateway.razorpay.value

    def __init__(self, key_id: str, key_secret: str, client=None):
        self.key_id = key_id
        self.client = client or razorpay.Client(auth=(key_id, key_secret))

    def open_checkout(self, order: Order, item: Item) -> Dict[str, Any]:
        try:
            razorpay_order = self.client.order.create({
                "amount": order.amount_minor,  # paise
                "currency": order.currency,
                "receipt": f"pdf_order_{order.id}",
                "notes": {
                    "order_id": order.id,
                    "item_id": item.id,
                    "item_title": item.title,
                },
            })
        except (razorpay.errors.BadRequestError, razorpay.errors.ServerError,
                razorpay.errors.GatewayError, requests.RequestException) as e:
            raise GatewayUnavailable(f"Razorpay order creation failed: {e}") from e

        return {
            "gateway_order_id": razorpay_order["id"],
            "razorpay_order_id": razorpay_order["id"],
            "razorpay_key": self.key_id,
        }

    def confirm(self, order: Order, payment_id: str, signature: Optional[str]) -> str:
        if not signature:
            logger.warning(f"Order {order.id}: missing Razorpay signature")
            return REJECTED

        # signature first, backend second
        try:
            self.client.utility.verify_payment_signature({
                "razorpay_order_id": order.gateway_order_id,
                "razorpay_payment_id": payment_id,
                "razorpay_signature": signature,
            })
        except razorpay.errors.SignatureVerificationError:
            logger.warning(f"Order {order.id}: Razorpay signature mismatch")
            return REJECTED

        try:
            payment = self.client.payment.fetch(payment_id)
        except (razorpay.errors.ServerError, razorpay.errors.GatewayError,
                requests.RequestException) as e:
            raise GatewayUnavailable(f"Razorpay payment lookup failed: {e}") from e
        except razorpay.errors.BadRequestError:
            logger.warning(f"Order {order.id}: Razorpay does not know payment {payment_id}")
            return REJECTED

        if payment.get("order_id") != order.gateway_order_id:
            logger.warning(f"Order {order.id}: payment {payment_id} belongs to another order")
            return REJECTED

        if int(payment.get("amount", 0)) != order.amount_minor:
            logger.warning(f"Order {order.id}: paid amount {payment.get('amount')} != {order.amount_minor}")
            return REJECTED

        status = payment.get("status")
        if status in RAZORPAY_PAID_STATUSES:
            return VERIFIED
        if status == "failed":
            return REJECTED

        raise PaymentStillProcessing(f"Razorpay payment {payment_id} is still {status}")


class StripeGateway:
    name = Gateway.stripe.value

    def __init__(self, secret_key: str, publishable_key: str, intents=None):
        self.secret_key = secret_key
        self.publishable_key = publishable_key
        # stripe.PaymentIntent, or a fake with the same create/retrieve calls
        self.intents = intents or stripe.PaymentIntent

    def open_checkout(self, order: Order, item: Item) -> Dict[str, Any]:
        try:
            intent = self.intents.create(
                amount=order.amount_minor,
                currency=order.currency.lower(),
                description=item.title,
                metadata={"order_id": order.id, "item_id": str(item.id)},
                api_key=self.secret_key,
            )
        except stripe.StripeError as e:
            raise GatewayUnavailable(f"Stripe intent creation failed: {e}") from e

        return {
            "gateway_order_id": intent["id"],
            "stripe_payment_intent_id": intent["id"],
            "client_secret": intent["client_secret"],
        }

    def confirm(self, order: Order, payment_id: str, signature: Optional[str]) -> str:
        if payment_id != order.gateway_order_id:
            logger.warning(f"Order {order.id}: intent {payment_id} was not issued for this order")
            return REJECTED

        try:
            intent = self.intents.retrieve(payment_id, api_key=self.secret_key)
        except stripe.InvalidRequestError:
            logger.warning(f"Order {order.id}: Stripe does not know intent {payment_id}")
            return REJECTED
        except stripe.StripeError as e:
            raise GatewayUnavailable(f"Stripe intent lookup failed: {e}") from e

        metadata = intent.get("metadata") or {}
        if metadata.get("order_id") != order.id:
            logger.warning(f"Order {order.id}: intent {payment_id} metadata points elsewhere")
            return REJECTED

        if int(intent.get("amount", 0)) != order.amount_minor or \
                str(intent.get("currency", "")).upper() != order.currency:
            logger.warning(f"Order {order.id}: intent amount/currency mismatch")
            return REJECTED

        status = intent.get("status")
        if status == "succeeded":
            return VERIFIED
        if status in STRIPE_FAILED_STATUSES:
            return REJECTED

        raise PaymentStillProcessing(f"Stripe intent {payment_id} is still {status}")


def build_gateway(
    payment_settings: Optional[PaymentSettings],
    gateway: str,
    require_enabled: bool = True,
):
    """
    Gateway for `gateway` from the current settings row, or GatewayNotConfigured.

    Verification passes require_enabled=False: an order opened before an admin
    switched a gateway off must still be verifiable with the stored keys.
    """
    if payment_settings is None:
        raise GatewayNotConfigured("Payments are not configured")

    if require_enabled and not payment_settings.payments_enabled:
        raise GatewayNotConfigured("Payments are disabled")

    if gateway == Gateway.razorpay.value:
        if require_enabled and not payment_settings.razorpay_enabled:
            raise GatewayNotConfigured("Razorpay is disabled")
        if not payment_settings.razorpay_key_id or not payment_settings.razorpay_key_secret:
            raise GatewayNotConfigured("Razorpay keys are missing")
        return RazorpayGateway(
            payment_settings.razorpay_key_id,
            payment_settings.razorpay_key_secret,
        )

    if gateway == Gateway.stripe.value:
        if require_enabled and not payment_settings.stripe_enabled:
            raise GatewayNotConfigured("Stripe is disabled")
        if not payment_settings.stripe_secret_key or not payment_settings.stripe_publishable_key:
            raise GatewayNotConfigured("Stripe keys are missing")
        return StripeGateway(
            payment_settings.stripe_secret_key,
            payment_settings.stripe_publishable_key,
        )

    raise GatewayNotConfigured(f"Unknown gateway {gateway}")
