"""
The purchase modal: one checkout at a time, driven through

    idle -> processing -> verifying -> success | failure

processing covers order creation and the hosted checkout, verifying covers
the server round trip. Entitlement is only written after the server says
the order is paid.
"""
import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional, Union

from pdfstore.client.adapters import (
    CheckoutOrder,
    PaymentAbandoned,
    PaymentCompleted,
)
from pdfstore.client.api import PaymentsApi
from pdfstore.client.entitlements import Entitlement, EntitlementStore
from pdfstore.client.errors import (
    CheckoutError,
    CheckoutInProgressError,
    ConfigurationError,
    TransientError,
    ValidationError,
    VerificationRejected,
)
from pdfstore.client.gateway_config import (
    AVAILABILITY_MESSAGES,
    Availability,
    GatewayConfigProvider,
)
from pdfstore.client.pending_purchase import PendingPurchase, PendingPurchaseBridge

logger = logging.getLogger(__name__)

EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")

CANCELLED_MESSAGE = "Payment cancelled"
SUCCESS_MESSAGE = "Payment successful! Your PDF is ready for download."


class CheckoutState(str, Enum):
    idle = "idle"
    processing = "processing"
    verifying = "verifying"
    success = "success"
    failure = "failure"


@dataclass(frozen=True)
class Item:
    id: int
    title: str
    price: float


@dataclass(frozen=True)
class GuestBuyer:
    email: str


@dataclass(frozen=True)
class AccountBuyer:
    user_id: int
    token: str
    email: Optional[str] = None
    name: Optional[str] = None


Buyer = Union[GuestBuyer, AccountBuyer]


@dataclass
class PurchaseResult:
    state: CheckoutState
    message: str
    order_id: Optional[str] = None
    entitlement: Optional[Entitlement] = None
    download_url: Optional[str] = None
    retryable: bool = False


@dataclass
class _AwaitingVerification:
    item: Item
    buyer: Buyer
    order: CheckoutOrder
    payment: PaymentCompleted


def validate_buyer(buyer: Buyer) -> None:
    if isinstance(buyer, GuestBuyer):
        email = (buyer.email or "").strip()
        if not EMAIL_RE.match(email):
            raise ValidationError("Please enter a valid email address")
        return

    if isinstance(buyer, AccountBuyer):
        if buyer.user_id is None or not buyer.token:
            raise ValidationError("Please log in again to continue")
        return

    raise ValidationError("A buyer is required")


class PurchaseFlow:
    def __init__(
        self,
        api: PaymentsApi,
        config: GatewayConfigProvider,
        adapters: Dict[str, object],
        entitlements: EntitlementStore,
        bridge: Optional[PendingPurchaseBridge] = None,
    ):
        self.api = api
        self.config = config
        self.adapters = adapters
        self.entitlements = entitlements
        self.bridge = bridge

        self.state = CheckoutState.idle
        self.selected_gateway: Optional[str] = None
        self.last_result: Optional[PurchaseResult] = None
        self._awaiting: Optional[_AwaitingVerification] = None

    # -- settings ---------------------------------------------------------

    def open(self) -> Availability:
        """Load settings and pick the default gateway, as the modal does on mount."""
        self.config.load()
        self.selected_gateway = self.config.preferred_gateway()
        return self.config.availability()

    def availability_message(self):
        return AVAILABILITY_MESSAGES.get(self.config.availability())

    def choose_gateway(self, gateway: str) -> None:
        if gateway not in self.config.enabled_gateways():
            raise ConfigurationError(f"{gateway} is not available")
        self.selected_gateway = gateway

    def _require_gateway(self) -> str:
        # re-read on every attempt: an admin may have switched a gateway off since open()
        self.config.load()
        availability = self.config.availability()
        if availability != Availability.ready:
            title, _ = AVAILABILITY_MESSAGES[availability]
            raise ConfigurationError(title)

        # settings may have changed since the buyer picked one
        if self.selected_gateway not in self.config.enabled_gateways():
            self.selected_gateway = self.config.preferred_gateway()

        if self.selected_gateway not in self.adapters:
            raise ConfigurationError(f"No checkout available for {self.selected_gateway}")
        return self.selected_gateway

    # -- entry points -----------------------------------------------------

    def buy_as_guest(self, item: Item, email: str) -> PurchaseResult:
        return self.purchase(item, GuestBuyer(email=(email or "").strip()))

    def buy_as_user(self, item: Item, buyer: AccountBuyer) -> PurchaseResult:
        return self.purchase(item, buyer)

    def login_and_buy(self, item: Item) -> str:
        """Guest chose to log in first. Returns the path to navigate to."""
        if self.bridge is None:
            raise ConfigurationError("Login redirect is not available")
        self._ensure_not_busy()
        return self.bridge.save(PendingPurchase(
            item_id=item.id,
            item_title=item.title,
            item_price=item.price,
        ))

    def resume_pending(self, item_id: int, buyer: AccountBuyer) -> Optional[PurchaseResult]:
        """On the item page after login: reopen checkout for a saved intent, once."""
        if self.bridge is None:
            return None
        intent = self.bridge.consume(item_id, buyer.user_id)
        if intent is None:
            return None
        item = Item(id=intent.item_id, title=intent.item_title, price=intent.item_price)
        return self.buy_as_user(item, buyer)

    # -- the flow ---------------------------------------------------------

    def _ensure_not_busy(self):
        if self.state in (CheckoutState.processing, CheckoutState.verifying):
            raise CheckoutInProgressError()

    def create_order(self, item: Item, buyer: Buyer, gateway: str) -> CheckoutOrder:
        validate_buyer(buyer)

        is_guest = isinstance(buyer, GuestBuyer)
        payload = {
            "item_id": item.id,
            "amount": item.price,
            "purchase_type": "guest" if is_guest else "user",
            "guest_email": buyer.email if is_guest else None,
            "user_id": None if is_guest else buyer.user_id,
            "payment_gateway": gateway,
        }
        data = self.api.create_order(payload, token=None if is_guest else buyer.token)

        correlation = {
            k: v for k, v in data.items()
            if k not in ("order_id", "gateway", "amount", "currency")
        }
        return CheckoutOrder(
            order_id=data["order_id"],
            gateway=data.get("gateway", gateway),
            amount=data.get("amount", item.price),
            currency=data.get("currency", "INR"),
            item_title=item.title,
            buyer_email=buyer.email,
            buyer_name=None if is_guest else buyer.name,
            correlation=correlation,
        )

    def purchase(self, item: Item, buyer: Buyer) -> PurchaseResult:
        self._ensure_not_busy()

        # local checks first: nothing below runs for a bad email or missing key
        validate_buyer(buyer)
        gateway = self._require_gateway()
        adapter = self.adapters[gateway]
        preflight = getattr(adapter, "preflight", None)
        if preflight:
            preflight()

        self.state = CheckoutState.processing
        self._awaiting = None
        order = None
        try:
            order = self.create_order(item, buyer, gateway)
            outcome = adapter.initiate(order)
        except ConfigurationError:
            self.state = CheckoutState.idle
            raise
        except CheckoutError as e:
            return self._finish(
                CheckoutState.failure,
                e.detail,
                order_id=order.order_id if order else None,
                retryable=True,
            )
        except Exception:
            self.state = CheckoutState.failure
            raise

        if isinstance(outcome, PaymentAbandoned):
            # cancellation, not a failure; verification is never contacted
            return self._finish(CheckoutState.idle, CANCELLED_MESSAGE, order_id=order.order_id)

        self._awaiting = _AwaitingVerification(
            item=item, buyer=buyer, order=order, payment=outcome
        )
        return self._verify()

    def retry_verification(self) -> PurchaseResult:
        """Re-verify the last paid-but-unconfirmed order; never creates a new one."""
        self._ensure_not_busy()
        if self._awaiting is None:
            raise CheckoutError("Nothing to verify")
        return self._verify()

    def _verify(self) -> PurchaseResult:
        awaiting = self._awaiting
        order, payment = awaiting.order, awaiting.payment
        buyer = awaiting.buyer
        self.state = CheckoutState.verifying

        try:
            response = self.api.verify_payment(
                {
                    "order_id": order.order_id,
                    "payment_gateway": payment.gateway,
                    "payment_id": payment.reference,
                    "signature": payment.signature,
                },
                token=None if isinstance(buyer, GuestBuyer) else buyer.token,
            )

            if not response.get("success"):
                self._awaiting = None
                logger.warning(f"Order {order.order_id} rejected by verification")
                return self._finish(
                    CheckoutState.failure, VerificationRejected.message, order_id=order.order_id
                )

            entitlement = None
            download_url = None
            if isinstance(buyer, GuestBuyer):
                entitlement = self.entitlements.grant(awaiting.item.id, order.order_id)
                download_url = self.api.download_url(order.order_id)
        except TransientError as e:
            return self._finish(
                CheckoutState.failure, e.detail, order_id=order.order_id, retryable=True
            )
        except CheckoutError as e:
            self._awaiting = None
            return self._finish(CheckoutState.failure, e.detail, order_id=order.order_id)
        except Exception:
            # order may already be paid; keep it so retry_verification can finish the job
            logger.exception(f"Order {order.order_id}: verification could not be completed")
            return self._finish(
                CheckoutState.failure,
                TransientError.message,
                order_id=order.order_id,
                retryable=True,
            )

        self._awaiting = None
        return self._finish(
            CheckoutState.success,
            SUCCESS_MESSAGE,
            order_id=order.order_id,
            entitlement=entitlement,
            download_url=download_url,
        )

    def _finish(self, state: CheckoutState, message: str, **kwargs) -> PurchaseResult:
        self.state = state
        result = PurchaseResult(state=state, message=message, **kwargs)
        self.last_result = result
        logger.info(f"Checkout {state.value}: {message}")
        return result

    def reset(self) -> None:
        """Close the modal. Refused while a payment is in flight."""
        self._ensure_not_busy()
        self.state = CheckoutState.idle
        self._awaiting = None
        self.last_result = None
