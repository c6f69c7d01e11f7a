import logging
from enum import Enum
from typing import Optional

from pydantic import BaseModel

from pdfstore.client.api import PaymentsApi

logger = logging.getLogger(__name__)

CARD_GATEWAY = "stripe"
REGIONAL_GATEWAY = "razorpay"


class GatewaySettings(BaseModel):
    payments_enabled: bool = False
    razorpay_enabled: bool = False
    razorpay_key_id: Optional[str] = None
    stripe_enabled: bool = False
    stripe_publishable_key: Optional[str] = None
    currency: str = "INR"


class Availability(str, Enum):
    not_configured = "not_configured"
    payments_disabled = "payments_disabled"
    no_method = "no_method"
    ready = "ready"


AVAILABILITY_MESSAGES = {
    Availability.not_configured: (
        "Payments Not Configured",
        "Payment settings haven't been configured yet. Please contact admin.",
    ),
    Availability.payments_disabled: (
        "Payments Temporarily Disabled",
        "Payments are currently disabled. Please contact support for more information.",
    ),
    Availability.no_method: (
        "No Payment Methods Available",
        "No payment gateways are currently enabled. Please contact support.",
    ),
}


def select_gateway(settings: Optional[GatewaySettings]) -> Optional[str]:
    """Card gateway wins when both are on. None when nothing is usable."""
    if settings is None or not settings.payments_enabled:
        return None
    if settings.stripe_enabled:
        return CARD_GATEWAY
    if settings.razorpay_enabled:
        return REGIONAL_GATEWAY
    return None


def availability(settings: Optional[GatewaySettings]) -> Availability:
    if settings is None:
        return Availability.not_configured
    if not settings.payments_enabled:
        return Availability.payments_disabled
    if not settings.stripe_enabled and not settings.razorpay_enabled:
        return Availability.no_method
    return Availability.ready


class GatewayConfigProvider:
    """
    Loads gateway settings from the server. Every load replaces the previous
    answer, so selection always reflects the latest settings.
    """

    def __init__(self, api: PaymentsApi):
        self.api = api
        self.settings: Optional[GatewaySettings] = None
        self.loaded = False

    def load(self) -> Optional[GatewaySettings]:
        raw = self.api.get_settings()
        self.settings = GatewaySettings(**raw) if raw is not None else None
        self.loaded = True
        logger.info(f"Payment settings loaded: {self.availability().value}")
        return self.settings

    def availability(self) -> Availability:
        return availability(self.settings)

    def preferred_gateway(self) -> Optional[str]:
        return select_gateway(self.settings)

    def enabled_gateways(self):
        if self.availability() != Availability.ready:
            return []
        gateways = []
        if self.settings.stripe_enabled:
            gateways.append(CARD_GATEWAY)
        if self.settings.razorpay_enabled:
            gateways.append(REGIONAL_GATEWAY)
        return gateways
