"""Buyer-side checkout: the purchase modal and the download gate."""
from pdfstore.client.adapters import (
    CardGatewayAdapter,
    CheckoutOrder,
    HostedCheckout,
    PaymentAbandoned,
    PaymentCompleted,
    RegionalGatewayAdapter,
)
from pdfstore.client.api import PaymentsApi
from pdfstore.client.entitlements import (
    CountdownWatcher,
    DownloadGate,
    Entitlement,
    EntitlementStore,
    format_countdown,
    prune_expired,
)
from pdfstore.client.errors import (
    CheckoutError,
    CheckoutInProgressError,
    ConfigurationError,
    NoEntitlementError,
    TransientError,
    ValidationError,
    VerificationRejected,
)
from pdfstore.client.gateway_config import (
    Availability,
    GatewayConfigProvider,
    GatewaySettings,
    select_gateway,
)
from pdfstore.client.orchestrator import (
    AccountBuyer,
    CheckoutState,
    GuestBuyer,
    Item,
    PurchaseFlow,
    PurchaseResult,
)
from pdfstore.client.pending_purchase import PendingPurchase, PendingPurchaseBridge
from pdfstore.client.storage import JsonFileStore, KeyValueStore, MemoryStore
