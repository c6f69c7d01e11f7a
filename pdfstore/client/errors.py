class CheckoutError(Exception):
    """Base class for everything the purchase modal can surface to a buyer."""

    message = "Something went wrong. Please try again."

    def __init__(self, detail: str = None):
        super().__init__(detail or self.message)
        self.detail = detail or self.message


class ConfigurationError(CheckoutError):
    """Gateway settings missing or unusable. Never falls back to a default gateway."""

    message = "Payment is not configured. Please contact support."


class ValidationError(CheckoutError):
    """Buyer input rejected before any network call."""

    message = "Please enter a valid email address"


class VerificationRejected(CheckoutError):
    """The gateway backend says the payment did not complete. Terminal."""

    message = "Payment failed"


class TransientError(CheckoutError):
    """Network or server trouble. The same order can be verified again later."""

    message = "Payment could not be confirmed right now. Please try again."


class CheckoutInProgressError(CheckoutError):
    message = "A payment is already in progress"


class NoEntitlementError(CheckoutError):
    """Download requested without a live entitlement for the item."""

    message = "No valid purchase found. Please complete payment first."
