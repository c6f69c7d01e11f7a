import json
import logging
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ValidationError as PydanticValidationError

from pdfstore.client.storage import KeyValueStore

logger = logging.getLogger(__name__)

PENDING_PURCHASE_KEY = "pendingPurchase"
LOGIN_PATH = "/login"


class PendingPurchase(BaseModel):
    item_id: int
    item_title: str
    item_price: float

    @property
    def item_path(self) -> str:
        return f"/pdf/{self.item_id}"


class BridgeState(str, Enum):
    none = "none"
    saved = "saved"
    consumed = "consumed"


class PendingPurchaseBridge:
    """
    Carries a guest's purchase across the login redirect.

    `save` before navigating to login, `redirect_target` on the login page
    once authenticated, `consume` on the item page to reopen checkout. The
    record lives in the session-scoped store, so consuming it is final even
    if the page reloads.
    """

    def __init__(self, store: KeyValueStore):
        self.store = store
        self._consumed = False

    @property
    def state(self) -> BridgeState:
        if self.peek() is not None:
            return BridgeState.saved
        return BridgeState.consumed if self._consumed else BridgeState.none

    def save(self, intent: PendingPurchase) -> str:
        # at most one pending purchase; a newer one replaces the old
        self.store.set(PENDING_PURCHASE_KEY, intent.model_dump_json())
        self._consumed = False
        logger.info(f"Pending purchase saved for item {intent.item_id}")
        return LOGIN_PATH

    def peek(self) -> Optional[PendingPurchase]:
        raw = self.store.get(PENDING_PURCHASE_KEY)
        if not raw:
            return None
        try:
            return PendingPurchase(**json.loads(raw))
        except (ValueError, TypeError, PydanticValidationError):
            logger.warning("Unreadable pending purchase, discarding")
            self.store.remove(PENDING_PURCHASE_KEY)
            return None

    def redirect_target(self, user_id: Optional[int]) -> Optional[str]:
        """Where the login page should send an authenticated buyer, if anywhere."""
        if user_id is None:
            return None
        intent = self.peek()
        return intent.item_path if intent else None

    def consume(self, item_id: int, user_id: Optional[int]) -> Optional[PendingPurchase]:
        """
        Hand back the saved intent for this item page and erase it. Only an
        authenticated buyer on the matching item page consumes it.
        """
        if user_id is None:
            return None
        intent = self.peek()
        if intent is None or intent.item_id != item_id:
            return None

        self.store.remove(PENDING_PURCHASE_KEY)
        self._consumed = True
        logger.info(f"Pending purchase for item {item_id} resumed by user {user_id}")
        return intent
