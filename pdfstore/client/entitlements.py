"""
Download entitlements on the buyer's side.

Guests get a local record per item under the `purchased_items` key, valid
for GUEST_WINDOW from issuance. Account buyers get no local record: their
successful order on the server is the entitlement, and each download mints
a fresh signed link.

Remaining time is always `expires_at - now`; nothing counts down.
"""
import json
import logging
import math
import time
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, List, Optional

from pydantic import BaseModel, ValidationError as PydanticValidationError

from pdfstore.client.api import PaymentsApi
from pdfstore.client.errors import NoEntitlementError
from pdfstore.client.storage import KeyValueStore

logger = logging.getLogger(__name__)

PURCHASED_ITEMS_KEY = "purchased_items"
GUEST_WINDOW = timedelta(minutes=10)
POLL_INTERVAL = 1.0  # seconds


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class Entitlement(BaseModel):
    item_id: int
    order_id: str
    issued_at: datetime
    expires_at: datetime

    def is_live(self, now: datetime) -> bool:
        return now < self.expires_at

    def remaining_seconds(self, now: datetime) -> int:
        return max(0, math.ceil((self.expires_at - now).total_seconds()))


def issue_entitlement(item_id: int, order_id: str, now: datetime) -> Entitlement:
    # expires_at is fixed here and never recomputed
    return Entitlement(
        item_id=item_id,
        order_id=order_id,
        issued_at=now,
        expires_at=now + GUEST_WINDOW,
    )


def prune_expired(records: Dict[int, Entitlement], now: datetime) -> Dict[int, Entitlement]:
    return {item_id: e for item_id, e in records.items() if e.is_live(now)}


def format_countdown(seconds: int) -> str:
    if seconds <= 0:
        return "00:00"
    minutes, secs = divmod(int(seconds), 60)
    return f"{minutes:02d}:{secs:02d}"


@dataclass
class EntitlementCheck:
    entitlement: Optional[Entitlement]
    # the item had a record, and this check removed it as expired
    expired: bool = False


class EntitlementStore:
    """Keyed map item_id -> current guest entitlement, persisted as a JSON array."""

    def __init__(self, store: KeyValueStore, clock: Callable[[], datetime] = utc_now):
        self.store = store
        self.clock = clock

    def _load(self) -> Dict[int, Entitlement]:
        raw = self.store.get(PURCHASED_ITEMS_KEY)
        if not raw:
            return {}
        try:
            entries = json.loads(raw)
        except ValueError:
            logger.warning(f"Corrupt {PURCHASED_ITEMS_KEY}, discarding")
            return {}

        records: Dict[int, Entitlement] = {}
        for entry in entries if isinstance(entries, list) else []:
            try:
                entitlement = Entitlement(**entry)
            except (TypeError, PydanticValidationError):
                continue
            records[entitlement.item_id] = entitlement
        return records

    def _save(self, records: Dict[int, Entitlement]) -> None:
        payload = [json.loads(e.model_dump_json()) for e in records.values()]
        self.store.set(PURCHASED_ITEMS_KEY, json.dumps(payload))

    def grant(self, item_id: int, order_id: str) -> Entitlement:
        now = self.clock()
        records = prune_expired(self._load(), now)
        entitlement = issue_entitlement(item_id, order_id, now)
        records[item_id] = entitlement  # replaces any earlier purchase of the item
        self._save(records)
        logger.info(f"Entitlement for item {item_id} (order {order_id}) until {entitlement.expires_at}")
        return entitlement

    def check(self, item_id: int) -> EntitlementCheck:
        now = self.clock()
        records = self._load()
        live = prune_expired(records, now)
        if len(live) != len(records):
            self._save(live)

        if item_id in live:
            return EntitlementCheck(entitlement=live[item_id])
        return EntitlementCheck(entitlement=None, expired=item_id in records)

    def get(self, item_id: int) -> Optional[Entitlement]:
        return self.check(item_id).entitlement

    def all(self) -> List[Entitlement]:
        now = self.clock()
        records = self._load()
        live = prune_expired(records, now)
        if len(live) != len(records):
            self._save(live)
        return list(live.values())

    def revoke(self, item_id: int) -> None:
        records = self._load()
        if records.pop(item_id, None) is not None:
            self._save(records)


@dataclass
class DownloadStatus:
    available: bool
    order_id: Optional[str] = None
    remaining_seconds: Optional[int] = None
    expired: bool = False

    @property
    def countdown(self) -> Optional[str]:
        if self.remaining_seconds is None:
            return None
        return format_countdown(self.remaining_seconds)


class DownloadGate:
    """The only way a buyer gets at a purchased file."""

    def __init__(self, api: PaymentsApi, entitlements: EntitlementStore):
        self.api = api
        self.entitlements = entitlements

    def status(self, item_id: int, token: Optional[str] = None) -> DownloadStatus:
        check = self.entitlements.check(item_id)
        if check.entitlement:
            e = check.entitlement
            return DownloadStatus(
                available=True,
                order_id=e.order_id,
                remaining_seconds=e.remaining_seconds(self.entitlements.clock()),
            )

        if token:
            order_id = self.api.owned_order_id(item_id, token)
            if order_id:
                return DownloadStatus(available=True, order_id=order_id)

        return DownloadStatus(available=False, expired=check.expired)

    def download(self, item_id: int, token: Optional[str] = None) -> str:
        """
        A fresh URL for the item's file. Guests get the server-mediated
        download address for their order; account buyers get a newly
        signed short-lived link.
        """
        entitlement = self.entitlements.get(item_id)
        if entitlement:
            return self.api.download_url(entitlement.order_id)

        if token:
            order_id = self.api.owned_order_id(item_id, token)
            if order_id:
                return self.api.download_link(order_id, token)["url"]

        raise NoEntitlementError()


@dataclass
class CountdownTick:
    remaining_seconds: int
    expired: bool

    @property
    def label(self) -> str:
        return format_countdown(self.remaining_seconds)


class CountdownWatcher:
    """
    Re-evaluates a guest entitlement while a download view is open.

    Each tick reads the wall clock, so a late or skipped tick (suspended tab,
    sleeping laptop) still lands on the right remaining time.
    """

    def __init__(self, entitlements: EntitlementStore, item_id: int):
        self.entitlements = entitlements
        self.item_id = item_id
        self.expired = False

    def tick(self) -> CountdownTick:
        check = self.entitlements.check(self.item_id)
        if check.entitlement is None:
            if check.expired:
                logger.info(f"Entitlement for item {self.item_id} expired")
            self.expired = True
            return CountdownTick(remaining_seconds=0, expired=True)

        remaining = check.entitlement.remaining_seconds(self.entitlements.clock())
        return CountdownTick(remaining_seconds=remaining, expired=False)

    def run(
        self,
        on_tick: Callable[[CountdownTick], None] = None,
        is_open: Callable[[], bool] = lambda: True,
        sleep: Callable[[float], None] = time.sleep,
        interval: float = POLL_INTERVAL,
    ) -> CountdownTick:
        tick = self.tick()
        while True:
            if on_tick:
                on_tick(tick)
            if tick.expired or not is_open():
                return tick
            sleep(interval)
            tick = self.tick()
