"""Shared fakes: pinned clock, in-memory feed source, scripted ledger client."""

from __future__ import annotations

import asyncio
from collections import Counter

import pytest

from predengine.errors import NetworkError
from predengine.models import FeedStatus, PriceFeedEntry
from predengine.network.base import ConfirmationStatus, Receipt, TransferRequest

T0 = 1_700_000_000_000


class FakeClock:
    def __init__(self, now: int = T0) -> None:
        self.now = now

    def __call__(self) -> int:
        return self.now


class FakeSource:
    """FeedSource with per-symbol entries, network failures, crashes, hangs and an optional gate on fetch."""

    def __init__(self) -> None:
        self.entries: dict[str, PriceFeedEntry] = {}
        self.calls: Counter[str] = Counter()
        self.failing: set[str] = set()
        self.hanging: set[str] = set()
        self.broken: set[str] = set()
        self.gate: asyncio.Event | None = None
        self.listeners: dict[int, tuple] = {}
        self.unsubscribed: list[int] = []
        self._next_id = 0

    def put(self, symbol: str, price: float, timestamp: int = T0, status: str = "active") -> PriceFeedEntry:
        entry = PriceFeedEntry(
            symbol=symbol, price=price, timestamp=timestamp, confidence=0.95, status=FeedStatus(status)
        )
        self.entries[symbol] = entry
        return entry

    async def fetch(self, symbol: str) -> PriceFeedEntry:
        self.calls[symbol] += 1
        if self.gate is not None:
            await self.gate.wait()
        if symbol in self.hanging:
            await asyncio.sleep(3600)
        if symbol in self.broken:
            raise RuntimeError(f"source bug for {symbol}")
        if symbol in self.failing or symbol not in self.entries:
            raise NetworkError(f"fetch failed for {symbol}")
        return self.entries[symbol]

    async def subscribe(self, symbol, callback, on_error=None) -> int:
        self._next_id += 1
        self.listeners[self._next_id] = (symbol, callback, on_error)
        return self._next_id

    async def unsubscribe(self, subscription_id: int) -> None:
        self.listeners.pop(subscription_id, None)
        self.unsubscribed.append(subscription_id)

    def push(self, entry: PriceFeedEntry) -> None:
        for symbol, callback, _ in list(self.listeners.values()):
            if symbol == entry.symbol:
                callback(entry)


class FakeLedgerClient:
    """LedgerClient with scripted balances, account data and confirmation outcome."""

    def __init__(self) -> None:
        self.balances: dict[str, float] = {}
        self.accounts: dict[str, bytes] = {}
        self.confirm_status = ConfirmationStatus.COMMITTED
        self.submit_error: Exception | None = None
        self.submitted: list[TransferRequest] = []
        self.listeners: dict[int, tuple] = {}
        self.removed: list[int] = []
        self._next_id = 0

    async def get_balance(self, account: str) -> float:
        return self.balances.get(account, 0.0)

    async def get_account_data(self, account: str) -> bytes | None:
        return self.accounts.get(account)

    async def submit(self, request: TransferRequest) -> Receipt:
        if self.submit_error is not None:
            raise self.submit_error
        self.submitted.append(request)
        return Receipt(signature=f"sig{len(self.submitted)}")

    async def confirm(self, receipt: Receipt) -> ConfirmationStatus:
        return self.confirm_status

    async def on_account_change(self, account: str, callback) -> int:
        self._next_id += 1
        self.listeners[self._next_id] = (account, callback)
        return self._next_id

    async def remove_account_listener(self, subscription_id: int) -> None:
        self.listeners.pop(subscription_id, None)
        self.removed.append(subscription_id)

    def notify(self, account: str, data: bytes) -> None:
        for acct, callback in list(self.listeners.values()):
            if acct == account:
                callback(data)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def source():
    return FakeSource()


@pytest.fixture
def ledger_client():
    return FakeLedgerClient()
