"""Feed sources - where OracleFeedCache pulls and subscribes price updates."""

from __future__ import annotations

from typing import Callable, Protocol

import structlog

from predengine.errors import FeedDecodeError, InvalidInputError, NetworkError
from predengine.models.feed import PriceFeedEntry
from predengine.network.base import LedgerClient
from predengine.oracle.codec import decode_price_account

log = structlog.get_logger(__name__)

FeedCallback = Callable[[PriceFeedEntry], None]
ErrorCallback = Callable[[Exception], None]


class FeedSource(Protocol):
    """Pull (fetch) and push (subscribe) access to price feeds."""

    async def fetch(self, symbol: str) -> PriceFeedEntry: ...
    async def subscribe(
        self, symbol: str, callback: FeedCallback, on_error: ErrorCallback | None = None
    ) -> int: ...
    async def unsubscribe(self, subscription_id: int) -> None: ...


class LedgerFeedSource:
    """Reads price accounts through a LedgerClient. feed_accounts maps symbol -> account address."""

    def __init__(self, client: LedgerClient, feed_accounts: dict[str, str]) -> None:
        self.client = client
        self.feed_accounts = dict(feed_accounts)

    def account_for(self, symbol: str) -> str:
        try:
            return self.feed_accounts[symbol]
        except KeyError:
            raise InvalidInputError(f"no feed account configured for {symbol!r}") from None

    async def fetch(self, symbol: str) -> PriceFeedEntry:
        account = self.account_for(symbol)
        data = await self.client.get_account_data(account)
        if data is None:
            raise NetworkError(f"price account {account} for {symbol} not found")
        try:
            return decode_price_account(symbol, data)
        except FeedDecodeError as e:
            raise NetworkError(str(e)) from e

    async def subscribe(
        self, symbol: str, callback: FeedCallback, on_error: ErrorCallback | None = None
    ) -> int:
        account = self.account_for(symbol)

        def on_change(data: bytes) -> None:
            try:
                entry = decode_price_account(symbol, data)
            except FeedDecodeError as e:
                log.warning("feed_push_decode_failed", symbol=symbol, error=str(e))
                if on_error is not None:
                    on_error(e)
                return
            callback(entry)

        return await self.client.on_account_change(account, on_change)

    async def unsubscribe(self, subscription_id: int) -> None:
        await self.client.remove_account_listener(subscription_id)
