"""Per-symbol price cache with freshness tracking, single-flight refresh, polling and push updates."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from functools import partial
from typing import Callable

import structlog

from predengine.clock import Clock, now_ms
from predengine.errors import InvalidInputError, NetworkError, PredEngineError, StaleDataError
from predengine.models.feed import FeedHealth, FeedStatus, PriceFeedEntry
from predengine.oracle.source import FeedSource

log = structlog.get_logger(__name__)

DEFAULT_MAX_AGE_MS = 60_000


@dataclass
class SubscriptionHandle:
    """Returned by subscribe(); pass to unsubscribe()."""

    symbol: str
    subscription_id: int
    active: bool = True


class OracleFeedCache:
    """
    Serves the freshest known price per symbol.

    Updates from any path (poll, get-triggered refresh, push) are applied only when their source
    timestamp is strictly newer than the cached one, so a slow poll never overwrites a newer push.
    Refresh per symbol is single-flight. Fetch failures are recorded in health(), not raised to
    unrelated callers.
    """

    def __init__(
        self,
        source: FeedSource,
        *,
        max_age_ms: int = DEFAULT_MAX_AGE_MS,
        fetch_timeout_sec: float = 10.0,
        clock: Clock = now_ms,
    ) -> None:
        self.source = source
        self.max_age_ms = max_age_ms
        self.fetch_timeout_sec = fetch_timeout_sec
        self.clock = clock
        self._entries: dict[str, PriceFeedEntry] = {}
        self._inflight: dict[str, asyncio.Task[PriceFeedEntry]] = {}
        self._failures: dict[str, str] = {}
        self._tracked: set[str] = set()
        self._handles: list[SubscriptionHandle] = []
        self._poll_task: asyncio.Task[None] | None = None
        self._poll_symbols: list[str] = []
        self._poll_interval_sec = 0.0

    # -- freshness ---------------------------------------------------------

    def _is_expired(self, entry: PriceFeedEntry, now: int) -> bool:
        return entry.age_ms(now) >= self.max_age_ms

    def _classify(self, entry: PriceFeedEntry, now: int) -> PriceFeedEntry:
        """Inactive wins; otherwise an expired entry reads as stale."""
        if entry.status is FeedStatus.INACTIVE or entry.status is FeedStatus.STALE:
            return entry
        if self._is_expired(entry, now):
            return entry.model_copy(update={"status": FeedStatus.STALE})
        return entry

    def _needs_refresh(self, symbol: str, now: int) -> bool:
        entry = self._entries.get(symbol)
        return entry is None or self._is_expired(entry, now)

    # -- writes ------------------------------------------------------------

    def _apply(self, entry: PriceFeedEntry) -> bool:
        """Last-writer-wins by source timestamp. Returns True if the entry replaced the cached one."""
        current = self._entries.get(entry.symbol)
        if current is not None and entry.timestamp <= current.timestamp:
            log.debug(
                "feed_update_ignored",
                symbol=entry.symbol,
                incoming_ts=entry.timestamp,
                cached_ts=current.timestamp,
            )
            return False
        self._entries[entry.symbol] = entry
        self._failures.pop(entry.symbol, None)
        return True

    def _record_failure(self, symbol: str, error: BaseException) -> None:
        self._failures[symbol] = str(error) or type(error).__name__

    async def _fetch(self, symbol: str) -> PriceFeedEntry:
        try:
            entry = await asyncio.wait_for(self.source.fetch(symbol), timeout=self.fetch_timeout_sec)
        except TimeoutError:
            err = NetworkError(f"fetch for {symbol} timed out after {self.fetch_timeout_sec}s")
            self._record_failure(symbol, err)
            log.warning("feed_fetch_timeout", symbol=symbol, timeout_sec=self.fetch_timeout_sec)
            raise err from None
        except (NetworkError, InvalidInputError) as e:
            self._record_failure(symbol, e)
            log.warning("feed_fetch_failed", symbol=symbol, error=str(e))
            raise
        except Exception as e:
            err = NetworkError(f"fetch for {symbol} failed: {type(e).__name__}: {e}")
            self._record_failure(symbol, err)
            log.warning("feed_fetch_error", symbol=symbol, error=repr(e))
            raise err from e
        if not isinstance(entry, PriceFeedEntry):
            err = NetworkError(f"source returned {type(entry).__name__} for {symbol!r}")
            self._record_failure(symbol, err)
            raise err
        if entry.symbol != symbol:
            err = NetworkError(f"source returned {entry.symbol!r} for {symbol!r}")
            self._record_failure(symbol, err)
            raise err
        if not self._apply(entry):
            self._failures.pop(symbol, None)
        return self._classify(self._entries[symbol], self.clock())

    def _on_refresh_done(self, symbol: str, task: asyncio.Task[PriceFeedEntry]) -> None:
        if self._inflight.get(symbol) is task:
            del self._inflight[symbol]
        if not task.cancelled() and task.exception() is not None:
            # Failure already recorded by _fetch; background refreshes have no awaiter.
            log.debug("feed_refresh_done_with_error", symbol=symbol)

    def _ensure_refresh(self, symbol: str) -> asyncio.Task[PriceFeedEntry]:
        task = self._inflight.get(symbol)
        if task is None:
            task = asyncio.get_running_loop().create_task(self._fetch(symbol))
            self._inflight[symbol] = task
            task.add_done_callback(partial(self._on_refresh_done, symbol))
        return task

    # -- reads -------------------------------------------------------------

    async def get(self, symbol: str) -> PriceFeedEntry | None:
        """
        Cached entry if fresh. Otherwise start a background refresh (single-flight) and return the
        previous entry marked stale, or None if the symbol was never fetched. Never waits on the network.
        """
        self._tracked.add(symbol)
        now = self.clock()
        entry = self._entries.get(symbol)
        if entry is not None and not self._is_expired(entry, now):
            return entry
        self._ensure_refresh(symbol)
        if entry is None:
            return None
        if entry.status is FeedStatus.ACTIVE:
            entry = entry.model_copy(update={"status": FeedStatus.STALE})
            self._entries[symbol] = entry
            log.info("feed_marked_stale", symbol=symbol, age_ms=entry.age_ms(now))
        return entry

    def peek(self, symbol: str, *, require_fresh: bool = False) -> PriceFeedEntry | None:
        """Read without triggering a refresh. require_fresh raises StaleDataError unless active and fresh."""
        entry = self._entries.get(symbol)
        if entry is None:
            if require_fresh:
                raise StaleDataError(f"no price for {symbol}")
            return None
        entry = self._classify(entry, self.clock())
        if require_fresh and entry.status is not FeedStatus.ACTIVE:
            raise StaleDataError(f"price for {symbol} is {entry.status.value}")
        return entry

    async def refresh(self, symbol: str) -> PriceFeedEntry:
        """Fetch now, sharing any in-flight fetch for the same symbol. Raises NetworkError on failure."""
        self._tracked.add(symbol)
        return await asyncio.shield(self._ensure_refresh(symbol))

    async def get_many(self, symbols: list[str]) -> dict[str, PriceFeedEntry]:
        """Refresh stale/absent symbols concurrently. One failing symbol does not affect the others."""
        unique = list(dict.fromkeys(symbols))
        self._tracked.update(unique)
        now = self.clock()
        due = [s for s in unique if self._needs_refresh(s, now)]
        results = await asyncio.gather(*(self.refresh(s) for s in due), return_exceptions=True)
        for symbol, result in zip(due, results):
            if isinstance(result, PredEngineError):
                log.warning("feed_get_many_partial", symbol=symbol, error=str(result))
            elif isinstance(result, BaseException):
                raise result
        out: dict[str, PriceFeedEntry] = {}
        for symbol in unique:
            entry = self.peek(symbol)
            if entry is not None:
                out[symbol] = entry
        return out

    # -- push --------------------------------------------------------------

    async def subscribe(
        self, symbol: str, on_update: Callable[[PriceFeedEntry], None]
    ) -> SubscriptionHandle:
        """Listen for pushed updates. on_update fires only for updates newer than the cached entry."""
        handle_ref: list[SubscriptionHandle] = []

        def on_push(entry: PriceFeedEntry) -> None:
            if handle_ref and not handle_ref[0].active:
                return
            if self._apply(entry):
                on_update(entry)

        def on_error(error: Exception) -> None:
            self._record_failure(symbol, error)

        subscription_id = await self.source.subscribe(symbol, on_push, on_error)
        handle = SubscriptionHandle(symbol=symbol, subscription_id=subscription_id)
        handle_ref.append(handle)
        self._handles.append(handle)
        self._tracked.add(symbol)
        log.info("feed_subscribed", symbol=symbol, subscription_id=subscription_id)
        return handle

    async def unsubscribe(self, handle: SubscriptionHandle) -> None:
        """Release a subscription. Safe to call more than once."""
        if not handle.active:
            return
        handle.active = False
        if handle in self._handles:
            self._handles.remove(handle)
        await self.source.unsubscribe(handle.subscription_id)
        log.info("feed_unsubscribed", symbol=handle.symbol, subscription_id=handle.subscription_id)

    # -- polling -----------------------------------------------------------

    @property
    def polling(self) -> bool:
        return self._poll_task is not None and not self._poll_task.done()

    async def start_polling(self, symbols: list[str], interval_sec: float) -> None:
        """
        Refresh stale or absent feeds every interval_sec. A second call while polling replaces the
        symbol set and interval of the running loop rather than starting another one.
        """
        if interval_sec <= 0:
            raise InvalidInputError(f"interval_sec must be > 0, got {interval_sec}")
        self._poll_symbols = list(dict.fromkeys(symbols))
        self._poll_interval_sec = interval_sec
        self._tracked.update(self._poll_symbols)
        if self.polling:
            log.info("polling_updated", symbols=self._poll_symbols, interval_sec=interval_sec)
            return
        self._poll_task = asyncio.get_running_loop().create_task(self._poll_loop())
        log.info("polling_started", symbols=self._poll_symbols, interval_sec=interval_sec)

    async def stop_polling(self) -> None:
        """Cancel the polling loop. No-op if not polling."""
        task, self._poll_task = self._poll_task, None
        if task is None or task.done():
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        log.info("polling_stopped")

    async def _poll_one(self, symbol: str) -> None:
        try:
            await self.refresh(symbol)
        except PredEngineError as e:
            # Recorded in health by _fetch; polling keeps going.
            log.warning("feed_poll_failed", symbol=symbol, error=str(e))

    async def _poll_loop(self) -> None:
        while True:
            now = self.clock()
            due = [s for s in self._poll_symbols if self._needs_refresh(s, now)]
            if due:
                await asyncio.gather(*(self._poll_one(s) for s in due))
            await asyncio.sleep(self._poll_interval_sec)

    # -- status ------------------------------------------------------------

    def health(self) -> FeedHealth:
        now = self.clock()
        stale: list[str] = []
        inactive: list[str] = []
        for symbol in sorted(self._tracked | set(self._entries)):
            entry = self._entries.get(symbol)
            if entry is None:
                stale.append(symbol)
                continue
            status = self._classify(entry, now).status
            if status is FeedStatus.INACTIVE:
                inactive.append(symbol)
            elif status is FeedStatus.STALE:
                stale.append(symbol)
        return FeedHealth(
            healthy=not stale and not inactive,
            stale_symbols=stale,
            inactive_symbols=inactive,
            failed_symbols=dict(self._failures),
        )

    def validate(self, symbol: str, expected_price: float, tolerance: float = 0.05) -> bool:
        """True iff a cached, active, fresh entry is within tolerance of expected_price."""
        if expected_price <= 0:
            raise InvalidInputError(f"expected_price must be > 0, got {expected_price}")
        if tolerance < 0:
            raise InvalidInputError(f"tolerance must be >= 0, got {tolerance}")
        entry = self.peek(symbol)
        if entry is None or entry.status is not FeedStatus.ACTIVE:
            return False
        return abs(entry.price - expected_price) / expected_price <= tolerance

    def symbols(self) -> list[str]:
        return sorted(self._entries)

    async def aclose(self) -> None:
        """Stop polling, release subscriptions and cancel in-flight refreshes."""
        await self.stop_polling()
        for handle in list(self._handles):
            await self.unsubscribe(handle)
        for task in list(self._inflight.values()):
            task.cancel()
        if self._inflight:
            await asyncio.gather(*self._inflight.values(), return_exceptions=True)
