"""Fold positions (revalued at current prices) into portfolio summary statistics."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Callable, Iterable

from predengine.errors import StaleDataError
from predengine.models.position import OPEN_STATUSES, Position, PositionStatus, Side
from predengine.pricing.engine import market_odds

if TYPE_CHECKING:
    from predengine.oracle.cache import OracleFeedCache

PriceLookup = Callable[[str, Side], float]


@dataclass(frozen=True)
class PortfolioSnapshot:
    """Derived on demand; never stored."""

    total_value: float
    total_pnl: float
    total_pnl_percentage: float
    active_positions: int
    win_rate: float
    total_cost: float = 0.0


EMPTY_SNAPSHOT = PortfolioSnapshot(0.0, 0.0, 0.0, 0, 0.0, 0.0)


def position_value(position: Position, price_lookup: PriceLookup) -> float:
    """Mark-to-market for open positions; unclaimed payout for settled ones; 0 otherwise."""
    if position.status in OPEN_STATUSES:
        return position.shares * price_lookup(position.market_id, position.side)
    if position.status is PositionStatus.SETTLED and not position.claimed:
        return position.payout or 0.0
    return 0.0


def position_pnl(position: Position, value: float) -> float:
    """payout - amount once settled; value - cost basis while open."""
    if position.status is PositionStatus.SETTLED:
        return (position.payout or 0.0) - position.amount
    return value - position.cost_basis


def summarize(positions: Iterable[Position], price_lookup: PriceLookup) -> PortfolioSnapshot:
    total_value = 0.0
    total_pnl = 0.0
    total_cost = 0.0
    active = 0
    settled = 0
    wins = 0
    for p in positions:
        if p.status is PositionStatus.CANCELLED:
            continue
        value = position_value(p, price_lookup)
        pnl = position_pnl(p, value)
        total_value += value
        total_pnl += pnl
        total_cost += p.cost_basis
        if p.status in OPEN_STATUSES and p.shares > 0:
            active += 1
        if p.status is PositionStatus.SETTLED:
            settled += 1
            if pnl > 0:
                wins += 1
    return PortfolioSnapshot(
        total_value=total_value,
        total_pnl=total_pnl,
        total_pnl_percentage=(total_pnl / total_cost * 100.0) if total_cost > 0 else 0.0,
        active_positions=active,
        win_rate=(wins / settled * 100.0) if settled > 0 else 0.0,
        total_cost=total_cost,
    )


def feed_symbol(market_id: str, side: Side) -> str:
    return f"{market_id}:{side.value}"


class FeedPriceLookup:
    """
    Price lookup backed by an OracleFeedCache. Each market has a yes and a no feed; the raw pair is
    normalized with market_odds so valuations always use implied probabilities.
    """

    def __init__(self, cache: OracleFeedCache, *, require_fresh: bool = False) -> None:
        self.cache = cache
        self.require_fresh = require_fresh

    def _price(self, symbol: str) -> float:
        entry = self.cache.peek(symbol, require_fresh=self.require_fresh)
        if entry is None:
            raise StaleDataError(f"no price for {symbol}")
        return entry.price

    def __call__(self, market_id: str, side: Side) -> float:
        odds = market_odds(
            self._price(feed_symbol(market_id, Side.YES)),
            self._price(feed_symbol(market_id, Side.NO)),
        )
        return odds.yes if side is Side.YES else odds.no


def symbols_for(positions: Iterable[Position]) -> list[str]:
    """Feed symbols needed to value the open positions."""
    markets = dict.fromkeys(p.market_id for p in positions if p.status in OPEN_STATUSES)
    return [feed_symbol(m, s) for m in markets for s in (Side.YES, Side.NO)]


async def revalue(
    positions: Iterable[Position], cache: OracleFeedCache, *, require_fresh: bool = False
) -> PortfolioSnapshot:
    """Refresh the feeds the open positions depend on, then summarize."""
    positions = list(positions)
    if not positions:
        return EMPTY_SNAPSHOT
    await cache.get_many(symbols_for(positions))
    return summarize(positions, FeedPriceLookup(cache, require_fresh=require_fresh))
