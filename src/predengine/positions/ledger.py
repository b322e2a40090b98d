"""Position ledger - per-user positions, lifecycle state machine, exposure and PnL queries."""

from __future__ import annotations

import uuid
from typing import Any, Callable

import structlog

from predengine.clock import Clock, now_ms
from predengine.errors import InvalidInputError, PositionNotFoundError, StateError
from predengine.models.position import OPEN_STATUSES, Position, PositionStatus, Side
from predengine.pricing.engine import odds_to_probability

log = structlog.get_logger(__name__)


def new_position_id() -> str:
    return uuid.uuid4().hex


class PositionLedger:
    """
    Owns a set of positions. Every mutation goes through an explicit transition
    (match, settle, cancel, claim) validated against the lifecycle table; an illegal
    transition raises StateError and leaves the position as it was.
    """

    def __init__(self, *, id_factory: Callable[[], str] = new_position_id, clock: Clock = now_ms) -> None:
        self._id_factory = id_factory
        self._clock = clock
        self._positions: dict[str, Position] = {}

    def __len__(self) -> int:
        return len(self._positions)

    def __contains__(self, position_id: object) -> bool:
        return position_id in self._positions

    def open(self, market_id: str, side: Side | str, amount: float, odds: float) -> Position:
        """Record a confirmed trade as a pending position priced at the implied probability of odds."""
        if amount <= 0:
            raise InvalidInputError(f"amount must be > 0, got {amount}")
        if not market_id:
            raise InvalidInputError("market_id is required")
        try:
            side = Side(side)
        except ValueError:
            raise InvalidInputError(f"side must be 'yes' or 'no', got {side!r}") from None
        avg_price = odds_to_probability(odds)
        position_id = self._id_factory()
        if position_id in self._positions:
            raise StateError(f"position id {position_id} already exists")
        ts = self._clock()
        position = Position(
            id=position_id,
            market_id=market_id,
            side=side,
            shares=amount / avg_price,
            avg_price=avg_price,
            amount=amount,
            odds=odds,
            created_at=ts,
            updated_at=ts,
        )
        self._positions[position_id] = position
        log.info("position_opened", id=position_id, market_id=market_id, side=side.value, amount=amount)
        return position

    def get(self, position_id: str) -> Position:
        try:
            return self._positions[position_id]
        except KeyError:
            raise PositionNotFoundError(f"unknown position {position_id}") from None

    def _transition(self, position_id: str, target: PositionStatus, **updates: Any) -> Position:
        current = self.get(position_id)
        if not current.can_transition(target):
            raise StateError(
                f"position {position_id}: cannot move from {current.status.value} to {target.value}"
            )
        updated = current.model_copy(update={"status": target, "updated_at": self._clock(), **updates})
        self._positions[position_id] = updated
        log.info(
            "position_transition",
            id=position_id,
            from_status=current.status.value,
            to_status=target.value,
        )
        return updated

    def match(self, position_id: str) -> Position:
        """pending -> matched, when a counter-order fills."""
        return self._transition(position_id, PositionStatus.MATCHED)

    def cancel(self, position_id: str) -> Position:
        """pending -> cancelled. Cancelled positions drop out of exposure."""
        return self._transition(position_id, PositionStatus.CANCELLED)

    def settle(self, position_id: str, payout: float) -> Position:
        """pending|matched -> settled with the computed payout."""
        if payout < 0:
            raise InvalidInputError(f"payout must be >= 0, got {payout}")
        return self._transition(position_id, PositionStatus.SETTLED, payout=payout)

    def claim(self, position_id: str) -> Position:
        """Mark a settled position's payout as claimed. Allowed once."""
        current = self.get(position_id)
        if current.status is not PositionStatus.SETTLED:
            raise StateError(f"position {position_id}: only settled positions can be claimed")
        if current.claimed:
            raise StateError(f"position {position_id}: payout already claimed")
        updated = current.model_copy(update={"claimed": True, "updated_at": self._clock()})
        self._positions[position_id] = updated
        log.info("position_claimed", id=position_id, payout=current.payout)
        return updated

    # Queries - read only.

    def all(self) -> list[Position]:
        return list(self._positions.values())

    def positions_by_market(self, market_id: str) -> list[Position]:
        return [p for p in self._positions.values() if p.market_id == market_id]

    def active(self) -> list[Position]:
        return [p for p in self._positions.values() if p.status in OPEN_STATUSES]

    def settled(self) -> list[Position]:
        return [p for p in self._positions.values() if p.status is PositionStatus.SETTLED]

    def exposure(self, market_id: str) -> dict[str, float]:
        """Committed amount per side over pending and matched positions in the market."""
        totals = {Side.YES.value: 0.0, Side.NO.value: 0.0}
        for p in self.positions_by_market(market_id):
            if p.status in OPEN_STATUSES:
                totals[p.side.value] += p.amount
        return totals

    def realized_pnl(self) -> float:
        """Sum of payout - amount over settled positions."""
        return sum(p.payout - p.amount for p in self.settled() if p.payout is not None)
