"""Position - a stake on one side of a binary market, tracked to settlement."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, model_validator


class Side(str, Enum):
    YES = "yes"
    NO = "no"


class PositionStatus(str, Enum):
    PENDING = "pending"
    MATCHED = "matched"
    SETTLED = "settled"
    CANCELLED = "cancelled"


# Legal lifecycle moves; settled and cancelled are terminal.
TRANSITIONS: dict[PositionStatus, frozenset[PositionStatus]] = {
    PositionStatus.PENDING: frozenset(
        {PositionStatus.MATCHED, PositionStatus.SETTLED, PositionStatus.CANCELLED}
    ),
    PositionStatus.MATCHED: frozenset({PositionStatus.SETTLED}),
    PositionStatus.SETTLED: frozenset(),
    PositionStatus.CANCELLED: frozenset(),
}

OPEN_STATUSES = frozenset({PositionStatus.PENDING, PositionStatus.MATCHED})


class Position(BaseModel):
    """Immutable position record. The owning ledger swaps in new copies on transition."""

    model_config = ConfigDict(frozen=True)

    id: str
    market_id: str
    side: Side
    shares: float = Field(..., ge=0)
    avg_price: float = Field(..., gt=0, le=1)
    amount: float = Field(..., gt=0)
    odds: float = Field(..., ge=0)
    status: PositionStatus = PositionStatus.PENDING
    payout: float | None = Field(None, ge=0)
    claimed: bool = False
    created_at: int | None = None  # ms epoch
    updated_at: int | None = None  # ms epoch

    @model_validator(mode="after")
    def _payout_only_when_settled(self) -> Position:
        if (self.payout is not None) != (self.status is PositionStatus.SETTLED):
            raise ValueError("payout must be set exactly when status is settled")
        if self.claimed and self.status is not PositionStatus.SETTLED:
            raise ValueError("only settled positions can be claimed")
        return self

    @property
    def is_open(self) -> bool:
        return self.status in OPEN_STATUSES

    @property
    def cost_basis(self) -> float:
        return self.shares * self.avg_price

    @property
    def realized_pnl(self) -> float | None:
        """payout - amount once settled, else None."""
        if self.payout is None:
            return None
        return self.payout - self.amount

    def can_transition(self, target: PositionStatus) -> bool:
        return target in TRANSITIONS[self.status]
