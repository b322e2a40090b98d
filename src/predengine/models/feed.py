"""PriceFeedEntry, FeedStatus, FeedHealth - oracle feed records."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class FeedStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    STALE = "stale"


class PriceFeedEntry(BaseModel):
    """Latest observation for one symbol. All fields required."""

    model_config = ConfigDict(frozen=True)

    symbol: str = Field(..., min_length=1)
    price: float = Field(..., ge=0)
    timestamp: int = Field(..., ge=0)  # ms epoch, source time
    confidence: float = Field(..., ge=0, le=1)
    status: FeedStatus

    def age_ms(self, now_ms: int) -> int:
        return now_ms - self.timestamp


class FeedHealth(BaseModel):
    """Snapshot of cache health. healthy iff no stale and no inactive feeds."""

    healthy: bool
    stale_symbols: list[str] = Field(default_factory=list)
    inactive_symbols: list[str] = Field(default_factory=list)
    failed_symbols: dict[str, str] = Field(default_factory=dict)  # symbol -> last error
