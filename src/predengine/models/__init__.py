"""Canonical records (Pydantic) - PricingConfig, PriceFeedEntry, Position."""

from predengine.models.feed import FeedHealth, FeedStatus, PriceFeedEntry
from predengine.models.position import Position, PositionStatus, Side
from predengine.models.pricing import DEFAULT_PRICING_CONFIG, PricingConfig

__all__ = [
    "PricingConfig",
    "DEFAULT_PRICING_CONFIG",
    "PriceFeedEntry",
    "FeedStatus",
    "FeedHealth",
    "Position",
    "PositionStatus",
    "Side",
]
