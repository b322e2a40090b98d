"""Portfolio statistics."""

from predengine.portfolio.aggregator import (
    FeedPriceLookup,
    PortfolioSnapshot,
    position_pnl,
    position_value,
    revalue,
    summarize,
)

__all__ = ["FeedPriceLookup", "PortfolioSnapshot", "position_pnl", "position_value", "revalue", "summarize"]
