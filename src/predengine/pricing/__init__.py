"""Pricing engine and price analytics."""

from predengine.pricing.engine import (
    MarketOdds,
    PriceImpact,
    TradingFees,
    binary_payout,
    check_slippage,
    market_odds,
    maximum_input,
    minimum_received,
    odds_to_probability,
    price_impact,
    probability_to_odds,
    trading_fees,
)

__all__ = [
    "MarketOdds",
    "PriceImpact",
    "TradingFees",
    "binary_payout",
    "check_slippage",
    "market_odds",
    "maximum_input",
    "minimum_received",
    "odds_to_probability",
    "price_impact",
    "probability_to_odds",
    "trading_fees",
]
