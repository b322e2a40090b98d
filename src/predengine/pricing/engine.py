"""Pure pricing functions - odds/probability conversion, fees, constant-product impact, slippage bounds."""

from __future__ import annotations

from dataclasses import dataclass

from predengine.errors import DivisionByZeroError, InvalidInputError
from predengine.models.position import Side
from predengine.models.pricing import DEFAULT_PRICING_CONFIG, PricingConfig


@dataclass(frozen=True)
class MarketOdds:
    """Normalized yes/no prices; implied_probability is the yes share."""

    yes: float
    no: float
    implied_probability: float


@dataclass(frozen=True)
class TradingFees:
    base_fee: float
    liquidity_fee: float
    protocol_fee: float
    total_fees: float
    net_amount: float


@dataclass(frozen=True)
class PriceImpact:
    price_impact: float
    new_price: float
    slippage: float


def market_odds(yes_price: float, no_price: float) -> MarketOdds:
    """Normalize raw yes/no prices so they sum to 1."""
    if yes_price < 0 or no_price < 0:
        raise InvalidInputError(f"prices must be non-negative: yes={yes_price} no={no_price}")
    total = yes_price + no_price
    if total == 0:
        raise DivisionByZeroError("yes_price + no_price is zero")
    yes = yes_price / total
    return MarketOdds(yes=yes, no=no_price / total, implied_probability=yes)


def odds_to_probability(odds: float) -> float:
    """Implied probability 1 / (odds + 1)."""
    if odds < 0:
        raise InvalidInputError(f"odds must be >= 0, got {odds}")
    return 1.0 / (odds + 1.0)


def probability_to_odds(probability: float) -> float:
    """Odds (1 - p) / p for p in (0, 1)."""
    if probability <= 0 or probability >= 1:
        raise InvalidInputError(f"probability must be in (0, 1), got {probability}")
    return (1.0 - probability) / probability


def trading_fees(amount: float, config: PricingConfig = DEFAULT_PRICING_CONFIG) -> TradingFees:
    """Split amount into base/liquidity/protocol fees and the net amount."""
    if amount <= 0:
        raise InvalidInputError(f"amount must be > 0, got {amount}")
    base_fee = amount * config.base_fee
    liquidity_fee = amount * config.liquidity_fee
    protocol_fee = amount * config.protocol_fee
    total_fees = base_fee + liquidity_fee + protocol_fee
    return TradingFees(
        base_fee=base_fee,
        liquidity_fee=liquidity_fee,
        protocol_fee=protocol_fee,
        total_fees=total_fees,
        net_amount=amount - total_fees,
    )


def price_impact(trade_amount: float, liquidity: float, current_price: float) -> PriceImpact:
    """
    Constant-product impact: k = liquidity * current_price, new_price = k / (liquidity + trade_amount).
    A zero trade is a no-op with zero impact.
    """
    if current_price < 0 or liquidity < 0:
        raise InvalidInputError(
            f"liquidity and price must be non-negative: liquidity={liquidity} price={current_price}"
        )
    new_liquidity = liquidity + trade_amount
    if new_liquidity <= 0:
        raise DivisionByZeroError(f"liquidity + trade_amount must be > 0, got {new_liquidity}")
    if current_price == 0:
        raise DivisionByZeroError("current_price is zero")
    if trade_amount == 0:
        return PriceImpact(price_impact=0.0, new_price=current_price, slippage=0.0)
    k = liquidity * current_price
    new_price = k / new_liquidity
    impact = abs(new_price - current_price) / current_price
    return PriceImpact(price_impact=impact, new_price=new_price, slippage=impact)


def _check_tolerance(slippage_tolerance: float) -> None:
    if not 0 <= slippage_tolerance < 1:
        raise InvalidInputError(f"slippage tolerance must be in [0, 1), got {slippage_tolerance}")


def minimum_received(expected: float, slippage_tolerance: float) -> float:
    _check_tolerance(slippage_tolerance)
    return expected * (1 - slippage_tolerance)


def maximum_input(expected: float, slippage_tolerance: float) -> float:
    _check_tolerance(slippage_tolerance)
    return expected * (1 + slippage_tolerance)


def check_slippage(impact: PriceImpact, config: PricingConfig = DEFAULT_PRICING_CONFIG) -> PriceImpact:
    """Return impact unchanged, or raise if its slippage exceeds config.max_slippage."""
    if impact.slippage > config.max_slippage:
        raise InvalidInputError(
            f"slippage {impact.slippage:.4%} exceeds max {config.max_slippage:.4%}"
        )
    return impact


def binary_payout(shares: float, outcome_yes: bool, side: Side) -> float:
    """Winning shares pay out 1:1; losing shares pay nothing."""
    if shares < 0:
        raise InvalidInputError(f"shares must be >= 0, got {shares}")
    won = (side is Side.YES) == outcome_yes
    return shares if won else 0.0
