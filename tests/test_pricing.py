"""Pricing engine unit tests."""

import pytest

from predengine.errors import DivisionByZeroError, InvalidInputError
from predengine.models import PricingConfig, Side
from predengine.pricing.engine import (
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


def test_market_odds_already_normalized():
    odds = market_odds(0.65, 0.35)
    assert odds.yes == pytest.approx(0.65)
    assert odds.no == pytest.approx(0.35)
    assert odds.implied_probability == pytest.approx(0.65)


def test_market_odds_normalizes_pool_prices():
    odds = market_odds(3.0, 1.0)
    assert odds.yes == 0.75
    assert odds.no == 0.25
    assert odds.yes + odds.no == pytest.approx(1.0)


def test_market_odds_zero_sum_raises():
    with pytest.raises(DivisionByZeroError):
        market_odds(0, 0)
    # Also a ZeroDivisionError for callers that only know the builtin
    with pytest.raises(ZeroDivisionError):
        market_odds(0.0, 0.0)


def test_probability_odds_round_trip():
    for p in (0.01, 0.25, 0.5, 0.65, 0.99):
        assert odds_to_probability(probability_to_odds(p)) == pytest.approx(p)


def test_probability_to_odds_bounds():
    assert probability_to_odds(0.5) == pytest.approx(1.0)
    assert probability_to_odds(0.2) == pytest.approx(4.0)
    for bad in (0, 1, -0.1, 1.5):
        with pytest.raises(InvalidInputError):
            probability_to_odds(bad)


def test_odds_to_probability():
    assert odds_to_probability(0) == 1.0
    assert odds_to_probability(1) == 0.5
    assert odds_to_probability(3) == 0.25
    with pytest.raises(InvalidInputError):
        odds_to_probability(-1)


def test_trading_fees_default_config():
    fees = trading_fees(1000)
    assert fees.base_fee == pytest.approx(1.0)
    assert fees.liquidity_fee == pytest.approx(2.0)
    assert fees.protocol_fee == pytest.approx(0.5)
    assert fees.total_fees == pytest.approx(3.5)
    assert fees.net_amount == pytest.approx(996.5)


def test_trading_fees_net_plus_fees_is_amount():
    config = PricingConfig(base_fee=0.013, liquidity_fee=0.0071, protocol_fee=0.0009)
    for amount in (0.0001, 1, 3.3, 123.456, 1e9):
        fees = trading_fees(amount, config)
        assert fees.net_amount + fees.total_fees == pytest.approx(amount)


def test_trading_fees_rejects_non_positive_amount():
    for bad in (0, -5):
        with pytest.raises(InvalidInputError):
            trading_fees(bad)


def test_pricing_config_rejects_out_of_range_rates():
    with pytest.raises(ValueError):
        PricingConfig(base_fee=1.0)
    with pytest.raises(ValueError):
        PricingConfig(max_slippage=-0.1)


def test_price_impact_zero_trade_is_noop():
    impact = price_impact(0, 5000, 0.42)
    assert impact.price_impact == 0
    assert impact.new_price == 0.42
    assert impact.slippage == 0


def test_price_impact_constant_product():
    # k = 1000 * 0.5 = 500; new price = 500 / 1100
    impact = price_impact(100, 1000, 0.5)
    assert impact.new_price == pytest.approx(500 / 1100)
    assert impact.price_impact == pytest.approx(abs(500 / 1100 - 0.5) / 0.5)
    assert impact.slippage == impact.price_impact


def test_price_impact_degenerate_liquidity():
    with pytest.raises(DivisionByZeroError):
        price_impact(-100, 100, 0.5)
    with pytest.raises(DivisionByZeroError):
        price_impact(0, 0, 0.5)


def test_slippage_bounds():
    assert minimum_received(100, 0.05) == pytest.approx(95)
    assert maximum_input(100, 0.05) == pytest.approx(105)
    assert minimum_received(100, 0) == 100
    for bad in (1, 1.2, -0.01):
        with pytest.raises(InvalidInputError):
            minimum_received(100, bad)
        with pytest.raises(InvalidInputError):
            maximum_input(100, bad)


def test_check_slippage_against_config():
    small = price_impact(10, 10_000, 0.5)
    assert check_slippage(small) is small
    large = price_impact(5_000, 10_000, 0.5)
    with pytest.raises(InvalidInputError):
        check_slippage(large)
    assert check_slippage(large, PricingConfig(max_slippage=0.5)) is large


def test_binary_payout():
    assert binary_payout(100, True, Side.YES) == 100
    assert binary_payout(100, True, Side.NO) == 0
    assert binary_payout(100, False, Side.NO) == 100
