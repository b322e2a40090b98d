"""Price analytics tests."""

import math

import pytest

from predengine.errors import DivisionByZeroError
from predengine.pricing import analytics


def test_price_change():
    absolute, pct = analytics.price_change(0.72, 0.6)
    assert absolute == pytest.approx(0.12)
    assert pct == pytest.approx(20.0)
    with pytest.raises(DivisionByZeroError):
        analytics.price_change(1, 0)


def test_volatility_flat_and_short_series():
    assert analytics.volatility([]) == 0
    assert analytics.volatility([1.0]) == 0
    assert analytics.volatility([2.0, 2.0, 2.0, 2.0]) == 0


def test_volatility_annualized():
    prices = [1.0, 1.1, 1.0, 1.1]
    returns = [math.log(1.1), math.log(1 / 1.1), math.log(1.1)]
    mean = sum(returns) / 3
    var = sum((r - mean) ** 2 for r in returns) / 2
    assert analytics.volatility(prices) == pytest.approx(math.sqrt(var * 365))


def test_sharpe_ratio():
    assert analytics.sharpe_ratio([]) == 0
    assert analytics.sharpe_ratio([0.05, 0.05]) == 0  # zero deviation
    assert analytics.sharpe_ratio([0.1, 0.0], risk_free_rate=0.0) == pytest.approx(1.0)


def test_moving_averages():
    assert analytics.moving_average([1, 2, 3, 4], 2) == [1.5, 2.5, 3.5]
    assert analytics.moving_average([1, 2], 3) == []
    assert analytics.ema([], 3) == []
    assert analytics.ema([2, 4], 3) == [2, 3.0]


def test_price_bounds_floor_at_zero():
    upper, lower, width = analytics.price_bounds(1.0, 0.1)
    assert upper == pytest.approx(1.196)
    assert lower == pytest.approx(0.804)
    assert width == pytest.approx(0.392)
    _, lower, _ = analytics.price_bounds(1.0, 1.0, confidence_level=0.99)
    assert lower == 0


def test_cagr():
    assert analytics.cagr(100, 121, 2) == pytest.approx(0.1)


def test_formatting():
    assert analytics.format_price(0) == "0"
    assert analytics.format_price(0.65) == "0.6500"
    assert analytics.format_price(12.5) == "12.50"
    assert analytics.format_price(1234567) == "1,234,567"
    assert analytics.format_percentage_change(2.5) == "+2.50%"
    assert analytics.format_percentage_change(-1) == "-1.00%"
