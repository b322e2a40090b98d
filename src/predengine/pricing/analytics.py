"""Price-series statistics and display formatting."""

from __future__ import annotations

import math

from predengine.errors import DivisionByZeroError, InvalidInputError


def price_change(current: float, previous: float) -> tuple[float, float]:
    """Return (absolute, percentage) change from previous to current."""
    if previous == 0:
        raise DivisionByZeroError("previous price is zero")
    absolute = current - previous
    return absolute, (absolute / previous) * 100.0


def volatility(prices: list[float]) -> float:
    """Annualized (365-day) std dev of daily log returns. 0 for fewer than 2 prices."""
    if len(prices) < 2:
        return 0.0
    if any(p <= 0 for p in prices):
        raise InvalidInputError("prices must be > 0 for log returns")
    returns = [math.log(b / a) for a, b in zip(prices, prices[1:])]
    if len(returns) < 2:
        return 0.0
    mean = sum(returns) / len(returns)
    var = sum((r - mean) ** 2 for r in returns) / (len(returns) - 1)
    return math.sqrt(var * 365)


def sharpe_ratio(returns: list[float], risk_free_rate: float = 0.02) -> float:
    if not returns:
        return 0.0
    mean = sum(returns) / len(returns)
    std = math.sqrt(sum((r - mean) ** 2 for r in returns) / len(returns))
    return 0.0 if std == 0 else (mean - risk_free_rate) / std


def moving_average(prices: list[float], period: int) -> list[float]:
    if period <= 0:
        raise InvalidInputError(f"period must be > 0, got {period}")
    if len(prices) < period:
        return []
    return [sum(prices[i - period + 1 : i + 1]) / period for i in range(period - 1, len(prices))]


def ema(prices: list[float], period: int) -> list[float]:
    """Exponential moving average seeded with the first price."""
    if period <= 0:
        raise InvalidInputError(f"period must be > 0, got {period}")
    if not prices:
        return []
    k = 2.0 / (period + 1)
    out = [prices[0]]
    for p in prices[1:]:
        out.append(p * k + out[-1] * (1 - k))
    return out


def price_bounds(
    current_price: float, vol: float, confidence_level: float = 0.95
) -> tuple[float, float, float]:
    """(upper, lower, range) band; z=1.96 at 95%, 2.58 otherwise. Lower bound floored at 0."""
    z = 1.96 if confidence_level == 0.95 else 2.58
    spread = current_price * vol * z
    return current_price + spread, max(0.0, current_price - spread), spread * 2


def cagr(initial_value: float, final_value: float, years: float) -> float:
    if initial_value == 0 or years == 0:
        raise DivisionByZeroError("initial_value and years must be non-zero")
    return (final_value / initial_value) ** (1 / years) - 1


def format_price(price: float, decimals: int = 4) -> str:
    if price == 0:
        return "0"
    if price < 0.0001:
        return f"{price:.2e}"
    if price < 1:
        return f"{price:.{decimals}f}"
    if price < 1000:
        return f"{price:.2f}"
    return f"{price:,.0f}"


def format_percentage_change(change: float) -> str:
    sign = "+" if change >= 0 else ""
    return f"{sign}{change:.2f}%"
