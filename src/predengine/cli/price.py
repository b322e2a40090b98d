"""Price subcommand: odds, convert, fees, impact, slippage."""

from __future__ import annotations

from typing import NoReturn

import typer

from predengine.errors import PredEngineError
from predengine.pricing.engine import (
    check_slippage,
    market_odds,
    maximum_input,
    minimum_received,
    odds_to_probability,
    price_impact,
    probability_to_odds,
    trading_fees,
)

app = typer.Typer(help="Odds, fee and price-impact calculations")


def _fail(e: PredEngineError) -> NoReturn:
    typer.echo(f"Error: {e}", err=True)
    raise typer.Exit(1)


@app.command("odds")
def odds(
    yes_price: float = typer.Argument(..., help="Raw YES price"),
    no_price: float = typer.Argument(..., help="Raw NO price"),
) -> None:
    """Normalize a YES/NO price pair into implied probabilities."""
    try:
        result = market_odds(yes_price, no_price)
    except PredEngineError as e:
        _fail(e)
    typer.echo(f"YES: {result.yes:.4f}  NO: {result.no:.4f}")
    typer.echo(f"Implied probability: {result.implied_probability:.2%}")


@app.command("convert")
def convert(
    odds_value: float | None = typer.Option(None, "--odds", help="Odds to convert to probability"),
    probability: float | None = typer.Option(None, "--probability", help="Probability to convert to odds"),
) -> None:
    """Convert between odds and implied probability."""
    if (odds_value is None) == (probability is None):
        typer.echo("Pass exactly one of --odds or --probability")
        raise typer.Exit(1)
    try:
        if odds_value is not None:
            typer.echo(f"Probability: {odds_to_probability(odds_value):.6f}")
        else:
            typer.echo(f"Odds: {probability_to_odds(probability):.6f}")
    except PredEngineError as e:
        _fail(e)


@app.command("fees")
def fees(
    ctx: typer.Context,
    amount: float = typer.Argument(..., help="Trade amount"),
) -> None:
    """Break a trade amount into fees using the configured rates."""
    config = ctx.obj["settings"].pricing_config
    try:
        result = trading_fees(amount, config)
    except PredEngineError as e:
        _fail(e)
    typer.echo(f"Base fee: {result.base_fee:.6f}")
    typer.echo(f"Liquidity fee: {result.liquidity_fee:.6f}")
    typer.echo(f"Protocol fee: {result.protocol_fee:.6f}")
    typer.echo(f"Total fees: {result.total_fees:.6f}  Net amount: {result.net_amount:.6f}")


@app.command("impact")
def impact(
    ctx: typer.Context,
    trade_amount: float = typer.Argument(..., help="Trade size"),
    liquidity: float = typer.Argument(..., help="Pool liquidity"),
    current_price: float = typer.Argument(..., help="Current price"),
) -> None:
    """Constant-product price impact of a trade; fails if slippage exceeds the configured maximum."""
    config = ctx.obj["settings"].pricing_config
    try:
        result = price_impact(trade_amount, liquidity, current_price)
        typer.echo(f"New price: {result.new_price:.6f}  Impact: {result.price_impact:.4%}")
        check_slippage(result, config)
    except PredEngineError as e:
        _fail(e)


@app.command("slippage")
def slippage(
    expected: float = typer.Argument(..., help="Expected output (or input) amount"),
    tolerance: float = typer.Argument(..., help="Slippage tolerance as a fraction, e.g. 0.01"),
) -> None:
    """Minimum received and maximum input bounds for a slippage tolerance."""
    try:
        low = minimum_received(expected, tolerance)
        high = maximum_input(expected, tolerance)
    except PredEngineError as e:
        _fail(e)
    typer.echo(f"Minimum received: {low:.6f}")
    typer.echo(f"Maximum input: {high:.6f}")
