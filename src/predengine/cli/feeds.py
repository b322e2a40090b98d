"""Feeds subcommand: watch, decode."""

from __future__ import annotations

import asyncio
import signal
import sys

import typer

from predengine.config.settings import Settings
from predengine.errors import PredEngineError
from predengine.models.feed import PriceFeedEntry
from predengine.network.rpc import RpcLedgerClient
from predengine.oracle.cache import OracleFeedCache
from predengine.oracle.codec import decode_price_account
from predengine.oracle.source import LedgerFeedSource

app = typer.Typer(help="Oracle price feed polling and inspection")


def _format_entry(entry: PriceFeedEntry) -> str:
    return (
        f"{entry.symbol:<24} {entry.price:>14.8f}  conf={entry.confidence:.4f}  "
        f"ts={entry.timestamp}  {entry.status.value}"
    )


def _echo_health(cache: OracleFeedCache) -> None:
    health = cache.health()
    typer.echo(f"Healthy: {health.healthy}")
    if health.stale_symbols:
        typer.echo(f"Stale: {', '.join(health.stale_symbols)}")
    if health.inactive_symbols:
        typer.echo(f"Inactive: {', '.join(health.inactive_symbols)}")
    for symbol, error in health.failed_symbols.items():
        typer.echo(f"Failed: {symbol}: {error}")


async def _watch(settings: Settings, symbols: list[str], interval: float, once: bool) -> None:
    client = RpcLedgerClient(
        settings.rpc_url,
        ws_url=settings.ws_url,
        timeout=settings.request_timeout_sec,
        commitment=settings.commitment,
        reconnect_base_delay_sec=settings.reconnect_base_delay_sec,
        reconnect_max_delay_sec=settings.reconnect_max_delay_sec,
    )
    cache = OracleFeedCache(
        LedgerFeedSource(client, settings.feed_accounts),
        max_age_ms=settings.max_age_ms,
        fetch_timeout_sec=settings.fetch_timeout_sec,
    )
    try:
        if once:
            for entry in (await cache.get_many(symbols)).values():
                typer.echo(_format_entry(entry))
            _echo_health(cache)
            return
        stop_event = asyncio.Event()
        loop = asyncio.get_running_loop()
        if sys.platform != "win32":
            loop.add_signal_handler(signal.SIGINT, stop_event.set)
            loop.add_signal_handler(signal.SIGTERM, stop_event.set)
        await cache.start_polling(symbols, interval)
        while not stop_event.is_set():
            try:
                await asyncio.wait_for(stop_event.wait(), timeout=interval)
            except TimeoutError:
                pass
            for symbol in symbols:
                entry = cache.peek(symbol)
                if entry is not None:
                    typer.echo(_format_entry(entry))
            _echo_health(cache)
    finally:
        await cache.aclose()
        await client.aclose()


@app.command("watch")
def watch(
    ctx: typer.Context,
    symbol: list[str] = typer.Option(..., "--symbol", "-s", help="Feed symbol (repeatable)"),
    interval: float | None = typer.Option(None, "--interval", "-i", help="Poll interval seconds (overrides config)"),
    once: bool = typer.Option(False, "--once", help="Fetch once, print and exit"),
) -> None:
    """Poll configured price accounts and print prices and feed health (Ctrl+C to stop)."""
    settings = ctx.obj["settings"]
    unknown = [s for s in symbol if s not in settings.feed_accounts]
    if unknown:
        typer.echo(f"No feed account configured for: {', '.join(unknown)}")
        raise typer.Exit(1)
    try:
        asyncio.run(_watch(settings, symbol, interval or settings.poll_interval_sec, once))
    except KeyboardInterrupt:
        pass
    except PredEngineError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)
    if not once:
        typer.echo("Stopped.")


@app.command("decode")
def decode(
    payload: str = typer.Argument(..., help="Price account data as hex"),
    symbol: str = typer.Option("UNKNOWN", "--symbol", "-s", help="Symbol to label the entry with"),
) -> None:
    """Decode a raw price account payload."""
    try:
        data = bytes.fromhex(payload)
    except ValueError:
        typer.echo("Payload is not valid hex")
        raise typer.Exit(1)
    try:
        entry = decode_price_account(symbol, data)
    except PredEngineError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)
    typer.echo(_format_entry(entry))
