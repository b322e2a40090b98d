"""`predengine` command: loads settings once, configures logging, hands Settings to sub-commands."""

from pathlib import Path

import typer

from predengine import __version__
from predengine.config import configure_logging, get_settings
from predengine.errors import InvalidInputError

app = typer.Typer(
    name="predengine",
    help="Odds, fees, price impact and oracle feed tooling for binary prediction markets.",
    no_args_is_help=True,
)


def _print_version(value: bool) -> None:
    if value:
        typer.echo(f"predengine {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    ctx: typer.Context,
    config_dir: Path | None = typer.Option(
        None, "--config-dir", "-C", help="Config directory ($PREDENGINE_CONFIG_DIR, ./config, bundled copy)"
    ),
    profile: str | None = typer.Option(
        None, "--profile", "-p", help="Profile overlay on default.toml, e.g. dev ($PREDENGINE_PROFILE)"
    ),
    log_level: str | None = typer.Option(None, "--log-level", help="Override [logging] level"),
    log_json: bool = typer.Option(False, "--log-json", help="Render logs as JSON lines on stderr"),
    version: bool = typer.Option(
        False, "--version", callback=_print_version, is_eager=True, help="Show version and exit"
    ),
) -> None:
    try:
        settings = get_settings(profile, config_dir)
        if log_level:
            settings.logging["level"] = log_level
        if log_json:
            settings.logging["format"] = "json"
        configure_logging(settings)
    except InvalidInputError as e:
        typer.echo(f"Config error: {e}", err=True)
        raise typer.Exit(2)
    ctx.obj = {"settings": settings}


from predengine.cli import feeds, price  # noqa: E402

app.add_typer(price.app, name="price")
app.add_typer(feeds.app, name="feeds")


def run() -> None:
    app()
