"""Configuration: config/default.toml, an optional profile overlay, and structlog setup.

Lookup order for the config directory: explicit argument, $PREDENGINE_CONFIG_DIR, ./config,
then the copy shipped next to the source tree. The profile comes from the argument or
$PREDENGINE_PROFILE; a named profile that has no file is an error rather than a silent default.
"""

from __future__ import annotations

import logging
import os
import sys
import tomllib
from pathlib import Path
from typing import Any

import structlog

from predengine.errors import InvalidInputError
from predengine.models.pricing import PricingConfig

ENV_PROFILE = "PREDENGINE_PROFILE"
ENV_CONFIG_DIR = "PREDENGINE_CONFIG_DIR"
SECTIONS = ("pricing", "oracle", "network", "logging")
LOG_FORMATS = ("console", "json")

_BUNDLED_CONFIG_DIR = Path(__file__).resolve().parents[3] / "config"


def _read_toml(path: Path) -> dict[str, Any]:
    try:
        with path.open("rb") as f:
            return tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        raise InvalidInputError(f"{path}: {e}") from e


def _overlay(base: dict[str, Any], top: dict[str, Any]) -> dict[str, Any]:
    """Tables merge key by key; any other value in top replaces the one in base."""
    merged = dict(base)
    for key, value in top.items():
        below = merged.get(key)
        merged[key] = _overlay(below, value) if isinstance(below, dict) and isinstance(value, dict) else value
    return merged


def resolve_config_dir(config_dir: Path | None = None) -> Path:
    if config_dir is not None:
        return Path(config_dir)
    from_env = os.environ.get(ENV_CONFIG_DIR)
    if from_env:
        return Path(from_env)
    local = Path.cwd() / "config"
    return local if local.is_dir() else _BUNDLED_CONFIG_DIR


def load_config(profile: str | None = None, config_dir: Path | None = None) -> dict[str, Any]:
    """Merged raw config. A missing default.toml yields built-in defaults; a missing profile raises."""
    directory = resolve_config_dir(config_dir)
    default_path = directory / "default.toml"
    raw = _read_toml(default_path) if default_path.is_file() else {}
    if profile:
        profile_path = directory / f"{profile}.toml"
        if not profile_path.is_file():
            raise InvalidInputError(f"config profile {profile!r} not found in {directory}")
        raw = _overlay(raw, _read_toml(profile_path))
    unknown = sorted(set(raw) - set(SECTIONS))
    if unknown:
        raise InvalidInputError(f"unknown config section(s): {', '.join(unknown)}")
    return raw


def get_settings(profile: str | None = None, config_dir: Path | None = None) -> Settings:
    profile = profile or os.environ.get(ENV_PROFILE) or None
    return Settings.from_dict(load_config(profile, config_dir), profile=profile)


class Settings:
    """Typed view over the merged [pricing], [oracle], [network] and [logging] tables."""

    def __init__(
        self,
        *,
        pricing: dict[str, Any] | None = None,
        oracle: dict[str, Any] | None = None,
        network: dict[str, Any] | None = None,
        logging: dict[str, Any] | None = None,
        profile: str | None = None,
    ):
        self.pricing = pricing or {}
        self.oracle = oracle or {}
        self.network = network or {}
        self.logging = logging or {}
        self.profile = profile

    @classmethod
    def from_dict(cls, raw: dict[str, Any], *, profile: str | None = None) -> Settings:
        return cls(profile=profile, **{name: raw.get(name) for name in SECTIONS})

    @property
    def pricing_config(self) -> PricingConfig:
        """PricingConfig with any [pricing] overrides applied."""
        return PricingConfig(**self.pricing)

    # [oracle]

    @property
    def max_age_ms(self) -> int:
        return int(self.oracle.get("max_age_ms", 60_000))

    @property
    def poll_interval_sec(self) -> float:
        return float(self.oracle.get("poll_interval_sec", 30.0))

    @property
    def fetch_timeout_sec(self) -> float:
        return float(self.oracle.get("fetch_timeout_sec", 10.0))

    @property
    def validate_tolerance(self) -> float:
        return float(self.oracle.get("validate_tolerance", 0.05))

    @property
    def feed_accounts(self) -> dict[str, str]:
        """Symbol -> price account address."""
        return {str(k): str(v) for k, v in (self.oracle.get("feed_accounts") or {}).items()}

    # [network]

    @property
    def rpc_url(self) -> str:
        return self.network.get("rpc_url", "https://api.mainnet-beta.solana.com")

    @property
    def ws_url(self) -> str | None:
        return self.network.get("ws_url")

    @property
    def commitment(self) -> str:
        return self.network.get("commitment", "confirmed")

    @property
    def request_timeout_sec(self) -> float:
        return float(self.network.get("request_timeout_sec", 10.0))

    @property
    def confirm_timeout_sec(self) -> float:
        return float(self.network.get("confirm_timeout_sec", 30.0))

    @property
    def reconnect_base_delay_sec(self) -> float:
        return float(self.network.get("reconnect_base_delay_sec", 1.0))

    @property
    def reconnect_max_delay_sec(self) -> float:
        return float(self.network.get("reconnect_max_delay_sec", 60.0))

    # [logging]

    @property
    def logging_level(self) -> str:
        return str(self.logging.get("level", "INFO")).upper()

    @property
    def logging_format(self) -> str:
        return str(self.logging.get("format", "console")).lower()

    @property
    def logging_level_num(self) -> int:
        level = logging.getLevelName(self.logging_level)
        if not isinstance(level, int):
            raise InvalidInputError(f"unknown logging level {self.logging_level!r}")
        return level


def _stderr_logger(*args: Any) -> structlog.PrintLogger:
    # Looked up per logger so redirected or replaced streams are honoured.
    return structlog.PrintLogger(sys.stderr)


def configure_logging(settings: Settings) -> None:
    """
    Install structlog rendering on stderr, leaving stdout for command output, and bind the
    service name and active profile to every event. Safe to call again after settings change.
    """
    fmt = settings.logging_format
    if fmt not in LOG_FORMATS:
        raise InvalidInputError(f"logging format must be one of {LOG_FORMATS}, got {fmt!r}")
    processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
    ]
    if fmt == "json":
        processors += [structlog.processors.format_exc_info, structlog.processors.JSONRenderer()]
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(settings.logging_level_num),
        context_class=dict,
        logger_factory=_stderr_logger,
        cache_logger_on_first_use=False,
    )
    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(service="predengine", profile=settings.profile or "default")
