"""Configuration: TOML files with profile overlays."""

from predengine.config.settings import (
    Settings,
    configure_logging,
    get_settings,
    load_config,
    resolve_config_dir,
)

__all__ = ["Settings", "configure_logging", "get_settings", "load_config", "resolve_config_dir"]
