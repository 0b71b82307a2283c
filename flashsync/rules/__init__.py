"""Sync rules: configuration schema and TOML loading."""

from .load import find_config, load_settings, parse_settings
from .schema import ExportRule, ImportRule, Settings

__all__ = [
    "ExportRule",
    "ImportRule",
    "Settings",
    "find_config",
    "load_settings",
    "parse_settings",
]
