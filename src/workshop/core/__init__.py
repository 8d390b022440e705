"""Core utilities shared across :mod:`workshop` modules.

The core namespace groups configuration loading, logging setup and home
directory resolution so the manifest and package modules stay small.
"""

from __future__ import annotations

from .config import AppConfig, HostSettings, ManifestSettings, load_app_config
from .logging import configure_logging, get_logger
from .paths import WorkshopPaths, resolve_home

__all__ = [
    "AppConfig",
    "HostSettings",
    "ManifestSettings",
    "WorkshopPaths",
    "configure_logging",
    "get_logger",
    "load_app_config",
    "resolve_home",
]
