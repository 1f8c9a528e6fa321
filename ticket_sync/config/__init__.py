"""Configuration for ticket sync."""

from .settings import ENV_PREFIX, SyncSettings, load_settings

__all__ = ["ENV_PREFIX", "SyncSettings", "load_settings"]
