"""Configuration module for the loreweave session engine"""

from .settings import Settings, get_settings

__all__ = [
    "Settings",
    "get_settings",
]
