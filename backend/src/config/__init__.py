"""Configuration module for backend services."""

from src.config.settings import Settings, load_settings

__all__ = [
    "Settings",
    "load_settings",
]
