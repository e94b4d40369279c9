"""
Configuration management system.
"""

from .settings import Settings, get_settings, load_settings
from . import constants

__all__ = [
    "Settings",
    "get_settings",
    "load_settings",
    "constants",
]
