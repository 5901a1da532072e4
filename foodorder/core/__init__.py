"""
Core module initialization.
Exports configuration, logging and security utilities.
"""

from foodorder.core.config import get_settings, Settings, EnvironmentMode

__all__ = ["get_settings", "Settings", "EnvironmentMode"]
