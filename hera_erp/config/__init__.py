"""Service configuration."""

from hera_erp.config.settings import HeraSettings, get_settings

__all__ = ["HeraSettings", "get_settings"]
