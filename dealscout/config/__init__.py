# dealscout/config/__init__.py
from .log import setup_logging
from .settings import Settings, SettingsLoader, load_settings

__all__ = ["Settings", "SettingsLoader", "load_settings", "setup_logging"]
