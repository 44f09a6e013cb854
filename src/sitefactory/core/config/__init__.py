"""
Configuration: process settings and layered site configuration.
"""

from sitefactory.core.config.parser import ConfigLine, parse_config_file, parse_config_text
from sitefactory.core.config.schema import ConfigSchema
from sitefactory.core.config.settings import SiteFactorySettings, clear_settings_cache, get_settings
from sitefactory.core.config.store import ConfigStore

__all__ = [
    "ConfigLine",
    "ConfigSchema",
    "ConfigStore",
    "SiteFactorySettings",
    "clear_settings_cache",
    "get_settings",
    "parse_config_file",
    "parse_config_text",
]
