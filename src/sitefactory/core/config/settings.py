"""
Process-level settings for sitefactory.

Manifesto:
    Site configuration lives in ConfigStore files; what the *process*
    needs before any site exists (where the default files are, which
    environment variables name the tenant, how strict to be) comes from
    one validated, cached settings object.

All fields can be set through ``SITEFACTORY_*`` environment variables,
e.g. ``SITEFACTORY_GLOBAL_CONFIG=/etc/sites/global.conf``.

Tags:
    sitefactory, configuration, settings, pydantic, caching

Doc-Types:
    api-reference
"""

from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class SiteFactorySettings(BaseSettings):
    """Settings shared by every site in the process."""

    model_config = SettingsConfigDict(
        env_prefix="SITEFACTORY_",
        extra="ignore",
    )

    # ── Configuration files ──────────────────────────────────────
    global_config: str | None = Field(default=None, description="Config file read first by every site")
    site_config: str | None = Field(default=None, description="Config file read after the global one")

    # ── Tenant resolution ────────────────────────────────────────
    site_id_from: str = Field(default="_SITE_ID", description="Env var holding the site id")
    site_name_from: str = Field(default="SITE_NAME", description="Fallback env var for the site id")

    # ── Strictness ───────────────────────────────────────────────
    throw_exceptions: bool = Field(default=True)
    strict_class_loading: bool = Field(default=True)

    # ── Logging ──────────────────────────────────────────────────
    log_level: str = Field(default="INFO")
    log_format: str = Field(default="console")


_settings_cache: dict[str, SiteFactorySettings] = {}


def get_settings(*, _force_reload: bool = False) -> SiteFactorySettings:
    """Return the cached settings, reading the environment on first use."""
    if not _force_reload and "default" in _settings_cache:
        return _settings_cache["default"]
    settings = SiteFactorySettings()
    _settings_cache["default"] = settings
    return settings


def clear_settings_cache() -> None:
    """Clear the settings cache (primarily for testing)."""
    _settings_cache.clear()
