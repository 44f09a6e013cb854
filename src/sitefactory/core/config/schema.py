"""
Parameter skeleton for site configuration.

The schema says which parameter names hold lists, which hold key/value
maps and what the defaults are. Anything it does not mention is a plain
scalar created on first use.

Subclass and override the ``extra_*`` hooks to extend the skeleton
rather than replacing it.
"""

from __future__ import annotations

from typing import Any


class ConfigSchema:
    """Cardinality and defaults for :class:`~sitefactory.core.config.store.ConfigStore`."""

    def list_parameters(self) -> set[str]:
        """Names whose values accumulate into an ordered list."""
        return {
            "include_file",
            "use_package",
            "package",
            "class",
            "template_dir",
            "template_subdir",
            "module_dir",
            "module_subdir",
            "permitted_view",
            *self.extra_list_parameters(),
        }

    def hash_parameters(self) -> set[str]:
        """Names whose ``name key = value`` lines accumulate into a map."""
        return {"mime_types", *self.extra_hash_parameters()}

    def default_values(self) -> dict[str, Any]:
        defaults: dict[str, Any] = {
            "db_type": "SQLite",
            "db_autocommit": 1,
            "db_dsn": None,
            "db_host": None,
            "db_name": None,
            "db_servername": None,
            "db_port": None,
            "smtp_server": "localhost",
            "smtp_port": 25,
            "debug_level": 0,
            "refresh_interval": 60,
            "package_dir": None,
        }
        defaults.update(self.extra_defaults())
        return defaults

    def extra_list_parameters(self) -> set[str]:
        return set()

    def extra_hash_parameters(self) -> set[str]:
        return set()

    def extra_defaults(self) -> dict[str, Any]:
        return {}

    def cardinality(self, name: str) -> str:
        """Return ``"list"``, ``"hash"`` or ``"scalar"`` for *name*."""
        if name in self.list_parameters():
            return "list"
        if name in self.hash_parameters():
            return "hash"
        return "scalar"
