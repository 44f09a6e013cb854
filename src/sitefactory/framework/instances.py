"""Process-wide cache of Factory instances, one per site.

Manifesto:
    A long-lived process serves many sites. Each site's Factory is
    expensive to build (configuration, class loading, engine) and cheap
    to reuse, so it is built at most once per process and handed to every
    request for that site afterwards.

Architecture:
    ::

        instance(site_id?)
            │  explicit id → $_SITE_ID → $SITE_NAME → "__singleton"
            ▼
        lock-free read ── hit ──► refresh_config() ──► Factory
            │ miss
            ▼
        lock, re-check ── hit ──────────────────────► Factory
            │ miss
            ▼
        construct, store, return

Tags:
    sitefactory, framework, multi-tenant, singleton, thread-safety

Doc-Types:
    api-reference
"""

from __future__ import annotations

import os
import threading
from typing import TYPE_CHECKING, Any

from sitefactory.core.config.settings import get_settings
from sitefactory.core.logging import get_logger

if TYPE_CHECKING:
    from sitefactory.framework.factory import Factory

log = get_logger(__name__)

SINGLETON_KEY = "__singleton"


class InstanceRegistry:
    """Thread-safe insert-if-absent map of site id → Factory.

    Args:
        site_id_variable: Environment variable naming the site. Defaults to
            the ``site_id_from`` setting.
        site_name_variable: Fallback environment variable. Defaults to the
            ``site_name_from`` setting.
    """

    def __init__(self, site_id_variable: str | None = None, site_name_variable: str | None = None):
        self._site_id_variable = site_id_variable
        self._site_name_variable = site_name_variable
        self._instances: dict[str, Factory] = {}
        self._lock = threading.Lock()

    @property
    def site_id_variable(self) -> str:
        return self._site_id_variable or get_settings().site_id_from

    @site_id_variable.setter
    def site_id_variable(self, name: str | None) -> None:
        self._site_id_variable = name

    @property
    def site_name_variable(self) -> str:
        return self._site_name_variable or get_settings().site_name_from

    def resolve(self, tenant_id: str | None = None) -> str:
        """The registry key for *tenant_id*, falling back to the environment."""
        if tenant_id:
            return str(tenant_id)
        return (
            os.environ.get(self.site_id_variable)
            or os.environ.get(self.site_name_variable)
            or SINGLETON_KEY
        )

    def instance(
        self,
        tenant_id: str | None = None,
        *args: Any,
        factory_class: type[Factory] | None = None,
        **kwargs: Any,
    ) -> Factory:
        """Return the Factory for *tenant_id*, building it on first request.

        Extra arguments are passed to the Factory constructor and only
        matter on the call that builds it.
        """
        key = self.resolve(tenant_id)

        factory = self._instances.get(key)
        if factory is not None:
            if factory.refresh_on_instance:
                factory.refresh_config()
            return factory

        with self._lock:
            factory = self._instances.get(key)
            if factory is None:
                if factory_class is None:
                    from sitefactory.framework.factory import Factory as factory_class
                factory = factory_class(*args, site_id=key, **kwargs)
                self._instances[key] = factory
                log.info("instances.factory_created", site=key, factory_class=factory_class.__name__)
        return factory

    def get(self, tenant_id: str) -> Factory | None:
        return self._instances.get(tenant_id)

    def keys(self) -> list[str]:
        return list(self._instances)

    def clear(self) -> None:
        """Forget every Factory (their engines are disposed)."""
        with self._lock:
            instances = list(self._instances.values())
            self._instances = {}
        for factory in instances:
            factory.close()

    def status_report(self) -> list[dict[str, Any]]:
        """One summary per live Factory."""
        return [factory.status() for factory in list(self._instances.values())]

    def __contains__(self, tenant_id: object) -> bool:
        return tenant_id in self._instances

    def __len__(self) -> int:
        return len(self._instances)


registry = InstanceRegistry()


def factory_id_from(variable: str) -> None:
    """Read the site id from environment variable *variable* from now on."""
    registry.site_id_variable = variable


def resolve_tenant_id(tenant_id: str | None = None) -> str:
    return registry.resolve(tenant_id)


__all__ = [
    "SINGLETON_KEY",
    "InstanceRegistry",
    "factory_id_from",
    "registry",
    "resolve_tenant_id",
]
