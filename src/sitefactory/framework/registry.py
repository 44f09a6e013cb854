"""Class registry: the data classes a site manages, keyed by moniker.

Manifesto:
    Handlers and templates never name Python classes. They name
    *monikers* (``cd``, ``artist``), and the registry maps each moniker to
    the class configured for the site along with its display metadata.
    Loading is driven by the site's ``class`` parameters and happens once.

Tags:
    sitefactory, framework, registry, moniker, class-loading

Doc-Types:
    api-reference
"""

from __future__ import annotations

import importlib
from collections.abc import Callable, Iterable
from dataclasses import dataclass

from sitefactory.core.errors import ClassLoadError
from sitefactory.core.logging import get_logger
from sitefactory.core.orm.base import ManagedRecord

log = get_logger(__name__)

LoadedHook = Callable[[str, type], None]


@dataclass(frozen=True)
class ManagedClass:
    """One assimilated data class and its display metadata."""

    moniker: str
    class_name: str
    cls: type
    title: str
    plural: str
    description: str


class ClassRegistry:
    """Moniker → class map for one site.

    Args:
        strict: Raise :class:`ClassLoadError` when a class cannot be
            loaded. When False the class is logged and skipped.
    """

    def __init__(self, strict: bool = True):
        self.strict = strict
        self._classes: dict[str, ManagedClass] = {}
        self._by_class: dict[type, str] = {}
        self._loaded = False

    @property
    def loaded(self) -> bool:
        return self._loaded

    def load_all(
        self,
        class_names: Iterable[str],
        reload: bool = False,
        on_loaded: LoadedHook | None = None,
    ) -> list[str]:
        """Import and assimilate every class in *class_names*, in order.

        Does nothing once loaded, unless *reload* is set; a reload only
        picks up names that are not registered yet. Returns the monikers
        added by this call.
        """
        if self._loaded and not reload:
            return []

        added: list[str] = []
        known = {entry.class_name for entry in self._classes.values()}
        for name in class_names:
            if name in known:
                continue
            try:
                cls = self.import_class(name)
                entry = self.assimilate(cls, class_name=name)
            except ClassLoadError as exc:
                if self.strict:
                    raise
                log.warning("registry.class_skipped", class_name=name, reason=exc.message)
                continue

            if entry.moniker in self._classes:
                log.info(
                    "registry.moniker_taken",
                    moniker=entry.moniker,
                    kept=self._classes[entry.moniker].class_name,
                    ignored=name,
                )
                continue

            self._classes[entry.moniker] = entry
            self._by_class[cls] = entry.moniker
            known.add(name)
            added.append(entry.moniker)
            log.debug("registry.class_loaded", moniker=entry.moniker, class_name=name)
            if on_loaded is not None:
                on_loaded(entry.moniker, cls)

        self._loaded = True
        return added

    @staticmethod
    def import_class(name: str) -> type:
        """Import ``pkg.mod.Class`` or ``pkg.mod:Class``."""
        if ":" in name:
            module_name, _, attr = name.partition(":")
        else:
            module_name, _, attr = name.rpartition(".")
        if not module_name or not attr:
            raise ClassLoadError(name, f"'{name}' is not a dotted class path")
        try:
            module = importlib.import_module(module_name)
        except ImportError as exc:
            raise ClassLoadError(name, f"cannot import module '{module_name}': {exc}", cause=exc) from exc
        except Exception as exc:
            raise ClassLoadError(
                name, f"module '{module_name}' failed to import: {type(exc).__name__}: {exc}", cause=exc
            ) from exc
        try:
            cls = getattr(module, attr)
        except AttributeError as exc:
            raise ClassLoadError(name, f"module '{module_name}' has no class '{attr}'", cause=exc) from exc
        return cls

    @staticmethod
    def assimilate(cls: type, class_name: str | None = None) -> ManagedClass:
        """Read the moniker and display metadata off a managed class."""
        class_name = class_name or f"{cls.__module__}.{cls.__qualname__}"
        if not (isinstance(cls, type) and issubclass(cls, ManagedRecord)):
            raise ClassLoadError(class_name, f"'{class_name}' is not a managed record class")
        return ManagedClass(
            moniker=cls.get_moniker(),
            class_name=class_name,
            cls=cls,
            title=cls.get_title(),
            plural=cls.get_plural(),
            description=cls.get_description(),
        )

    # ── Queries ──────────────────────────────────────────────────────

    @property
    def monikers(self) -> list[str]:
        """Monikers in load order."""
        return list(self._classes)

    def get(self, moniker: str | None) -> ManagedClass | None:
        if moniker is None:
            return None
        return self._classes.get(moniker)

    def class_for(self, moniker: str | None) -> type | None:
        entry = self.get(moniker)
        return entry.cls if entry else None

    def has(self, moniker: str | None) -> bool:
        return moniker is not None and moniker in self._classes

    def moniker_for_class(self, cls: type | str) -> str | None:
        """Moniker of a loaded class, given the class or its dotted name."""
        if isinstance(cls, str):
            for entry in self._classes.values():
                if entry.class_name == cls:
                    return entry.moniker
            return None
        return self._by_class.get(cls)

    def __iter__(self):
        return iter(self._classes.values())

    def __len__(self) -> int:
        return len(self._classes)

    def __repr__(self) -> str:
        return f"ClassRegistry(monikers={self.monikers!r}, strict={self.strict})"
