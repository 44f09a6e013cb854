"""
Ghost: an unsaved stand-in for a data object.

A ghost holds column values for one moniker without touching the
database. Handlers use it to prepopulate a creation form (``id=new``),
and to keep a snapshot of an object that has just been deleted. It reads
and writes like a persisted object through the ``RowLike`` interface, but
quietly ignores anything that is not a column of the class it shadows,
so templates can read fields without guarding every access.

Primary-key columns always read as ``"new"``, through ``id`` and
``get()`` alike; a ghost taken from a persisted object keeps that
object's key as ``original_id``.

    ghost = factory.ghost_object("cd", {"title": "Blue"})
    ghost.title          # "Blue"
    ghost.colour         # None, not a column
    ghost.get("id")      # "new"
    cd = ghost.make()    # persisted; ghost unchanged
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from sitefactory.core.orm.base import ManagedRecord

if TYPE_CHECKING:
    from sitefactory.framework.factory import Factory

NEW_ID = "new"

_RESERVED = ("id", "type", "is_ghost")


class Ghost:
    """Column bag for one moniker whose primary key reads as ``"new"``."""

    is_ghost = True

    def __init__(self, factory: Factory, moniker: str, values: dict[str, Any] | None = None):
        object.__setattr__(self, "_factory", factory)
        object.__setattr__(self, "_moniker", moniker)
        object.__setattr__(self, "_values", {})
        object.__setattr__(self, "_original_id", None)
        for column, value in (values or {}).items():
            self.set(column, value)

    @classmethod
    def new(cls, factory: Factory, moniker: str | None, values: dict[str, Any] | None = None) -> Ghost | None:
        """A ghost of *moniker*, or None when no such class is loaded."""
        if not moniker or not factory.has_class(moniker):
            return None
        return cls(factory, moniker, values)

    @classmethod
    def from_existing(cls, factory: Factory, obj: Any) -> Ghost | None:
        """Snapshot every non-key column of a persisted object."""
        if obj is None:
            return None
        ghost = cls.new(factory, obj.type, obj.column_values())
        if ghost is not None:
            object.__setattr__(ghost, "_original_id", obj.id)
        return ghost

    # ── RowLike ──────────────────────────────────────────────────────

    @property
    def id(self) -> str:
        return NEW_ID

    @property
    def original_id(self) -> Any:
        """Primary key of the object this ghost was taken from, if any."""
        return self._original_id

    @property
    def type(self) -> str:
        return self._moniker

    @property
    def factory(self) -> Factory:
        return self._factory

    def find_column(self, name: str) -> str | None:
        return self._factory.find_column(self._moniker, name)

    def columns(self, group: str = "All") -> list[str]:
        return self._factory.columns(self._moniker, group) or []

    def _is_primary(self, column: str) -> bool:
        return column in self.columns("Primary")

    def get(self, column: str) -> Any:
        if self.find_column(column) is None:
            return None
        if self._is_primary(column):
            return NEW_ID
        return self._values.get(column)

    def set(self, column: str, value: Any) -> bool:
        """Store *value* under a non-key column; False when it is not one."""
        if self.find_column(column) is None or self._is_primary(column):
            return False
        self._values[column] = value
        return True

    def column_values(self) -> dict[str, Any]:
        return {column: self.get(column) for column in self.columns()}

    def __getattr__(self, name: str) -> Any:
        if name.startswith("_"):
            raise AttributeError(name)
        return self.get(name)

    def __setattr__(self, name: str, value: Any) -> None:
        if name.startswith("_"):
            object.__setattr__(self, name, value)
        elif name not in _RESERVED:
            self.set(name, value)

    # ── Materialising ────────────────────────────────────────────────

    def just_data(self) -> dict[str, Any]:
        """Column values ready for ``create``, related objects deflated to keys."""
        data = {}
        for column, value in self._values.items():
            if isinstance(value, ManagedRecord):
                value = value.get(value.primary())
            data[column] = value
        return data

    def make(self) -> Any:
        """Persist a new object from this ghost's values."""
        return self._factory.create(self._moniker, self.just_data())

    def find_or_make(self) -> Any:
        return self._factory.find_or_create(self._moniker, self.just_data())

    def __repr__(self) -> str:
        return f"<Ghost {self._moniker} {self._values!r}>"
