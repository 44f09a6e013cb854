"""
Structural protocols shared across sitefactory.

``RowLike`` is the one contract that both a persisted data object and a
:class:`~sitefactory.framework.ghost.Ghost` satisfy, so templates and
handler steps can read and write fields without asking which one they
hold. Only code that materialises a ghost (``make()``) needs to branch
on ``is_ghost``.
"""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class RowLike(Protocol):
    """Read/write view of one row of a managed class."""

    @property
    def type(self) -> str:
        """Moniker of the class this row belongs to."""
        ...

    @property
    def is_ghost(self) -> bool:
        ...

    def get(self, column: str) -> Any:
        """Column value, or None when *column* is not a column."""
        ...

    def set(self, column: str, value: Any) -> bool:
        """Assign a column. Returns False (and does nothing) for non-columns."""
        ...

    def column_values(self) -> dict[str, Any]:
        ...


__all__ = ["RowLike"]
