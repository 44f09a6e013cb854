"""Lists and pagers over the objects of one moniker.

Both are lazy: nothing is queried until ``total``, ``contents`` or
``items()`` is first read, and each query runs at most once per object.
"""

from __future__ import annotations

import math
from collections.abc import Iterator, Sequence
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from sitefactory.framework.factory import Factory

_UNSET: Any = object()


def _as_int(value: Any, default: int) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


class ObjectList:
    """A sorted, windowed slice of the objects matching some column criteria.

    Args:
        factory: Owning Factory.
        moniker: Class to list.
        criteria: Equality filter; names that are not columns are dropped.
        sortby: Column to sort on. Ignored unless it is a column.
        sortorder: ``asc`` or ``desc``.
        startat: Offset of the first object in the window.
        step: Window size. ``None`` or 0 means everything from ``startat``.
    """

    def __init__(
        self,
        factory: Factory,
        moniker: str,
        criteria: dict[str, Any] | None = None,
        *,
        sortby: str | None = None,
        sortorder: str = "asc",
        startat: Any = 0,
        step: Any = None,
    ):
        self.factory = factory
        self.moniker = moniker
        self._cls = factory.class_for(moniker)
        self.criteria = {
            name: value
            for name, value in (criteria or {}).items()
            if self._cls is not None and self._cls.find_column(name)
        }
        self.sortby = sortby if sortby and self._cls is not None and self._cls.find_column(sortby) else None
        self.sortorder = "desc" if str(sortorder).lower() == "desc" else "asc"
        self.start = max(0, _as_int(startat, 0))
        self._step = max(0, _as_int(step, 0)) or None
        self.source: Any = None
        self.param: str | None = None
        self._total: int | None = None
        self._contents: list[Any] | None = None

    @classmethod
    def from_items(
        cls,
        factory: Factory,
        items: Sequence[Any],
        source: Any = None,
        param: str | None = None,
    ) -> ObjectList:
        """Wrap objects that are already in hand, e.g. a relationship collection."""
        items = list(items)
        moniker = items[0].type if items else ""
        listing = cls(factory, moniker)
        listing._contents = items
        listing._total = len(items)
        listing.source = source
        listing.param = param
        return listing

    @property
    def step(self) -> int:
        return self._step or self.total

    @property
    def total(self) -> int:
        if self._total is None:
            self._total = self._cls.count_where(self.factory, self.criteria) if self._cls else 0
        return self._total

    @property
    def contents(self) -> list[Any]:
        if self._contents is None:
            if self._cls is None:
                self._contents = []
            else:
                self._contents = self._cls.slice_where(
                    self.factory,
                    self.criteria,
                    order_by=self.sortby,
                    descending=self.sortorder == "desc",
                    offset=self.start,
                    limit=self._step,
                )
        return self._contents

    @property
    def end(self) -> int:
        """Offset just past the last object in the window."""
        return min(self.start + self.step, self.total)

    @property
    def has_next(self) -> bool:
        return self.end < self.total

    @property
    def has_previous(self) -> bool:
        return self.start > 0

    @property
    def next_start(self) -> int | None:
        return self.end if self.has_next else None

    @property
    def previous_start(self) -> int | None:
        return max(0, self.start - self.step) if self.has_previous else None

    @property
    def pages(self) -> list[dict[str, int]]:
        """Every window as ``{"number", "start"}``, for page links."""
        if not self.total or not self.step:
            return []
        return [
            {"number": index + 1, "start": offset}
            for index, offset in enumerate(range(0, self.total, self.step))
        ]

    def __iter__(self) -> Iterator[Any]:
        return iter(self.contents)

    def __len__(self) -> int:
        return len(self.contents)

    def __repr__(self) -> str:
        return f"ObjectList({self.moniker!r}, start={self.start}, step={self._step})"


class Pager:
    """Page-numbered view over every object of a moniker."""

    def __init__(
        self,
        factory: Factory,
        moniker: str,
        per_page: Any = 10,
        page: Any = 1,
        criteria: dict[str, Any] | None = None,
    ):
        self.factory = factory
        self.moniker = moniker
        self._cls = factory.class_for(moniker)
        self.criteria = criteria or {}
        self.entries_per_page = max(1, _as_int(per_page, 10))
        self._requested_page = max(1, _as_int(page, 1))
        self._total: int | None = None
        self._items: Any = _UNSET

    @property
    def total_entries(self) -> int:
        if self._total is None:
            self._total = self._cls.count_where(self.factory, self.criteria) if self._cls else 0
        return self._total

    @property
    def first_page(self) -> int:
        return 1

    @property
    def last_page(self) -> int:
        return max(1, math.ceil(self.total_entries / self.entries_per_page))

    @property
    def current_page(self) -> int:
        return min(self._requested_page, self.last_page)

    @property
    def first(self) -> int:
        """1-based position of the first entry on this page (0 when empty)."""
        if not self.total_entries:
            return 0
        return (self.current_page - 1) * self.entries_per_page + 1

    @property
    def last(self) -> int:
        return min(self.current_page * self.entries_per_page, self.total_entries)

    @property
    def previous_page(self) -> int | None:
        return self.current_page - 1 if self.current_page > self.first_page else None

    @property
    def next_page(self) -> int | None:
        return self.current_page + 1 if self.current_page < self.last_page else None

    def items(self) -> list[Any]:
        if self._items is _UNSET:
            if self._cls is None or not self.total_entries:
                self._items = []
            else:
                self._items = self._cls.slice_where(
                    self.factory,
                    self.criteria,
                    offset=self.first - 1,
                    limit=self.entries_per_page,
                )
        return self._items

    def __repr__(self) -> str:
        return f"Pager({self.moniker!r}, page={self.current_page}/{self.last_page})"
