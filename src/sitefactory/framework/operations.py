"""
Generic data operations a Factory may dispatch to a managed class.

The allow-list is a closed enum with a static table from each member to
the function that performs it. Templates and handlers name operations by
string; :func:`resolve_operation` maps those names (and their historical
aliases) onto the enum. Anything not in the table is refused, so a caller
can never reach an arbitrary class attribute by naming it.

Every operation function has the same shape::

    fn(cls, factory, *args, **kwargs)

where ``cls`` is the managed class and ``factory`` the owning Factory.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from enum import Enum
from typing import TYPE_CHECKING, Any

from sitefactory.core.errors import OperationNotRecognizedError

if TYPE_CHECKING:
    from sitefactory.core.orm.base import ManagedRecord
    from sitefactory.framework.factory import Factory

OperationFunc = Callable[..., Any]


class Operation(str, Enum):
    """Standard operations every managed class supports."""

    CREATE = "create"
    RETRIEVE = "retrieve"
    FIND_OR_CREATE = "find_or_create"
    RETRIEVE_ALL = "retrieve_all"
    SEARCH = "search"
    SEARCH_LIKE = "search_like"
    COUNT_ALL = "count_all"
    MAXIMUM_VALUE_OF = "maximum_value_of"
    MINIMUM_VALUE_OF = "minimum_value_of"
    FIND_COLUMN = "find_column"
    COLUMNS = "columns"
    TABLE = "table"
    PRIMARY = "primary"
    CREATE_TABLE = "create_table"
    RETRIEVE_RANDOM = "retrieve_random"
    COLUMN_TYPE = "column_type"
    META_INFO = "meta_info"


def _create(cls: type[ManagedRecord], factory: Factory, *args: Any, **kwargs: Any) -> Any:
    return cls.create(factory, *args, **kwargs)


def _retrieve(cls: type[ManagedRecord], factory: Factory, *args: Any, **kwargs: Any) -> Any:
    return cls.retrieve(factory, *args, **kwargs)


def _find_or_create(cls: type[ManagedRecord], factory: Factory, *args: Any, **kwargs: Any) -> Any:
    return cls.find_or_create(factory, *args, **kwargs)


def _retrieve_all(cls: type[ManagedRecord], factory: Factory) -> list[Any]:
    return cls.retrieve_all(factory)


def _search(cls: type[ManagedRecord], factory: Factory, *args: Any, **kwargs: Any) -> list[Any]:
    return cls.search(factory, *args, **kwargs)


def _search_like(cls: type[ManagedRecord], factory: Factory, *args: Any, **kwargs: Any) -> list[Any]:
    return cls.search_like(factory, *args, **kwargs)


def _count_all(cls: type[ManagedRecord], factory: Factory) -> int:
    return cls.count_all(factory)


def _maximum_value_of(cls: type[ManagedRecord], factory: Factory, column: str) -> Any:
    return cls.maximum_value_of(factory, column)


def _minimum_value_of(cls: type[ManagedRecord], factory: Factory, column: str) -> Any:
    return cls.minimum_value_of(factory, column)


def _find_column(cls: type[ManagedRecord], factory: Factory, name: str) -> str | None:
    return cls.find_column(name)


def _columns(cls: type[ManagedRecord], factory: Factory, group: str = "All") -> list[str]:
    return cls.columns(group)


def _table(cls: type[ManagedRecord], factory: Factory) -> str:
    return cls.table()


def _primary(cls: type[ManagedRecord], factory: Factory) -> str:
    return cls.primary()


def _create_table(cls: type[ManagedRecord], factory: Factory) -> None:
    cls.create_table(factory)


def _retrieve_random(cls: type[ManagedRecord], factory: Factory) -> Any:
    return cls.retrieve_random(factory)


def _column_type(cls: type[ManagedRecord], factory: Factory, name: str) -> str | None:
    return cls.column_type(name)


def _meta_info(cls: type[ManagedRecord], factory: Factory, reltype: str | None = None) -> dict[str, Any]:
    return cls.meta_info(reltype)


STANDARD_OPERATIONS: dict[Operation, OperationFunc] = {
    Operation.CREATE: _create,
    Operation.RETRIEVE: _retrieve,
    Operation.FIND_OR_CREATE: _find_or_create,
    Operation.RETRIEVE_ALL: _retrieve_all,
    Operation.SEARCH: _search,
    Operation.SEARCH_LIKE: _search_like,
    Operation.COUNT_ALL: _count_all,
    Operation.MAXIMUM_VALUE_OF: _maximum_value_of,
    Operation.MINIMUM_VALUE_OF: _minimum_value_of,
    Operation.FIND_COLUMN: _find_column,
    Operation.COLUMNS: _columns,
    Operation.TABLE: _table,
    Operation.PRIMARY: _primary,
    Operation.CREATE_TABLE: _create_table,
    Operation.RETRIEVE_RANDOM: _retrieve_random,
    Operation.COLUMN_TYPE: _column_type,
    Operation.META_INFO: _meta_info,
}

# Public operation names, including the short aliases templates use.
OPERATION_NAMES: dict[str, Operation] = {
    **{op.value: op for op in Operation},
    "foc": Operation.FIND_OR_CREATE,
    "all": Operation.RETRIEVE_ALL,
    "where": Operation.SEARCH,
    "retrieve_where": Operation.SEARCH,
    "like": Operation.SEARCH_LIKE,
    "count": Operation.COUNT_ALL,
    "max": Operation.MAXIMUM_VALUE_OF,
    "min": Operation.MINIMUM_VALUE_OF,
    "has_column": Operation.FIND_COLUMN,
    "random": Operation.RETRIEVE_RANDOM,
}


def resolve_operation(
    name: str | Operation,
    extra: Mapping[str, OperationFunc] | None = None,
) -> OperationFunc:
    """Return the function for operation *name*.

    *extra* (a Factory subclass's own operations) is consulted first.

    Raises:
        OperationNotRecognizedError: *name* is in neither table.
    """
    if isinstance(name, Operation):
        return STANDARD_OPERATIONS[name]
    if extra and name in extra:
        return extra[name]
    operation = OPERATION_NAMES.get(name)
    if operation is None:
        available = sorted({*OPERATION_NAMES, *(extra or {})})
        raise OperationNotRecognizedError(name, available)
    return STANDARD_OPERATIONS[operation]


def operation_names(extra: Mapping[str, OperationFunc] | None = None) -> list[str]:
    """Every name :func:`resolve_operation` accepts."""
    return sorted({*OPERATION_NAMES, *(extra or {})})


__all__ = [
    "Operation",
    "OperationFunc",
    "STANDARD_OPERATIONS",
    "OPERATION_NAMES",
    "resolve_operation",
    "operation_names",
]
