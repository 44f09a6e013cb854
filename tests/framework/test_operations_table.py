"""
Tests for sitefactory.framework.operations.

Tests cover:
- Every standard operation has a function
- Aliases resolve to the same function
- Site-specific operations are consulted first
- Unknown names fail loudly
"""

import pytest

from sitefactory.core.errors import OperationNotRecognizedError
from sitefactory.framework.operations import (
    OPERATION_NAMES,
    STANDARD_OPERATIONS,
    Operation,
    operation_names,
    resolve_operation,
)


class TestOperationTable:
    """Tests for the static operation table."""

    def test_every_operation_has_a_function(self):
        assert set(STANDARD_OPERATIONS) == set(Operation)

    def test_every_operation_is_reachable_by_value(self):
        for operation in Operation:
            assert OPERATION_NAMES[operation.value] is operation

    @pytest.mark.parametrize(
        "alias, operation",
        [
            ("foc", Operation.FIND_OR_CREATE),
            ("all", Operation.RETRIEVE_ALL),
            ("where", Operation.SEARCH),
            ("retrieve_where", Operation.SEARCH),
            ("like", Operation.SEARCH_LIKE),
            ("count", Operation.COUNT_ALL),
            ("max", Operation.MAXIMUM_VALUE_OF),
            ("min", Operation.MINIMUM_VALUE_OF),
            ("has_column", Operation.FIND_COLUMN),
            ("random", Operation.RETRIEVE_RANDOM),
        ],
    )
    def test_alias(self, alias, operation):
        assert resolve_operation(alias) is STANDARD_OPERATIONS[operation]


class TestResolveOperation:
    """Tests for resolve_operation."""

    def test_enum_member(self):
        assert resolve_operation(Operation.COUNT_ALL) is STANDARD_OPERATIONS[Operation.COUNT_ALL]

    def test_unknown_name_raises(self):
        with pytest.raises(OperationNotRecognizedError, match="bogusOperation") as info:
            resolve_operation("bogusOperation")

        assert "count" in info.value.available

    def test_method_names_are_not_operations(self):
        with pytest.raises(OperationNotRecognizedError):
            resolve_operation("__init__")

    def test_extra_operations_first(self):
        def shout(cls, factory, *args):
            return "extra"

        assert resolve_operation("count", {"count": shout}) is shout
        assert resolve_operation("shout", {"shout": shout}) is shout

    def test_operation_names_include_extras(self):
        names = operation_names({"shout": lambda cls, factory: None})

        assert "shout" in names
        assert "retrieve" in names
        assert names == sorted(names)
