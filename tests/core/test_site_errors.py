"""
Tests for sitefactory.core.errors.

Tests cover:
- Categories by class
- Fluent context and structured dicts
- Cause chaining
- categorize_error for foreign exceptions
"""

import pytest

from sitefactory.core.errors import (
    AuthRequiredError,
    ClassLoadError,
    ConfigError,
    DatabaseError,
    ErrorCategory,
    FatalError,
    MailError,
    MissingConfigError,
    NotFoundError,
    OperationNotRecognizedError,
    ServerError,
    SiteFactoryError,
    TemplateError,
    categorize_error,
)


class TestCategories:
    """Each error class carries its default category."""

    @pytest.mark.parametrize(
        "error, category",
        [
            (ConfigError("x"), ErrorCategory.CONFIG),
            (MissingConfigError("admin_email"), ErrorCategory.CONFIG),
            (ClassLoadError("a.B"), ErrorCategory.CONFIG),
            (OperationNotRecognizedError("frob"), ErrorCategory.DISPATCH),
            (NotFoundError("x"), ErrorCategory.NOT_FOUND),
            (AuthRequiredError("x"), ErrorCategory.AUTH),
            (ServerError("x"), ErrorCategory.INTERNAL),
            (TemplateError("x"), ErrorCategory.TEMPLATE),
            (DatabaseError("x"), ErrorCategory.DATABASE),
            (MailError("x"), ErrorCategory.NETWORK),
        ],
    )
    def test_default_category(self, error, category):
        assert error.category is category
        assert isinstance(error, SiteFactoryError)

    def test_template_and_database_errors_are_server_errors(self):
        assert issubclass(TemplateError, ServerError)
        assert issubclass(DatabaseError, ServerError)

    def test_fatal_error_is_outside_the_hierarchy(self):
        assert not issubclass(FatalError, SiteFactoryError)
        assert issubclass(FatalError, RuntimeError)


class TestContext:
    """Tests for with_context and to_dict."""

    def test_known_fields_and_metadata(self):
        error = NotFoundError("missing").with_context(moniker="album", view="one", shelf=3)

        assert error.context.moniker == "album"
        assert error.context.view == "one"
        assert error.context.metadata == {"shelf": 3}

    def test_to_dict(self):
        cause = ValueError("bad")
        error = ServerError("broke", cause=cause).with_context(site="music")

        data = error.to_dict()

        assert data["message"] == "broke"
        assert data["category"] == "INTERNAL"
        assert data["context"] == {"site": "music"}
        assert data["cause"] == "bad"
        assert error.__cause__ is cause

    def test_operation_not_recognised_message(self):
        error = OperationNotRecognizedError("frob", ["create", "retrieve"])

        assert "not recognised" in str(error)
        assert error.available == ["create", "retrieve"]
        assert error.context.operation == "frob"

    def test_missing_config_names_key(self):
        error = MissingConfigError("admin_email")

        assert error.key == "admin_email"
        assert "admin_email" in error.message

    def test_repr(self):
        assert repr(NotFoundError("gone")) == "NotFoundError('gone', category=NOT_FOUND)"


class TestCategorizeError:
    """Tests for categorize_error."""

    def test_sitefactory_error_uses_own_category(self):
        assert categorize_error(MailError("x")) is ErrorCategory.NETWORK

    def test_os_errors_are_network(self):
        assert categorize_error(ConnectionRefusedError()) is ErrorCategory.NETWORK

    def test_lookup_errors_are_internal(self):
        assert categorize_error(KeyError("k")) is ErrorCategory.INTERNAL

    def test_anything_else_is_unknown(self):
        assert categorize_error(ValueError("v")) is ErrorCategory.UNKNOWN
