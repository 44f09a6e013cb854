"""
Structured error types for sitefactory.

Every failure the framework signals on purpose is a ``SiteFactoryError``
subclass carrying a category, a structured context and an optional chained
cause. The request driver turns these into rendered pages; everything else
logs them with ``to_dict()``.

Manifesto:
    - **Typed hierarchy:** one class per failure kind the framework knows
    - **Rich context:** errors say which site, moniker, view or template
    - **Error chaining:** the underlying exception is kept as ``cause``

Architecture:
    ::

        ┌─────────────────────────────────────────────────────────────┐
        │                     SiteFactoryError                        │
        │            (category, context, cause)                       │
        ├─────────────────────────────────────────────────────────────┤
        │  ConfigError          OperationNotRecognizedError           │
        │   ├─ MissingConfigError                                      │
        │   └─ ClassLoadError   NotFoundError   AuthRequiredError     │
        │                                                              │
        │  ServerError          InvalidCriteriaError   MailError      │
        │   ├─ TemplateError                                           │
        │   └─ DatabaseError                                           │
        └─────────────────────────────────────────────────────────────┘

        FatalError (RuntimeError) sits outside the hierarchy: it is what
        Factory.fail() raises when typed signalling is switched off, and
        the request driver never turns it into a page.

Examples:
    >>> err = NotFoundError("No 'cd' with id 9").with_context(moniker="cd")
    >>> err.category
    <ErrorCategory.NOT_FOUND: 'NOT_FOUND'>
    >>> err.to_dict()["context"]
    {'moniker': 'cd'}

Tags:
    errors, exceptions, error-handling, sitefactory

Doc-Types:
    - API Reference
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ErrorCategory(str, Enum):
    """Error categories used for logging, alerting and status mapping."""

    CONFIG = "CONFIG"
    DISPATCH = "DISPATCH"
    NOT_FOUND = "NOT_FOUND"
    AUTH = "AUTH"
    VALIDATION = "VALIDATION"
    TEMPLATE = "TEMPLATE"
    DATABASE = "DATABASE"
    NETWORK = "NETWORK"
    INTERNAL = "INTERNAL"
    UNKNOWN = "UNKNOWN"


@dataclass
class ErrorContext:
    """
    Structured metadata attached to an error.

    Typed fields cover what the framework knows at the point of failure;
    anything else goes into ``metadata``. ``to_dict()`` only emits fields
    that are set.
    """

    site: str | None = None
    moniker: str | None = None
    operation: str | None = None
    view: str | None = None
    template: str | None = None
    url: str | None = None

    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging."""
        result = {}
        for key in ["site", "moniker", "operation", "view", "template", "url"]:
            value = getattr(self, key)
            if value is not None:
                result[key] = value
        if self.metadata:
            result.update(self.metadata)
        return result


class SiteFactoryError(Exception):
    """
    Base exception for every error sitefactory raises on purpose.

    Subclasses set ``default_category``. Instances carry a message, a
    category, an :class:`ErrorContext` and an optional ``cause`` that is
    also chained as ``__cause__``.
    """

    default_category: ErrorCategory = ErrorCategory.INTERNAL

    def __init__(
        self,
        message: str,
        *,
        category: ErrorCategory | None = None,
        context: ErrorContext | None = None,
        cause: Exception | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = category or self.default_category
        self.context = context or ErrorContext()
        self.cause = cause

        if cause is not None:
            self.__cause__ = cause

    def with_context(self, **kwargs: Any) -> SiteFactoryError:
        """
        Add context to this error (fluent API).

        Usage:
            raise NotFoundError("missing").with_context(moniker="cd", view="one")
        """
        for key, value in kwargs.items():
            if hasattr(self.context, key) and key != "metadata":
                setattr(self.context, key, value)
            else:
                self.context.metadata[key] = value
        return self

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for logging/serialization."""
        result: dict[str, Any] = {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "category": self.category.value,
        }
        context_dict = self.context.to_dict()
        if context_dict:
            result["context"] = context_dict
        if self.cause is not None:
            result["cause"] = str(self.cause)
        return result

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, category={self.category.value})"


class FatalError(RuntimeError):
    """Hard failure: raised instead of a typed error when signalling is off."""


# =============================================================================
# CONFIGURATION ERRORS
# =============================================================================


class ConfigError(SiteFactoryError):
    """Configuration is missing or unusable."""

    default_category = ErrorCategory.CONFIG


class MissingConfigError(ConfigError):
    """Required configuration is missing."""

    def __init__(self, key: str, message: str | None = None):
        self.key = key
        super().__init__(message or f"Missing required configuration: {key}")


class ClassLoadError(ConfigError):
    """A configured data class could not be imported or assimilated."""

    def __init__(self, class_name: str, message: str | None = None, *, cause: Exception | None = None):
        self.class_name = class_name
        super().__init__(message or f"failed to load class '{class_name}'", cause=cause)


# =============================================================================
# DISPATCH AND REQUEST ERRORS
# =============================================================================


class OperationNotRecognizedError(SiteFactoryError):
    """An operation outside the allow-list was requested."""

    default_category = ErrorCategory.DISPATCH

    def __init__(self, operation: str, available: list[str] | None = None):
        self.operation = operation
        self.available = available or []
        super().__init__(f"operation '{operation}' is not recognised")
        self.context.operation = operation


class NotFoundError(SiteFactoryError):
    """The requested object, type or view does not exist."""

    default_category = ErrorCategory.NOT_FOUND


class AuthRequiredError(SiteFactoryError):
    """The caller lacks the session or credentials the request needs."""

    default_category = ErrorCategory.AUTH


class InvalidCriteriaError(SiteFactoryError):
    """Search criteria name something that is not a column."""

    default_category = ErrorCategory.VALIDATION


# =============================================================================
# SERVER ERRORS
# =============================================================================


class ServerError(SiteFactoryError):
    """Unexpected failure while serving a request."""

    default_category = ErrorCategory.INTERNAL


class TemplateError(ServerError):
    """Template lookup, compilation or rendering failed."""

    default_category = ErrorCategory.TEMPLATE


class DatabaseError(ServerError):
    """The data layer refused or failed an operation."""

    default_category = ErrorCategory.DATABASE


class MailError(SiteFactoryError):
    """A message could not be handed to the mail server."""

    default_category = ErrorCategory.NETWORK


# =============================================================================
# UTILITY FUNCTIONS
# =============================================================================


def categorize_error(error: BaseException) -> ErrorCategory:
    """Get the category of an error."""
    if isinstance(error, SiteFactoryError):
        return error.category
    if isinstance(error, (ConnectionError, OSError)):
        return ErrorCategory.NETWORK
    if isinstance(error, (LookupError, AttributeError)):
        return ErrorCategory.INTERNAL
    return ErrorCategory.UNKNOWN


__all__ = [
    "ErrorCategory",
    "ErrorContext",
    "SiteFactoryError",
    "FatalError",
    "ConfigError",
    "MissingConfigError",
    "ClassLoadError",
    "OperationNotRecognizedError",
    "NotFoundError",
    "AuthRequiredError",
    "InvalidCriteriaError",
    "ServerError",
    "TemplateError",
    "DatabaseError",
    "MailError",
    "categorize_error",
]
