"""Step outcomes: what each handler step tells the request driver.

Manifesto:
    Every step of a request returns a uniform outcome, so the driver can
    decide in one place whether to carry on, render the page early,
    render an error view or redirect. Steps never render failures
    themselves and never use exceptions for expected control flow.

ARCHITECTURE
────────────
::

    StepOutcome
      ├── .proceed()                         → CONTINUE (next step runs)
      ├── .finish(view, message, errors)     → OK, render now
      ├── .not_found(message, view)          → 404
      ├── .auth_required(message, view)      → 401, login/denied view
      ├── .server_error(message, error)      → 500, operators notified
      ├── .redirect(target)                  → 302
      ├── .from_value(any)                   → coerce plain returns
      └── .from_error(exc)                   → map a raised error

Example::

    def check_permission(self):
        if not self.session():
            return StepOutcome.auth_required("please log in")
        return StepOutcome.proceed()

Tags:
    sitefactory, web, outcome, control-flow

Doc-Types:
    api-reference
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from sitefactory.core.errors import AuthRequiredError, NotFoundError, SiteFactoryError


class OutcomeKind(str, Enum):
    """Closed set of step outcomes."""

    CONTINUE = "CONTINUE"
    OK = "OK"
    NOT_FOUND = "NOT_FOUND"
    AUTH_REQUIRED = "AUTH_REQUIRED"
    SERVER_ERROR = "SERVER_ERROR"
    REDIRECT = "REDIRECT"


STATUS_CODES: dict[OutcomeKind, int] = {
    OutcomeKind.CONTINUE: 200,
    OutcomeKind.OK: 200,
    OutcomeKind.NOT_FOUND: 404,
    OutcomeKind.AUTH_REQUIRED: 401,
    OutcomeKind.SERVER_ERROR: 500,
    OutcomeKind.REDIRECT: 302,
}


@dataclass(frozen=True)
class StepOutcome:
    """
    Result of one handler step.

    Attributes:
        kind: What the driver should do next.
        view: View to render instead of the default for this kind.
        message: Text for the page (OK) or the error report.
        errors: Accumulated user-facing errors (OK).
        target: Redirect address.
        error: The exception behind a failure, if there was one.
        recognized: False when the failure was not one the framework
            signals on purpose.
    """

    kind: OutcomeKind
    view: str | None = None
    message: str | None = None
    errors: tuple[str, ...] = field(default_factory=tuple)
    target: str | None = None
    error: BaseException | None = None
    recognized: bool = True

    # =========================================================================
    # Factories
    # =========================================================================

    @classmethod
    def proceed(cls) -> StepOutcome:
        return cls(OutcomeKind.CONTINUE)

    @classmethod
    def finish(
        cls,
        view: str | None = None,
        message: str | None = None,
        errors: list[str] | tuple[str, ...] | None = None,
    ) -> StepOutcome:
        """Stop here and render *view* (or the usual page) with status 200."""
        return cls(OutcomeKind.OK, view=view, message=message, errors=tuple(errors or ()))

    @classmethod
    def not_found(cls, message: str | None = None, view: str | None = None) -> StepOutcome:
        return cls(OutcomeKind.NOT_FOUND, view=view, message=message)

    @classmethod
    def auth_required(cls, message: str | None = None, view: str | None = None) -> StepOutcome:
        return cls(OutcomeKind.AUTH_REQUIRED, view=view, message=message)

    @classmethod
    def server_error(
        cls,
        message: str | None = None,
        error: BaseException | None = None,
        view: str | None = None,
    ) -> StepOutcome:
        return cls(OutcomeKind.SERVER_ERROR, view=view, message=message, error=error)

    @classmethod
    def redirect(cls, target: str | None = None) -> StepOutcome:
        return cls(OutcomeKind.REDIRECT, target=target)

    @classmethod
    def from_value(cls, value: Any) -> StepOutcome:
        """
        Coerce whatever a step returned into an outcome.

        ``None``, ``True`` and anything that is not an outcome mean carry
        on; ``False`` is an unexplained server error.
        """
        if isinstance(value, StepOutcome):
            return value
        if value is False:
            return cls.server_error("step reported failure")
        return cls.proceed()

    @classmethod
    def from_error(cls, exc: BaseException) -> StepOutcome:
        """Map a raised exception onto the outcome the driver handles."""
        if isinstance(exc, NotFoundError):
            return cls.not_found(exc.message)
        if isinstance(exc, AuthRequiredError):
            return cls.auth_required(exc.message)
        if isinstance(exc, SiteFactoryError):
            return cls.server_error(exc.message, error=exc)
        return cls(OutcomeKind.SERVER_ERROR, message=str(exc) or type(exc).__name__, error=exc, recognized=False)

    # =========================================================================
    # Queries
    # =========================================================================

    @property
    def proceeds(self) -> bool:
        return self.kind is OutcomeKind.CONTINUE

    @property
    def status(self) -> int:
        return STATUS_CODES[self.kind]

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"kind": self.kind.value, "status": self.status}
        for key in ("view", "message", "target"):
            value = getattr(self, key)
            if value is not None:
                result[key] = value
        if self.errors:
            result["errors"] = list(self.errors)
        if self.error is not None:
            result["error"] = (
                self.error.to_dict() if isinstance(self.error, SiteFactoryError) else repr(self.error)
            )
        if not self.recognized:
            result["recognized"] = False
        return result
