"""
Tests for sitefactory.web.outcomes.

Tests cover:
- Factory methods and status codes
- Coercing plain step return values
- Mapping raised exceptions onto outcomes
"""

import pytest

from sitefactory.core.errors import AuthRequiredError, DatabaseError, NotFoundError
from sitefactory.web.outcomes import OutcomeKind, StepOutcome


@pytest.mark.parametrize(
    "outcome,status",
    [
        (StepOutcome.proceed(), 200),
        (StepOutcome.finish(), 200),
        (StepOutcome.not_found(), 404),
        (StepOutcome.auth_required(), 401),
        (StepOutcome.server_error(), 500),
        (StepOutcome.redirect("/"), 302),
    ],
)
def test_status_codes(outcome, status):
    assert outcome.status == status


class TestFactories:
    """Tests for the StepOutcome constructors."""

    def test_only_proceed_proceeds(self):
        assert StepOutcome.proceed().proceeds
        assert not StepOutcome.finish().proceeds
        assert not StepOutcome.redirect("/").proceeds

    def test_finish_freezes_errors(self):
        outcome = StepOutcome.finish("one", "Saved", ["title is required"])

        assert outcome.kind is OutcomeKind.OK
        assert outcome.view == "one"
        assert outcome.errors == ("title is required",)

    def test_outcomes_are_immutable(self):
        with pytest.raises(AttributeError):
            StepOutcome.proceed().kind = OutcomeKind.OK


class TestFromValue:
    """Tests for StepOutcome.from_value."""

    @pytest.mark.parametrize("value", [None, True, 1, "done", object()])
    def test_plain_values_proceed(self, value):
        assert StepOutcome.from_value(value).proceeds

    def test_false_is_server_error(self):
        outcome = StepOutcome.from_value(False)

        assert outcome.kind is OutcomeKind.SERVER_ERROR
        assert outcome.message == "step reported failure"

    def test_outcome_passes_through(self):
        outcome = StepOutcome.not_found("gone")

        assert StepOutcome.from_value(outcome) is outcome


class TestFromError:
    """Tests for StepOutcome.from_error."""

    def test_not_found(self):
        outcome = StepOutcome.from_error(NotFoundError("no album 9"))

        assert outcome.kind is OutcomeKind.NOT_FOUND
        assert outcome.message == "no album 9"

    def test_auth_required(self):
        assert StepOutcome.from_error(AuthRequiredError("log in")).kind is OutcomeKind.AUTH_REQUIRED

    def test_recognized_server_error(self):
        error = DatabaseError("disk full")

        outcome = StepOutcome.from_error(error)

        assert outcome.kind is OutcomeKind.SERVER_ERROR
        assert outcome.error is error
        assert outcome.recognized

    def test_unrecognized_exception(self):
        outcome = StepOutcome.from_error(KeyError())

        assert outcome.kind is OutcomeKind.SERVER_ERROR
        assert outcome.message == "KeyError"
        assert not outcome.recognized
        assert outcome.to_dict()["recognized"] is False


def test_to_dict():
    data = StepOutcome.server_error("boom", error=DatabaseError("disk full")).to_dict()

    assert data["kind"] == "SERVER_ERROR"
    assert data["status"] == 500
    assert data["message"] == "boom"
    assert data["error"]["category"] == "DATABASE"
    assert "view" not in data
