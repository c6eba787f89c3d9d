import pytest

from finance_tracker.errors import BudgetSuggestionError, ConfigError, FinanceTrackerError, RecordNotFound


def test_all_errors_are_subclasses_of_base_error() -> None:
    assert issubclass(ConfigError, FinanceTrackerError)
    assert issubclass(RecordNotFound, FinanceTrackerError)
    assert issubclass(BudgetSuggestionError, FinanceTrackerError)


def test_can_catch_any_finance_tracker_error() -> None:
    with pytest.raises(FinanceTrackerError, match="nope"):
        raise RecordNotFound("nope")
