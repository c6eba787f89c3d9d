"""Finance Tracker exception hierarchy.

Bad input values raise plain ``ValueError``; these cover the rest.
"""


class FinanceTrackerError(Exception):
    """Base exception for all Finance Tracker errors."""


class ConfigError(FinanceTrackerError):
    """Raised for invalid or incomplete configuration."""


class RecordNotFound(FinanceTrackerError):
    """Raised when a record does not exist for the requesting user."""


class BudgetSuggestionError(FinanceTrackerError):
    """Raised when the text-generation service returns nothing usable."""
