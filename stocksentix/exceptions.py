"""
exceptions.py
-------------
Request-scoped error taxonomy. Every class doubles as a machine-checkable
error kind and a human-readable message that is safe to show to a user.
"""


class AnalysisError(ValueError):
    """Base class for recoverable, user-facing analysis failures."""


class ValidationError(AnalysisError):
    """A required request field is missing or malformed."""


class FutureDateError(AnalysisError):
    """The requested date range extends past today."""


class InvalidRangeError(AnalysisError):
    """date_from is later than date_to."""


class InsufficientDataError(AnalysisError):
    """Too few aligned samples or feature rows to run the analysis."""


class TickerNotFoundError(AnalysisError):
    """The requested ticker has no rows in the filtered dataset."""


class DataSourceError(AnalysisError):
    """A news, price or feature source is unreachable or malformed."""
