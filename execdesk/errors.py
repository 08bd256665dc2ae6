"""
Exception hierarchy for ExecDesk.

Analytics functions do not raise on sparse or empty data; these exceptions
cover argument preconditions and boundary failures only.
"""


class ExecDeskError(Exception):
    """Base class for all ExecDesk errors."""
    pass


class EmptyInputError(ExecDeskError, ValueError):
    """Raised when an operation needs at least one element and got none."""
    pass


class EventValidationError(ExecDeskError):
    """Raised when a raw event payload fails validation."""

    def __init__(self, kind: str, errors):
        self.kind = kind
        self.errors = list(errors)
        super().__init__(f"Invalid {kind}: {'; '.join(self.errors)}")


class ConfigError(ExecDeskError):
    """Raised when configuration cannot be loaded or validated."""
    pass


class DataFileError(ExecDeskError):
    """Raised when an event file exists but cannot be read as a table of records."""
    pass
