"""
Custom exceptions for LaLA evidence gathering.
"""


class LalaError(Exception):
    """Base exception for all LaLA errors."""
    pass


class InvalidInputError(LalaError, ValueError):
    """Raised when constructor arguments are malformed."""
    pass


class NotFoundError(LalaError, KeyError):
    """Raised when an identity map has no entry for the requested id."""

    def __str__(self):
        # KeyError quotes its argument, keep the plain message
        return str(self.args[0]) if self.args else ''


class ConfigurationError(LalaError):
    """Raised for missing identity maps, missing options or invalid settings."""
    pass


class InsufficientAnonymitySetError(LalaError):
    """Raised when too few distinct subjects would end up in an anonymized set."""

    def __init__(self, table_name, found, required, column=None):
        self.table_name = table_name
        self.column = column
        self.found = found
        self.required = required
        where = f"{table_name}.{column}" if column else table_name
        super().__init__(
            f"Too few distinct ids in {where}. Found only {found}, "
            f"at least {required} are needed to preserve anonymity."
        )


class MalformedDatasetError(LalaError, ValueError):
    """Raised when a dataset does not have the expected structure."""
    pass


class StructuralMismatchError(LalaError):
    """Raised when two datasets can not be combined."""
    pass


class NoDataError(LalaError):
    """Raised when not enough samples are available for a step."""
    pass


class EvidenceStateError(LalaError):
    """Raised when a pipeline step runs before the evidence it depends on exists."""
    pass


class EvidenceStorageError(LalaError):
    """Raised when evidence can not be written to or read from the store."""
    pass
