"""Exceptions raised by pg-differ.

Database driver errors raised while a plan executes are never wrapped:
they propagate to the caller unchanged after the transaction is rolled
back.  Everything the package raises itself derives from ``DifferError``.
"""


class DifferError(Exception):
    """Base class for pg-differ errors."""

    pass


class SchemaValidationError(DifferError, ValueError):
    """Raised when a declarative definition is malformed.

    Attributes:
        path: Dotted path of the offending field, e.g.
            ``"properties.columns[1].type"``.
        message: Human-readable reason.

    Example:
        >>> error = SchemaValidationError("type", "should be one of ['table', 'sequence']")
        >>> str(error)
        "type: should be one of ['table', 'sequence']"
    """

    def __init__(self, path: str, message: str) -> None:
        self.path = path
        self.message = message
        super().__init__(f"{path}: {message}" if path else message)


class ProfileNotFoundError(DifferError):
    """Raised when no database profile is configured."""

    pass
