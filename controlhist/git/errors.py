"""Errors raised by the git object layer.

Expected absence (no repository, no such path, no history) is never an
exception here; it is a ``None`` or empty return value. These types cover the
cases that really are faults.
"""


class HistoryError(Exception):
    """Base class for git history failures."""


class CorruptObjectError(HistoryError):
    """An object id is referenced but missing or of the wrong type."""

    def __init__(self, oid: str, expected: str, actual: str | None = None):
        self.oid = oid
        self.expected = expected
        self.actual = actual
        if actual is None:
            message = f"Object {oid} ({expected}) is missing from the object store"
        else:
            message = f"Object {oid} is a {actual}, expected {expected}"
        super().__init__(message)
