"""
Exception taxonomy for the document store.

Every error is reported synchronously to the immediate caller. Nothing in
the library retries or recovers on its own; retry policy belongs to callers.
"""

from __future__ import annotations


class DocstageError(Exception):
    """Base class for all docstage errors."""


class NotFound(DocstageError, KeyError):
    """An object or ref is absent from the store."""

    def __init__(self, what: str, key: str):
        self.what = what
        self.key = key
        super().__init__(f"{what} not found: {key}")

    def __str__(self) -> str:
        # KeyError would otherwise repr() the message
        return self.args[0]


class RefExists(DocstageError):
    """A ref was created under a name that is already taken."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Ref already exists: {name}")


class RefConflict(DocstageError):
    """A ref moved between the time it was read and the time it was updated."""

    def __init__(self, name: str, expected: str | None, actual: str | None):
        self.name = name
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Ref {name} has moved: expected {expected or '<absent>'}, found {actual or '<absent>'}"
        )


class IntegrityError(DocstageError):
    """Replayed data does not match its recorded hash or length."""


class CorruptWrite(IntegrityError):
    """An object written with a known hash re-hashed to something else."""

    def __init__(self, expected: str, actual: str):
        self.expected = expected
        self.actual = actual
        super().__init__(f"oid mismatch! expected: {expected}, got: {actual}")


class MalformedStream(DocstageError, ValueError):
    """A dump stream violates the section structure."""

    def __init__(self, message: str, line_number: int | None = None):
        self.line_number = line_number
        if line_number is not None:
            message = f"line {line_number}: {message}"
        super().__init__(message)


class DecodeError(DocstageError, ValueError):
    """An object payload cannot be decoded."""

    def __init__(self, oid: str, reason: str):
        self.oid = oid
        self.reason = reason
        super().__init__(f"Cannot decode {oid}: {reason}")


class NoSuchState(DocstageError):
    """A state was used as a promotion source before anything was saved to it."""

    def __init__(self, state: str):
        self.state = state
        super().__init__(f"State has no revisions: {state}")
