"""Errors raised (or yielded) by the mail store."""

from pathlib import Path


class TrapmailError(Exception):
    """Base class for all store and record errors."""

    prefix = "Trapmail error"

    def __init__(self, cause: object, path: Path | None = None):
        self.cause = cause
        self.path = path
        super().__init__(f"{self.prefix}: {cause}")


class StoreError(TrapmailError):
    """Record file could not be created or written."""
    prefix = "Could not store mail"


class SerializationError(TrapmailError):
    """Record could not be encoded as JSON."""
    prefix = "Could not serialize mail"


class DirEnumerationError(TrapmailError):
    """Store root is missing or cannot be listed."""
    prefix = "Could not open storage directory for reading"


class NonUnicodeFilenameError(TrapmailError):
    """A record-looking file name that is not valid UTF-8."""
    prefix = "Could not convert file name into string"


class LoadError(TrapmailError):
    """Record file is missing or unreadable."""
    prefix = "Could not load mail"


class DeserializationError(TrapmailError):
    """Record file content does not match the record format."""
    prefix = "Could not deserialize mail"
