"""sendmail replacement that captures mail to disk for integration tests."""

from .errors import (
    DeserializationError,
    DirEnumerationError,
    LoadError,
    NonUnicodeFilenameError,
    SerializationError,
    StoreError,
    TrapmailError,
)
from .mail import CliOptions, InvalidBody, Mail, MailBody, Utf8Body
from .store import ENV_MAIL_STORE_PATH, MailStore

__all__ = [
    "CliOptions",
    "DeserializationError",
    "DirEnumerationError",
    "ENV_MAIL_STORE_PATH",
    "InvalidBody",
    "LoadError",
    "Mail",
    "MailBody",
    "MailStore",
    "NonUnicodeFilenameError",
    "SerializationError",
    "StoreError",
    "TrapmailError",
    "Utf8Body",
]
