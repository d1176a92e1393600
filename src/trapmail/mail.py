"""Captured mail records and their JSON encoding."""

import json
import os
import time
from abc import ABC, abstractmethod
from dataclasses import asdict, dataclass
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any

from rich.pretty import pretty_repr

from .errors import DeserializationError, LoadError, SerializationError

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

# Delay before reading the clock, so that records created back to back by the
# same process get distinct timestamps (and therefore distinct file names).
CAPTURE_DELAY = 0.000001


@dataclass(frozen=True)
class CliOptions:
    """Command-line options a mail was received with."""
    debug: bool = False
    ignore_dots: bool = False
    inline_recipients: bool = False
    addresses: tuple[str, ...] = ()
    dump: str | None = None
    sender: str | None = None
    full_name: str | None = None
    options: tuple[str, ...] = ()
    store: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["addresses"] = list(self.addresses)
        data["options"] = list(self.options)
        return data

    @classmethod
    def from_dict(cls, data: Any) -> "CliOptions":
        """Build options from a decoded JSON object.

        Keys missing from `data` fall back to their defaults, so records
        written before a field existed still load.
        """
        if not isinstance(data, dict):
            raise ValueError(f"cli_options must be an object, got {type(data).__name__}")
        kwargs: dict[str, Any] = {}
        for name in ("debug", "ignore_dots", "inline_recipients"):
            if name in data:
                kwargs[name] = _expect(data[name], bool, name)
        for name in ("dump", "sender", "full_name", "store"):
            if data.get(name) is not None:
                kwargs[name] = _expect(data[name], str, name)
        for name in ("addresses", "options"):
            if name in data:
                values = _expect(data[name], list, name)
                kwargs[name] = tuple(_expect(v, str, name) for v in values)
        return cls(**kwargs)


class MailBody(ABC):
    """Raw mail body, stored as text when it is valid UTF-8.

    Mail bodies *should* be 7-bit ASCII, but callers may send anything. Bodies
    that decode cleanly become `Utf8Body` so stored records stay readable in a
    text editor; everything else becomes `InvalidBody` with the bytes kept
    exactly as received.
    """

    @staticmethod
    def from_raw(raw: bytes) -> "MailBody":
        try:
            return Utf8Body(raw.decode("utf-8"))
        except UnicodeDecodeError:
            return InvalidBody(bytes(raw))

    @property
    @abstractmethod
    def raw(self) -> bytes:
        """The body exactly as received."""

    @abstractmethod
    def to_json_value(self) -> dict[str, Any]:
        """Tagged JSON value for this body."""

    @staticmethod
    def from_json_value(value: Any) -> "MailBody":
        if not isinstance(value, dict) or len(value) != 1:
            raise ValueError("body must be an object with exactly one of 'Utf8', 'Invalid'")
        [(tag, payload)] = value.items()
        if tag == "Utf8":
            return Utf8Body(_expect(payload, str, "body.Utf8"))
        if tag == "Invalid":
            # bytes() rejects non-integers and values outside 0..255
            try:
                return InvalidBody(bytes(_expect(payload, list, "body.Invalid")))
            except TypeError as e:
                raise ValueError(f"body.Invalid: {e}") from e
        raise ValueError(f"unknown body variant {tag!r}")


@dataclass(frozen=True)
class Utf8Body(MailBody):
    """A body that is valid UTF-8."""
    text: str

    @property
    def raw(self) -> bytes:
        return self.text.encode("utf-8")

    def to_json_value(self) -> dict[str, Any]:
        return {"Utf8": self.text}

    def __str__(self) -> str:
        return self.text


@dataclass(frozen=True)
class InvalidBody(MailBody):
    """A body containing non-UTF-8 bytes."""
    data: bytes

    @property
    def raw(self) -> bytes:
        return self.data

    def to_json_value(self) -> dict[str, Any]:
        return {"Invalid": list(self.data)}

    def __str__(self) -> str:
        return "[invalid UTF-8]" + self.data.decode("utf-8", errors="replace")


@dataclass(frozen=True)
class Mail:
    """A "sent" mail, as captured by trapmail."""
    cli_options: CliOptions
    pid: int
    ppid: int
    body: MailBody
    timestamp_us: int

    @classmethod
    def new(cls, cli_options: CliOptions, raw_body: bytes) -> "Mail":
        """Capture `raw_body` now, from the current process.

        Sleeps for a microsecond before reading the clock. This makes it very
        unlikely (but does not guarantee) that two mails from the same
        process share a timestamp, and thus a file name.
        """
        time.sleep(CAPTURE_DELAY)
        timestamp_us = time.time_ns() // 1000
        if timestamp_us < 0:
            raise RuntimeError("Got current time before 1970; is your clock broken?")

        return cls(
            cli_options=cli_options,
            pid=os.getpid(),
            ppid=os.getppid(),
            body=MailBody.from_raw(raw_body),
            timestamp_us=timestamp_us,
        )

    def file_name(self) -> str:
        """File name (without directory) for this mail.

        The timestamp leads, so sorting names sorts mails chronologically.
        """
        return f"trapmail_{self.timestamp_us}_{self.ppid}_{self.pid}.json"

    @property
    def sent_at(self) -> datetime | None:
        """UTC capture time, or None if the timestamp is out of range."""
        try:
            return EPOCH + timedelta(microseconds=self.timestamp_us)
        except OverflowError:
            return None

    def to_dict(self) -> dict[str, Any]:
        return {
            "cli_options": self.cli_options.to_dict(),
            "pid": self.pid,
            "ppid": self.ppid,
            "body": self.body.to_json_value(),
            "timestamp_us": self.timestamp_us,
        }

    @classmethod
    def from_dict(cls, data: Any) -> "Mail":
        if not isinstance(data, dict):
            raise ValueError(f"mail must be an object, got {type(data).__name__}")
        missing = [k for k in ("cli_options", "pid", "ppid", "body", "timestamp_us") if k not in data]
        if missing:
            raise ValueError(f"missing field(s): {', '.join(missing)}")
        return cls(
            cli_options=CliOptions.from_dict(data["cli_options"]),
            pid=_expect(data["pid"], int, "pid"),
            ppid=_expect(data["ppid"], int, "ppid"),
            body=MailBody.from_json_value(data["body"]),
            timestamp_us=_expect(data["timestamp_us"], int, "timestamp_us"),
        )

    def to_json(self) -> bytes:
        """Pretty-printed JSON document for this mail, encoded as UTF-8."""
        try:
            return json.dumps(self.to_dict(), indent=2, ensure_ascii=False).encode("utf-8")
        except (TypeError, ValueError) as e:
            # Includes UnicodeEncodeError for surrogate-escaped arguments
            raise SerializationError(e) from e

    @classmethod
    def load(cls, source: str | Path) -> "Mail":
        """Load a mail from a record file."""
        path = Path(source)
        try:
            content = path.read_bytes()
        except OSError as e:
            raise LoadError(e, path) from e
        try:
            return cls.from_dict(json.loads(content))
        except (ValueError, RecursionError) as e:
            # Includes JSONDecodeError, UnicodeDecodeError and overly deep nesting
            raise DeserializationError(e, path) from e

    def __str__(self) -> str:
        sent_at = self.sent_at
        if sent_at is not None:
            formatted = sent_at.strftime("%Y-%m-%d %H:%M:%S.%f")
        else:
            formatted = f"[cannot convert {self.timestamp_us} to timestamp]"
        return (
            f"Mail sent on {formatted} UTC from PID {self.pid} (PPID {self.ppid}).\n"
            f"{pretty_repr(self.cli_options, expand_all=True)}\n"
            f"{self.body}"
        )


def _expect(value: Any, typ: type, name: str) -> Any:
    """Check the type of a decoded JSON value."""
    # bool is a subclass of int, but never a valid pid or timestamp
    if typ is int and isinstance(value, bool):
        raise ValueError(f"{name}: expected int, got bool")
    if not isinstance(value, typ):
        raise ValueError(f"{name}: expected {typ.__name__}, got {type(value).__name__}")
    return value
