"""Directory scanning helpers for the mail store."""

import os
from pathlib import Path
from typing import Callable, Iterator, TypeVar

from .errors import DirEnumerationError, TrapmailError

T = TypeVar("T")


def read_dir_matching(root: str | Path, match: Callable[[str], bool]) -> list[Path]:
    """Return sorted full paths of all entries in `root` whose name passes `match`.

    Raises DirEnumerationError if `root` cannot be listed.
    """
    base = Path(root)
    try:
        with os.scandir(base) as entries:
            names = [entry.name for entry in entries]
    except OSError as e:
        raise DirEnumerationError(e, base) from e
    return sorted(base / name for name in names if match(name))


def is_text(name: str) -> bool:
    """Check whether a file name decoded from the OS is valid UTF-8 text.

    Undecodable bytes come back from the OS as lone surrogates, which refuse
    to encode strictly.
    """
    try:
        name.encode("utf-8")
    except UnicodeEncodeError:
        return False
    return True


def flatten_results(produce: Callable[[], Iterator[T | TrapmailError]]) -> Iterator[T | TrapmailError]:
    """Turn a failing-or-iterator call into a single iterator of results.

    If `produce()` raises a TrapmailError, the returned iterator yields that
    error once and stops. Otherwise it passes through the produced items.
    """
    try:
        return produce()
    except TrapmailError as e:
        return iter([e])
