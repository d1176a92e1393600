"""Filesystem mail store."""

import os
import re
from pathlib import Path
from typing import Iterator

from .errors import NonUnicodeFilenameError, StoreError, TrapmailError
from .mail import Mail
from .util import flatten_results, is_text, read_dir_matching

# Environment variable naming the store directory
ENV_MAIL_STORE_PATH = "TRAPMAIL_STORE"

# Used when ENV_MAIL_STORE_PATH is unset
DEFAULT_MAIL_STORE_PATH = "/tmp"

# File names generated by `Mail.file_name`
FILENAME_RE = re.compile(r"trapmail_\d+_\d+_\d+\.json", re.ASCII)


def get_store_root() -> Path:
    """Store root from the environment, falling back to the default."""
    return Path(os.environ.get(ENV_MAIL_STORE_PATH) or DEFAULT_MAIL_STORE_PATH)


def is_record_name(name: str) -> bool:
    """Check whether a directory entry should be treated as a stored mail.

    Besides names generated by `Mail.file_name`, this accepts
    `trapmail_*.json` names that are not valid text, so they get reported
    instead of silently skipped.
    """
    if FILENAME_RE.fullmatch(name):
        return True
    return name.startswith("trapmail_") and name.endswith(".json") and not is_text(name)


class MailStore:
    """Mail storage rooted at a single directory.

    Holds no state besides the root path; every call re-reads the filesystem.
    """

    def __init__(self, root: str | Path):
        self._root = Path(root)

    @classmethod
    def from_env(cls) -> "MailStore":
        """Store rooted at $TRAPMAIL_STORE (or /tmp)."""
        return cls(get_store_root())

    @classmethod
    def with_root(cls, root: str | Path) -> "MailStore":
        return cls(root)

    @property
    def root(self) -> Path:
        return self._root

    def __repr__(self) -> str:
        return f"MailStore({str(self._root)!r})"

    def add(self, mail: Mail) -> Path:
        """Add a mail to the store. Returns the path it was written to.

        The file is created exclusively, so a name collision is reported as
        a StoreError rather than overwriting an existing mail.
        """
        path = self._root / mail.file_name()
        content = mail.to_json()
        try:
            with open(path, "xb") as f:
                f.write(content)
        except OSError as e:
            raise StoreError(e, path) from e
        return path

    def iter_mails(self) -> Iterator[Mail | TrapmailError]:
        """Iterate over all mails in the store, ordered by timestamp.

        The directory is listed when this is called; files are loaded lazily
        as the iterator is consumed. Failures are yielded, not raised: if the
        directory cannot be listed, its error is the only item. A file that
        fails to load yields its error in place and iteration continues.
        """
        return flatten_results(self._iter_paths)

    def mails(self) -> list[Mail]:
        """Load all mails, raising the first error encountered."""
        mails = []
        for item in self.iter_mails():
            if isinstance(item, TrapmailError):
                raise item
            mails.append(item)
        return mails

    def _iter_paths(self) -> Iterator[Mail | TrapmailError]:
        # All files are named `trapmail_TIMESTAMP_...`, so sorting by name
        # sorts by capture time.
        paths = read_dir_matching(self._root, is_record_name)
        return (self._load(path) for path in paths)

    @staticmethod
    def _load(path: Path) -> Mail | TrapmailError:
        if not is_text(path.name):
            return NonUnicodeFilenameError(os.fsencode(path.name), path)
        try:
            return Mail.load(path)
        except TrapmailError as e:
            return e
