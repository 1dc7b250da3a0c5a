"""File handles for the external-file and owned-store backends."""

import errno
import os
import stat
from collections.abc import Callable
from pathlib import Path

from loguru import logger

from bike_outliner.config import OWNED_STORE_FILENAME
from bike_outliner.errors import PermissionDeniedError, PersistenceError, QuotaExceededError

_QUOTA_ERRNOS = {errno.ENOSPC, getattr(errno, "EDQUOT", errno.ENOSPC)}


def translate_os_error(e: OSError, action: str, path: Path) -> PersistenceError:
    """Map an OSError onto the persistence error hierarchy."""
    if isinstance(e, PermissionError):
        return PermissionDeniedError(f"Permission denied to {action} {path}")
    if e.errno in _QUOTA_ERRNOS:
        return QuotaExceededError(f"No space left to {action} {path}")
    return PersistenceError(f"Could not {action} {path}: {e}")


class LocalFileHandle:
    """A file on the local filesystem the user picked.

    ``grant`` is asked before write access is added to a read-only file.
    """

    def __init__(self, path: str | Path, *, grant: Callable[[Path], bool] | None = None) -> None:
        self.path = Path(path)
        self.grant = grant

    @property
    def name(self) -> str:
        return self.path.name

    def read_text(self) -> str:
        try:
            return self.path.read_text(encoding="utf-8")
        except OSError as e:
            raise translate_os_error(e, "read", self.path) from e

    def write_text(self, text: str) -> None:
        try:
            with open(self.path, "w", encoding="utf-8") as f:
                f.write(text)
        except OSError as e:
            raise translate_os_error(e, "write", self.path) from e

    def query_permission(self) -> bool:
        if self.path.exists():
            return os.access(self.path, os.W_OK)
        return os.access(self.path.parent, os.W_OK)

    def request_permission(self) -> bool:
        if self.grant is None or not self.grant(self.path):
            return False
        if self.path.exists():
            try:
                mode = self.path.stat().st_mode
                self.path.chmod(mode | stat.S_IWUSR)
            except OSError as e:
                logger.warning("Could not make {} writable: {}", self.path, e)
                return False
        return self.query_permission()

    def __repr__(self) -> str:
        return f"LocalFileHandle({str(self.path)!r})"


class OwnedStore:
    """The app-owned storage area holding one canonical outline file.

    Reads go straight to disk; writes are performed by the write worker.
    """

    def __init__(self, root: str | Path, filename: str = OWNED_STORE_FILENAME) -> None:
        self.root = Path(root)
        self.filename = filename

    @property
    def path(self) -> Path:
        return self.root / self.filename

    def lookup(self) -> Path | None:
        """Return the canonical file if it exists, without creating anything."""
        return self.path if self.path.is_file() else None

    def ensure(self) -> Path:
        """Return the canonical file, creating the store and an empty file on first use."""
        try:
            self.root.mkdir(parents=True, exist_ok=True)
            self.path.touch(exist_ok=True)
        except OSError as e:
            raise translate_os_error(e, "create", self.path) from e
        return self.path

    def read_text(self) -> str:
        try:
            return self.path.read_text(encoding="utf-8")
        except OSError as e:
            raise translate_os_error(e, "read", self.path) from e
