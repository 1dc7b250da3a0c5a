"""Best-effort local recovery slot for unsaved drafts."""

import sqlite3
import time
from pathlib import Path

from loguru import logger

from bike_outliner.config import RECOVERY_DB_NAME, RECOVERY_KEY, RECOVERY_QUOTA_BYTES
from bike_outliner.core.database.schema import migrate_schema, set_metadata
from bike_outliner.errors import PersistenceError, QuotaExceededError


class RecoveryStore:
    """Keyed single-draft store backed by SQLite.

    The slot holds at most one draft; ``put`` replaces it. Drafts larger than
    ``quota_bytes`` are refused with QuotaExceededError.
    """

    def __init__(
        self,
        db_path: str | Path = ":memory:",
        *,
        key: str = RECOVERY_KEY,
        quota_bytes: int = RECOVERY_QUOTA_BYTES,
    ) -> None:
        self.key = key
        self.quota_bytes = quota_bytes
        self.conn = sqlite3.connect(str(db_path))
        migrate_schema(self.conn)

    @classmethod
    def open(cls, data_dir: Path, *, quota_bytes: int = RECOVERY_QUOTA_BYTES) -> "RecoveryStore":
        """Open the recovery database inside ``data_dir``, creating it if needed."""
        data_dir.mkdir(parents=True, exist_ok=True)
        return cls(data_dir / RECOVERY_DB_NAME, quota_bytes=quota_bytes)

    def put(self, content: str) -> None:
        size = len(content.encode("utf-8"))
        if size > self.quota_bytes:
            msg = f"Draft of {size} bytes exceeds recovery quota of {self.quota_bytes} bytes"
            raise QuotaExceededError(msg)
        try:
            self.conn.execute(
                "INSERT OR REPLACE INTO drafts (key, content, size, saved_at) VALUES (?, ?, ?, ?)",
                (self.key, content, size, int(time.time() * 1000)),
            )
            set_metadata(self.conn, "last_saved_key", self.key)
            self.conn.commit()
        except sqlite3.OperationalError as e:
            self.conn.rollback()
            if "full" in str(e):
                msg = f"Recovery storage is full: {e}"
                raise QuotaExceededError(msg) from e
            msg = f"Could not store draft: {e}"
            raise PersistenceError(msg) from e
        logger.debug("Stored draft ({} bytes) under {!r}", size, self.key)

    def get(self) -> str | None:
        row = self.conn.execute("SELECT content FROM drafts WHERE key = ?", (self.key,)).fetchone()
        return row[0] if row else None

    def saved_at(self) -> int | None:
        """Milliseconds since the epoch when the draft was stored, or None."""
        row = self.conn.execute("SELECT saved_at FROM drafts WHERE key = ?", (self.key,)).fetchone()
        return row[0] if row else None

    def has_draft(self) -> bool:
        return self.get() is not None

    def discard(self) -> bool:
        """Drop the draft. Returns True if there was one."""
        cursor = self.conn.execute("DELETE FROM drafts WHERE key = ?", (self.key,))
        self.conn.commit()
        if cursor.rowcount:
            logger.debug("Discarded draft {!r}", self.key)
        return bool(cursor.rowcount)

    def close(self) -> None:
        self.conn.close()
