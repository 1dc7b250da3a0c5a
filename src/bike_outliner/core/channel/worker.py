"""Durable write worker running in its own thread.

The worker owns every write into the app-owned store. It receives request
messages through an inbox queue and answers each one through the reply
callback given to ``start``.
"""

import errno
import os
import queue
import threading
from collections.abc import Callable
from pathlib import Path
from typing import Any

from loguru import logger

from bike_outliner.core.channel.protocol import (
    WRITE_ACTION,
    WriteErrorKind,
    WriteRequest,
    WriteResponse,
)
from bike_outliner.errors import WriteFailedError

Reply = Callable[[dict[str, Any]], None]

_QUOTA_ERRNOS = {errno.ENOSPC, getattr(errno, "EDQUOT", errno.ENOSPC)}
_INVALID_STATE_ERRNOS = {errno.ENOENT, errno.EISDIR, errno.ENOTDIR, errno.EBADF}


def classify_os_error(e: OSError) -> WriteErrorKind:
    if isinstance(e, PermissionError) or e.errno in {errno.EACCES, errno.EPERM, errno.EBUSY}:
        return WriteErrorKind.PERMISSION
    if e.errno in _QUOTA_ERRNOS:
        return WriteErrorKind.QUOTA
    if e.errno in _INVALID_STATE_ERRNOS:
        return WriteErrorKind.INVALID_STATE
    return WriteErrorKind.UNKNOWN


class StoreWriteWorker:
    """Write files inside ``root`` on behalf of the coordinator.

    Each write truncates the target, writes the full content at offset zero
    and syncs it to disk while holding an exclusive per-target handle.
    """

    def __init__(self, root: str | Path, *, quota_bytes: int | None = None) -> None:
        self.root = Path(root).resolve()
        self.quota_bytes = quota_bytes
        self._inbox: queue.Queue[dict[str, Any] | None] = queue.Queue()
        self._thread: threading.Thread | None = None
        self._reply: Reply | None = None
        self._handles: dict[Path, threading.Lock] = {}
        self._handles_lock = threading.Lock()

    def start(self, reply: Reply) -> None:
        if self._thread is not None:
            msg = "Worker already started"
            raise RuntimeError(msg)
        self._reply = reply
        self._thread = threading.Thread(target=self._run, name="store-write-worker", daemon=True)
        self._thread.start()

    def post(self, message: dict[str, Any]) -> None:
        self._inbox.put(message)

    def stop(self, timeout: float | None = 5.0) -> None:
        if self._thread is None:
            return
        self._inbox.put(None)
        self._thread.join(timeout)
        self._thread = None

    def _run(self) -> None:
        self._emit({"ready": True, "message": "Worker initialized"})
        while True:
            message = self._inbox.get()
            if message is None:
                break
            self._emit(self.handle(message).to_message())
        logger.debug("Write worker stopped")

    def _emit(self, message: dict[str, Any]) -> None:
        if self._reply is not None:
            self._reply(message)

    def handle(self, message: dict[str, Any]) -> WriteResponse:
        """Process one request message and return the response."""
        request = WriteRequest.from_message(message)
        correlation_id = request.correlation_id or None
        if request.action != WRITE_ACTION:
            logger.warning("Worker: unknown action {!r}", request.action)
            return WriteResponse(
                success=False,
                target=request.target,
                correlation_id=correlation_id,
                error=f"Unknown action: {request.action}",
                error_kind=WriteErrorKind.INVALID_STATE,
                action=request.action,
            )

        try:
            size = self.write(request.target, request.content)
        except WriteFailedError as e:
            logger.warning("Worker: write to {!r} failed: {}", request.target, e)
            return WriteResponse(
                success=False,
                target=request.target,
                correlation_id=correlation_id,
                error=str(e),
                error_kind=WriteErrorKind(e.kind),
            )
        except Exception as e:
            logger.exception("Worker: unexpected failure writing {!r}", request.target)
            return WriteResponse(
                success=False,
                target=request.target,
                correlation_id=correlation_id,
                error=str(e) or type(e).__name__,
                error_kind=WriteErrorKind.UNKNOWN,
            )

        logger.debug("Worker: wrote {} bytes to {!r}", size, request.target)
        return WriteResponse(success=True, target=request.target, correlation_id=correlation_id)

    def resolve(self, target: str) -> Path:
        """Return the path for ``target``, which must stay inside the store root."""
        path = (self.root / target).resolve()
        if not target or self.root not in path.parents:
            msg = f"Target escapes store: {target!r}"
            raise WriteFailedError(msg, kind=WriteErrorKind.INVALID_STATE)
        return path

    def write(self, target: str, content: str) -> int:
        """Atomically replace the contents of ``target``. Returns bytes written."""
        path = self.resolve(target)
        data = content.encode("utf-8")
        if self.quota_bytes is not None and len(data) > self.quota_bytes:
            msg = f"{len(data)} bytes exceeds store quota of {self.quota_bytes} bytes"
            raise WriteFailedError(msg, kind=WriteErrorKind.QUOTA)

        with self._handles_lock:
            handle = self._handles.setdefault(path, threading.Lock())
        if not handle.acquire(blocking=False):
            msg = f"{target!r} is locked by another write"
            raise WriteFailedError(msg, kind=WriteErrorKind.PERMISSION)

        fd: int | None = None
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            fd = os.open(path, os.O_RDWR | os.O_CREAT, 0o644)
            os.ftruncate(fd, 0)
            view = memoryview(data)
            written = 0
            while written < len(data):
                written += os.pwrite(fd, view[written:], written)
            os.fsync(fd)
        except OSError as e:
            msg = f"Could not write {target!r}: {e}"
            raise WriteFailedError(msg, kind=classify_os_error(e)) from e
        finally:
            if fd is not None:
                os.close(fd)
            handle.release()
        return written
