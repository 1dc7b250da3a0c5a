"""Event-loop side of the durable write channel."""

import asyncio
from dataclasses import dataclass
from typing import Any
from uuid import uuid4

from loguru import logger

from bike_outliner.config import SAVE_TIMEOUT
from bike_outliner.core.channel.protocol import (
    WriteErrorKind,
    WriteRequest,
    WriteResponse,
    is_ready_message,
)
from bike_outliner.errors import ChannelTimeoutError, WriteFailedError
from bike_outliner.protocols import WriteWorker


@dataclass
class _Pending:
    target: str
    future: "asyncio.Future[WriteResponse]"


class WriteChannelClient:
    """Send write requests to a worker and await correlated responses.

    Responses are matched by correlation id. A response without one resolves
    the oldest pending request for the same target. Responses nobody waits for
    (late, duplicate or unknown) are drained and kept in ``drained``.
    """

    def __init__(self, worker: WriteWorker, *, timeout: float = SAVE_TIMEOUT) -> None:
        self.worker = worker
        self.timeout = timeout
        self.ready = False
        self.drained: list[WriteResponse] = []
        self._pending: dict[str, _Pending] = {}
        self._loop: asyncio.AbstractEventLoop | None = None

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    def start(self) -> None:
        """Start the worker; must be called from the running event loop."""
        self._loop = asyncio.get_running_loop()
        self.worker.start(self._receive_threadsafe)

    def close(self) -> None:
        self.worker.stop()
        for pending in self._pending.values():
            pending.future.cancel()
        self._pending.clear()

    def _receive_threadsafe(self, message: dict[str, Any]) -> None:
        loop = self._loop
        if loop is None or loop.is_closed():
            logger.debug("Event loop gone, dropping worker message {!r}", message)
            return
        try:
            loop.call_soon_threadsafe(self.dispatch, message)
        except RuntimeError:
            logger.debug("Event loop closed, dropping worker message {!r}", message)

    def dispatch(self, message: dict[str, Any]) -> None:
        """Route one worker message to the request it answers."""
        if is_ready_message(message):
            self.ready = True
            logger.debug("Write worker ready")
            return

        response = WriteResponse.from_message(message)
        correlation_id = response.correlation_id
        if correlation_id is None:
            correlation_id = self._oldest_for(response.target)
            if correlation_id is not None:
                logger.debug("Matched uncorrelated response by target {!r}", response.target)

        pending = self._pending.pop(correlation_id, None) if correlation_id else None
        if pending is None or pending.future.done():
            logger.debug(
                "Draining response for {!r} (correlation {!r}) with no waiting request",
                response.target,
                response.correlation_id,
            )
            self.drained.append(response)
            return
        pending.future.set_result(response)

    def _oldest_for(self, target: str) -> str | None:
        for correlation_id, pending in self._pending.items():
            if pending.target == target:
                return correlation_id
        return None

    def post(self, target: str, content: str) -> str:
        """Send a write without waiting for its outcome. Returns the correlation id."""
        request = WriteRequest(target=target, content=content, correlation_id=uuid4().hex)
        self.worker.post(request.to_message())
        return request.correlation_id

    async def write(self, target: str, content: str) -> WriteResponse:
        """Write ``content`` to ``target`` and wait for the worker's answer.

        Raises:
            ChannelTimeoutError: if no correlated response arrives in time.
            WriteFailedError: if the worker reports a failure.
        """
        loop = asyncio.get_running_loop()
        request = WriteRequest(target=target, content=content, correlation_id=uuid4().hex)
        future: asyncio.Future[WriteResponse] = loop.create_future()
        self._pending[request.correlation_id] = _Pending(target, future)
        self.worker.post(request.to_message())
        logger.debug("Sent write {} for {!r}", request.correlation_id, target)

        try:
            response = await asyncio.wait_for(future, self.timeout)
        except TimeoutError:
            msg = f"No response for write to {target!r} within {self.timeout}s"
            raise ChannelTimeoutError(msg) from None
        finally:
            self._pending.pop(request.correlation_id, None)

        if not response.success:
            kind = response.error_kind or WriteErrorKind.UNKNOWN
            raise WriteFailedError(response.error or "Write failed", kind=kind)
        return response
