"""Message shapes exchanged with the durable write worker."""

from dataclasses import dataclass
from enum import StrEnum
from typing import Any

WRITE_ACTION = "write"


class WriteErrorKind(StrEnum):
    """Classification of a failed durable write."""

    PERMISSION = "permission"
    QUOTA = "quota"
    INVALID_STATE = "invalid-state"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class WriteRequest:
    target: str
    content: str
    correlation_id: str
    action: str = WRITE_ACTION

    def to_message(self) -> dict[str, Any]:
        return {
            "action": self.action,
            "target": self.target,
            "content": self.content,
            "correlationId": self.correlation_id,
        }

    @classmethod
    def from_message(cls, message: dict[str, Any]) -> "WriteRequest":
        return cls(
            action=message.get("action", ""),
            target=message.get("target", ""),
            content=message.get("content", ""),
            correlation_id=message.get("correlationId", ""),
        )


@dataclass(frozen=True)
class WriteResponse:
    """Outcome of one write request.

    ``correlation_id`` is None when the responder did not echo it back.
    """

    success: bool
    target: str
    correlation_id: str | None = None
    error: str | None = None
    error_kind: WriteErrorKind | None = None
    action: str = WRITE_ACTION

    def to_message(self) -> dict[str, Any]:
        message: dict[str, Any] = {
            "action": self.action,
            "success": self.success,
            "target": self.target,
        }
        if self.correlation_id is not None:
            message["correlationId"] = self.correlation_id
        if self.error is not None:
            message["error"] = self.error
        if self.error_kind is not None:
            message["errorKind"] = str(self.error_kind)
        return message

    @classmethod
    def from_message(cls, message: dict[str, Any]) -> "WriteResponse":
        return cls(
            action=message.get("action", WRITE_ACTION),
            success=bool(message.get("success")),
            target=message.get("target", ""),
            correlation_id=message.get("correlationId") or None,
            error=message.get("error"),
            error_kind=_error_kind(message.get("errorKind")),
        )


def is_ready_message(message: dict[str, Any]) -> bool:
    return bool(message.get("ready"))


def _error_kind(value: str | None) -> WriteErrorKind | None:
    if not value:
        return None
    try:
        return WriteErrorKind(value)
    except ValueError:
        return WriteErrorKind.UNKNOWN
