"""Protocols for the collaborators the persistence coordinator depends on."""

from collections.abc import Callable
from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class WriteWorker(Protocol):
    """Protocol for the isolated executor behind the durable write channel."""

    def start(self, reply: Callable[[dict[str, Any]], None]) -> None:
        """Begin processing; every outgoing message is passed to ``reply``."""
        ...

    def post(self, message: dict[str, Any]) -> None:
        """Queue a request message."""
        ...

    def stop(self) -> None:
        """Stop processing messages."""
        ...


@runtime_checkable
class FileHandle(Protocol):
    """Protocol for user-granted handles to externally-owned files."""

    @property
    def name(self) -> str:
        """File name including extension."""
        ...

    def read_text(self) -> str:
        """Return the file's contents."""
        ...

    def write_text(self, text: str) -> None:
        """Replace the file's contents and close it."""
        ...

    def query_permission(self) -> bool:
        """Return True if writing is currently allowed."""
        ...

    def request_permission(self) -> bool:
        """Ask for write access. Return True if it was granted."""
        ...


@runtime_checkable
class UserPrompts(Protocol):
    """Protocol for synchronous user interaction."""

    def confirm_discard(self, reason: str) -> bool:
        """Ask whether unsaved changes may be dropped for ``reason``."""
        ...

    def confirm_restore_draft(self, replacing: bool) -> bool:
        """Ask whether a recovered draft should be loaded."""
        ...

    def notify(self, message: str, *, error: bool = False) -> None:
        """Show a message to the user."""
        ...


@runtime_checkable
class FocusKeeper(Protocol):
    """Protocol for saving and restoring input focus around quiet saves."""

    def capture(self) -> Any:
        """Return an opaque token describing the current focus."""
        ...

    def restore(self, token: Any) -> None:
        """Put focus back where ``token`` says it was."""
        ...
