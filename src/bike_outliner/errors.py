"""Exception types for the outline editor core."""


class OutlineError(Exception):
    """Base class for all recoverable outline errors."""


class FormatError(OutlineError):
    """The outline document could not be read or written."""


class ParseError(FormatError):
    """Input is empty, not well-formed, or has no locatable root list."""


class SerializeError(FormatError):
    """Serialized output did not re-parse as well-formed XML."""


class TreeStructureError(OutlineError):
    """A node's parent link does not match its parent's child list."""


class PersistenceError(OutlineError):
    """A save or load backend failed."""


class PermissionDeniedError(PersistenceError):
    """Write permission for a target was not granted."""


class QuotaExceededError(PersistenceError):
    """A storage quota would be exceeded by the write."""


class ChannelTimeoutError(PersistenceError):
    """A durable write got no correlated response in time."""


class WriteFailedError(PersistenceError):
    """The write worker reported a failure.

    ``kind`` holds the worker's error classification.
    """

    def __init__(self, message: str, *, kind: str = "unknown") -> None:
        super().__init__(message)
        self.kind = kind


class ExportError(PersistenceError):
    """An export target was rejected: missing directory or unsafe file name."""
