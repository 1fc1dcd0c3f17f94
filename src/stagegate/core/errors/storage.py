"""Storage and concurrency error classes."""


class StorageFatal(Exception):
    """Raised when the durable store is unavailable or exhausted.

    Not recoverable by the workflow layer; surfaced to the operator.
    """


class LockAcquisitionError(Exception):
    """Raised when file lock cannot be acquired within timeout."""


class SessionNotFound(Exception):
    """Raised when a session id has no persisted state."""

    def __init__(self, session_id: str) -> None:
        self.session_id = session_id
        super().__init__(f"Session not found: {session_id}")


class SessionCorrupted(Exception):
    """Raised when a session file exists but cannot be parsed or validated."""

    def __init__(self, session_id: str, reason: str) -> None:
        self.session_id = session_id
        self.reason = reason
        super().__init__(f"Session {session_id} is corrupted: {reason}")


class DocumentCorrupted(Exception):
    """Raised when a stored document version cannot be parsed."""

    def __init__(self, name: str, version: int, reason: str) -> None:
        self.name = name
        self.version = version
        self.reason = reason
        super().__init__(f"Document {name}@{version} is corrupted: {reason}")


class DocumentNotFound(Exception):
    """Raised when a requested document version does not exist."""

    def __init__(self, name: str, version: int) -> None:
        self.name = name
        self.version = version
        super().__init__(f"Document {name} has no version {version}")


class VersionConflictError(Exception):
    """Raised when optimistic version check fails during commit."""

    def __init__(self, name: str, expected: int, actual: int) -> None:
        self.name = name
        self.expected_version = expected
        self.actual_version = actual
        super().__init__(
            f"Version conflict for document {name}: expected {expected}, on-disk {actual}"
        )
