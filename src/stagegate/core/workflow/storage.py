"""File-based storage for workflow session state.

Provides:
- Atomic writes (temp+fsync+rename)
- A per-session file lock that callers hold around read-modify-write
- Listing with a status filter
"""

import json
import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, List, Optional

from filelock import FileLock, Timeout
from pydantic import ValidationError

from stagegate.core.atomic import atomic_write_json, ensure_directory
from stagegate.core.errors.storage import (
    LockAcquisitionError,
    SessionCorrupted,
    SessionNotFound,
    StorageFatal,
)
from stagegate.core.workflow.models import (
    SessionStatus,
    SessionSummary,
    WorkflowSession,
)

logger = logging.getLogger(__name__)

SESSIONS_DIRNAME = "sessions"
LOCKS_DIRNAME = "locks"

# Lock acquisition timeout (seconds)
LOCK_ACQUISITION_TIMEOUT = 5


def sanitize_id(item_id: str) -> str:
    """Sanitize ID to prevent path traversal attacks."""
    # Only allow alphanumeric, hyphens, underscores
    return "".join(c for c in item_id if c.isalnum() or c in "-_")


class SessionStorage:
    """CRUD for ``WorkflowSession`` files under ``{root}/sessions``."""

    def __init__(self, root: Path, lock_timeout: int = LOCK_ACQUISITION_TIMEOUT) -> None:
        self.root = root
        self.lock_timeout = lock_timeout
        self.storage_path = ensure_directory(root / SESSIONS_DIRNAME)
        self.locks_path = ensure_directory(root / LOCKS_DIRNAME)

    def _get_session_path(self, session_id: str) -> Path:
        safe_id = sanitize_id(session_id)
        if not safe_id:
            raise SessionNotFound(session_id)
        return self.storage_path / f"{safe_id}.json"

    def _get_lock_path(self, session_id: str) -> Path:
        return self.locks_path / f"session_{sanitize_id(session_id)}.lock"

    @contextmanager
    def session_lock(self, session_id: str) -> Iterator[None]:
        """Serialize operations on one session across processes."""
        lock = FileLock(self._get_lock_path(session_id), timeout=self.lock_timeout)
        try:
            with lock:
                yield
        except Timeout as exc:
            raise LockAcquisitionError(
                f"Could not acquire lock for session {session_id} within {self.lock_timeout}s"
            ) from exc

    def exists(self, session_id: str) -> bool:
        return bool(sanitize_id(session_id)) and self._get_session_path(session_id).exists()

    def save(self, session: WorkflowSession) -> None:
        """Persist ``session`` atomically."""
        atomic_write_json(
            self._get_session_path(session.id), session.model_dump(mode="json")
        )
        logger.debug("Saved session %s at stage %s", session.id, session.stage.value)

    def load(self, session_id: str) -> WorkflowSession:
        """Load a session.

        Raises:
            SessionNotFound: If no session file exists.
            SessionCorrupted: If the file cannot be parsed or validated.
        """
        session_path = self._get_session_path(session_id)
        if not session_path.exists():
            raise SessionNotFound(session_id)
        try:
            data = json.loads(session_path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as exc:
            raise SessionCorrupted(session_id, f"invalid JSON: {exc}") from exc
        except OSError as exc:
            raise StorageFatal(f"Cannot read {session_path}: {exc}") from exc
        try:
            return WorkflowSession.model_validate(data)
        except ValidationError as exc:
            raise SessionCorrupted(session_id, str(exc)) from exc

    def list_sessions(self, status: Optional[SessionStatus] = None) -> List[SessionSummary]:
        """Summaries of stored sessions, newest first."""
        summaries: List[SessionSummary] = []
        try:
            paths = sorted(self.storage_path.glob("*.json"))
        except OSError as exc:
            raise StorageFatal(f"Cannot list {self.storage_path}: {exc}") from exc

        for session_path in paths:
            try:
                session = WorkflowSession.model_validate(
                    json.loads(session_path.read_text(encoding="utf-8"))
                )
            except (json.JSONDecodeError, ValidationError, OSError) as exc:
                logger.warning("Failed to load session from %s: %s", session_path, exc)
                continue
            if status is not None and session.status != status:
                continue
            summaries.append(SessionSummary.of(session))

        # Sort by updated_at DESC, session_id DESC (deterministic)
        summaries.sort(key=lambda s: (s.updated_at, s.session_id), reverse=True)
        return summaries
