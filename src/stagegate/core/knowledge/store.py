"""File-based versioned store for knowledge documents.

Each document name owns an append-only version chain:

    {root}/documents/{name}/00000001.json
    {root}/documents/{name}/00000002.json
    ...

Version files are never rewritten. A per-document file lock is held only
while checking the current version and writing the next one.
"""

import json
import logging
import re
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Tuple

from filelock import FileLock, Timeout
from pydantic import ValidationError

from stagegate.core.atomic import atomic_write_json, ensure_directory
from stagegate.core.errors.storage import (
    DocumentCorrupted,
    DocumentNotFound,
    LockAcquisitionError,
    StorageFatal,
    VersionConflictError,
)
from stagegate.core.knowledge.checksum import compute_checksum
from stagegate.core.knowledge.models import Document
from stagegate.core.security import MAX_DOCUMENT_NAME_LENGTH

logger = logging.getLogger(__name__)

LOCK_TIMEOUT = 5  # seconds
DOCUMENTS_DIRNAME = "documents"
LOCKS_DIRNAME = "locks"

_NAME_PATTERN = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._-]*$")
_VERSION_FILE_PATTERN = re.compile(r"^(\d{8})\.json$")


def document_name_problem(name: Any) -> Optional[str]:
    """Describe why ``name`` is not a valid document name, or return None."""
    if not isinstance(name, str) or not name:
        return "document name must be a non-empty string"
    if len(name) > MAX_DOCUMENT_NAME_LENGTH:
        return f"document name exceeds {MAX_DOCUMENT_NAME_LENGTH} characters"
    if not _NAME_PATTERN.match(name):
        return (
            f"document name {name!r} must start with a letter or digit and contain "
            "only letters, digits, '.', '_' or '-'"
        )
    return None


class KnowledgeStore:
    """Versioned storage for named knowledge documents."""

    def __init__(self, root: Path, lock_timeout: int = LOCK_TIMEOUT) -> None:
        """Initialize the store.

        Args:
            root: State directory; documents live under ``root/documents``
            lock_timeout: Seconds to wait for a document lock
        """
        self.root = root
        self.lock_timeout = lock_timeout
        self.documents_path = root / DOCUMENTS_DIRNAME
        self.locks_path = root / LOCKS_DIRNAME
        ensure_directory(self.documents_path)
        ensure_directory(self.locks_path)

    # =========================================================================
    # Paths
    # =========================================================================

    def _check_name(self, name: str) -> None:
        problem = document_name_problem(name)
        if problem:
            raise ValueError(problem)

    def _document_dir(self, name: str) -> Path:
        return self.documents_path / name

    def _version_path(self, name: str, version: int) -> Path:
        return self._document_dir(name) / f"{version:08d}.json"

    def _lock_path(self, name: str) -> Path:
        return self.locks_path / f"doc_{name}.lock"

    @contextmanager
    def document_lock(self, name: str) -> Iterator[None]:
        """Hold the per-document commit lock."""
        lock = FileLock(self._lock_path(name), timeout=self.lock_timeout)
        try:
            with lock:
                yield
        except Timeout as exc:
            raise LockAcquisitionError(
                f"Could not acquire lock for document {name} within {self.lock_timeout}s"
            ) from exc

    # =========================================================================
    # Reads
    # =========================================================================

    def versions(self, name: str) -> List[int]:
        """Committed version numbers of ``name`` in ascending order."""
        self._check_name(name)
        directory = self._document_dir(name)
        if not directory.is_dir():
            return []
        try:
            entries = list(directory.iterdir())
        except OSError as exc:
            raise StorageFatal(f"Cannot list {directory}: {exc}") from exc
        found = []
        for entry in entries:
            match = _VERSION_FILE_PATTERN.match(entry.name)
            if match:
                found.append(int(match.group(1)))
        return sorted(found)

    def current_version(self, name: str) -> int:
        """Latest committed version, 0 for a document never written."""
        versions = self.versions(name)
        return versions[-1] if versions else 0

    def read_version(self, name: str, version: int) -> Document:
        """Read one materialized version.

        Raises:
            DocumentNotFound: If the version was never committed.
            DocumentCorrupted: If the file cannot be parsed or its checksum
                does not match its content.
        """
        self._check_name(name)
        if version == 0:
            return Document.empty(name)

        path = self._version_path(name, version)
        if not path.exists():
            raise DocumentNotFound(name, version)

        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as exc:
            raise DocumentCorrupted(name, version, f"invalid JSON: {exc}") from exc
        except OSError as exc:
            raise StorageFatal(f"Cannot read {path}: {exc}") from exc

        try:
            document = Document.model_validate(data)
        except ValidationError as exc:
            raise DocumentCorrupted(name, version, str(exc)) from exc

        if document.name != name or document.version != version:
            raise DocumentCorrupted(
                name, version, f"file holds {document.name}@{document.version}"
            )
        if not document.verify_checksum():
            raise DocumentCorrupted(name, version, "checksum mismatch")
        return document

    def read(self, name: str) -> Tuple[Document, int]:
        """Read the latest version as a full snapshot.

        Unknown names read as an empty tree at version 0.
        """
        version = self.current_version(name)
        return self.read_version(name, version), version

    def history(self, name: str) -> List[Document]:
        """Every committed version of ``name``, oldest first."""
        return [self.read_version(name, version) for version in self.versions(name)]

    def list_documents(self) -> List[str]:
        """Names of documents with at least one committed version."""
        try:
            candidates = sorted(p.name for p in self.documents_path.iterdir() if p.is_dir())
        except OSError as exc:
            raise StorageFatal(f"Cannot list {self.documents_path}: {exc}") from exc
        return [
            name
            for name in candidates
            if document_name_problem(name) is None and self.versions(name)
        ]

    # =========================================================================
    # Writes
    # =========================================================================

    def commit(
        self,
        name: str,
        content: Dict[str, Any],
        *,
        expected_version: int,
        session_id: Optional[str] = None,
        diff_digest: Optional[str] = None,
    ) -> Document:
        """Persist ``content`` as the version after ``expected_version``.

        Raises:
            VersionConflictError: If another writer committed first.
            LockAcquisitionError: If the document lock times out.
            StorageFatal: If the version file cannot be written.
        """
        self._check_name(name)
        with self.document_lock(name):
            actual = self.current_version(name)
            if actual != expected_version:
                raise VersionConflictError(name, expected_version, actual)

            document = Document(
                name=name,
                version=expected_version + 1,
                content=content,
                checksum=compute_checksum(content),
                created_at=datetime.now(timezone.utc),
                session_id=session_id,
                diff_digest=diff_digest,
            )
            ensure_directory(self._document_dir(name))
            atomic_write_json(
                self._version_path(name, document.version),
                document.model_dump(mode="json"),
            )

        logger.debug("Committed document %s at version %d", name, document.version)
        return document
