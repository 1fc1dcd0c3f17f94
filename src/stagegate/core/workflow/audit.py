"""Append-only audit log for workflow sessions.

Every diff, gate result, test signal, impact record and stage transition is
written here before the session state changes. Each session owns one
hash-chained JSONL ledger; diffs submitted without a session go to the
store-level ledger.

Key features:
- Hash-linked entries (prev_hash, entry_hash)
- Lazy, replayable history (re-read from disk on every iteration)
- Chain verification shared by the CLI and programmatic callers

Usage:
    from stagegate.core.workflow.audit import AuditLog

    log = AuditLog(state_dir)
    log.append(session_id, Stage.SPEC, AuditKind.SIGNAL, AuditOutcome.TESTS_FAILING)
    for entry in log.history(session_id):
        ...
"""

from __future__ import annotations

import hashlib
import json
import logging
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional

from filelock import FileLock, Timeout
from pydantic import BaseModel, Field, ValidationError

from stagegate.core.atomic import ensure_directory
from stagegate.core.errors.storage import LockAcquisitionError, StorageFatal
from stagegate.core.knowledge.checksum import canonical_json, compute_payload_digest
from stagegate.core.workflow.models.enums import AuditKind, AuditOutcome

logger = logging.getLogger(__name__)

# Constants
LOCK_TIMEOUT = 5  # seconds
AUDIT_DIRNAME = "audit"
LEDGER_FILENAME = "ledger.jsonl"
GENESIS_HASH = "0" * 64
STORE_LEDGER_ID = "store"


class AuditEntry(BaseModel):
    """A single immutable ledger record."""

    sequence: int = Field(..., ge=1, description="Monotonic sequence number")
    timestamp: str = Field(..., description="ISO-8601 timestamp")
    session_id: str = Field(..., description="Session id, or 'store' for sessionless diffs")
    stage: Optional[str] = Field(None, description="Stage the session was in")
    kind: AuditKind = Field(..., description="What was audited")
    outcome: AuditOutcome = Field(..., description="How it ended")
    payload_ref: Optional[str] = Field(None, description="e.g. 'alpha@3' or a report digest")
    payload_digest: Optional[str] = Field(None, description="SHA-256 of the payload")
    metadata: Dict[str, Any] = Field(default_factory=dict)

    prev_hash: str = Field(..., description="Hash of the previous entry")
    entry_hash: str = Field(..., description="Hash of this entry (computed)")

    model_config = {"frozen": True}

    def compute_hash(self) -> str:
        """SHA-256 over every field except ``entry_hash``."""
        data = self.model_dump(mode="json", exclude={"entry_hash"})
        return hashlib.sha256(canonical_json(data).encode("utf-8")).hexdigest()


class VerificationResult(BaseModel):
    """Result of hash chain verification."""

    valid: bool = Field(..., description="Whether the chain is intact")
    total_entries: int = Field(..., description="Entries checked")
    divergence_point: Optional[int] = Field(None, description="Line where divergence was found")
    divergence_type: Optional[str] = Field(
        None, description="hash_mismatch, sequence_gap or corrupted_entry"
    )
    divergence_detail: Optional[str] = None
    warnings: List[str] = Field(default_factory=list)


class AuditHistory:
    """Ordered entries of one ledger.

    Iterating reads the ledger file afresh, so the same object can be
    replayed any number of times and always reflects appended entries.
    """

    def __init__(self, ledger_path: Path) -> None:
        self.ledger_path = ledger_path

    def __iter__(self) -> Iterator[AuditEntry]:
        for _, entry in _iter_ledger(self.ledger_path):
            if entry is not None:
                yield entry

    def __len__(self) -> int:
        return sum(1 for _ in self)

    def latest(self, kind: Optional[AuditKind] = None) -> Optional[AuditEntry]:
        found = None
        for entry in self:
            if kind is None or entry.kind == kind:
                found = entry
        return found


def _iter_ledger(ledger_path: Path) -> Iterator[tuple]:
    """Yield ``(line_number, entry_or_None)`` for each non-blank line."""
    if not ledger_path.exists():
        return
    try:
        with open(ledger_path, "r", encoding="utf-8") as f:
            for line_num, line in enumerate(f, 1):
                line = line.strip()
                if not line:
                    continue
                try:
                    yield line_num, AuditEntry.model_validate(json.loads(line))
                except (json.JSONDecodeError, ValidationError) as e:
                    logger.warning(
                        "Corrupted entry at line %d in %s: %s", line_num, ledger_path, e
                    )
                    yield line_num, None
    except OSError as exc:
        raise StorageFatal(f"Cannot read audit ledger {ledger_path}: {exc}") from exc


class AuditLog:
    """Per-session append-only ledgers under ``{root}/audit``.

    Storage path: {root}/audit/{session_id}/ledger.jsonl
    Lock file: {root}/audit/{session_id}/.ledger.lock
    """

    def __init__(self, root: Path, lock_timeout: int = LOCK_TIMEOUT) -> None:
        self.root = root
        self.lock_timeout = lock_timeout
        self.audit_path = ensure_directory(root / AUDIT_DIRNAME)

    def _ledger_dir(self, session_id: str) -> Path:
        safe_id = "".join(c for c in session_id if c.isalnum() or c in "-_")
        if not safe_id:
            raise ValueError(f"Invalid ledger id: {session_id!r}")
        return self.audit_path / safe_id

    def ledger_path(self, session_id: str) -> Path:
        return self._ledger_dir(session_id) / LEDGER_FILENAME

    def _last_entry(self, ledger_path: Path) -> Optional[AuditEntry]:
        last = None
        for _, entry in _iter_ledger(ledger_path):
            if entry is not None:
                last = entry
        return last

    def append(
        self,
        session_id: str,
        stage: Optional[str],
        kind: AuditKind,
        outcome: AuditOutcome,
        *,
        payload_ref: Optional[str] = None,
        payload: Optional[Dict[str, Any]] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> AuditEntry:
        """Append an entry to the session's ledger.

        Args:
            session_id: Ledger to append to
            stage: Stage value the session was in
            kind: What is being audited
            outcome: How it ended
            payload_ref: Human-readable reference to the payload
            payload: Payload to digest (only the digest is stored)
            metadata: Additional context stored verbatim

        Raises:
            StorageFatal: If the ledger cannot be written.
            LockAcquisitionError: If the ledger lock times out.
        """
        ledger_dir = ensure_directory(self._ledger_dir(session_id))
        ledger_path = ledger_dir / LEDGER_FILENAME

        try:
            with FileLock(ledger_dir / ".ledger.lock", timeout=self.lock_timeout):
                last_entry = self._last_entry(ledger_path)
                fields = {
                    "sequence": (last_entry.sequence + 1) if last_entry else 1,
                    "timestamp": datetime.now(timezone.utc).isoformat(),
                    "session_id": session_id,
                    "stage": stage,
                    "kind": kind,
                    "outcome": outcome,
                    "payload_ref": payload_ref,
                    "payload_digest": compute_payload_digest(payload),
                    "metadata": metadata or {},
                    "prev_hash": last_entry.entry_hash if last_entry else GENESIS_HASH,
                }
                entry = AuditEntry(**fields, entry_hash="")
                entry = AuditEntry(**fields, entry_hash=entry.compute_hash())

                try:
                    with open(ledger_path, "a", encoding="utf-8") as f:
                        f.write(entry.model_dump_json() + "\n")
                        f.flush()
                        os.fsync(f.fileno())
                except OSError as exc:
                    raise StorageFatal(f"Cannot append to {ledger_path}: {exc}") from exc
        except Timeout as exc:
            raise LockAcquisitionError(
                f"Could not acquire audit lock for {session_id} within {self.lock_timeout}s"
            ) from exc

        logger.debug(
            "Appended audit entry: seq=%d kind=%s outcome=%s session=%s",
            entry.sequence,
            entry.kind.value,
            entry.outcome.value,
            session_id,
        )
        return entry

    def history(self, session_id: str) -> AuditHistory:
        """Replayable, ordered view of a session's entries."""
        return AuditHistory(self.ledger_path(session_id))

    def list_ledgers(self) -> List[str]:
        """Ids of every ledger with at least one line."""
        try:
            return sorted(
                path.name
                for path in self.audit_path.iterdir()
                if (path / LEDGER_FILENAME).exists()
            )
        except OSError as exc:
            raise StorageFatal(f"Cannot list {self.audit_path}: {exc}") from exc

    def verify(self, session_id: str) -> VerificationResult:
        """Verify hash chain integrity.

        Walks the chain from first to last entry, verifying:
        - Each entry's entry_hash matches its computed hash
        - Each entry's prev_hash matches the previous entry's entry_hash
        - Sequence numbers are contiguous from 1
        """
        lines = list(_iter_ledger(self.ledger_path(session_id)))
        if not lines:
            return VerificationResult(
                valid=True,
                total_entries=0,
                warnings=["Empty ledger - nothing to verify"],
            )

        warnings: List[str] = []
        prev_hash = GENESIS_HASH
        expected_sequence = 1
        prev_timestamp: Optional[str] = None
        divergence_point: Optional[int] = None
        divergence_type: Optional[str] = None
        divergence_detail: Optional[str] = None

        for line_num, entry in lines:
            if entry is None:
                divergence_point = line_num
                divergence_type = "corrupted_entry"
                divergence_detail = f"Entry at line {line_num} could not be parsed"
                break

            if entry.sequence != expected_sequence:
                divergence_point = line_num
                divergence_type = "sequence_gap"
                divergence_detail = f"Expected sequence {expected_sequence}, got {entry.sequence}"
                break

            if entry.prev_hash != prev_hash:
                divergence_point = line_num
                divergence_type = "hash_mismatch"
                divergence_detail = (
                    f"prev_hash mismatch at sequence {entry.sequence}: "
                    f"expected {prev_hash[:16]}..., got {entry.prev_hash[:16]}..."
                )
                break

            computed_hash = entry.compute_hash()
            if entry.entry_hash != computed_hash:
                divergence_point = line_num
                divergence_type = "hash_mismatch"
                divergence_detail = (
                    f"entry_hash mismatch at sequence {entry.sequence}: "
                    f"stored {entry.entry_hash[:16]}..., computed {computed_hash[:16]}..."
                )
                break

            # Timestamp ordering is a warning only
            if prev_timestamp is not None and prev_timestamp > entry.timestamp:
                warnings.append(f"Timestamp out of order at sequence {entry.sequence}")

            prev_timestamp = entry.timestamp
            prev_hash = entry.entry_hash
            expected_sequence += 1

        valid = divergence_point is None
        if not valid:
            logger.warning(
                "Audit chain verification failed for %s: %s at line %d",
                session_id,
                divergence_type,
                divergence_point,
            )

        return VerificationResult(
            valid=valid,
            total_entries=len([entry for _, entry in lines if entry is not None]),
            divergence_point=divergence_point,
            divergence_type=divergence_type,
            divergence_detail=divergence_detail,
            warnings=warnings,
        )
