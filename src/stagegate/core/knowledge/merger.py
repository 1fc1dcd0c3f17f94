"""All-or-nothing merge of diffs into knowledge documents.

Validation order:
1. Diff shape: document name, operation count, every path and value
   (``MalformedDiff``).
2. Base version against the current version (``StaleBase``).
3. Each operation in order against a working copy of the snapshot
   (``PathConflict`` / ``TypeMismatch``).

Only when every operation succeeds is the working copy committed. The
commit re-checks the version under the document lock, so a writer that got
in between still yields ``StaleBase``.
"""

import copy
import logging
from typing import Any, Dict, List, Optional

from stagegate.core.errors.merge import DiffConflict, RejectionReason
from stagegate.core.errors.storage import VersionConflictError
from stagegate.core.knowledge.checksum import compute_payload_digest
from stagegate.core.knowledge.models import Applied, Diff, Document, MergeResult, Rejected
from stagegate.core.knowledge.store import KnowledgeStore, document_name_problem
from stagegate.core.knowledge.tree import apply_operation, check_operation
from stagegate.core.security import MAX_OPERATIONS_PER_DIFF

logger = logging.getLogger(__name__)


def merge(document: Document, diff: Diff) -> Dict[str, Any]:
    """Apply ``diff`` to ``document`` and return the new tree.

    Never mutates ``document``.

    Raises:
        DiffConflict: On the first operation that cannot be applied.
    """
    if not diff.operations:
        raise DiffConflict(RejectionReason.MALFORMED_DIFF, "Diff has no operations")
    if len(diff.operations) > MAX_OPERATIONS_PER_DIFF:
        raise DiffConflict(
            RejectionReason.MALFORMED_DIFF,
            f"Diff has {len(diff.operations)} operations; limit is {MAX_OPERATIONS_PER_DIFF}",
        )

    parsed: List[List[str]] = []
    for index, operation in enumerate(diff.operations):
        try:
            parsed.append(check_operation(operation))
        except DiffConflict as conflict:
            conflict.op_index = index
            raise

    if diff.base_version != document.version:
        raise DiffConflict(
            RejectionReason.STALE_BASE,
            f"Diff is based on version {diff.base_version}; "
            f"{document.name} is at version {document.version}",
        )

    working = copy.deepcopy(document.content)
    for index, (operation, segments) in enumerate(zip(diff.operations, parsed)):
        try:
            apply_operation(working, operation, segments)
        except DiffConflict as conflict:
            conflict.op_index = index
            raise
    return working


class DiffMerger:
    """Admits diffs into the store using optimistic concurrency."""

    def __init__(self, store: KnowledgeStore) -> None:
        self.store = store

    def submit(
        self,
        document_name: str,
        diff: Diff,
        *,
        session_id: Optional[str] = None,
    ) -> MergeResult:
        """Merge ``diff`` into ``document_name``.

        Returns:
            ``Applied`` with the new version, or ``Rejected`` with the
            reason. A rejection leaves the document untouched.
        """
        problem = document_name_problem(document_name)
        if problem:
            return self._reject(
                document_name,
                DiffConflict(RejectionReason.MALFORMED_DIFF, problem),
                current_version=0,
            )

        snapshot, version = self.store.read(document_name)
        try:
            content = merge(snapshot, diff)
            committed = self.store.commit(
                document_name,
                content,
                expected_version=version,
                session_id=session_id,
                diff_digest=compute_payload_digest(diff.model_dump(mode="json")),
            )
        except DiffConflict as conflict:
            return self._reject(document_name, conflict, current_version=version)
        except VersionConflictError as exc:
            conflict = DiffConflict(
                RejectionReason.STALE_BASE,
                f"Diff is based on version {diff.base_version}; "
                f"{document_name} is at version {exc.actual_version}",
            )
            return self._reject(
                document_name, conflict, current_version=exc.actual_version
            )

        logger.info(
            "Applied diff to %s: version %d -> %d (%d operations)",
            document_name,
            version,
            committed.version,
            len(diff.operations),
        )
        return Applied(
            document=document_name,
            version=committed.version,
            checksum=committed.checksum,
        )

    def _reject(
        self, document_name: str, conflict: DiffConflict, *, current_version: int
    ) -> Rejected:
        logger.info(
            "Rejected diff to %s: %s (%s)",
            document_name,
            conflict.reason.value,
            conflict.message,
        )
        return Rejected(
            document=document_name,
            reason=conflict.reason,
            message=conflict.message,
            current_version=current_version,
            path=conflict.path,
            op_index=conflict.op_index,
        )
