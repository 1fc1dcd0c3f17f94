"""Versioned knowledge documents and the diff merger.

Usage:
    from stagegate.core.knowledge import KnowledgeStore, DiffMerger, Diff

    store = KnowledgeStore(state_dir)
    result = DiffMerger(store).submit("alpha", Diff.model_validate(payload))
"""

from stagegate.core.knowledge.checksum import (
    canonical_json,
    compute_checksum,
    compute_payload_digest,
)
from stagegate.core.knowledge.merger import DiffMerger, merge
from stagegate.core.knowledge.models import (
    Applied,
    Diff,
    DiffOperation,
    DiffOpType,
    Document,
    MergeResult,
    Rejected,
    parse_diff,
)
from stagegate.core.knowledge.schemas import SchemaRegistry, builtin_schemas
from stagegate.core.knowledge.store import KnowledgeStore, document_name_problem
from stagegate.core.knowledge.tree import (
    format_path,
    get_node,
    iter_wire_problems,
    parse_path,
)

__all__ = [
    "Applied",
    "Diff",
    "DiffMerger",
    "DiffOpType",
    "DiffOperation",
    "Document",
    "KnowledgeStore",
    "MergeResult",
    "Rejected",
    "SchemaRegistry",
    "builtin_schemas",
    "canonical_json",
    "compute_checksum",
    "compute_payload_digest",
    "document_name_problem",
    "format_path",
    "get_node",
    "iter_wire_problems",
    "merge",
    "parse_diff",
    "parse_path",
]
