"""Deterministic hashing for knowledge documents and audit payloads.

Key functions:
- canonical_json(): compact JSON with sorted keys
- compute_checksum(): SHA-256 of a document tree
- compute_payload_digest(): SHA-256 of an audit payload (None for empty)
"""

import hashlib
import json
from typing import Any, Mapping, Optional


def canonical_json(value: Any) -> str:
    """Serialize a value to compact JSON with sorted keys."""
    return json.dumps(value, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def compute_checksum(content: Mapping[str, Any]) -> str:
    """Compute the SHA-256 checksum of a document tree.

    Key order does not affect the checksum, so two trees holding the same
    data always hash identically.

    Example:
        >>> compute_checksum({"x": 1}) == compute_checksum({"x": 1})
        True
    """
    return hashlib.sha256(canonical_json(dict(content)).encode("utf-8")).hexdigest()


def compute_payload_digest(payload: Optional[Mapping[str, Any]]) -> Optional[str]:
    """Compute SHA-256 digest of an audit payload."""
    if not payload:
        return None
    return hashlib.sha256(canonical_json(dict(payload)).encode("utf-8")).hexdigest()
