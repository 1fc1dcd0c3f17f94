"""
Core types for driver response contracts.

Defines the fundamental building blocks: error codes, error types,
the standard ToolResponse dataclass, and the internal _build_meta() helper.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Sequence


class ErrorCode(str, Enum):
    """Machine-readable error codes for driver responses.

    Codes follow SCREAMING_SNAKE_CASE convention.

    Categories:
        - Validation (input errors)
        - Workflow (stage ordering, evidence)
        - Merge (diff rejection reasons)
        - Gates
        - System (storage, internal)
    """

    # Validation errors
    VALIDATION_ERROR = "VALIDATION_ERROR"
    INVALID_FORMAT = "INVALID_FORMAT"
    MISSING_REQUIRED = "MISSING_REQUIRED"

    # Resource errors
    NOT_FOUND = "NOT_FOUND"
    SESSION_NOT_FOUND = "SESSION_NOT_FOUND"
    DOCUMENT_NOT_FOUND = "DOCUMENT_NOT_FOUND"

    # Workflow errors
    PRECONDITION_FAILED = "PRECONDITION_FAILED"
    SESSION_TERMINAL = "SESSION_TERMINAL"
    OPERATION_NOT_ALLOWED = "OPERATION_NOT_ALLOWED"

    # Merge errors
    STALE_BASE = "STALE_BASE"
    PATH_CONFLICT = "PATH_CONFLICT"
    TYPE_MISMATCH = "TYPE_MISMATCH"
    MALFORMED_DIFF = "MALFORMED_DIFF"

    # Gate / schema errors
    GATE_FAILURE = "GATE_FAILURE"
    SCHEMA_VALIDATION_FAILED = "SCHEMA_VALIDATION_FAILED"

    # System errors
    STORAGE_FATAL = "STORAGE_FATAL"
    LOCK_TIMEOUT = "LOCK_TIMEOUT"
    SESSION_CORRUPTED = "SESSION_CORRUPTED"
    AUDIT_CHAIN_BROKEN = "AUDIT_CHAIN_BROKEN"
    INTERNAL_ERROR = "INTERNAL_ERROR"


class ErrorType(str, Enum):
    """Error categories for routing and client-side handling.

    Each type indicates whether the caller can recover by itself.
    """

    VALIDATION = "validation"  # No retry, fix input
    NOT_FOUND = "not_found"  # No retry
    PRECONDITION = "precondition"  # Supply missing evidence, then retry
    CONFLICT = "conflict"  # Re-read, rebase, resubmit
    GATE = "gate"  # Fix code/docs, re-run gates
    UNAVAILABLE = "unavailable"  # Yes, with backoff
    INTERNAL = "internal"  # Operator attention


@dataclass
class ToolResponse:
    """
    Standard response structure for driver operations.

    Attributes:
        success: Whether the operation completed successfully
        data: The primary payload (operation-specific structured data)
        error: Error message if success is False, None otherwise
        meta: Response metadata including version identifier
    """

    success: bool
    data: Dict[str, Any] = field(default_factory=dict)
    error: Optional[str] = None
    meta: Dict[str, Any] = field(default_factory=lambda: {"version": "response-v2"})


def _build_meta(
    *,
    request_id: Optional[str] = None,
    warnings: Optional[Sequence[str]] = None,
    extra: Optional[Mapping[str, Any]] = None,
) -> Dict[str, Any]:
    """Construct a metadata payload that always includes the response version."""
    meta: Dict[str, Any] = {"version": "response-v2"}
    if request_id:
        meta["request_id"] = request_id
    if warnings:
        meta["warnings"] = list(warnings)
    if extra:
        meta.update(dict(extra))
    return meta
