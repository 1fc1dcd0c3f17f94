"""Error-to-ErrorCode mapping registry.

Provides a centralized mapping from exception types to (ErrorCode, ErrorType)
tuples and to CLI exit codes, so the CLI and the MCP tool surface report
failures identically.

Usage:
    from stagegate.core.errors.base import error_to_response, exit_code_for

    try:
        engine.advance(session_id, evidence)
    except Exception as e:
        result = error_to_response(e)
        if result is None:
            raise  # Unknown error, re-raise
"""

from __future__ import annotations

from typing import Any, Dict, Optional, Tuple, Type

from stagegate.core.errors.merge import DiffConflict, RejectionReason
from stagegate.core.errors.schema import SchemaValidationError
from stagegate.core.errors.storage import (
    DocumentCorrupted,
    DocumentNotFound,
    LockAcquisitionError,
    SessionCorrupted,
    SessionNotFound,
    StorageFatal,
    VersionConflictError,
)
from stagegate.core.errors.workflow import (
    GateFailure,
    OperationNotAllowed,
    PreconditionError,
    SessionTerminal,
)
from stagegate.core.responses.types import ErrorCode, ErrorType

# CLI exit codes
EXIT_OK = 0
EXIT_PRECONDITION = 1
EXIT_DIFF_REJECTED = 2
EXIT_GATE_FAILURE = 3
EXIT_STORAGE_FATAL = 4

ERROR_MAPPINGS: Dict[Type[Exception], Tuple[ErrorCode, ErrorType]] = {
    # --- Workflow errors ---
    PreconditionError: (ErrorCode.PRECONDITION_FAILED, ErrorType.PRECONDITION),
    SessionTerminal: (ErrorCode.SESSION_TERMINAL, ErrorType.PRECONDITION),
    OperationNotAllowed: (ErrorCode.OPERATION_NOT_ALLOWED, ErrorType.PRECONDITION),
    GateFailure: (ErrorCode.GATE_FAILURE, ErrorType.GATE),
    # --- Merge errors (code refined per reason below) ---
    DiffConflict: (ErrorCode.MALFORMED_DIFF, ErrorType.CONFLICT),
    # --- Schema errors ---
    SchemaValidationError: (ErrorCode.SCHEMA_VALIDATION_FAILED, ErrorType.VALIDATION),
    # --- Storage / concurrency errors ---
    SessionNotFound: (ErrorCode.SESSION_NOT_FOUND, ErrorType.NOT_FOUND),
    SessionCorrupted: (ErrorCode.SESSION_CORRUPTED, ErrorType.INTERNAL),
    DocumentCorrupted: (ErrorCode.SCHEMA_VALIDATION_FAILED, ErrorType.INTERNAL),
    DocumentNotFound: (ErrorCode.DOCUMENT_NOT_FOUND, ErrorType.NOT_FOUND),
    VersionConflictError: (ErrorCode.STALE_BASE, ErrorType.CONFLICT),
    LockAcquisitionError: (ErrorCode.LOCK_TIMEOUT, ErrorType.UNAVAILABLE),
    StorageFatal: (ErrorCode.STORAGE_FATAL, ErrorType.INTERNAL),
}

REJECTION_ERROR_CODES: Dict[RejectionReason, ErrorCode] = {
    RejectionReason.STALE_BASE: ErrorCode.STALE_BASE,
    RejectionReason.PATH_CONFLICT: ErrorCode.PATH_CONFLICT,
    RejectionReason.TYPE_MISMATCH: ErrorCode.TYPE_MISMATCH,
    RejectionReason.MALFORMED_DIFF: ErrorCode.MALFORMED_DIFF,
}

_EXIT_CODES: Dict[Type[Exception], int] = {
    PreconditionError: EXIT_PRECONDITION,
    SessionTerminal: EXIT_PRECONDITION,
    OperationNotAllowed: EXIT_PRECONDITION,
    SessionNotFound: EXIT_PRECONDITION,
    DiffConflict: EXIT_DIFF_REJECTED,
    GateFailure: EXIT_GATE_FAILURE,
    SchemaValidationError: EXIT_GATE_FAILURE,
    StorageFatal: EXIT_STORAGE_FATAL,
    SessionCorrupted: EXIT_STORAGE_FATAL,
    DocumentCorrupted: EXIT_STORAGE_FATAL,
    DocumentNotFound: EXIT_PRECONDITION,
    VersionConflictError: EXIT_DIFF_REJECTED,
    LockAcquisitionError: EXIT_STORAGE_FATAL,
}

_REMEDIATIONS: Dict[ErrorType, str] = {
    ErrorType.PRECONDITION: "Record the missing evidence or follow the stage order, then retry",
    ErrorType.CONFLICT: "Re-read the document and resubmit the diff against its current version",
    ErrorType.GATE: "Fix the failing checks and run the gates again",
    ErrorType.NOT_FOUND: "Check the identifier",
    ErrorType.UNAVAILABLE: "Retry once the lock holder finishes",
    ErrorType.INTERNAL: "Check the state directory; operator attention required",
    ErrorType.VALIDATION: "Correct the document so it matches its schema",
}


def exit_code_for(exc: Exception) -> Optional[int]:
    """Return the CLI exit code for a known exception, or None if unknown."""
    return _EXIT_CODES.get(type(exc))


def error_to_response(exc: Exception) -> Optional[dict]:
    """Convert a known exception to a standard error_response dict, or None if unknown.

    Looks up the exception's *exact* type in ERROR_MAPPINGS and, if found,
    generates a standardized error response using the mapped ErrorCode and
    ErrorType. Exceptions exposing ``to_details()`` contribute ``details``.
    """
    mapping = ERROR_MAPPINGS.get(type(exc))
    if mapping is None:
        return None

    from dataclasses import asdict

    from stagegate.core.responses.builders import error_response

    code, error_type = mapping
    if isinstance(exc, DiffConflict):
        code = REJECTION_ERROR_CODES[exc.reason]

    details: Optional[Dict[str, Any]] = None
    to_details = getattr(exc, "to_details", None)
    if callable(to_details):
        details = to_details()

    return asdict(
        error_response(
            str(exc),
            error_code=code,
            error_type=error_type,
            remediation=_REMEDIATIONS.get(error_type),
            details=details,
        )
    )
