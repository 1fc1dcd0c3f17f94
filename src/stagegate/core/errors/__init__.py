"""Unified error hierarchy for stagegate.

All custom exception classes are defined in domain-specific modules within
this package. This __init__.py re-exports everything for convenient access.

Usage:
    from stagegate.core.errors import PreconditionError, error_to_response
"""

from stagegate.core.errors.base import (
    ERROR_MAPPINGS,
    EXIT_DIFF_REJECTED,
    EXIT_GATE_FAILURE,
    EXIT_OK,
    EXIT_PRECONDITION,
    EXIT_STORAGE_FATAL,
    REJECTION_ERROR_CODES,
    error_to_response,
    exit_code_for,
)
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

__all__ = [
    # Base / Registry
    "ERROR_MAPPINGS",
    "REJECTION_ERROR_CODES",
    "error_to_response",
    "exit_code_for",
    "EXIT_OK",
    "EXIT_PRECONDITION",
    "EXIT_DIFF_REJECTED",
    "EXIT_GATE_FAILURE",
    "EXIT_STORAGE_FATAL",
    # Workflow errors
    "PreconditionError",
    "SessionTerminal",
    "OperationNotAllowed",
    "GateFailure",
    # Merge errors
    "DiffConflict",
    "RejectionReason",
    # Schema errors
    "SchemaValidationError",
    # Storage errors
    "StorageFatal",
    "LockAcquisitionError",
    "SessionNotFound",
    "SessionCorrupted",
    "DocumentCorrupted",
    "DocumentNotFound",
    "VersionConflictError",
]
