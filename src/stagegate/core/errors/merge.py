"""Diff merge error classes."""

from enum import Enum
from typing import Any, Dict, Optional


class RejectionReason(str, Enum):
    """Why a diff was rejected in full."""

    STALE_BASE = "StaleBase"
    PATH_CONFLICT = "PathConflict"
    TYPE_MISMATCH = "TypeMismatch"
    MALFORMED_DIFF = "MalformedDiff"


class DiffConflict(Exception):
    """Raised while validating a diff; converted to a ``Rejected`` result.

    Recoverable: the caller rebases and resubmits.

    Attributes:
        reason: Rejection reason code.
        path: Dotted path of the offending operation, if any.
        op_index: Index of the offending operation, if any.
    """

    def __init__(
        self,
        reason: RejectionReason,
        message: str,
        *,
        path: Optional[str] = None,
        op_index: Optional[int] = None,
    ) -> None:
        super().__init__(message)
        self.reason = reason
        self.message = message
        self.path = path
        self.op_index = op_index

    def to_details(self) -> Dict[str, Any]:
        return {
            "reason": self.reason.value,
            "path": self.path,
            "op_index": self.op_index,
        }
