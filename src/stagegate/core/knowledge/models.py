"""Knowledge document and diff models.

Documents are named, versioned trees of wire-format values. Diffs are
ordered lists of path-scoped operations tagged with the base version they
were computed against.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from stagegate.core.errors.merge import DiffConflict, RejectionReason
from stagegate.core.knowledge.checksum import compute_checksum


class DiffOpType(str, Enum):
    """Operations a diff may apply at a path."""

    INSERT = "insert"
    UPDATE = "update"
    DELETE = "delete"


class DiffOperation(BaseModel):
    """A single path-scoped operation.

    ``value`` is required for insert/update and forbidden for delete; that
    rule is enforced by the merger so a bad operation rejects the whole
    diff instead of failing at parse time.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    path: str = Field(..., description="Dotted path; escape literal dots as '\\.'")
    op: DiffOpType = Field(..., description="insert | update | delete")
    value: Any = Field(None, description="New value for insert/update")
    replace: bool = Field(
        False, description="Allow replacing a node with a differently shaped value"
    )


class Diff(BaseModel):
    """An immutable patch against one document version."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    base_version: int = Field(..., ge=0, description="Version the diff was computed against")
    operations: Tuple[DiffOperation, ...] = Field(
        default_factory=tuple, description="Operations, applied in order"
    )


class Document(BaseModel):
    """One materialized version of a named knowledge document."""

    name: str = Field(..., description="Document name")
    version: int = Field(0, ge=0, description="Monotonic version, 0 before first write")
    content: Dict[str, Any] = Field(default_factory=dict, description="Document tree")
    checksum: str = Field(..., description="SHA-256 of the canonical content")
    created_at: Optional[datetime] = Field(None, description="When this version was committed")
    session_id: Optional[str] = Field(None, description="Session that wrote this version")
    diff_digest: Optional[str] = Field(None, description="Digest of the diff that produced it")

    @classmethod
    def empty(cls, name: str) -> "Document":
        """Version 0 of a document that has never been written."""
        return cls(name=name, version=0, content={}, checksum=compute_checksum({}))

    def verify_checksum(self) -> bool:
        return compute_checksum(self.content) == self.checksum


@dataclass(frozen=True)
class Applied:
    """A diff was merged and produced ``version``."""

    document: str
    version: int
    checksum: str

    applied: bool = field(default=True, init=False)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": "applied",
            "document": self.document,
            "version": self.version,
            "checksum": self.checksum,
        }


@dataclass(frozen=True)
class Rejected:
    """A diff was rejected in full; the document is unchanged."""

    document: str
    reason: RejectionReason
    message: str
    current_version: int
    path: Optional[str] = None
    op_index: Optional[int] = None

    applied: bool = field(default=False, init=False)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": "rejected",
            "document": self.document,
            "reason": self.reason.value,
            "message": self.message,
            "current_version": self.current_version,
            "path": self.path,
            "op_index": self.op_index,
        }


MergeResult = Union[Applied, Rejected]


def parse_diff(payload: Any) -> Diff:
    """Build a ``Diff`` from its wire form.

    ``payload`` may also be the raw JSON text of a diff. A ``document`` key,
    if present, is ignored; the target document is passed separately to the
    merger.

    Raises:
        DiffConflict: ``MalformedDiff`` when the payload does not describe a diff.
    """
    if isinstance(payload, Diff):
        return payload
    if isinstance(payload, str):
        try:
            payload = json.loads(payload)
        except ValueError as exc:
            raise DiffConflict(
                RejectionReason.MALFORMED_DIFF, f"Diff is not valid JSON: {exc}"
            ) from exc
    data = payload
    if isinstance(payload, Mapping):
        data = {key: value for key, value in payload.items() if key != "document"}
    try:
        return Diff.model_validate(data)
    except ValidationError as exc:
        first = exc.errors()[0] if exc.errors() else {}
        location = ".".join(str(part) for part in first.get("loc", ()))
        message = first.get("msg", str(exc))
        raise DiffConflict(
            RejectionReason.MALFORMED_DIFF,
            f"Invalid diff payload: {location + ': ' if location else ''}{message}",
        ) from exc
