"""Workflow error classes: stage ordering, missing evidence, gate failures."""

from typing import Any, Dict, Optional


class PreconditionError(Exception):
    """Raised when a transition or operation is not legal in the current stage.

    Recoverable: the caller supplies the missing evidence or corrects the
    sequence and retries.

    Attributes:
        session_id: Session the operation targeted.
        stage: Stage name the session was in.
        requirement: Machine-readable code of the unmet requirement.
        cause: Underlying error (e.g. a ``GateFailure``) when there is one.
    """

    def __init__(
        self,
        message: str,
        *,
        session_id: Optional[str] = None,
        stage: Optional[str] = None,
        requirement: str = "precondition",
        cause: Optional[Exception] = None,
    ) -> None:
        super().__init__(message)
        self.session_id = session_id
        self.stage = stage
        self.requirement = requirement
        self.cause = cause

    def to_details(self) -> Dict[str, Any]:
        details: Dict[str, Any] = {
            "session_id": self.session_id,
            "stage": self.stage,
            "requirement": self.requirement,
        }
        if self.cause is not None:
            details["cause"] = type(self.cause).__name__
            cause_details = getattr(self.cause, "to_details", None)
            if callable(cause_details):
                details["cause_details"] = cause_details()
        return details


class SessionTerminal(PreconditionError):
    """Raised when a mutation targets a COMPLETED or ABORTED session."""


class OperationNotAllowed(PreconditionError):
    """Raised when an operation (diff, gate run, signal) is invalid in the stage."""


class GateFailure(Exception):
    """Raised when a quality gate report has a failing outcome.

    Attributes:
        report: The failing ``GateReport``.
    """

    def __init__(self, report: Any, message: Optional[str] = None) -> None:
        self.report = report
        failed = [check.name for check in getattr(report, "checks", []) if not check.passed]
        super().__init__(
            message or f"Quality gates failed: {', '.join(failed) or 'unknown'}"
        )
        self.failed_checks = failed

    def to_details(self) -> Dict[str, Any]:
        details: Dict[str, Any] = {"failed_checks": list(self.failed_checks)}
        if hasattr(self.report, "model_dump"):
            details["report"] = self.report.model_dump(mode="json")
        return details
