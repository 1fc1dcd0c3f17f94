"""Stage exit preconditions.

Every requirement is evaluated against the session's audit history, which is
the record of what actually happened. A stage with no entry here has no
precondition.
"""

from dataclasses import dataclass, field
from typing import Callable, Dict, Iterable, List, Optional, Set

from stagegate.config.domains import DocumentNamesConfig
from stagegate.core.errors.workflow import GateFailure
from stagegate.core.gates.models import GateReport
from stagegate.core.workflow.audit import AuditEntry
from stagegate.core.workflow.models import (
    AuditKind,
    AuditOutcome,
    Stage,
    WorkflowSession,
)


@dataclass(frozen=True)
class Requirement:
    """An unmet exit condition."""

    code: str
    message: str
    cause: Optional[Exception] = field(default=None, compare=False)


def _matching(
    entries: Iterable[AuditEntry],
    kind: AuditKind,
    outcome: AuditOutcome,
    stage: Optional[Stage] = None,
) -> List[AuditEntry]:
    return [
        entry
        for entry in entries
        if entry.kind == kind
        and entry.outcome == outcome
        and (stage is None or entry.stage == stage.value)
    ]


def _applied_to(entries: List[AuditEntry], stage: Stage, document: str) -> bool:
    return any(
        entry.metadata.get("document") == document
        for entry in _matching(entries, AuditKind.DIFF, AuditOutcome.APPLIED, stage)
    )


def _test_ids(entries: List[AuditEntry]) -> Set[str]:
    ids: Set[str] = set()
    for entry in entries:
        ids.update(entry.metadata.get("test_ids", []))
    return ids


def _context_exit(entries: List[AuditEntry], names: DocumentNamesConfig) -> Optional[Requirement]:
    if not _matching(entries, AuditKind.IMPACT, AuditOutcome.ATTACHED):
        return Requirement(
            "dependency_impact",
            "Attach at least one dependency-impact record before leaving context",
        )
    return None


def _spec_exit(entries: List[AuditEntry], names: DocumentNamesConfig) -> Optional[Requirement]:
    if not _applied_to(entries, Stage.SPEC, names.test_knowledge):
        return Requirement(
            "test_knowledge_diff",
            f"Merge a diff into '{names.test_knowledge}' during the spec stage",
        )
    if not _matching(entries, AuditKind.SIGNAL, AuditOutcome.TESTS_FAILING, Stage.SPEC):
        return Requirement(
            "tests_failing_signal",
            "Record a tests_failing signal: new tests must exist and fail before build",
        )
    return None


def _build_exit(entries: List[AuditEntry], names: DocumentNamesConfig) -> Optional[Requirement]:
    passing = _matching(entries, AuditKind.SIGNAL, AuditOutcome.TESTS_PASSING, Stage.BUILD)
    if not passing:
        return Requirement(
            "tests_passing_signal",
            "Record a tests_passing signal during the build stage",
        )
    failing_ids = _test_ids(
        _matching(entries, AuditKind.SIGNAL, AuditOutcome.TESTS_FAILING, Stage.SPEC)
    )
    missing = sorted(failing_ids - _test_ids(passing))
    if missing:
        return Requirement(
            "tests_passing_coverage",
            "Tests recorded as failing have not been reported passing: " + ", ".join(missing),
        )
    return None


def _sync_exit(entries: List[AuditEntry], names: DocumentNamesConfig) -> Optional[Requirement]:
    if not _applied_to(entries, Stage.SYNC, names.codebase_index):
        return Requirement(
            "codebase_index_diff",
            f"Merge a diff into '{names.codebase_index}' reflecting the build changes",
        )
    return None


def _gate_exit(entries: List[AuditEntry], names: DocumentNamesConfig) -> Optional[Requirement]:
    gate_runs = [entry for entry in entries if entry.kind == AuditKind.GATE]
    if not gate_runs:
        return Requirement("gate_report", "Run the quality gates before committing")

    latest = gate_runs[-1]
    if latest.outcome != AuditOutcome.PASS:
        report = GateReport.model_validate(latest.metadata["report"])
        failure = GateFailure(report)
        return Requirement("gate_passed", str(failure), cause=failure)

    later_writes = [
        entry
        for entry in _matching(entries, AuditKind.DIFF, AuditOutcome.APPLIED)
        if entry.sequence > latest.sequence
    ]
    if later_writes:
        return Requirement(
            "gate_report_current",
            "Documents changed after the last gate run; run the gates again",
        )
    return None


EXIT_REQUIREMENTS: Dict[
    Stage, Callable[[List[AuditEntry], DocumentNamesConfig], Optional[Requirement]]
] = {
    Stage.CONTEXT: _context_exit,
    Stage.SPEC: _spec_exit,
    Stage.BUILD: _build_exit,
    Stage.SYNC: _sync_exit,
    Stage.AUDIT: _gate_exit,
    Stage.COMMIT: _gate_exit,
}


def unmet_exit_requirement(
    session: WorkflowSession,
    history: Iterable[AuditEntry],
    names: Optional[DocumentNamesConfig] = None,
) -> Optional[Requirement]:
    """Return the first unmet exit requirement of the session's stage, or None."""
    check = EXIT_REQUIREMENTS.get(session.stage)
    if check is None:
        return None
    return check(list(history), names or DocumentNamesConfig())
