"""Session lifecycle commands for the stagegate CLI."""

from typing import Optional, Tuple

import click

from stagegate.cli.inputs import load_json_input
from stagegate.cli.logging import cli_command, get_cli_logger
from stagegate.cli.output import emit_success
from stagegate.cli.registry import get_context
from stagegate.cli.resilience import handle_keyboard_interrupt
from stagegate.core.workflow.models import (
    DependencyImpact,
    ImpactSeverity,
    RunnerSignal,
    SessionStatus,
    SignalKind,
    StageEvidence,
    WorkflowSession,
)

logger = get_cli_logger()


def _session_payload(session: WorkflowSession) -> dict:
    return {
        "session_id": session.id,
        "stage": session.stage.value,
        "stage_index": session.stage.index,
        "status": session.status.value,
        "skipped": [stage.value for stage in session.skipped],
        "abort_reason": session.abort_reason,
    }


@click.group("session")
def session() -> None:
    """Start, advance and inspect workflow sessions."""
    pass


@session.command("start")
@click.pass_context
@cli_command("start")
@handle_keyboard_interrupt()
def start_cmd(ctx: click.Context) -> None:
    """Start a new session at the roadmap stage.

    Examples:
        stagegate session start
    """
    engine = get_context(ctx).engine
    session_id = engine.start_session()
    emit_success(_session_payload(engine.get_session(session_id)))


@session.command("advance")
@click.argument("session_id")
@click.option("--skip", is_flag=True, help="Bypass the current (optional) stage.")
@click.option("--notes", help="Short description of the work done in this stage.")
@click.option("--reference", "references", multiple=True, help="Link or path (repeatable).")
@click.option("--evidence", "evidence_source", help="Evidence JSON: file path, '-' or literal.")
@click.pass_context
@cli_command("advance")
@handle_keyboard_interrupt()
def advance_cmd(
    ctx: click.Context,
    session_id: str,
    skip: bool,
    notes: Optional[str],
    references: Tuple[str, ...],
    evidence_source: Optional[str],
) -> None:
    """Advance SESSION_ID to its next stage.

    Fails with exit code 1 when the stage's exit condition does not hold.

    Examples:
        stagegate session advance 01J... --notes "design reviewed"
        stagegate session advance 01J... --skip
    """
    data = load_json_input(evidence_source, label="evidence") or {}
    if not isinstance(data, dict):
        raise ValueError("evidence must be a JSON object")
    evidence = StageEvidence.model_validate(
        {
            **data,
            **({"notes": notes} if notes else {}),
            **({"references": list(references)} if references else {}),
        }
    )
    result = get_context(ctx).engine.advance(session_id, evidence, skip=skip)
    emit_success(_session_payload(result))


@session.command("abort")
@click.argument("session_id")
@click.option("--reason", required=True, help="Why the session is abandoned.")
@click.pass_context
@cli_command("abort")
def abort_cmd(ctx: click.Context, session_id: str, reason: str) -> None:
    """Abort SESSION_ID.

    Examples:
        stagegate session abort 01J... --reason "superseded"
    """
    result = get_context(ctx).engine.abort(session_id, reason)
    emit_success(_session_payload(result))


@session.command("show")
@click.argument("session_id")
@click.pass_context
@cli_command("show")
def show_cmd(ctx: click.Context, session_id: str) -> None:
    """Show SESSION_ID and what blocks its next advance."""
    engine = get_context(ctx).engine
    current = engine.get_session(session_id)
    pending = engine.pending_requirement(session_id)
    emit_success(
        {
            **_session_payload(current),
            "session": current.model_dump(mode="json"),
            "pending_requirement": (
                {"code": pending.code, "message": pending.message} if pending else None
            ),
        }
    )


@session.command("list")
@click.option(
    "--status",
    type=click.Choice([status.value for status in SessionStatus]),
    help="Only sessions in this status.",
)
@click.pass_context
@cli_command("list")
def list_cmd(ctx: click.Context, status: Optional[str]) -> None:
    """List sessions, newest first.

    Examples:
        stagegate session list --status active
    """
    summaries = get_context(ctx).engine.list_sessions(
        SessionStatus(status) if status else None
    )
    emit_success(
        {
            "sessions": [summary.model_dump(mode="json") for summary in summaries],
            "count": len(summaries),
        }
    )


@session.command("history")
@click.argument("session_id")
@click.option("--kind", help="Only entries of this kind (diff, gate, transition, ...).")
@click.pass_context
@cli_command("history")
def history_cmd(ctx: click.Context, session_id: str, kind: Optional[str]) -> None:
    """Print the ordered audit history of SESSION_ID.

    Use ``store`` as the id for diffs submitted without a session.
    """
    entries = [
        entry.model_dump(mode="json")
        for entry in get_context(ctx).engine.get_history(session_id)
        if kind is None or entry.kind == kind
    ]
    emit_success({"session_id": session_id, "entries": entries, "count": len(entries)})


@session.command("attach-impact")
@click.argument("session_id")
@click.option("--module", required=True, help="Module whose dependents were analyzed.")
@click.option("--summary", default="", help="What the change affects.")
@click.option("--affected", multiple=True, help="Dependent module (repeatable).")
@click.option(
    "--severity",
    type=click.Choice([severity.value for severity in ImpactSeverity]),
    default=ImpactSeverity.LOW.value,
    show_default=True,
)
@click.pass_context
@cli_command("attach-impact")
def attach_impact_cmd(
    ctx: click.Context,
    session_id: str,
    module: str,
    summary: str,
    affected: Tuple[str, ...],
    severity: str,
) -> None:
    """Attach a dependency-impact record to SESSION_ID.

    Examples:
        stagegate session attach-impact 01J... --module app.core --affected app.api
    """
    impact = DependencyImpact(
        module=module, summary=summary, affected=list(affected), severity=severity
    )
    entry = get_context(ctx).engine.attach_impact(session_id, impact)
    emit_success({"session_id": session_id, "sequence": entry.sequence})


@session.command("signal")
@click.argument("session_id")
@click.argument("kind", type=click.Choice([kind.value for kind in SignalKind]))
@click.option("--test", "test_ids", multiple=True, required=True, help="Test id (repeatable).")
@click.option("--runner", help="Name of the test runner.")
@click.option("--summary", help="Runner output excerpt.")
@click.pass_context
@cli_command("signal")
def signal_cmd(
    ctx: click.Context,
    session_id: str,
    kind: str,
    test_ids: Tuple[str, ...],
    runner: Optional[str],
    summary: Optional[str],
) -> None:
    """Record a test-runner verdict for SESSION_ID.

    Examples:
        stagegate session signal 01J... tests_failing --test tests/test_x.py::test_new
    """
    signal = RunnerSignal(
        kind=SignalKind(kind), test_ids=list(test_ids), runner=runner, summary=summary
    )
    entry = get_context(ctx).engine.record_test_signal(session_id, signal)
    emit_success(
        {
            "session_id": session_id,
            "kind": signal.kind.value,
            "test_ids": signal.test_ids,
            "sequence": entry.sequence,
        }
    )
