"""Quality gate commands for the stagegate CLI."""

from typing import Optional

import click

from stagegate.cli.inputs import load_json_input
from stagegate.cli.logging import cli_command, get_cli_logger
from stagegate.cli.output import emit_failure, emit_success
from stagegate.cli.registry import get_context
from stagegate.cli.resilience import handle_keyboard_interrupt
from stagegate.core.errors.base import EXIT_GATE_FAILURE
from stagegate.core.gates import SuppliedInputs

logger = get_cli_logger()


@click.group("gates")
def gates() -> None:
    """Evaluate quality gates."""
    pass


@gates.command("run")
@click.argument("session_id")
@click.option(
    "--inputs",
    "inputs_source",
    help="Analyzer inputs JSON (dependency_edges, functions, coverage): file, '-' or literal.",
)
@click.pass_context
@cli_command("run")
@handle_keyboard_interrupt()
def run_cmd(ctx: click.Context, session_id: str, inputs_source: Optional[str]) -> None:
    """Run every gate check for SESSION_ID (audit stage only).

    Prints the full report. A failing report exits with code 3.

    Examples:
        stagegate gates run 01J...
        stagegate gates run 01J... --inputs '{"coverage": {"core": 92}}'
    """
    raw = load_json_input(inputs_source, label="inputs")
    supplied = SuppliedInputs.model_validate(raw) if raw is not None else None
    report = get_context(ctx).engine.run_gates(session_id, supplied)
    payload = {"session_id": session_id, **report.model_dump(mode="json")}
    if not report.passed:
        logger.info("Gates failed for %s: %s", session_id, report.failed_checks)
        emit_failure(
            payload,
            "Quality gates failed: " + ", ".join(report.failed_checks),
            code="GATE_FAILURE",
            error_type="gate",
            exit_code=EXIT_GATE_FAILURE,
        )
    emit_success(payload)
