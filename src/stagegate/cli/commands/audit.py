"""Audit ledger commands.

Provides commands for verifying ledger integrity and listing ledgers.
"""

import click

from stagegate.cli.logging import cli_command, get_cli_logger
from stagegate.cli.output import emit_error, emit_success
from stagegate.cli.registry import get_context
from stagegate.cli.resilience import handle_keyboard_interrupt
from stagegate.core.errors.base import EXIT_STORAGE_FATAL

logger = get_cli_logger()


@click.group("audit")
def audit() -> None:
    """Audit ledger management commands."""
    pass


@audit.command("verify")
@click.argument("session_id")
@click.pass_context
@cli_command("verify")
@handle_keyboard_interrupt()
def verify_cmd(ctx: click.Context, session_id: str) -> None:
    """Verify the hash chain of SESSION_ID's ledger.

    Walks the hash-linked ledger and reports the first tampered or corrupt
    entry. A broken chain exits with code 4.

    Examples:
        stagegate audit verify 01J...
        stagegate audit verify store
    """
    result = get_context(ctx).engine.verify_history(session_id)

    if result.valid:
        emit_success(
            {
                "session_id": session_id,
                "valid": True,
                "total_entries": result.total_entries,
                "warnings": result.warnings,
            }
        )
    else:
        emit_error(
            f"Audit chain broken at line {result.divergence_point}: {result.divergence_type}",
            code="AUDIT_CHAIN_BROKEN",
            error_type="internal",
            remediation=result.divergence_detail,
            details=result.model_dump(mode="json"),
            exit_code=EXIT_STORAGE_FATAL,
        )


@audit.command("list")
@click.pass_context
@cli_command("list")
def list_cmd(ctx: click.Context) -> None:
    """List every audit ledger (session ids plus ``store``).

    Examples:
        stagegate audit list
    """
    ledgers = get_context(ctx).engine.list_ledgers()
    emit_success({"ledgers": ledgers, "count": len(ledgers)})
