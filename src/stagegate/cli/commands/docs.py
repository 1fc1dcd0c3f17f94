"""Knowledge document commands for the stagegate CLI."""

from typing import Optional

import click

from stagegate.cli.inputs import read_text_input
from stagegate.cli.logging import cli_command, get_cli_logger
from stagegate.cli.output import emit_failure, emit_success
from stagegate.cli.registry import get_context
from stagegate.cli.resilience import handle_keyboard_interrupt
from stagegate.core.errors.base import EXIT_DIFF_REJECTED, REJECTION_ERROR_CODES
from stagegate.core.knowledge import Rejected

logger = get_cli_logger()


@click.group("docs")
def docs() -> None:
    """Read and patch versioned knowledge documents."""
    pass


@docs.command("submit")
@click.argument("name")
@click.option("--diff", "diff_source", required=True, help="Diff JSON: file path, '-' or literal.")
@click.option("--session", "session_id", help="Session on whose behalf the diff is merged.")
@click.pass_context
@cli_command("submit")
@handle_keyboard_interrupt()
def submit_cmd(
    ctx: click.Context, name: str, diff_source: str, session_id: Optional[str]
) -> None:
    """Merge a diff into document NAME.

    The diff is applied entirely or not at all. A rejected diff, including
    text that is not valid JSON, exits with code 2 and reports the reason
    and the document's current version.

    Examples:
        stagegate docs submit test_knowledge --diff diff.json --session 01J...
        echo '{"base_version": 0, "operations": []}' | stagegate docs submit x --diff -
    """
    text = read_text_input(diff_source, label="diff")
    result = get_context(ctx).engine.submit_diff(name, text, session_id=session_id)
    if isinstance(result, Rejected):
        emit_failure(
            result.to_dict(),
            f"Diff rejected: {result.reason.value}: {result.message}",
            code=REJECTION_ERROR_CODES[result.reason].value,
            error_type="conflict",
            exit_code=EXIT_DIFF_REJECTED,
        )
    emit_success(result.to_dict())


@docs.command("read")
@click.argument("name")
@click.option("--version", type=int, help="Read this version instead of the latest.")
@click.option("--session", "session_id", help="Record the read in this session.")
@click.pass_context
@cli_command("read")
def read_cmd(
    ctx: click.Context, name: str, version: Optional[int], session_id: Optional[str]
) -> None:
    """Print a full snapshot of document NAME.

    Examples:
        stagegate docs read codebase_index
        stagegate docs read codebase_index --version 3
    """
    document = get_context(ctx).engine.read_document(
        name, session_id=session_id, version=version
    )
    emit_success(document.model_dump(mode="json"))


@docs.command("versions")
@click.argument("name")
@click.pass_context
@cli_command("versions")
def versions_cmd(ctx: click.Context, name: str) -> None:
    """List the committed versions of document NAME."""
    history = get_context(ctx).engine.document_history(name)
    emit_success(
        {
            "name": name,
            "versions": [
                {
                    "version": document.version,
                    "checksum": document.checksum,
                    "created_at": document.created_at,
                    "session_id": document.session_id,
                }
                for document in history
            ],
            "count": len(history),
        }
    )


@docs.command("validate")
@click.argument("name")
@click.pass_context
@cli_command("validate")
def validate_cmd(ctx: click.Context, name: str) -> None:
    """Check the latest version of NAME against its schema.

    Exits with code 3 when the document is invalid.
    """
    document = get_context(ctx).engine.validate_document(name)
    emit_success({"name": name, "version": document.version, "valid": True})


@docs.command("list")
@click.pass_context
@cli_command("list")
def list_cmd(ctx: click.Context) -> None:
    """List every stored document."""
    names = get_context(ctx).engine.list_documents()
    emit_success({"documents": names, "count": len(names)})
