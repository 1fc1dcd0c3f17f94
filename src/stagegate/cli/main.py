"""stagegate command-line entry point.

Usage:
    stagegate --state-dir .stagegate session start
    stagegate docs submit test_knowledge --diff diff.json --session <id>
"""

from pathlib import Path
from typing import Optional

import click

from stagegate.cli.commands import audit, docs, gates, session
from stagegate.cli.logging import configure_cli_logging
from stagegate.cli.registry import set_context
from stagegate.config import _PACKAGE_VERSION, EngineConfig


@click.group()
@click.version_option(_PACKAGE_VERSION, prog_name="stagegate")
@click.option(
    "--state-dir",
    type=click.Path(file_okay=False, path_type=Path),
    envvar="STAGEGATE_STATE_DIR",
    help="Directory holding documents, sessions and audit ledgers.",
)
@click.option(
    "--config",
    "config_file",
    type=click.Path(dir_okay=False, exists=True),
    help="TOML configuration file.",
)
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    default="WARNING",
    show_default=True,
    help="Log level for stderr output.",
)
@click.pass_context
def cli(
    ctx: click.Context,
    state_dir: Optional[Path],
    config_file: Optional[str],
    log_level: str,
) -> None:
    """Gated development workflow engine."""
    config = EngineConfig.from_env(config_file)
    if state_dir is not None:
        config.with_state_dir(state_dir)
    configure_cli_logging(log_level)
    set_context(ctx, config)


cli.add_command(session)
cli.add_command(docs)
cli.add_command(gates)
cli.add_command(audit)


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
