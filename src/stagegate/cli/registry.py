"""Per-invocation CLI context stored on ``click.Context.obj``."""

from dataclasses import dataclass, field
from typing import Optional

import click

from stagegate.config import EngineConfig
from stagegate.core.engine import WorkflowEngine


@dataclass
class CLIContext:
    """Resolved configuration plus a lazily built engine."""

    config: EngineConfig
    _engine: Optional[WorkflowEngine] = field(default=None, repr=False)

    @property
    def engine(self) -> WorkflowEngine:
        if self._engine is None:
            self._engine = WorkflowEngine(self.config)
        return self._engine


def set_context(ctx: click.Context, config: EngineConfig) -> CLIContext:
    cli_ctx = CLIContext(config=config)
    ctx.obj = cli_ctx
    return cli_ctx


def get_context(ctx: click.Context) -> CLIContext:
    """Return the CLI context, building a default one when missing."""
    root = ctx.find_root()
    if not isinstance(root.obj, CLIContext):
        root.obj = CLIContext(config=EngineConfig.from_env())
    return root.obj
