"""CLI command groups.

The CLI is organized into domain groups: ``session``, ``docs``, ``gates``
and ``audit``.
"""

from stagegate.cli.commands.audit import audit
from stagegate.cli.commands.docs import docs
from stagegate.cli.commands.gates import gates
from stagegate.cli.commands.session import session

__all__ = [
    "audit",
    "docs",
    "gates",
    "session",
]
