"""Interrupt handling for CLI commands."""

import functools
from typing import Any, Callable, TypeVar

from stagegate.cli.output import emit_error

T = TypeVar("T")


def handle_keyboard_interrupt() -> Callable[[Callable[..., T]], Callable[..., T]]:
    """Turn Ctrl-C into an error envelope instead of a traceback.

    Writes in progress are atomic, so an interrupted command leaves the
    previous state intact.
    """

    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> T:
            try:
                return func(*args, **kwargs)
            except KeyboardInterrupt:
                emit_error(
                    "Interrupted",
                    code="INTERRUPTED",
                    error_type="unavailable",
                    remediation="Re-run the command; no partial state was written",
                    exit_code=130,
                )

        return wrapper

    return decorator
