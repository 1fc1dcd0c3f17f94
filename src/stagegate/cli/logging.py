"""CLI logging and the ``cli_command`` error boundary.

Commands log to stderr so stdout stays a single JSON envelope. Known engine
exceptions are converted to error envelopes with their mapped exit code.
"""

import functools
import logging
import sys
from typing import Any, Callable, Optional, TypeVar

import click
from pydantic import ValidationError

from stagegate.core.errors.base import (
    EXIT_PRECONDITION,
    EXIT_STORAGE_FATAL,
    error_to_response,
    exit_code_for,
)
from stagegate.cli.output import emit_error, emit_response

T = TypeVar("T")

_CLI_LOGGER_NAME = "stagegate.cli"


def get_cli_logger() -> logging.Logger:
    return logging.getLogger(_CLI_LOGGER_NAME)


def configure_cli_logging(level: str = "WARNING") -> None:
    """Send stagegate logs to stderr at ``level``."""
    root_logger = logging.getLogger("stagegate")
    root_logger.setLevel(getattr(logging, level.upper(), logging.WARNING))
    for existing in list(root_logger.handlers):
        if getattr(existing, "_stagegate_cli", False):
            root_logger.removeHandler(existing)
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter("%(levelname)s %(name)s: %(message)s"))
    handler._stagegate_cli = True  # type: ignore[attr-defined]
    root_logger.addHandler(handler)


def _validation_message(exc: ValidationError) -> str:
    first = exc.errors()[0] if exc.errors() else {}
    location = ".".join(str(part) for part in first.get("loc", ()))
    message = first.get("msg", str(exc))
    return f"{location}: {message}" if location else message


def cli_command(name: Optional[str] = None) -> Callable[[Callable[..., T]], Callable[..., T]]:
    """Wrap a command so engine errors become JSON envelopes and exit codes."""

    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        command_name = name or func.__name__
        logger = get_cli_logger()

        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> T:
            try:
                return func(*args, **kwargs)
            except (click.ClickException, click.exceptions.Exit, click.Abort):
                raise
            except ValidationError as exc:
                emit_error(
                    f"Invalid input: {_validation_message(exc)}",
                    code="VALIDATION_ERROR",
                    error_type="validation",
                    remediation="Check the command arguments",
                    exit_code=EXIT_PRECONDITION,
                )
            except Exception as exc:
                response = error_to_response(exc)
                if response is not None:
                    exit_code = exit_code_for(exc)
                    logger.info("%s failed: %s", command_name, exc)
                    emit_response(
                        response, exit_code if exit_code is not None else EXIT_PRECONDITION
                    )
                if isinstance(exc, ValueError):
                    emit_error(
                        str(exc),
                        code="VALIDATION_ERROR",
                        error_type="validation",
                        remediation="Check the command arguments",
                        exit_code=EXIT_PRECONDITION,
                    )
                logger.exception("%s failed unexpectedly", command_name)
                emit_error(
                    f"Unexpected error: {exc}",
                    code="INTERNAL_ERROR",
                    error_type="internal",
                    exit_code=EXIT_STORAGE_FATAL,
                )

        return wrapper

    return decorator
