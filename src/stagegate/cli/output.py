"""JSON output helpers for the stagegate CLI.

Every command prints exactly one response-v2 envelope to stdout and exits
with the code that classifies the outcome:

    0  success
    1  precondition failure (missing evidence, wrong stage, unknown id)
    2  diff rejected
    3  gate failure
    4  fatal storage error
"""

import json
import sys
from dataclasses import asdict
from typing import Any, Mapping, NoReturn, Optional

from stagegate.core.errors.base import EXIT_OK, EXIT_PRECONDITION
from stagegate.core.responses import error_response, success_response


def _dump(payload: Mapping[str, Any]) -> None:
    sys.stdout.write(json.dumps(payload, indent=2, default=str))
    sys.stdout.write("\n")
    sys.stdout.flush()


def emit_success(data: Optional[Mapping[str, Any]] = None, **fields: Any) -> None:
    """Print a success envelope. Does not exit."""
    _dump(asdict(success_response(data, **fields)))


def emit_response(
    response: Mapping[str, Any], exit_code: int = EXIT_PRECONDITION
) -> NoReturn:
    """Print an already-built envelope and exit with ``exit_code``."""
    _dump(response)
    sys.exit(exit_code)


def emit_error(
    message: str,
    *,
    code: str = "INTERNAL_ERROR",
    error_type: str = "internal",
    remediation: Optional[str] = None,
    details: Optional[Mapping[str, Any]] = None,
    data: Optional[Mapping[str, Any]] = None,
    exit_code: int = EXIT_PRECONDITION,
) -> NoReturn:
    """Print an error envelope and exit with ``exit_code``."""
    response = error_response(
        message,
        data=data,
        error_code=code,
        error_type=error_type,
        remediation=remediation,
        details=details,
    )
    emit_response(asdict(response), exit_code)


def emit_failure(
    data: Mapping[str, Any], message: str, *, code: str, error_type: str, exit_code: int
) -> NoReturn:
    """Print an unsuccessful outcome that still carries a full result payload.

    Used for rejected diffs and failing gate reports, which are results, not
    exceptions, but must not exit 0.
    """
    emit_error(message, code=code, error_type=error_type, data=data, exit_code=exit_code)


__all__ = ["EXIT_OK", "emit_error", "emit_failure", "emit_response", "emit_success"]
