"""Shared helpers for unified tool modules.

Provides request-id generation and ``dispatch_with_standard_errors``, which
turns every failure into a response-v2 error envelope so tool callers never
see a raw exception.
"""

import logging
from dataclasses import asdict
from typing import Any, Optional

from pydantic import ValidationError
from ulid import ULID

from stagegate.core.errors.base import error_to_response
from stagegate.core.responses import ErrorCode, ErrorType, error_response
from stagegate.tools.unified.router import ActionRouter, ActionRouterError

logger = logging.getLogger(__name__)


def build_request_id(tool_name: str) -> str:
    """Correlation id with a *tool_name* prefix."""
    return f"{tool_name}_{str(ULID()).lower()}"


def dispatch_with_standard_errors(
    router: ActionRouter,
    tool_name: str,
    action: str,
    /,
    *,
    request_id: Optional[str] = None,
    **kwargs: Any,
) -> dict:
    """Dispatch *action* through *router*, converting exceptions to envelopes.

    Known engine exceptions map through the shared error registry; pydantic
    validation errors become ``VALIDATION_ERROR``; anything else is an
    ``INTERNAL_ERROR``.
    """
    rid = request_id or build_request_id(tool_name)
    try:
        return router.dispatch(action=action, **kwargs)
    except ActionRouterError as exc:
        allowed = ", ".join(exc.allowed_actions)
        return asdict(
            error_response(
                f"Unsupported {tool_name} action '{action}'. Allowed actions: {allowed}",
                error_code=ErrorCode.VALIDATION_ERROR,
                error_type=ErrorType.VALIDATION,
                remediation=f"Use one of: {allowed}",
                request_id=rid,
                details={"action": action, "allowed_actions": list(exc.allowed_actions)},
            )
        )
    except ValidationError as exc:
        return asdict(
            error_response(
                f"Invalid {tool_name}.{action} arguments: {exc.error_count()} error(s)",
                error_code=ErrorCode.VALIDATION_ERROR,
                error_type=ErrorType.VALIDATION,
                remediation="Correct the listed fields and retry",
                request_id=rid,
                details={
                    "errors": [
                        {"loc": [str(part) for part in err["loc"]], "msg": err["msg"]}
                        for err in exc.errors()
                    ]
                },
            )
        )
    except Exception as exc:
        response = error_to_response(exc)
        if response is not None:
            logger.info("%s action '%s' failed: %s", tool_name, action, exc)
            response["meta"]["request_id"] = rid
            return response
        if isinstance(exc, ValueError):
            return asdict(
                error_response(
                    str(exc),
                    error_code=ErrorCode.VALIDATION_ERROR,
                    error_type=ErrorType.VALIDATION,
                    request_id=rid,
                )
            )
        logger.exception("%s action '%s' failed with unexpected error", tool_name, action)
        error_msg = str(exc) if str(exc) else exc.__class__.__name__
        return asdict(
            error_response(
                f"{tool_name.capitalize()} action '{action}' failed: {error_msg}",
                error_code=ErrorCode.INTERNAL_ERROR,
                error_type=ErrorType.INTERNAL,
                remediation="Check configuration and logs for details.",
                request_id=rid,
                details={"action": action, "error_type": exc.__class__.__name__},
            )
        )
