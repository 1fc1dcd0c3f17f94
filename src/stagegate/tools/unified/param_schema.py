"""Declarative parameter validation for unified tool handlers.

Each handler declares a schema dict mapping field names to type descriptors
and calls :func:`validate_payload` once::

    _SCHEMA = {
        "session_id": Str(required=True),
        "skip": Bool(default=False),
    }

    def _handle(*, engine, **payload):
        err = validate_payload(payload, _SCHEMA, tool_name="workflow", action="advance")
        if err:
            return err
"""

from dataclasses import asdict, dataclass
from typing import Any, Dict, FrozenSet, Mapping, Optional, Union

from stagegate.core.responses import ErrorCode, ErrorType, error_response


@dataclass(frozen=True)
class Str:
    """String parameter."""

    required: bool = False
    max_length: Optional[int] = None
    choices: Optional[FrozenSet[str]] = None
    remediation: Optional[str] = None


@dataclass(frozen=True)
class Int:
    """Integer parameter (booleans rejected)."""

    required: bool = False
    min_val: Optional[int] = None
    remediation: Optional[str] = None


@dataclass(frozen=True)
class Bool:
    """Boolean parameter."""

    default: Optional[bool] = None
    remediation: Optional[str] = None


@dataclass(frozen=True)
class List_:
    """List parameter."""

    required: bool = False
    remediation: Optional[str] = None


@dataclass(frozen=True)
class Dict_:
    """Dict parameter."""

    required: bool = False
    remediation: Optional[str] = None


FieldSchema = Union[Str, Int, Bool, List_, Dict_]

_TYPE_NAMES = {Str: "a string", Int: "an integer", Bool: "a boolean", List_: "a list", Dict_: "an object"}


def _type_ok(value: Any, spec: FieldSchema) -> bool:
    if isinstance(spec, Str):
        return isinstance(value, str)
    if isinstance(spec, Int):
        return isinstance(value, int) and not isinstance(value, bool)
    if isinstance(spec, Bool):
        return isinstance(value, bool)
    if isinstance(spec, List_):
        return isinstance(value, list)
    return isinstance(value, dict)


def validate_payload(
    payload: Dict[str, Any],
    schema: Mapping[str, FieldSchema],
    *,
    tool_name: str,
    action: str,
    request_id: Optional[str] = None,
) -> Optional[dict]:
    """Validate *payload* against *schema*, returning an error dict or ``None``.

    On success, strings are stripped and boolean defaults applied in place.
    """

    def _error(field: str, message: str, code: ErrorCode, remediation: Optional[str]) -> dict:
        return asdict(
            error_response(
                f"Invalid field '{field}' for {tool_name}.{action}: {message}",
                error_code=code,
                error_type=ErrorType.VALIDATION,
                remediation=remediation or f"Provide a valid '{field}' value",
                details={"field": field, "action": f"{tool_name}.{action}"},
                request_id=request_id,
            )
        )

    for field_name, spec in schema.items():
        value = payload.get(field_name)

        if isinstance(spec, Bool) and value is None and spec.default is not None:
            payload[field_name] = value = spec.default

        if value is None:
            if getattr(spec, "required", False):
                return _error(
                    field_name,
                    f"Provide a non-empty {field_name} parameter",
                    ErrorCode.MISSING_REQUIRED,
                    spec.remediation,
                )
            continue

        if not _type_ok(value, spec):
            return _error(
                field_name,
                f"{field_name} must be {_TYPE_NAMES[type(spec)]}",
                ErrorCode.INVALID_FORMAT,
                spec.remediation,
            )

        if isinstance(spec, Str):
            text = value.strip()
            if spec.required and not text:
                return _error(
                    field_name,
                    f"Provide a non-empty {field_name} parameter",
                    ErrorCode.MISSING_REQUIRED,
                    spec.remediation,
                )
            if spec.max_length is not None and len(text) > spec.max_length:
                return _error(
                    field_name,
                    f"{field_name} must be at most {spec.max_length} characters",
                    ErrorCode.INVALID_FORMAT,
                    spec.remediation,
                )
            if spec.choices is not None and text not in spec.choices:
                allowed = ", ".join(sorted(spec.choices))
                return _error(
                    field_name, f"Must be one of: {allowed}", ErrorCode.INVALID_FORMAT, spec.remediation
                )
            payload[field_name] = text

        elif isinstance(spec, Int) and spec.min_val is not None and value < spec.min_val:
            return _error(
                field_name,
                f"Value must be >= {spec.min_val}",
                ErrorCode.INVALID_FORMAT,
                spec.remediation,
            )

    return None
