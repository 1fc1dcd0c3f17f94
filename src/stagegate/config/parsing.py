"""Parsing and normalization helpers for configuration values.

Provides boolean, integer, and mapping parsing used by the other config
sub-modules. Invalid values are logged and reported as ``None`` so callers
can keep their defaults.
"""

import logging
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)


def _parse_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in {"true", "1", "yes", "on"}


def _try_parse_bool(value: Any) -> Optional[bool]:
    if isinstance(value, bool):
        return value
    normalized = str(value).strip().lower()
    if normalized in {"true", "1", "yes", "on"}:
        return True
    if normalized in {"false", "0", "no", "off"}:
        return False
    return None


def _try_parse_int(value: Any, *, minimum: Optional[int] = None) -> Optional[int]:
    """Parse an integer, returning None (with a warning) when invalid."""
    try:
        parsed = int(value)
    except (TypeError, ValueError):
        logger.warning("Invalid integer config value %r, keeping default", value)
        return None
    if minimum is not None and parsed < minimum:
        logger.warning(
            "Config value %d is below minimum %d, keeping default", parsed, minimum
        )
        return None
    return parsed


def _parse_float_map(value: Any) -> Dict[str, float]:
    """Parse ``{"core": 100, ...}`` or ``"core=100,integration=80"`` into floats.

    Entries that cannot be parsed are skipped with a warning.
    """
    items: Dict[str, Any]
    if isinstance(value, dict):
        items = dict(value)
    else:
        items = {}
        for chunk in str(value).split(","):
            chunk = chunk.strip()
            if not chunk:
                continue
            if "=" not in chunk:
                logger.warning("Ignoring malformed map entry %r (expected key=value)", chunk)
                continue
            key, raw = chunk.split("=", 1)
            items[key.strip()] = raw.strip()

    result: Dict[str, float] = {}
    for key, raw in items.items():
        try:
            result[str(key)] = float(raw)
        except (TypeError, ValueError):
            logger.warning("Ignoring non-numeric value %r for key %r", raw, key)
    return result


def _parse_str_list(value: Any) -> List[str]:
    """Parse a TOML array or a comma-separated string into a list of strings."""
    if isinstance(value, (list, tuple)):
        return [str(item).strip() for item in value if str(item).strip()]
    return [part.strip() for part in str(value).split(",") if part.strip()]
