"""Reading JSON payloads passed to CLI commands."""

import json
import sys
from pathlib import Path
from typing import Any, Optional


def read_text_input(source: str, *, label: str) -> str:
    """Read text from a file path, ``-`` for stdin, or an inline ``{...}`` literal.

    Raises:
        ValueError: If the source file cannot be read.
    """
    if source == "-":
        return sys.stdin.read()
    if source.lstrip().startswith(("{", "[")):
        return source
    try:
        return Path(source).read_text(encoding="utf-8")
    except OSError as exc:
        raise ValueError(f"Cannot read {label} from {source}: {exc}") from exc


def load_json_input(source: Optional[str], *, label: str) -> Any:
    """Load JSON from any source ``read_text_input`` accepts.

    Raises:
        ValueError: If the source cannot be read or is not valid JSON.
    """
    if source is None:
        return None
    text = read_text_input(source, label=label)
    try:
        return json.loads(text)
    except json.JSONDecodeError as exc:
        raise ValueError(f"{label} is not valid JSON: {exc}") from exc
