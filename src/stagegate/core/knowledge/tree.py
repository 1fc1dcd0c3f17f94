"""Path addressing and wire-format rules for document trees.

Paths are dotted: ``modules.core-engine.complexity``. A literal dot inside a
key is written ``\\.`` and a literal backslash ``\\\\``. Numeric segments
index into lists.

A document tree is a mapping whose values are strings, numbers, booleans,
nested mappings or ordered lists. ``None`` is not a wire value.
"""

import copy
import math
from typing import Any, Iterator, List, Optional, Sequence, Union

from stagegate.core.errors.merge import DiffConflict, RejectionReason
from stagegate.core.knowledge.models import DiffOperation, DiffOpType
from stagegate.core.security import (
    MAX_NESTED_DEPTH,
    MAX_PATH_LENGTH,
    MAX_STRING_LENGTH,
)

Node = Union[dict, list]


def _malformed(message: str, path: Optional[str] = None) -> DiffConflict:
    return DiffConflict(RejectionReason.MALFORMED_DIFF, message, path=path)


def segment_problem(segment: Any) -> Optional[str]:
    """Describe why ``segment`` is not an addressable key, or return None."""
    if not isinstance(segment, str):
        return f"key {segment!r} is not a string"
    if not segment:
        return "empty key"
    if segment.startswith("$"):
        return f"key {segment!r} uses the reserved '$' prefix"
    if any(ord(ch) < 32 for ch in segment):
        return f"key {segment!r} contains control characters"
    return None


def parse_path(path: str) -> List[str]:
    """Split a dotted path into unescaped segments.

    Raises:
        DiffConflict: ``MalformedDiff`` when the path is outside the
            addressable namespace.
    """
    if not isinstance(path, str) or not path:
        raise _malformed("Path must be a non-empty string", path=path)
    if len(path) > MAX_PATH_LENGTH:
        raise _malformed(f"Path exceeds {MAX_PATH_LENGTH} characters", path=path)

    segments: List[str] = []
    current: List[str] = []
    index = 0
    while index < len(path):
        ch = path[index]
        if ch == "\\":
            if index + 1 >= len(path) or path[index + 1] not in ".\\":
                raise _malformed("Dangling escape in path", path=path)
            current.append(path[index + 1])
            index += 2
            continue
        if ch == ".":
            segments.append("".join(current))
            current = []
        else:
            current.append(ch)
        index += 1
    segments.append("".join(current))

    for segment in segments:
        problem = segment_problem(segment)
        if problem:
            raise _malformed(f"Path is not addressable: {problem}", path=path)
    if len(segments) > MAX_NESTED_DEPTH:
        raise _malformed(f"Path nests deeper than {MAX_NESTED_DEPTH} levels", path=path)
    return segments


def format_path(segments: Sequence[Union[str, int]]) -> str:
    """Inverse of ``parse_path``."""
    return ".".join(
        str(segment).replace("\\", "\\\\").replace(".", "\\.") for segment in segments
    )


def value_depth(value: Any) -> int:
    if isinstance(value, dict):
        return 1 + max((value_depth(v) for v in value.values()), default=0)
    if isinstance(value, list):
        return 1 + max((value_depth(v) for v in value), default=0)
    return 0


def iter_wire_problems(value: Any, location: str = "", depth: int = 0) -> Iterator[str]:
    """Yield a message for every part of ``value`` outside the wire format."""
    where = location or "<root>"
    if depth > MAX_NESTED_DEPTH:
        yield f"{where}: nesting exceeds {MAX_NESTED_DEPTH} levels"
        return
    if isinstance(value, bool):
        return
    if isinstance(value, int):
        return
    if isinstance(value, float):
        if not math.isfinite(value):
            yield f"{where}: non-finite number"
        return
    if isinstance(value, str):
        if len(value) > MAX_STRING_LENGTH:
            yield f"{where}: string longer than {MAX_STRING_LENGTH} characters"
        return
    if isinstance(value, dict):
        for key, child in value.items():
            problem = segment_problem(key)
            if problem:
                yield f"{where}: {problem}"
                continue
            child_location = format_path([key])
            if location:
                child_location = f"{location}.{child_location}"
            yield from iter_wire_problems(child, child_location, depth + 1)
        return
    if isinstance(value, list):
        for position, child in enumerate(value):
            child_location = f"{location}.{position}" if location else str(position)
            yield from iter_wire_problems(child, child_location, depth + 1)
        return
    yield f"{where}: unsupported value of type {type(value).__name__}"


def check_operation(operation: DiffOperation) -> List[str]:
    """Validate one operation on its own, without looking at the document.

    Returns the parsed path segments.
    """
    segments = parse_path(operation.path)
    if operation.op == DiffOpType.DELETE:
        if operation.value is not None:
            raise _malformed("Delete must not carry a value", path=operation.path)
        return segments

    if operation.value is None:
        raise _malformed(f"{operation.op.value} requires a value", path=operation.path)
    problem = next(iter_wire_problems(operation.value), None)
    if problem:
        raise _malformed(f"Value is not a wire value: {problem}", path=operation.path)
    if len(segments) + value_depth(operation.value) > MAX_NESTED_DEPTH:
        raise _malformed(
            f"Value would nest deeper than {MAX_NESTED_DEPTH} levels", path=operation.path
        )
    return segments


def _shape(value: Any) -> str:
    if isinstance(value, dict):
        return "mapping"
    if isinstance(value, list):
        return "list"
    return "scalar"


def _list_index(segment: str, path: str) -> int:
    if not segment.isdigit() or (len(segment) > 1 and segment[0] == "0"):
        raise DiffConflict(
            RejectionReason.PATH_CONFLICT,
            f"Segment {segment!r} does not index a list",
            path=path,
        )
    return int(segment)


def _resolve_parent(tree: dict, segments: List[str], path: str) -> Node:
    node: Node = tree
    for depth, segment in enumerate(segments[:-1]):
        if isinstance(node, dict):
            if segment not in node:
                raise DiffConflict(
                    RejectionReason.PATH_CONFLICT,
                    f"Missing intermediate node {format_path(segments[: depth + 1])!r}",
                    path=path,
                )
            child = node[segment]
        else:
            index = _list_index(segment, path)
            if index >= len(node):
                raise DiffConflict(
                    RejectionReason.PATH_CONFLICT,
                    f"List index {index} out of range",
                    path=path,
                )
            child = node[index]
        if not isinstance(child, (dict, list)):
            raise DiffConflict(
                RejectionReason.TYPE_MISMATCH,
                f"Path traverses scalar at {format_path(segments[: depth + 1])!r}",
                path=path,
            )
        node = child
    return node


def _check_shape(existing: Any, operation: DiffOperation) -> None:
    if operation.replace:
        return
    old_shape = _shape(existing)
    new_shape = _shape(operation.value)
    if old_shape != new_shape:
        raise DiffConflict(
            RejectionReason.TYPE_MISMATCH,
            f"Cannot update {old_shape} with {new_shape} without replace",
            path=operation.path,
        )


def apply_operation(tree: dict, operation: DiffOperation, segments: List[str]) -> None:
    """Apply one pre-validated operation to ``tree`` in place.

    Raises:
        DiffConflict: ``PathConflict`` or ``TypeMismatch``.
    """
    path = operation.path
    parent = _resolve_parent(tree, segments, path)
    leaf = segments[-1]

    if isinstance(parent, dict):
        exists = leaf in parent
        if operation.op == DiffOpType.INSERT:
            if exists:
                raise DiffConflict(
                    RejectionReason.PATH_CONFLICT, "Insert target already exists", path=path
                )
            parent[leaf] = copy.deepcopy(operation.value)
            return
        if not exists:
            raise DiffConflict(
                RejectionReason.PATH_CONFLICT,
                f"{operation.op.value.capitalize()} target does not exist",
                path=path,
            )
        if operation.op == DiffOpType.UPDATE:
            _check_shape(parent[leaf], operation)
            parent[leaf] = copy.deepcopy(operation.value)
        else:
            del parent[leaf]
        return

    index = _list_index(leaf, path)
    if operation.op == DiffOpType.INSERT:
        if index < len(parent):
            raise DiffConflict(
                RejectionReason.PATH_CONFLICT, "Insert target already exists", path=path
            )
        if index > len(parent):
            raise DiffConflict(
                RejectionReason.PATH_CONFLICT,
                f"Insert index {index} beyond list end {len(parent)}",
                path=path,
            )
        parent.append(copy.deepcopy(operation.value))
        return
    if index >= len(parent):
        raise DiffConflict(
            RejectionReason.PATH_CONFLICT, f"List index {index} out of range", path=path
        )
    if operation.op == DiffOpType.UPDATE:
        _check_shape(parent[index], operation)
        parent[index] = copy.deepcopy(operation.value)
    else:
        del parent[index]


def get_node(tree: dict, path: str) -> Any:
    """Return the node at ``path``; raises KeyError when it does not exist."""
    node: Any = tree
    for segment in parse_path(path):
        if isinstance(node, dict) and segment in node:
            node = node[segment]
        elif isinstance(node, list) and segment.isdigit() and int(segment) < len(node):
            node = node[int(segment)]
        else:
            raise KeyError(path)
    return node
