"""
Input size limits for diff payloads.

Diffs arrive from untrusted drivers (CLI files, MCP tool calls). These limits
bound the work a single submission can cause before validation starts.
"""

from typing import Final

MAX_OPERATIONS_PER_DIFF: Final[int] = 1_000
"""Maximum number of operations in one diff.

Diffs are expected to be section-scoped; larger changes should be split.
"""

MAX_STRING_LENGTH: Final[int] = 10_000
"""Maximum length for individual string values (10K characters)."""

MAX_NESTED_DEPTH: Final[int] = 32
"""Maximum nesting depth of a document tree (path segments plus value depth)."""

MAX_PATH_LENGTH: Final[int] = 512
"""Maximum length of a dotted document path."""

MAX_DOCUMENT_NAME_LENGTH: Final[int] = 128
"""Maximum length of a document name."""

__all__ = [
    "MAX_OPERATIONS_PER_DIFF",
    "MAX_STRING_LENGTH",
    "MAX_NESTED_DEPTH",
    "MAX_PATH_LENGTH",
    "MAX_DOCUMENT_NAME_LENGTH",
]
