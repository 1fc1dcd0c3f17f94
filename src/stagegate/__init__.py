"""stagegate: gated development workflow engine.

Drives a change through nine ordered stages, merges incremental diffs into
versioned knowledge documents, and evaluates quality gates before commit.
"""

from stagegate.config import _PACKAGE_VERSION

__version__ = _PACKAGE_VERSION

__all__ = ["__version__"]
