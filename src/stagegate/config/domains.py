"""Domain-specific configuration dataclasses.

Contains small, focused configuration classes for distinct engine domains:
durable storage, quality gates, well-known document names, session
lifecycle, and declared document schemas.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List

from stagegate.config.parsing import (
    _parse_float_map,
    _parse_str_list,
    _try_parse_int,
)

DEFAULT_STATE_DIR = Path(".stagegate")

DEFAULT_COVERAGE_MINIMA: Dict[str, float] = {
    "core": 100.0,
    "integration": 80.0,
    "presentation": 60.0,
}


@dataclass
class StorageConfig:
    """Durable state location and locking.

    Attributes:
        state_dir: Root directory for documents, sessions, audit ledgers, locks
        lock_timeout: Seconds to wait for a file lock before giving up
    """

    state_dir: Path = field(default_factory=lambda: DEFAULT_STATE_DIR)
    lock_timeout: int = 5

    @classmethod
    def from_toml_dict(cls, data: Dict[str, Any]) -> "StorageConfig":
        config = cls()
        if "state_dir" in data:
            config.state_dir = Path(str(data["state_dir"])).expanduser()
        if "lock_timeout" in data:
            parsed = _try_parse_int(data["lock_timeout"], minimum=1)
            if parsed is not None:
                config.lock_timeout = parsed
        return config


@dataclass
class GateConfig:
    """Thresholds and module classification for the quality gates.

    Attributes:
        complexity_threshold: Highest complexity a function may record
        coverage_minima: Minimum coverage percentage per layer
        core_modules: Glob patterns naming core-logic modules
        presentation_modules: Glob patterns naming presentation modules
    """

    complexity_threshold: int = 15
    coverage_minima: Dict[str, float] = field(
        default_factory=lambda: dict(DEFAULT_COVERAGE_MINIMA)
    )
    core_modules: List[str] = field(default_factory=lambda: ["core.*", "*.core.*", "*.domain.*"])
    presentation_modules: List[str] = field(
        default_factory=lambda: ["ui.*", "*.ui.*", "*.presentation.*", "*.views.*"]
    )

    @classmethod
    def from_toml_dict(cls, data: Dict[str, Any]) -> "GateConfig":
        config = cls()
        if "complexity_threshold" in data:
            parsed = _try_parse_int(data["complexity_threshold"], minimum=1)
            if parsed is not None:
                config.complexity_threshold = parsed
        if "coverage_minima" in data:
            minima = _parse_float_map(data["coverage_minima"])
            if minima:
                config.coverage_minima = minima
        if "core_modules" in data:
            config.core_modules = _parse_str_list(data["core_modules"])
        if "presentation_modules" in data:
            config.presentation_modules = _parse_str_list(data["presentation_modules"])
        return config


@dataclass
class DocumentNamesConfig:
    """Names of the well-known knowledge documents the workflow relies on."""

    test_knowledge: str = "test-knowledge"
    codebase_index: str = "codebase-index"
    dependency_index: str = "dependency-index"
    coverage: str = "coverage-report"

    @classmethod
    def from_toml_dict(cls, data: Dict[str, Any]) -> "DocumentNamesConfig":
        config = cls()
        for key in ("test_knowledge", "codebase_index", "dependency_index", "coverage"):
            if key in data and str(data[key]).strip():
                setattr(config, key, str(data[key]).strip())
        return config


@dataclass
class SessionConfig:
    """Session lifecycle settings.

    Attributes:
        idle_timeout_seconds: Abort non-terminal sessions idle for longer
            than this many seconds (0 disables expiry)
    """

    idle_timeout_seconds: int = 0

    @classmethod
    def from_toml_dict(cls, data: Dict[str, Any]) -> "SessionConfig":
        config = cls()
        if "idle_timeout_seconds" in data:
            parsed = _try_parse_int(data["idle_timeout_seconds"], minimum=0)
            if parsed is not None:
                config.idle_timeout_seconds = parsed
        return config


@dataclass
class SchemaConfig:
    """User-declared JSON schema files, keyed by document name."""

    schema_files: Dict[str, Path] = field(default_factory=dict)

    @classmethod
    def from_toml_dict(cls, data: Dict[str, Any]) -> "SchemaConfig":
        return cls(
            schema_files={
                str(name): Path(str(path)).expanduser() for name, path in data.items()
            }
        )
