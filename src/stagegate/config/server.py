"""EngineConfig dataclass and global configuration state.

This module defines the ``EngineConfig`` class (field declarations and simple
accessor methods) and the global ``get_config`` / ``set_config`` helpers.
Loading and validation logic lives in the ``_EngineConfigLoader`` mixin
(``loader.py``) which ``EngineConfig`` inherits from.
"""

import logging
from dataclasses import dataclass, field
from importlib.metadata import PackageNotFoundError
from importlib.metadata import version as get_package_version
from pathlib import Path
from typing import List, Optional

from stagegate.config.domains import (
    DocumentNamesConfig,
    GateConfig,
    SchemaConfig,
    SessionConfig,
    StorageConfig,
)
from stagegate.config.loader import _EngineConfigLoader


def _get_version() -> str:
    """Get package version from metadata (single source of truth: pyproject.toml)."""
    try:
        return get_package_version("stagegate")
    except PackageNotFoundError:
        return "0.1.0"  # Fallback for dev without install


_PACKAGE_VERSION = _get_version()

_STRUCTURED_FORMAT = (
    '{"timestamp":"%(asctime)s","level":"%(levelname)s",'
    '"logger":"%(name)s","message":"%(message)s"}'
)
_PLAIN_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


@dataclass
class EngineConfig(_EngineConfigLoader):
    """Engine configuration with support for env vars and TOML overrides."""

    # Logging configuration
    log_level: str = "INFO"
    structured_logging: bool = True

    # Durable state
    storage: StorageConfig = field(default_factory=StorageConfig)

    # Quality gate thresholds
    gates: GateConfig = field(default_factory=GateConfig)

    # Well-known document names
    documents: DocumentNamesConfig = field(default_factory=DocumentNamesConfig)

    # Session lifecycle
    sessions: SessionConfig = field(default_factory=SessionConfig)

    # Declared document schemas
    schemas: SchemaConfig = field(default_factory=SchemaConfig)

    startup_warnings: List[str] = field(default_factory=list, repr=False)

    def _add_startup_warning(self, message: str) -> None:
        if message and message not in self.startup_warnings:
            self.startup_warnings.append(message)

    @property
    def state_dir(self) -> Path:
        return self.storage.state_dir

    def with_state_dir(self, state_dir: Path) -> "EngineConfig":
        """Return this config pointed at a different state directory."""
        self.storage.state_dir = state_dir
        return self

    def setup_logging(self) -> None:
        """Configure logging based on settings."""
        level = getattr(logging, self.log_level, logging.INFO)

        if self.structured_logging:
            formatter = logging.Formatter(_STRUCTURED_FORMAT)
        else:
            formatter = logging.Formatter(_PLAIN_FORMAT)

        handler = logging.StreamHandler()
        handler.setFormatter(formatter)

        root_logger = logging.getLogger("stagegate")
        root_logger.setLevel(level)
        for existing in list(root_logger.handlers):
            if getattr(existing, "_stagegate_handler", False):
                root_logger.removeHandler(existing)
        handler._stagegate_handler = True  # type: ignore[attr-defined]
        root_logger.addHandler(handler)


# Global configuration instance
_config: Optional[EngineConfig] = None


def get_config() -> EngineConfig:
    """Get the global configuration instance."""
    global _config
    if _config is None:
        _config = EngineConfig.from_env()
    return _config


def set_config(config: EngineConfig) -> None:
    """Set the global configuration instance."""
    global _config
    _config = config
