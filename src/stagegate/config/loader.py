"""EngineConfig loading and validation logic.

Provides ``_EngineConfigLoader``, a mixin class whose methods are inherited by
``EngineConfig`` (defined in ``server.py``).  Splitting loading logic into its
own module keeps ``server.py`` focused on field definitions and simple
accessor methods.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import TYPE_CHECKING, List, Optional, cast

if TYPE_CHECKING:
    from stagegate.config.server import EngineConfig

try:
    import tomllib
except ImportError:
    import tomli as tomllib  # Python < 3.11 fallback

from stagegate.config.domains import (
    DocumentNamesConfig,
    GateConfig,
    SchemaConfig,
    SessionConfig,
    StorageConfig,
)
from stagegate.config.parsing import (
    _parse_float_map,
    _parse_str_list,
    _try_parse_bool,
    _try_parse_int,
)

logger = logging.getLogger(__name__)

_VALID_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


class _EngineConfigLoader:
    """Mixin providing config-loading methods for ``EngineConfig``.

    At runtime ``self`` is always an ``EngineConfig`` instance.
    """

    if TYPE_CHECKING:
        log_level: str
        structured_logging: bool
        storage: StorageConfig
        gates: GateConfig
        documents: DocumentNamesConfig
        sessions: SessionConfig
        schemas: SchemaConfig
        startup_warnings: List[str]

        def _add_startup_warning(self, message: str) -> None: ...

    @classmethod
    def from_env(cls, config_file: Optional[str] = None) -> "EngineConfig":
        """
        Create configuration from environment variables and optional TOML file.

        Priority (highest to lowest):
        1. Environment variables
        2. Explicit config file (argument or STAGEGATE_CONFIG_FILE)
        3. Project TOML config (./stagegate.toml or ./.stagegate.toml)
        4. User TOML config (~/.stagegate.toml)
        5. XDG config (~/.config/stagegate/config.toml)
        6. Default values
        """
        config = cls()

        xdg_config_home = os.environ.get("XDG_CONFIG_HOME", Path.home() / ".config")
        xdg_config = Path(xdg_config_home) / "stagegate" / "config.toml"
        if xdg_config.exists():
            config._load_toml(xdg_config)
            logger.debug("Loaded XDG config from %s", xdg_config)

        home_config = Path.home() / ".stagegate.toml"
        if home_config.exists():
            config._load_toml(home_config)
            logger.debug("Loaded user config from %s", home_config)

        project_config = Path("stagegate.toml")
        if project_config.exists():
            config._load_toml(project_config)
            logger.debug("Loaded project config from %s", project_config)
        else:
            hidden_config = Path(".stagegate.toml")
            if hidden_config.exists():
                config._load_toml(hidden_config)
                logger.debug("Loaded project config from %s", hidden_config)

        toml_path = config_file or os.environ.get("STAGEGATE_CONFIG_FILE")
        if toml_path:
            config._load_toml(Path(toml_path))

        config._load_env()
        config._validate_startup_configuration()

        return cast("EngineConfig", config)

    def _load_toml(self, path: Path) -> None:
        """Load configuration from TOML file."""
        if not path.exists():
            logger.warning("Config file not found: %s", path)
            return

        try:
            with open(path, "rb") as f:
                data = tomllib.load(f)
        except (OSError, tomllib.TOMLDecodeError) as exc:
            logger.error("Error loading config file %s: %s", path, exc)
            self._add_startup_warning(f"Config file {path} could not be loaded: {exc}")
            return

        if "logging" in data:
            log = data["logging"]
            if "level" in log:
                self.log_level = str(log["level"]).upper()
            if "structured" in log:
                parsed = _try_parse_bool(log["structured"])
                if parsed is not None:
                    self.structured_logging = parsed

        if "storage" in data:
            self.storage = StorageConfig.from_toml_dict(data["storage"])
        if "gates" in data:
            self.gates = GateConfig.from_toml_dict(data["gates"])
        if "documents" in data:
            self.documents = DocumentNamesConfig.from_toml_dict(data["documents"])
        if "sessions" in data:
            self.sessions = SessionConfig.from_toml_dict(data["sessions"])
        if "schemas" in data:
            self.schemas = SchemaConfig.from_toml_dict(data["schemas"])

    def _load_env(self) -> None:
        """Apply ``STAGEGATE_*`` environment variable overrides."""
        if level := os.environ.get("STAGEGATE_LOG_LEVEL"):
            self.log_level = level.upper()
        if structured := os.environ.get("STAGEGATE_STRUCTURED_LOGGING"):
            parsed = _try_parse_bool(structured)
            if parsed is not None:
                self.structured_logging = parsed

        if state_dir := os.environ.get("STAGEGATE_STATE_DIR"):
            self.storage.state_dir = Path(state_dir).expanduser()
        if lock_timeout := os.environ.get("STAGEGATE_LOCK_TIMEOUT"):
            parsed_int = _try_parse_int(lock_timeout, minimum=1)
            if parsed_int is not None:
                self.storage.lock_timeout = parsed_int

        if threshold := os.environ.get("STAGEGATE_COMPLEXITY_THRESHOLD"):
            parsed_int = _try_parse_int(threshold, minimum=1)
            if parsed_int is not None:
                self.gates.complexity_threshold = parsed_int
        if minima := os.environ.get("STAGEGATE_COVERAGE_MINIMA"):
            parsed_map = _parse_float_map(minima)
            if parsed_map:
                self.gates.coverage_minima = parsed_map
        if core_modules := os.environ.get("STAGEGATE_CORE_MODULES"):
            self.gates.core_modules = _parse_str_list(core_modules)
        if presentation_modules := os.environ.get("STAGEGATE_PRESENTATION_MODULES"):
            self.gates.presentation_modules = _parse_str_list(presentation_modules)

        if idle := os.environ.get("STAGEGATE_SESSION_IDLE_TIMEOUT"):
            parsed_int = _try_parse_int(idle, minimum=0)
            if parsed_int is not None:
                self.sessions.idle_timeout_seconds = parsed_int

    def _validate_startup_configuration(self) -> None:
        """Normalize values that would otherwise fail late."""
        if self.log_level not in _VALID_LOG_LEVELS:
            self._add_startup_warning(
                f"Invalid log level '{self.log_level}', falling back to INFO"
            )
            self.log_level = "INFO"

        overlap = set(self.gates.core_modules) & set(self.gates.presentation_modules)
        if overlap:
            self._add_startup_warning(
                "Module patterns listed as both core and presentation: "
                + ", ".join(sorted(overlap))
            )

        for name, path in self.schemas.schema_files.items():
            if not path.exists():
                self._add_startup_warning(
                    f"Schema file for document '{name}' not found: {path}"
                )

        for warning in self.startup_warnings:
            logger.warning(warning)
