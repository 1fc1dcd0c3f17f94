"""Configuration package for stagegate.

Sub-modules:
    parsing    – Boolean/integer/map parsing helpers
    domains    – StorageConfig, GateConfig, DocumentNamesConfig,
                 SessionConfig, SchemaConfig
    server     – EngineConfig dataclass, get_config/set_config globals
    loader     – EngineConfig loading/validation mixin (_EngineConfigLoader)
    decorators – log_call, timed
"""

from stagegate.config.domains import (  # noqa: F401
    DEFAULT_COVERAGE_MINIMA,
    DEFAULT_STATE_DIR,
    DocumentNamesConfig,
    GateConfig,
    SchemaConfig,
    SessionConfig,
    StorageConfig,
)
from stagegate.config.server import (  # noqa: F401
    _PACKAGE_VERSION,
    EngineConfig,
    get_config,
    set_config,
)
from stagegate.config.decorators import (  # noqa: F401
    log_call,
    timed,
)
