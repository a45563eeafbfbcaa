"""Configuration schema and YAML loader."""

from sdcred.config.loader import (
    CONFIG_ENV_VAR,
    DEFAULT_CONFIG_PATH,
    ConfigError,
    load_config,
    resolve_config_path,
    save_config,
)
from sdcred.config.schema import (
    LoggingConfig,
    ProfileConfig,
    ProofsConfig,
    SdcredConfig,
    SimulationConfig,
)

__all__ = [
    "CONFIG_ENV_VAR",
    "DEFAULT_CONFIG_PATH",
    "ConfigError",
    "LoggingConfig",
    "ProfileConfig",
    "ProofsConfig",
    "SdcredConfig",
    "SimulationConfig",
    "load_config",
    "resolve_config_path",
    "save_config",
]
