"""Reading and writing ``sdcred.yaml``.

The config file is resolved from an explicit path, then the
``SDCRED_CONFIG`` environment variable, then ``~/.sdcred/sdcred.yaml``. A
missing or empty file means every setting takes its default, so the engine
runs without any configuration at all.
"""

import logging
import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from sdcred.config.schema import SdcredConfig
from sdcred.errors import SdcredError

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "SDCRED_CONFIG"
DEFAULT_CONFIG_PATH = Path.home() / ".sdcred" / "sdcred.yaml"


class ConfigError(SdcredError):
    """The config file exists but cannot be read or does not validate."""

    def __init__(self, message: str, path: Path | None = None) -> None:
        super().__init__(message)
        self.path = path


def resolve_config_path(path: Path | str | None = None) -> Path:
    """Pick the config file: *path*, then ``$SDCRED_CONFIG``, then the default."""
    if path is not None:
        return Path(path)
    from_env = os.environ.get(CONFIG_ENV_VAR)
    return Path(from_env).expanduser() if from_env else DEFAULT_CONFIG_PATH


def _read_mapping(path: Path) -> dict[str, Any]:
    try:
        data = yaml.safe_load(path.read_text())
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}", path) from e
    except OSError as e:
        raise ConfigError(f"Cannot read config file {path}: {e}", path) from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(
            f"Config file {path} must hold a mapping, got {type(data).__name__}", path
        )
    return data


def load_config(path: Path | str | None = None) -> SdcredConfig:
    """Load and validate the sdcred configuration.

    Args:
        path: Config file to read. See :func:`resolve_config_path` for the
            lookup order when omitted.

    Returns:
        The validated configuration; defaults when the file is missing or
        empty.

    Raises:
        ConfigError: If the file cannot be read, is not a YAML mapping, or
            fails validation.
    """
    path = resolve_config_path(path)
    if not path.is_file():
        logger.debug(f"No config file at {path}; using defaults")
        return SdcredConfig()

    data = _read_mapping(path)
    try:
        config = SdcredConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"Configuration validation failed for {path}: {e}", path) from e

    logger.debug(f"Loaded config from {path} (default backend {config.default_backend})")
    return config


def save_config(config: SdcredConfig, path: Path | str | None = None) -> Path:
    """Write *config* as YAML, creating parent directories.

    Returns:
        The path written to.
    """
    path = resolve_config_path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(
        yaml.safe_dump(config.model_dump(mode="json"), default_flow_style=False, sort_keys=False)
    )
    logger.info(f"Saved config to {path}")
    return path
