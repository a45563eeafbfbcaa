"""Tests for configuration loading and validation."""

from pathlib import Path
from tempfile import TemporaryDirectory

import pytest
import yaml
from pydantic import ValidationError

from sdcred.config.loader import (
    CONFIG_ENV_VAR,
    DEFAULT_CONFIG_PATH,
    ConfigError,
    load_config,
    resolve_config_path,
    save_config,
)
from sdcred.config.schema import ProfileConfig, SdcredConfig
from sdcred.encoding import IDENTITY_PROFILE_V1
from sdcred.errors import SdcredError


def test_default_config():
    """Test that default config has expected values."""
    config = SdcredConfig()

    assert config.default_backend == "pairing_signature"
    assert config.proofs.nonce_bytes == 32
    assert config.simulation.trust_outcome_hints is False
    assert config.simulation.min_component_bytes == 32
    assert config.logging.level == "WARNING"
    assert config.profile.to_profile() == IDENTITY_PROFILE_V1


def test_load_config_nonexistent_returns_defaults():
    """Test that loading a nonexistent config returns defaults."""
    with TemporaryDirectory() as tmpdir:
        config = load_config(Path(tmpdir) / "nonexistent.yaml")

        assert config.default_backend == "pairing_signature"
        assert config.proofs.nonce_bytes == 32


def test_load_config_empty_file_returns_defaults():
    """Test that an empty config file returns defaults."""
    with TemporaryDirectory() as tmpdir:
        config_path = Path(tmpdir) / "empty.yaml"
        config_path.write_text("")

        assert load_config(config_path) == SdcredConfig()


def test_load_config_partial_override():
    """Test that partial config overrides only specified values."""
    with TemporaryDirectory() as tmpdir:
        config_path = Path(tmpdir) / "partial.yaml"

        with open(config_path, "w") as f:
            yaml.safe_dump({"default_backend": "simulated_threshold", "proofs": {"nonce_bytes": 48}}, f)

        config = load_config(config_path)

        # Overridden values
        assert config.default_backend == "simulated_threshold"
        assert config.proofs.nonce_bytes == 48

        # Default values
        assert config.simulation.min_component_bytes == 32
        assert config.logging.level == "WARNING"


def test_load_config_invalid_yaml():
    """Test that invalid YAML raises ConfigError."""
    with TemporaryDirectory() as tmpdir:
        config_path = Path(tmpdir) / "invalid.yaml"
        config_path.write_text("{ invalid yaml: [")

        with pytest.raises(ConfigError, match="Invalid YAML"):
            load_config(config_path)


@pytest.mark.parametrize(
    "invalid",
    [
        {"default_backend": "rsa"},
        {"proofs": {"nonce_bytes": 8}},
        {"simulation": {"min_component_bytes": 64}},
        {"logging": {"level": "TRACE"}},
        {"profile": {"attributes": []}},
        {"profile": {"attributes": ["age", "age"]}},
    ],
)
def test_load_config_validation_error(invalid):
    """Test that invalid values raise ConfigError."""
    with TemporaryDirectory() as tmpdir:
        config_path = Path(tmpdir) / "invalid_values.yaml"

        with open(config_path, "w") as f:
            yaml.safe_dump(invalid, f)

        with pytest.raises(ConfigError, match="validation failed"):
            load_config(config_path)


def test_profile_attributes_are_sorted():
    """Test that profile attributes are stored in canonical order."""
    profile = ProfileConfig(name="membership", attributes=["tier", "member_id", "expires"])

    assert profile.attributes == ["expires", "member_id", "tier"]
    assert profile.to_profile().id == "membership/v1"


def test_profile_version_must_be_positive():
    with pytest.raises(ValidationError):
        ProfileConfig(version=0)


def test_save_and_load_config():
    """Test saving and loading config roundtrip."""
    with TemporaryDirectory() as tmpdir:
        config_path = Path(tmpdir) / "test.yaml"

        original = SdcredConfig()
        original.default_backend = "simulated_threshold"
        original.simulation.min_component_bytes = 24
        original.profile.attributes = ["age", "over_18"]

        save_config(original, config_path)
        loaded = load_config(config_path)

        assert loaded.default_backend == "simulated_threshold"
        assert loaded.simulation.min_component_bytes == 24
        assert loaded.profile.attributes == ["age", "over_18"]


def test_save_config_creates_directory():
    """Test that save_config creates parent directory if needed."""
    with TemporaryDirectory() as tmpdir:
        config_path = Path(tmpdir) / "nested" / "dir" / "sdcred.yaml"

        save_config(SdcredConfig(), config_path)

        assert config_path.exists()
        assert config_path.parent.is_dir()


def test_load_config_non_mapping():
    """Test that a YAML list at top level is rejected with the file path."""
    with TemporaryDirectory() as tmpdir:
        config_path = Path(tmpdir) / "list.yaml"
        config_path.write_text("- pairing_signature\n")

        with pytest.raises(ConfigError, match="must hold a mapping") as exc:
            load_config(config_path)

        assert exc.value.path == config_path
        assert isinstance(exc.value, SdcredError)


def test_config_path_from_environment(tmp_path, monkeypatch):
    """Test that SDCRED_CONFIG is used when no path is given."""
    config_path = tmp_path / "from-env.yaml"
    config_path.write_text(yaml.safe_dump({"default_backend": "simulated_threshold"}))
    monkeypatch.setenv(CONFIG_ENV_VAR, str(config_path))

    assert resolve_config_path() == config_path
    assert load_config().default_backend == "simulated_threshold"


def test_explicit_path_wins_over_environment(tmp_path, monkeypatch):
    monkeypatch.setenv(CONFIG_ENV_VAR, str(tmp_path / "ignored.yaml"))
    assert resolve_config_path(tmp_path / "chosen.yaml") == tmp_path / "chosen.yaml"


def test_default_path_without_environment(monkeypatch):
    monkeypatch.delenv(CONFIG_ENV_VAR, raising=False)
    assert resolve_config_path() == DEFAULT_CONFIG_PATH
