"""Pytest configuration and shared fixtures."""

from datetime import UTC, datetime

import pytest

from sdcred.backends import PairingSignatureBackend, SimulatedThresholdBackend
from sdcred.config.schema import SdcredConfig
from sdcred.encoding import AttributeEncoder
from sdcred.engine import CredentialEngine
from sdcred.identity import IdentityRecord, identity_attributes

ISSUED_AT = datetime(2024, 5, 1, 12, 0, tzinfo=UTC)


@pytest.fixture
def default_config() -> SdcredConfig:
    """Provide a default configuration for tests."""
    return SdcredConfig()


@pytest.fixture
def adult_identity() -> IdentityRecord:
    return IdentityRecord(id="a1b2c3d4e5f60718", name="Alice Example", age=25, country="Spain")


@pytest.fixture
def minor_identity() -> IdentityRecord:
    return IdentityRecord(id="0f1e2d3c4b5a6978", name="Bobby Example", age=16, country="France")


@pytest.fixture
def adult_attributes(adult_identity) -> dict[str, str]:
    """identity/v1 attributes for a 25 year old."""
    return identity_attributes(adult_identity, issued_at=ISSUED_AT)


@pytest.fixture
def minor_attributes(minor_identity) -> dict[str, str]:
    """identity/v1 attributes for a 16 year old."""
    return identity_attributes(minor_identity, issued_at=ISSUED_AT)


@pytest.fixture
def simulated_engine() -> CredentialEngine:
    return CredentialEngine(default_backend="simulated_threshold")


@pytest.fixture
def pairing_engine() -> CredentialEngine:
    return CredentialEngine(default_backend="pairing_signature")


# ---------------------------------------------------------------------------
# Session-scoped pairing material (pure-Python pairings are slow)
# ---------------------------------------------------------------------------


@pytest.fixture(scope="session")
def pairing_backend() -> PairingSignatureBackend:
    return PairingSignatureBackend()


@pytest.fixture(scope="session")
def pairing_keypair(pairing_backend) -> tuple[bytes, bytes]:
    return pairing_backend.generate_keypair()


@pytest.fixture(scope="session")
def pairing_messages() -> list[bytes]:
    attributes = {
        "age": "25",
        "country": "Spain",
        "name": "Alice Example",
        "over_18": "true",
        "over_21": "true",
    }
    return AttributeEncoder().encode(attributes)


@pytest.fixture(scope="session")
def pairing_signature(pairing_backend, pairing_keypair, pairing_messages) -> bytes:
    secret, public = pairing_keypair
    return pairing_backend.sign(secret, public, pairing_messages).signature


@pytest.fixture
def simulated_backend() -> SimulatedThresholdBackend:
    return SimulatedThresholdBackend()
