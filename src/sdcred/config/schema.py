"""Pydantic models for sdcred.yaml configuration."""

from typing import Literal

from pydantic import BaseModel, Field, field_validator

from sdcred.encoding import IDENTITY_PROFILE_V1, CredentialProfile


class ProfileConfig(BaseModel):
    """Attribute profile shared by issuers, holders and verifiers."""

    name: str = Field(default=IDENTITY_PROFILE_V1.name, description="Profile family name")
    version: int = Field(default=IDENTITY_PROFILE_V1.version, description="Profile version", ge=1)
    attributes: list[str] = Field(
        default_factory=lambda: list(IDENTITY_PROFILE_V1.attributes),
        description="Attribute names; stored sorted, which fixes their encoded indices",
        min_length=1,
    )

    @field_validator("attributes")
    @classmethod
    def _sorted_unique(cls, v: list[str]) -> list[str]:
        if len(set(v)) != len(v):
            msg = "Profile attribute names must be unique"
            raise ValueError(msg)
        return sorted(v)

    def to_profile(self) -> CredentialProfile:
        return CredentialProfile(name=self.name, version=self.version, attributes=tuple(self.attributes))


class ProofsConfig(BaseModel):
    """Proof generation configuration."""

    nonce_bytes: int = Field(
        default=32,
        description="Size of nonces generated when the caller supplies none",
        ge=16,
        le=64,
    )


class SimulationConfig(BaseModel):
    """Simulated threshold backend configuration."""

    trust_outcome_hints: bool = Field(
        default=False,
        description=(
            "Fall back on a prover-supplied outcome hint when disclosed values cannot "
            "decide a predicate. INSECURE: the prover chooses the hint"
        ),
    )
    min_component_bytes: int = Field(
        default=32,
        description="Minimum length of every simulated proof component",
        ge=16,
        le=32,
    )


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="WARNING",
        description="Minimum log level",
    )


class SdcredConfig(BaseModel):
    """Root configuration model for sdcred.yaml."""

    default_backend: Literal["pairing_signature", "simulated_threshold"] = Field(
        default="pairing_signature",
        description="Backend used when a command does not name one",
    )
    profile: ProfileConfig = Field(default_factory=ProfileConfig)
    proofs: ProofsConfig = Field(default_factory=ProofsConfig)
    simulation: SimulationConfig = Field(default_factory=SimulationConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
