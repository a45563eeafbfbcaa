"""Request/response facade over the credential engine.

Outer layers (a UI, a web handler, the CLI) talk to :class:`CredentialEngine`
using the JSON-shaped request models below and get JSON-serializable models
back. The engine owns its key store and registries, so several engines can
live in one process without sharing state.

Example:
    >>> import asyncio
    >>> from sdcred.engine import CredentialEngine, IssueRequest
    >>>
    >>> async def main():
    ...     engine = CredentialEngine()
    ...     issuer = await engine.create_issuer()
    ...     credential = await engine.issue(
    ...         IssueRequest(issuer_id=issuer.key_id, attributes={"age": "25", "over_18": "true"})
    ...     )
    ...     print(credential.to_json_dict()["id"])
    >>>
    >>> asyncio.run(main())
"""

import logging
from typing import Any

from pydantic import Field

from sdcred.backends import BackendRegistry, build_backends
from sdcred.config import SdcredConfig
from sdcred.encoding import IDENTITY_PROFILE_V1, AttributeEncoder, CredentialProfile
from sdcred.identity import IdentityRecord, age_reveal_names, identity_attributes
from sdcred.issuer import CredentialIssuer
from sdcred.keys import KeyMaterialStore
from sdcred.models import (
    Backend,
    BoundaryModel,
    Credential,
    HexBytes,
    KeyPair,
    OutcomeHint,
    Predicate,
    Proof,
    VerificationResult,
)
from sdcred.prover import ProofGenerator
from sdcred.registry import CredentialRegistry, ProofRegistry
from sdcred.verifier import ProofVerifier

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Requests
# ---------------------------------------------------------------------------


class IssueRequest(BoundaryModel):
    """Issue a credential over *attributes* under the key *issuer_id*."""

    issuer_id: str
    attributes: dict[str, Any]


class ProveRequest(BoundaryModel):
    """Derive a proof from a held credential.

    Either ``revealed_attribute_names`` or ``revealed_indices`` selects the
    disclosed attributes; names are translated through the canonical
    ordering.
    """

    credential_id: str
    revealed_attribute_names: list[str] | None = None
    revealed_indices: list[int] | None = None
    nonce: HexBytes | None = None
    outcome_hint: OutcomeHint | None = None


class VerifyRequest(BoundaryModel):
    """Verify a proof and evaluate a predicate over its disclosed values."""

    proof: Proof
    predicate: Predicate = Field(default_factory=Predicate.always)
    expected_nonce: HexBytes | None = None
    issuer_public_key: HexBytes | None = None


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------


class CredentialEngine:
    """Wires key store, registries, issuer, prover and verifier together.

    Args:
        default_backend: Backend used by :meth:`create_issuer` when none
            is given.
        profile: Attribute profile used to name disclosed values.
        nonce_bytes: Size of generated nonces.
        trust_outcome_hints: See :class:`~sdcred.verifier.ProofVerifier`.
        min_component_bytes: Structural minimum for simulated proofs.
    """

    def __init__(
        self,
        default_backend: Backend | str = Backend.PAIRING_SIGNATURE,
        profile: CredentialProfile = IDENTITY_PROFILE_V1,
        nonce_bytes: int = 32,
        trust_outcome_hints: bool = False,
        min_component_bytes: int = 32,
    ) -> None:
        self.default_backend = Backend(default_backend)
        self.profile = profile
        self.keys = KeyMaterialStore(build_backends(min_component_bytes=min_component_bytes))
        self.credentials = CredentialRegistry()
        self.proofs = ProofRegistry()

        encoder = AttributeEncoder(profile=profile)
        self.issuer = CredentialIssuer(self.keys, self.credentials, encoder)
        self.prover = ProofGenerator(
            self.keys, self.credentials, self.proofs, nonce_bytes=nonce_bytes, encoder=encoder
        )
        self.verifier = ProofVerifier(
            self.keys, profile=profile, trust_outcome_hints=trust_outcome_hints
        )

    @classmethod
    def from_config(cls, config: SdcredConfig) -> "CredentialEngine":
        """Build an engine from a loaded configuration."""
        if config.simulation.trust_outcome_hints:
            logger.warning(
                "simulation.trust_outcome_hints is enabled; simulated proofs may "
                "assert their own predicate outcome"
            )
        return cls(
            default_backend=config.default_backend,
            profile=config.profile.to_profile(),
            nonce_bytes=config.proofs.nonce_bytes,
            trust_outcome_hints=config.simulation.trust_outcome_hints,
            min_component_bytes=config.simulation.min_component_bytes,
        )

    # ------------------------------------------------------------------
    # Core operations
    # ------------------------------------------------------------------

    async def create_issuer(self, backend: Backend | str | None = None) -> KeyPair:
        """Generate a new issuer key pair."""
        return await self.keys.generate(backend or self.default_backend)

    async def issue(self, request: IssueRequest) -> Credential:
        return await self.issuer.issue(request.issuer_id, request.attributes)

    async def prove(self, request: ProveRequest) -> Proof:
        """Handle a prove request.

        Raises:
            ValueError: If the request names no reveal selection at all.
        """
        if request.revealed_attribute_names is not None:
            return await self.prover.create_proof_for_attributes(
                request.credential_id,
                request.revealed_attribute_names,
                request.nonce,
                outcome_hint=request.outcome_hint,
            )
        if request.revealed_indices is not None:
            return await self.prover.create_proof(
                request.credential_id,
                request.revealed_indices,
                request.nonce,
                outcome_hint=request.outcome_hint,
            )
        msg = "Prove request needs revealed_attribute_names or revealed_indices"
        raise ValueError(msg)

    async def verify(self, request: VerifyRequest) -> VerificationResult:
        return await self.verifier.verify(
            request.proof,
            request.issuer_public_key,
            request.predicate,
            expected_nonce=request.expected_nonce,
        )

    # ------------------------------------------------------------------
    # Identity flows
    # ------------------------------------------------------------------

    async def issue_identity_credential(self, issuer_id: str, identity: IdentityRecord) -> Credential:
        """Issue an ``identity/v1`` credential for *identity*."""
        return await self.issuer.issue(issuer_id, identity_attributes(identity))

    async def create_age_proof(
        self,
        credential_id: str,
        threshold: int = 18,
        nonce: bytes | None = None,
    ) -> Proof:
        """Prove ``age >= threshold`` by revealing only the threshold flags.

        Raises:
            ValueError: If no flag exists for *threshold*.
        """
        return await self.prover.create_proof_for_attributes(
            credential_id, age_reveal_names(threshold), nonce
        )

    async def verify_age_proof(
        self,
        proof: Proof,
        threshold: int = 18,
        expected_nonce: bytes | None = None,
        issuer_public_key: bytes | None = None,
    ) -> VerificationResult:
        return await self.verifier.verify(
            proof,
            issuer_public_key,
            Predicate.age_over(threshold),
            expected_nonce=expected_nonce,
        )

    # ------------------------------------------------------------------
    # Housekeeping
    # ------------------------------------------------------------------

    def stats(self) -> dict[str, Any]:
        return {
            "backends": BackendRegistry.available(),
            "default_backend": str(self.default_backend),
            "profile": self.profile.id,
            "keys": self.keys.stats(),
            "credentials": self.credentials.stats(),
            "proofs": self.proofs.stats(),
        }

    def reset(self) -> None:
        """Drop all keys, credentials and proofs."""
        self.keys.clear()
        self.credentials.clear()
        self.proofs.clear()
        logger.info("Engine state cleared")
