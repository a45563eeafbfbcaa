"""Data model for credentials, proofs and verification results.

All byte fields are raw ``bytes`` in Python and cross the JSON boundary as
lowercase hex strings. Models dump camelCase aliases when serialized with
``by_alias=True`` and accept either camelCase or snake_case on input, so the
same classes serve both in-process callers and the request/response layer.

Example:
    >>> from sdcred.models import Backend, Predicate
    >>> Predicate.age_over(18).model_dump(mode="json")
    {'kind': 'age_over', 'params': {'threshold': 18}}
"""

import json
from datetime import UTC, datetime
from enum import StrEnum
from typing import Annotated, Any

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel
from pydantic.functional_serializers import PlainSerializer
from pydantic.functional_validators import PlainValidator

from sdcred.errors import CryptographicVerificationError, MalformedProofError


def _validate_hex(v: Any) -> bytes:
    """Accept bytes or a hex-encoded str."""
    if isinstance(v, bytes | bytearray):
        return bytes(v)
    if isinstance(v, str):
        return bytes.fromhex(v)
    msg = f"Expected bytes or hex str, got {type(v)}"
    raise TypeError(msg)


def _serialize_hex(v: bytes) -> str:
    """Serialize bytes to a lowercase hex string for JSON."""
    return v.hex()


# Annotated type that round-trips bytes through lowercase hex in JSON
HexBytes = Annotated[
    bytes,
    PlainValidator(_validate_hex),
    PlainSerializer(_serialize_hex, return_type=str, when_used="json"),
]


def _utcnow() -> datetime:
    return datetime.now(UTC)


class BoundaryModel(BaseModel):
    """Base for models that cross the JSON boundary."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    def to_json_dict(self) -> dict[str, Any]:
        """Dump with camelCase keys and hex-encoded byte fields."""
        return self.model_dump(mode="json", by_alias=True)


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class Backend(StrEnum):
    """Anonymous-credential backends supported by the engine.

    Attributes:
        PAIRING_SIGNATURE: BBS+ multi-message signatures over BLS12-381.
        SIMULATED_THRESHOLD: Hash/Schnorr approximation of Coconut
            threshold issuance. Never a cryptographic guarantee.
    """

    PAIRING_SIGNATURE = "pairing_signature"
    SIMULATED_THRESHOLD = "simulated_threshold"


class VerificationStage(StrEnum):
    """Stages of a single verification call, in order."""

    RECEIVED = "received"
    STRUCTURE_CHECKED = "structure_checked"
    CRYPTO_CHECKED = "crypto_checked"
    PREDICATE_CHECKED = "predicate_checked"
    RESULT = "result"


class VerificationOutcome(StrEnum):
    """Overall classification of a verification result.

    ``PREDICATE_NOT_SATISFIED`` means the proof is genuine but the holder
    does not meet the requested condition; it is not an error.
    """

    ACCEPTED = "accepted"
    MALFORMED_PROOF = "malformed_proof"
    CRYPTOGRAPHIC_VERIFICATION_FAILED = "cryptographic_verification_failed"
    PREDICATE_NOT_SATISFIED = "predicate_not_satisfied"


class PredicateKind(StrEnum):
    """Domain predicates that can be evaluated over disclosed attributes."""

    ALWAYS = "always"
    AGE_OVER = "age_over"
    AGE_UNDER = "age_under"
    AGE_BETWEEN = "age_between"
    NATIONALITY = "nationality"
    ATTRIBUTE_EQUALS = "attribute_equals"


_REQUIRED_PARAMS: dict[PredicateKind, tuple[str, ...]] = {
    PredicateKind.ALWAYS: (),
    PredicateKind.AGE_OVER: ("threshold",),
    PredicateKind.AGE_UNDER: ("threshold",),
    PredicateKind.AGE_BETWEEN: ("minimum", "maximum"),
    PredicateKind.NATIONALITY: ("country",),
    PredicateKind.ATTRIBUTE_EQUALS: ("name", "value"),
}

_INTEGER_PARAMS = frozenset({"threshold", "minimum", "maximum"})


# ---------------------------------------------------------------------------
# Key material
# ---------------------------------------------------------------------------


class KeyPair(BoundaryModel):
    """An asymmetric key pair for one backend.

    Attributes:
        key_id: Content-derived identifier (truncated SHA-256 of the
            public key).
        backend: Backend the key belongs to.
        public_key: Encoded public key (G2 point for the pairing backend,
            G1 point for the simulated backend).
        private_key: 32-byte big-endian scalar, or None for public-only
            imports.
        created_at: When the key was generated.
    """

    key_id: str
    backend: Backend
    public_key: HexBytes
    private_key: HexBytes | None = Field(default=None, repr=False)
    created_at: datetime = Field(default_factory=_utcnow)

    @property
    def has_private_key(self) -> bool:
        return self.private_key is not None

    def export(self, include_private: bool = False) -> dict[str, Any]:
        """Export the key pair as a JSON-safe dict.

        Args:
            include_private: Include the private key. Only the owning
                entity should ever request this.
        """
        exclude = None if include_private else {"private_key"}
        return self.model_dump(mode="json", by_alias=True, exclude=exclude)


# ---------------------------------------------------------------------------
# Predicates
# ---------------------------------------------------------------------------


class Predicate(BoundaryModel):
    """A domain-level condition evaluated over disclosed attribute values.

    Attributes:
        kind: Which predicate to evaluate.
        params: Kind-specific parameters (``threshold``, ``minimum``,
            ``maximum``, ``country``, ``name``, ``value``).
    """

    kind: PredicateKind
    params: dict[str, Any] = Field(default_factory=dict)

    @model_validator(mode="after")
    def _check_params(self) -> "Predicate":
        for name in _REQUIRED_PARAMS[self.kind]:
            if name not in self.params:
                msg = f"Predicate {self.kind} requires parameter '{name}'"
                raise ValueError(msg)
            value = self.params[name]
            # bool is a subclass of int
            if name in _INTEGER_PARAMS and (
                not isinstance(value, int) or isinstance(value, bool) or value < 0
            ):
                msg = f"Parameter '{name}' must be a non-negative integer, got {value!r}"
                raise ValueError(msg)
        if (
            self.kind == PredicateKind.AGE_BETWEEN
            and self.params["minimum"] > self.params["maximum"]
        ):
            msg = "Parameter 'minimum' must not exceed 'maximum'"
            raise ValueError(msg)
        return self

    @classmethod
    def always(cls) -> "Predicate":
        return cls(kind=PredicateKind.ALWAYS)

    @classmethod
    def age_over(cls, threshold: int) -> "Predicate":
        return cls(kind=PredicateKind.AGE_OVER, params={"threshold": threshold})

    @classmethod
    def age_under(cls, threshold: int) -> "Predicate":
        return cls(kind=PredicateKind.AGE_UNDER, params={"threshold": threshold})

    @classmethod
    def age_between(cls, minimum: int, maximum: int) -> "Predicate":
        return cls(
            kind=PredicateKind.AGE_BETWEEN,
            params={"minimum": minimum, "maximum": maximum},
        )

    @classmethod
    def nationality(cls, country: str) -> "Predicate":
        return cls(kind=PredicateKind.NATIONALITY, params={"country": country})

    @classmethod
    def attribute_equals(cls, name: str, value: Any) -> "Predicate":
        return cls(kind=PredicateKind.ATTRIBUTE_EQUALS, params={"name": name, "value": value})


class OutcomeHint(BoundaryModel):
    """A prover's claim about the outcome of a predicate.

    The hint is bound into the proof's challenge, so it cannot be altered
    after proof creation, but it is still an assertion made by the prover.
    The verifier only uses it as a consistency check unless explicitly
    configured otherwise.
    """

    predicate: Predicate
    satisfied: bool

    def to_header(self) -> bytes:
        """Canonical byte encoding bound into the proof challenge."""
        payload = self.model_dump(mode="json")
        return json.dumps(payload, sort_keys=True, separators=(",", ":")).encode("utf-8")


# ---------------------------------------------------------------------------
# Credentials and proofs
# ---------------------------------------------------------------------------


class Credential(BoundaryModel):
    """A signed, ordered attribute vector held by its subject.

    Attributes:
        id: Credential identifier derived from the signature.
        issuer_id: Key id of the issuing key pair.
        backend: Backend that produced the signature.
        issuer_public_key: Issuer public key the signature verifies under.
        signature: Backend-specific signature bytes.
        encoded_messages: Canonically ordered attribute messages.
        attributes: Canonical attribute values (holder-only).
        blindings: Per-message commitment openings (simulated backend only).
        profile: Profile id when the attribute names match a known profile.
            The signature is made under this id as its signing domain.
        issued_at: Issuance timestamp.
    """

    id: str
    issuer_id: str
    backend: Backend
    issuer_public_key: HexBytes
    signature: HexBytes
    encoded_messages: list[HexBytes]
    attributes: dict[str, str] = Field(default_factory=dict)
    blindings: list[HexBytes] = Field(default_factory=list, repr=False)
    profile: str | None = None
    issued_at: datetime = Field(default_factory=_utcnow)

    @property
    def message_count(self) -> int:
        return len(self.encoded_messages)

    @property
    def attribute_names(self) -> list[str]:
        return sorted(self.attributes)


class Proof(BoundaryModel):
    """A selective-disclosure proof derived from one credential.

    The proof is self-describing: it carries the nonce it was bound to, the
    issuer public key and the credential profile id, so it can be verified
    without extra lookups. The profile id is the signing domain of the
    credential; relabelling it breaks the cryptographic checks.
    """

    id: str
    credential_id: str
    backend: Backend
    revealed_indices: list[int]
    revealed_messages: list[HexBytes]
    proof_bytes: HexBytes
    nonce: HexBytes
    issuer_public_key: HexBytes
    profile: str | None = None
    outcome_hint: OutcomeHint | None = None
    created_at: datetime = Field(default_factory=_utcnow)

    @property
    def presentation_header(self) -> bytes:
        """Extra bytes bound into the proof challenge."""
        return self.outcome_hint.to_header() if self.outcome_hint is not None else b""


class VerificationResult(BoundaryModel):
    """Result of verifying a proof and evaluating a predicate.

    ``cryptographically_valid`` and ``predicate_satisfied`` are independent;
    callers must check both (or use :attr:`verified`).

    Attributes:
        cryptographically_valid: All structural and cryptographic checks held.
        predicate_satisfied: The requested predicate holds over the
            disclosed values.
        disclosed_values: Revealed attribute values keyed by name, in
            ascending index order.
        outcome: Overall classification.
        stage: Last stage reached in the verification state machine.
        backend: Backend the proof was verified with.
        simulation: True for every result of the simulated backend.
        details: Per-check booleans and diagnostic context.
        errors: Human-readable reasons for any failed check.
        timestamp: When the result was produced.
        verification_time: Wall-clock seconds spent verifying.
    """

    cryptographically_valid: bool
    predicate_satisfied: bool
    disclosed_values: dict[str, str] = Field(default_factory=dict)
    outcome: VerificationOutcome
    stage: VerificationStage = VerificationStage.RESULT
    backend: Backend
    simulation: bool = False
    details: dict[str, Any] = Field(default_factory=dict)
    errors: list[str] = Field(default_factory=list)
    timestamp: datetime = Field(default_factory=_utcnow)
    verification_time: float = 0.0

    @property
    def verified(self) -> bool:
        return self.cryptographically_valid and self.predicate_satisfied

    def raise_for_outcome(self) -> None:
        """Raise the matching exception if the proof itself is bad.

        A proof that is genuine but fails its predicate does not raise.

        Raises:
            MalformedProofError: If structural validation failed.
            CryptographicVerificationError: If verification equations failed.
        """
        reason = "; ".join(self.errors) or self.outcome.value
        if self.outcome == VerificationOutcome.MALFORMED_PROOF:
            raise MalformedProofError(reason, field=self.details.get("field"))
        if self.outcome == VerificationOutcome.CRYPTOGRAPHIC_VERIFICATION_FAILED:
            raise CryptographicVerificationError(reason, checks=self.details.get("checks"))
