"""Simulated threshold-issuance (Coconut-shaped) credentials.

This backend mirrors the shape and verification contract of a Coconut
credential without its cryptography: there is a single issuer, no blind
issuance and no zero-knowledge proof of a signature. Every field is
derived from SHA-256 commitments and a Schnorr signature over G1, so
tampering and wrong issuer keys are still detected, but the proof is
linkable across presentations and its nonce binding relies only on hashes
anyone can recompute. Results are always labelled as a simulation.

Issuance over messages ``m_0..m_{L-1}``::

    b_i   random 32-byte blinding (kept by the holder)
    C_i   = H(DST_C, i, b_i, m_i)
    h     = H(DST_H, X, D, L, C_0, ..., C_{L-1})
    sigma = SchnorrSign(x, h)

Proof layout after the disclosure header::

    sigma_prime (80) | kappa (L x 32) | nu (32) | pi_v (32)

``D`` is the signing domain (the credential profile id).
``kappa_i`` is the blinding ``b_i`` for a revealed message and the
commitment ``C_i`` for a hidden one.
"""

import hashlib
import logging
import secrets
from collections.abc import Sequence

from sdcred.backends.base import (
    DisclosureHeader,
    ParsedProof,
    ProofCheck,
    ProtocolBackend,
    SignatureBundle,
    register_backend,
)
from sdcred.curve import (
    G1,
    G1_POINT_SIZE,
    SCALAR_SIZE,
    SCHNORR_SIGNATURE_SIZE,
    bytes_equal,
    bytes_to_g1,
    bytes_to_scalar,
    frame,
    g1_to_bytes,
    multiply,
    random_scalar,
    scalar_to_bytes,
    schnorr_sign,
    schnorr_verify,
)
from sdcred.errors import MalformedProofError
from sdcred.models import Backend

logger = logging.getLogger(__name__)

DIGEST_SIZE = 32
BLINDING_SIZE = 32

_COMMITMENT_DST = b"SDCRED-V01-SIM-COCONUT-COMMITMENT"
_AGGREGATE_DST = b"SDCRED-V01-SIM-COCONUT-AGGREGATE"
_NU_DST = b"SDCRED-V01-SIM-COCONUT-NU"
_PI_V_DST = b"SDCRED-V01-SIM-COCONUT-PI-V"


def _sha256(*parts: bytes) -> bytes:
    return hashlib.sha256(frame(*parts)).digest()


def _commitment(index: int, blinding: bytes, message: bytes) -> bytes:
    return _sha256(_COMMITMENT_DST, index.to_bytes(2, "big"), blinding, message)


def _aggregate(public_key: bytes, commitments: Sequence[bytes], domain: bytes = b"") -> bytes:
    return _sha256(
        _AGGREGATE_DST, public_key, domain, len(commitments).to_bytes(2, "big"), *commitments
    )


def _nu(nonce: bytes, aggregate: bytes, header: bytes) -> bytes:
    return _sha256(_NU_DST, nonce, aggregate, header)


def _pi_v(
    public_key: bytes, sigma: bytes, kappa: Sequence[bytes], nu: bytes, nonce: bytes, header: bytes
) -> bytes:
    return _sha256(_PI_V_DST, public_key, sigma, b"".join(kappa), nu, nonce, header)


@register_backend(Backend.SIMULATED_THRESHOLD)
class SimulatedThresholdBackend(ProtocolBackend):
    """Hash and Schnorr approximation of Coconut credentials.

    Args:
        min_component_bytes: Minimum length every proof component must
            have to pass structural validation.
    """

    simulation = True
    public_key_size = G1_POINT_SIZE

    def __init__(self, min_component_bytes: int = 32) -> None:
        self.min_component_bytes = min_component_bytes

    # ------------------------------------------------------------------
    # Keys
    # ------------------------------------------------------------------

    def generate_keypair(self) -> tuple[bytes, bytes]:
        x = random_scalar()
        return scalar_to_bytes(x), g1_to_bytes(multiply(G1, x))

    def derive_public_key(self, private_key: bytes) -> bytes:
        x = bytes_to_scalar(private_key, "private_key")
        if x == 0:
            raise MalformedProofError("private_key: zero scalar", field="private_key")
        return g1_to_bytes(multiply(G1, x))

    # ------------------------------------------------------------------
    # Signatures
    # ------------------------------------------------------------------

    def sign(
        self,
        private_key: bytes,
        public_key: bytes,
        messages: Sequence[bytes],
        *,
        domain: bytes = b"",
    ) -> SignatureBundle:
        x = bytes_to_scalar(private_key, "private_key")
        blindings = [secrets.token_bytes(BLINDING_SIZE) for _ in messages]
        commitments = [_commitment(i, b, m) for i, (b, m) in enumerate(zip(blindings, messages))]
        sigma = schnorr_sign(x, _aggregate(public_key, commitments, domain))
        logger.debug(
            "Created simulated threshold signature %s over %d messages",
            sigma.hex()[:16],
            len(messages),
        )
        return SignatureBundle(signature=sigma, blindings=blindings)

    def verify_signature(
        self,
        public_key: bytes,
        messages: Sequence[bytes],
        signature: bytes,
        blindings: Sequence[bytes] = (),
        *,
        domain: bytes = b"",
    ) -> bool:
        if len(blindings) != len(messages):
            logger.debug("Simulated signature rejected: %d blindings for %d messages", len(blindings), len(messages))
            return False
        commitments = [_commitment(i, b, m) for i, (b, m) in enumerate(zip(blindings, messages))]
        try:
            return schnorr_verify(public_key, _aggregate(public_key, commitments, domain), signature)
        except MalformedProofError as exc:
            logger.debug("Simulated signature rejected: %s", exc)
            return False

    # ------------------------------------------------------------------
    # Proofs
    # ------------------------------------------------------------------

    def create_proof(
        self,
        public_key: bytes,
        messages: Sequence[bytes],
        signature: bytes,
        blindings: Sequence[bytes],
        revealed: Sequence[int],
        nonce: bytes,
        header: bytes = b"",
        *,
        domain: bytes = b"",
    ) -> bytes:
        if len(blindings) != len(messages):
            raise MalformedProofError(
                f"blindings: expected {len(messages)} openings, got {len(blindings)}",
                field="blindings",
            )
        disclosure = DisclosureHeader(message_count=len(messages), revealed=tuple(revealed))
        revealed_set = set(revealed)

        commitments = [_commitment(i, b, m) for i, (b, m) in enumerate(zip(blindings, messages))]
        kappa = [
            blindings[i] if i in revealed_set else commitments[i] for i in range(len(messages))
        ]
        aggregate = _aggregate(public_key, commitments, domain)
        nu = _nu(nonce, aggregate, header)
        pi_v = _pi_v(public_key, signature, kappa, nu, nonce, header)

        logger.debug(
            "Derived simulated proof revealing %d of %d messages", len(revealed), len(messages)
        )
        return disclosure.encode() + signature + b"".join(kappa) + nu + pi_v

    def parse_proof(
        self, proof_bytes: bytes, public_key: bytes, revealed: Sequence[int]
    ) -> ParsedProof:
        self._check_public_key_size(public_key)
        bytes_to_g1(public_key, "issuer_public_key")
        header = self._read_header(proof_bytes, revealed)

        count = header.message_count
        expected = header.size + SCHNORR_SIGNATURE_SIZE + DIGEST_SIZE * count + 2 * DIGEST_SIZE
        if len(proof_bytes) != expected:
            raise MalformedProofError(
                f"proof_bytes: expected {expected} bytes for {count} messages, "
                f"got {len(proof_bytes)}",
                field="proof_bytes",
            )

        offset = header.size
        sigma = proof_bytes[offset : offset + SCHNORR_SIGNATURE_SIZE]
        offset += SCHNORR_SIGNATURE_SIZE
        kappa = []
        for _ in range(count):
            kappa.append(proof_bytes[offset : offset + DIGEST_SIZE])
            offset += DIGEST_SIZE
        nu = proof_bytes[offset : offset + DIGEST_SIZE]
        pi_v = proof_bytes[offset + DIGEST_SIZE :]

        fields = {"sigma_prime": sigma, "nu": nu, "pi_v": pi_v}
        fields.update({f"kappa[{i}]": k for i, k in enumerate(kappa)})
        for name, value in fields.items():
            self._check_component(name, value)

        bytes_to_g1(sigma[:G1_POINT_SIZE], "sigma_prime.R")
        bytes_to_scalar(sigma[G1_POINT_SIZE:], "sigma_prime.s")

        return ParsedProof(
            header=header,
            components={"sigma_prime": sigma, "kappa": kappa, "nu": nu, "pi_v": pi_v},
        )

    def _check_component(self, name: str, value: bytes) -> None:
        if len(value) < self.min_component_bytes:
            raise MalformedProofError(
                f"{name}: component shorter than {self.min_component_bytes} bytes",
                field=name,
            )
        if not any(value):
            raise MalformedProofError(f"{name}: degenerate all-zero component", field=name)

    def check_proof(
        self,
        parsed: ParsedProof,
        public_key: bytes,
        revealed_messages: dict[int, bytes],
        nonce: bytes,
        header: bytes = b"",
        *,
        domain: bytes = b"",
    ) -> ProofCheck:
        comp = parsed.components
        sigma = comp["sigma_prime"]
        kappa = comp["kappa"]

        checks: dict[str, bool] = {}
        errors: list[str] = []

        commitments = [
            _commitment(i, k, revealed_messages[i]) if i in revealed_messages else k
            for i, k in enumerate(kappa)
        ]
        checks["kappa_valid"] = set(revealed_messages) == set(parsed.header.revealed) and len(
            set(commitments)
        ) == len(commitments)
        if not checks["kappa_valid"]:
            errors.append("Commitment vector is inconsistent with the revealed messages")

        aggregate = _aggregate(public_key, commitments, domain)
        checks["sigma_prime_valid"] = schnorr_verify(public_key, aggregate, sigma)
        if not checks["sigma_prime_valid"]:
            errors.append("Issuer signature does not verify over the recomputed commitments")

        nu = _nu(nonce, aggregate, header)
        checks["nu_valid"] = bytes_equal(nu, comp["nu"])
        if not checks["nu_valid"]:
            errors.append("nu does not match the nonce and commitments")

        pi_v = _pi_v(public_key, sigma, kappa, comp["nu"], nonce, header)
        checks["pi_v_valid"] = bytes_equal(pi_v, comp["pi_v"])
        if not checks["pi_v_valid"]:
            errors.append("pi_v does not match the presented components")

        return ProofCheck(valid=all(checks.values()), checks=checks, errors=errors)
