"""BBS+ multi-message signatures and selective-disclosure proofs.

Implements the BBS+ scheme over BLS12-381 (pairing-friendly, signer key in
G2) with the proof of knowledge of Camenisch, Drijvers and Lehmann (2016).

Key generation:
    ``x`` random scalar, ``w = x * g2``.

Signing messages ``m_1..m_L`` (as scalars):
    ``B = g1 + s * h0 + sum(m_i * h_i)``, ``A = B * 1/(x + e)``.
    The signature is ``(A, e, s)``; it verifies when
    ``e(A, w + e * g2) == e(B, g2)``.

Proof of knowledge revealing ``R`` and hiding ``H``:
    ``A' = r1 * A``, ``Abar = -e * A' + r1 * B``, ``d = r1 * B - r2 * h0``.
    The prover shows ``e(A', w) == e(Abar, g2)`` and proves knowledge of
    ``(e, r2)`` and ``(r3 = 1/r1, s' = s - r2 * r3, m_j for j in H)`` in::

        Abar - d                = -e * A' + r2 * h0
        g1 + sum_R(m_i * h_i)   = r3 * d - s' * h0 - sum_H(m_j * h_j)

    with a Fiat-Shamir challenge over the public key, the randomised
    signature, both commitments, the revealed messages, the nonce and the
    presentation header.

The generators ``h_0..h_L`` are derived from the issuer public key and a
signing domain (the credential profile id), so a signature and every proof
derived from it only verify under the domain they were issued for.

Proof layout after the disclosure header::

    A' (48) | Abar (48) | d (48) | c | e^ | r2^ | r3^ | s^ | m^_j ... (32 each)

Example:
    >>> backend = PairingSignatureBackend()
    >>> sk, pk = backend.generate_keypair()
    >>> bundle = backend.sign(sk, pk, [b"25", b"Alice"])
    >>> backend.verify_signature(pk, [b"25", b"Alice"], bundle.signature)
    True
"""

import functools
import logging
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
    CURVE_ORDER,
    G1,
    G1_POINT_SIZE,
    G2,
    G2_POINT_SIZE,
    SCALAR_SIZE,
    add,
    bytes_equal,
    bytes_to_g1,
    bytes_to_g2,
    bytes_to_scalar,
    g1_to_bytes,
    g2_to_bytes,
    hash_to_g1,
    hash_to_scalar,
    is_inf,
    multiply,
    neg,
    pairing_product_is_one,
    random_scalar,
    scalar_inverse,
    scalar_to_bytes,
)
from sdcred.errors import MalformedProofError
from sdcred.models import Backend

logger = logging.getLogger(__name__)

SIGNATURE_SIZE = G1_POINT_SIZE + 2 * SCALAR_SIZE

_GENERATOR_DST = b"SDCRED-V01-BBS+-MESSAGE-GENERATOR"
_MESSAGE_DST = b"SDCRED-V01-BBS+-MESSAGE-TO-SCALAR"
_CHALLENGE_DST = b"SDCRED-V01-BBS+-PROOF-CHALLENGE"

# Fixed part of the proof after the header: A', Abar, d and five scalars
_FIXED_PROOF_SIZE = 3 * G1_POINT_SIZE + 5 * SCALAR_SIZE


@functools.lru_cache(maxsize=4096)
def _generator(public_key: bytes, index: int, domain: bytes = b""):
    """Message generator ``h_index`` bound to an issuer public key and domain.

    ``h_0`` blinds the signature; ``h_1..h_L`` carry the messages. A
    signature made under one domain does not verify under another.
    """
    return hash_to_g1(
        _GENERATOR_DST
        + public_key
        + len(domain).to_bytes(2, "big")
        + domain
        + index.to_bytes(4, "big")
    )


def message_to_scalar(message: bytes) -> int:
    """Map an encoded attribute message to a scalar."""
    return hash_to_scalar(message, dst=_MESSAGE_DST)


def _commit_messages(public_key: bytes, scalars: Sequence[int], s: int, domain: bytes = b""):
    """Compute ``B = g1 + s * h0 + sum(m_i * h_i)``."""
    point = add(G1, multiply(_generator(public_key, 0, domain), s))
    for i, m in enumerate(scalars, start=1):
        point = add(point, multiply(_generator(public_key, i, domain), m))
    return point


def _challenge(
    public_key: bytes,
    a_prime: bytes,
    a_bar: bytes,
    d: bytes,
    t1: bytes,
    t2: bytes,
    message_count: int,
    revealed: dict[int, int],
    nonce: bytes,
    header: bytes,
) -> int:
    disclosed = b"".join(
        index.to_bytes(2, "big") + scalar_to_bytes(m) for index, m in sorted(revealed.items())
    )
    return hash_to_scalar(
        public_key,
        a_prime,
        a_bar,
        d,
        t1,
        t2,
        message_count.to_bytes(2, "big"),
        disclosed,
        nonce,
        header,
        dst=_CHALLENGE_DST,
    )


@register_backend(Backend.PAIRING_SIGNATURE)
class PairingSignatureBackend(ProtocolBackend):
    """BBS+ over BLS12-381."""

    simulation = False
    public_key_size = G2_POINT_SIZE

    # ------------------------------------------------------------------
    # Keys
    # ------------------------------------------------------------------

    def generate_keypair(self) -> tuple[bytes, bytes]:
        x = random_scalar()
        return scalar_to_bytes(x), g2_to_bytes(multiply(G2, x))

    def derive_public_key(self, private_key: bytes) -> bytes:
        x = bytes_to_scalar(private_key, "private_key")
        if x == 0:
            raise MalformedProofError("private_key: zero scalar", field="private_key")
        return g2_to_bytes(multiply(G2, x))

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
        """Produce a 112-byte BBS+ signature ``A || e || s`` over *messages*."""
        x = bytes_to_scalar(private_key, "private_key")
        scalars = [message_to_scalar(m) for m in messages]

        e = random_scalar()
        while (x + e) % CURVE_ORDER == 0:
            e = random_scalar()
        s = random_scalar()

        b_point = _commit_messages(public_key, scalars, s, domain)
        a_point = multiply(b_point, scalar_inverse((x + e) % CURVE_ORDER))

        signature = g1_to_bytes(a_point) + scalar_to_bytes(e) + scalar_to_bytes(s)
        logger.debug(
            "Created BBS+ signature %s over %d messages", signature.hex()[:16], len(messages)
        )
        return SignatureBundle(signature=signature)

    def _split_signature(self, signature: bytes) -> tuple[object, int, int]:
        if len(signature) != SIGNATURE_SIZE:
            raise MalformedProofError(
                f"signature: expected {SIGNATURE_SIZE} bytes, got {len(signature)}",
                field="signature",
            )
        a_point = bytes_to_g1(signature[:G1_POINT_SIZE], "signature.A")
        e = bytes_to_scalar(signature[G1_POINT_SIZE : G1_POINT_SIZE + SCALAR_SIZE], "signature.e")
        s = bytes_to_scalar(signature[G1_POINT_SIZE + SCALAR_SIZE :], "signature.s")
        return a_point, e, s

    def verify_signature(
        self,
        public_key: bytes,
        messages: Sequence[bytes],
        signature: bytes,
        blindings: Sequence[bytes] = (),
        *,
        domain: bytes = b"",
    ) -> bool:
        """Check ``e(A, w + e * g2) == e(B, g2)``."""
        try:
            w = bytes_to_g2(public_key, "issuer_public_key")
            a_point, e, s = self._split_signature(signature)
        except MalformedProofError as exc:
            logger.debug("BBS+ signature rejected: %s", exc)
            return False

        b_point = _commit_messages(
            public_key, [message_to_scalar(m) for m in messages], s, domain
        )
        return pairing_product_is_one(
            [
                (a_point, add(w, multiply(G2, e))),
                (b_point, neg(G2)),
            ]
        )

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
        n = CURVE_ORDER
        a_point, e, s = self._split_signature(signature)
        scalars = [message_to_scalar(m) for m in messages]
        disclosure = DisclosureHeader(message_count=len(messages), revealed=tuple(revealed))
        hidden = disclosure.hidden

        b_point = _commit_messages(public_key, scalars, s, domain)
        h0 = _generator(public_key, 0, domain)

        # Randomise the signature
        r1 = random_scalar()
        r2 = random_scalar()
        r3 = scalar_inverse(r1)
        a_prime = multiply(a_point, r1)
        b_r1 = multiply(b_point, r1)
        a_bar = add(multiply(a_prime, (-e) % n), b_r1)
        d = add(b_r1, multiply(h0, (-r2) % n))
        s_prime = (s - r2 * r3) % n

        # Commitments with fresh blinding scalars
        e_t = random_scalar()
        r2_t = random_scalar()
        r3_t = random_scalar()
        s_t = random_scalar()
        m_t = {j: random_scalar() for j in hidden}

        t1 = add(multiply(a_prime, e_t), multiply(h0, r2_t))
        t2 = add(multiply(d, r3_t), multiply(h0, s_t))
        for j in hidden:
            t2 = add(t2, multiply(_generator(public_key, j + 1, domain), m_t[j]))

        a_prime_b = g1_to_bytes(a_prime)
        a_bar_b = g1_to_bytes(a_bar)
        d_b = g1_to_bytes(d)
        c = _challenge(
            public_key,
            a_prime_b,
            a_bar_b,
            d_b,
            g1_to_bytes(t1),
            g1_to_bytes(t2),
            len(messages),
            {i: scalars[i] for i in revealed},
            nonce,
            header,
        )

        responses = [
            (e_t - c * e) % n,
            (r2_t + c * r2) % n,
            (r3_t + c * r3) % n,
            (s_t - c * s_prime) % n,
        ]
        responses.extend((m_t[j] - c * scalars[j]) % n for j in hidden)

        proof = (
            disclosure.encode()
            + a_prime_b
            + a_bar_b
            + d_b
            + scalar_to_bytes(c)
            + b"".join(scalar_to_bytes(v) for v in responses)
        )
        logger.debug(
            "Derived BBS+ proof revealing %d of %d messages", len(revealed), len(messages)
        )
        return proof

    def parse_proof(
        self, proof_bytes: bytes, public_key: bytes, revealed: Sequence[int]
    ) -> ParsedProof:
        self._check_public_key_size(public_key)
        bytes_to_g2(public_key, "issuer_public_key")
        header = self._read_header(proof_bytes, revealed)

        hidden = header.hidden
        expected = header.size + _FIXED_PROOF_SIZE + SCALAR_SIZE * len(hidden)
        if len(proof_bytes) != expected:
            raise MalformedProofError(
                f"proof_bytes: expected {expected} bytes for {header.message_count} messages, "
                f"got {len(proof_bytes)}",
                field="proof_bytes",
            )

        offset = header.size
        points = {}
        for name in ("a_prime", "a_bar", "d"):
            raw = proof_bytes[offset : offset + G1_POINT_SIZE]
            points[name] = (raw, bytes_to_g1(raw, name, allow_identity=name != "a_prime"))
            offset += G1_POINT_SIZE

        scalars = {}
        for name in ("c", "e_hat", "r2_hat", "r3_hat", "s_hat"):
            scalars[name] = bytes_to_scalar(proof_bytes[offset : offset + SCALAR_SIZE], name)
            offset += SCALAR_SIZE

        m_hat = {}
        for j in hidden:
            m_hat[j] = bytes_to_scalar(proof_bytes[offset : offset + SCALAR_SIZE], f"m_hat[{j}]")
            offset += SCALAR_SIZE

        return ParsedProof(header=header, components={**points, **scalars, "m_hat": m_hat})

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
        n = CURVE_ORDER
        comp = parsed.components
        w = bytes_to_g2(public_key, "issuer_public_key")
        a_prime_b, a_prime = comp["a_prime"]
        a_bar_b, a_bar = comp["a_bar"]
        d_b, d = comp["d"]
        c = comp["c"]
        h0 = _generator(public_key, 0, domain)

        checks: dict[str, bool] = {}
        errors: list[str] = []

        # e(A', w) == e(Abar, g2)
        checks["pairing"] = not is_inf(a_prime) and pairing_product_is_one(
            [(a_prime, w), (a_bar, neg(G2))]
        )
        if not checks["pairing"]:
            errors.append("Pairing equation e(A', w) == e(Abar, g2) does not hold")

        revealed_scalars = {i: message_to_scalar(m) for i, m in revealed_messages.items()}
        neg_c = (-c) % n

        # T1 = e^ * A' + r2^ * h0 - c * (Abar - d)
        t1 = add(multiply(a_prime, comp["e_hat"]), multiply(h0, comp["r2_hat"]))
        t1 = add(t1, multiply(add(a_bar, neg(d)), neg_c))

        # T2 = r3^ * d + s^ * h0 + sum_H(m^_j * h_j) - c * (g1 + sum_R(m_i * h_i))
        t2 = add(multiply(d, comp["r3_hat"]), multiply(h0, comp["s_hat"]))
        for j, value in comp["m_hat"].items():
            t2 = add(t2, multiply(_generator(public_key, j + 1, domain), value))
        disclosed_base = G1
        for i, m in revealed_scalars.items():
            disclosed_base = add(disclosed_base, multiply(_generator(public_key, i + 1, domain), m))
        t2 = add(t2, multiply(disclosed_base, neg_c))

        expected_c = _challenge(
            public_key,
            a_prime_b,
            a_bar_b,
            d_b,
            g1_to_bytes(t1),
            g1_to_bytes(t2),
            parsed.header.message_count,
            revealed_scalars,
            nonce,
            header,
        )
        checks["challenge"] = bytes_equal(scalar_to_bytes(expected_c), scalar_to_bytes(c))
        if not checks["challenge"]:
            errors.append("Fiat-Shamir challenge mismatch")

        return ProofCheck(valid=all(checks.values()), checks=checks, errors=errors)
