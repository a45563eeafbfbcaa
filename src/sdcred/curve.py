"""BLS12-381 helpers shared by both protocol backends.

Wraps the optimized BLS12-381 arithmetic from ``py_ecc`` with the handful of
operations the credential schemes need: hashing to scalars and to G1,
canonical point and scalar encodings, subgroup-checked decoding, a
multi-pairing product check, and Schnorr signatures over G1.

Points are the projective triples used by ``py_ecc.optimized_bls12_381``.
Scalars are Python ints reduced modulo the group order ``r``. Every
decoding helper raises :class:`~sdcred.errors.MalformedProofError` so
callers can short-circuit on structural failures.

Example:
    >>> from sdcred.curve import G1, g1_to_bytes, multiply, random_scalar
    >>> x = random_scalar()
    >>> len(g1_to_bytes(multiply(G1, x)))
    48
"""

import functools
import hashlib
import logging
import secrets

from cryptography.hazmat.primitives import constant_time, hashes
from cryptography.hazmat.primitives.kdf.hkdf import HKDF
from py_ecc.bls.g2_primitives import (
    G1_to_pubkey,
    G2_to_signature,
    pubkey_to_G1,
    signature_to_G2,
)
from py_ecc.optimized_bls12_381 import (
    FQ,
    FQ12,
    G1,
    G2,
    Z1,
    add,
    curve_order,
    eq,
    field_modulus,
    final_exponentiate,
    is_inf,
    multiply,
    neg,
    pairing,
)

from sdcred.errors import MalformedProofError

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# BLS12-381 constants
# ---------------------------------------------------------------------------

# Order r of the prime-order subgroups G1 and G2
CURVE_ORDER: int = curve_order

# Cofactor of G1: E(Fq) has order h1 * r
G1_COFACTOR = 0x396C8C005555E1568C00AAAB0000AAAB

# Curve equation for G1: y^2 = x^3 + 4
_CURVE_B = 4

G1_POINT_SIZE = 48
G2_POINT_SIZE = 96
SCALAR_SIZE = 32
SCHNORR_SIGNATURE_SIZE = G1_POINT_SIZE + SCALAR_SIZE

_HASH_TO_G1_DST = b"SDCRED-V01-CS01-BLS12381G1_XMD:SHA-512_TAI_"
_SCHNORR_CHALLENGE_DST = b"SDCRED-V01-SCHNORR-G1-CHALLENGE"
_SCHNORR_NONCE_INFO = b"SDCRED-V01-SCHNORR-G1-NONCE"

__all__ = [
    "CURVE_ORDER",
    "FQ12",
    "G1",
    "G1_POINT_SIZE",
    "G2",
    "G2_POINT_SIZE",
    "SCALAR_SIZE",
    "SCHNORR_SIGNATURE_SIZE",
    "Z1",
    "add",
    "bytes_equal",
    "bytes_to_g1",
    "bytes_to_g2",
    "bytes_to_scalar",
    "eq",
    "frame",
    "g1_to_bytes",
    "g2_to_bytes",
    "hash_to_g1",
    "hash_to_scalar",
    "is_inf",
    "multiply",
    "neg",
    "pairing_product_is_one",
    "random_scalar",
    "scalar_inverse",
    "scalar_to_bytes",
    "schnorr_sign",
    "schnorr_verify",
]


# ---------------------------------------------------------------------------
# Hashing
# ---------------------------------------------------------------------------


def frame(*parts: bytes) -> bytes:
    """Length-prefix and concatenate *parts* so the encoding is injective."""
    return b"".join(len(p).to_bytes(4, "big") + p for p in parts)


def hash_to_scalar(*parts: bytes, dst: bytes) -> int:
    """Hash *parts* under domain tag *dst* to a scalar in [1, r-1].

    A 512-bit SHA-512 digest is reduced modulo ``r`` to keep the bias
    negligible.
    """
    digest = hashlib.sha512(frame(dst, *parts)).digest()
    value = int.from_bytes(digest, "big") % CURVE_ORDER
    # Ensure nonzero
    if value == 0:
        value = 1
    return value


def hash_to_g1(data: bytes):
    """Hash *data* to a point of the prime-order subgroup G1.

    Try-and-increment: derive a candidate x-coordinate, keep the first one
    for which ``x^3 + 4`` is a square in Fq, then clear the cofactor. The
    discrete log of the result relative to any other generator is unknown.
    """
    p = field_modulus
    counter = 0
    while True:
        digest = hashlib.sha512(_HASH_TO_G1_DST + data + counter.to_bytes(4, "big")).digest()
        x = int.from_bytes(digest, "big") % p
        y_squared = (pow(x, 3, p) + _CURVE_B) % p
        # p = 3 mod 4, so a square root is y^((p+1)/4)
        y = pow(y_squared, (p + 1) // 4, p)
        if y * y % p == y_squared:
            point = multiply((FQ(x), FQ(y), FQ(1)), G1_COFACTOR)
            if not is_inf(point):
                return point
        counter += 1


# ---------------------------------------------------------------------------
# Scalars
# ---------------------------------------------------------------------------


def random_scalar() -> int:
    """Return a uniformly random scalar in [1, r-1]."""
    return secrets.randbelow(CURVE_ORDER - 1) + 1


def scalar_inverse(value: int) -> int:
    """Modular inverse modulo ``r`` via Fermat's little theorem."""
    return pow(value, CURVE_ORDER - 2, CURVE_ORDER)


def scalar_to_bytes(scalar: int) -> bytes:
    """Encode a scalar as a 32-byte big-endian unsigned integer."""
    return (scalar % CURVE_ORDER).to_bytes(SCALAR_SIZE, "big")


def bytes_to_scalar(data: bytes, field: str = "scalar") -> int:
    """Decode a canonical 32-byte scalar.

    Raises:
        MalformedProofError: If the length is wrong or the value is not
            reduced modulo ``r``.
    """
    if len(data) != SCALAR_SIZE:
        raise MalformedProofError(
            f"{field}: expected {SCALAR_SIZE} bytes, got {len(data)}", field=field
        )
    value = int.from_bytes(data, "big")
    if value >= CURVE_ORDER:
        raise MalformedProofError(f"{field}: scalar is not reduced modulo r", field=field)
    return value


# ---------------------------------------------------------------------------
# Points
# ---------------------------------------------------------------------------


def g1_to_bytes(point) -> bytes:
    """Encode a G1 point in 48-byte compressed form."""
    return bytes(G1_to_pubkey(point))


def g2_to_bytes(point) -> bytes:
    """Encode a G2 point in 96-byte compressed form."""
    return bytes(G2_to_signature(point))


def _in_subgroup(point) -> bool:
    return is_inf(multiply(point, CURVE_ORDER))


@functools.lru_cache(maxsize=1024)
def bytes_to_g1(data: bytes, field: str = "g1_point", allow_identity: bool = False):
    """Decode and validate a compressed G1 point.

    Raises:
        MalformedProofError: If the encoding is invalid, the point is not
            on the curve or not in the prime-order subgroup, or it is the
            identity while *allow_identity* is False.
    """
    if len(data) != G1_POINT_SIZE:
        raise MalformedProofError(
            f"{field}: expected {G1_POINT_SIZE} bytes, got {len(data)}", field=field
        )
    try:
        point = pubkey_to_G1(data)
    except (ValueError, AssertionError) as exc:
        raise MalformedProofError(f"{field}: invalid point encoding ({exc})", field=field) from exc
    if is_inf(point):
        if allow_identity:
            return point
        raise MalformedProofError(f"{field}: point at infinity", field=field)
    if not _in_subgroup(point):
        raise MalformedProofError(f"{field}: point is not in G1", field=field)
    return point


@functools.lru_cache(maxsize=256)
def bytes_to_g2(data: bytes, field: str = "g2_point"):
    """Decode and validate a compressed, non-identity G2 point.

    Raises:
        MalformedProofError: On any encoding or subgroup failure.
    """
    if len(data) != G2_POINT_SIZE:
        raise MalformedProofError(
            f"{field}: expected {G2_POINT_SIZE} bytes, got {len(data)}", field=field
        )
    try:
        point = signature_to_G2(data)
    except (ValueError, AssertionError) as exc:
        raise MalformedProofError(f"{field}: invalid point encoding ({exc})", field=field) from exc
    if is_inf(point) or not _in_subgroup(point):
        raise MalformedProofError(f"{field}: point is not a valid G2 element", field=field)
    return point


# ---------------------------------------------------------------------------
# Pairings
# ---------------------------------------------------------------------------


def pairing_product_is_one(pairs) -> bool:
    """Check ``prod e(P_i, Q_i) == 1`` for pairs of (G1 point, G2 point).

    Miller loops are multiplied first and a single final exponentiation is
    applied to the product.
    """
    acc = FQ12.one()
    for p, q in pairs:
        acc *= pairing(q, p, final_exponentiate=False)
    return final_exponentiate(acc) == FQ12.one()


# ---------------------------------------------------------------------------
# Schnorr signatures over G1
# ---------------------------------------------------------------------------


def _derive_nonce(secret: int, message: bytes) -> int:
    """Deterministic per-message nonce derived with HKDF-SHA256."""
    hkdf = HKDF(
        algorithm=hashes.SHA256(),
        length=48,
        salt=None,
        info=_SCHNORR_NONCE_INFO + message,
    )
    okm = hkdf.derive(scalar_to_bytes(secret))
    return int.from_bytes(okm, "big") % CURVE_ORDER or 1


def schnorr_sign(secret: int, message: bytes) -> bytes:
    """Sign *message* with a Schnorr signature over G1.

    Steps (Fiat-Shamir transform):
    1. Compute public key ``Y = x * G1``.
    2. Derive nonce ``k`` and commitment ``R = k * G1``.
    3. Compute challenge ``c = H(R || Y || m)``.
    4. Compute response ``s = (k + c * x) mod r``.

    Returns:
        ``R || s`` (80 bytes).
    """
    y_bytes = g1_to_bytes(multiply(G1, secret))
    k = _derive_nonce(secret, message)
    r_bytes = g1_to_bytes(multiply(G1, k))
    c = hash_to_scalar(r_bytes, y_bytes, message, dst=_SCHNORR_CHALLENGE_DST)
    s = (k + c * secret) % CURVE_ORDER
    return r_bytes + scalar_to_bytes(s)


def schnorr_verify(public_key: bytes, message: bytes, signature: bytes) -> bool:
    """Verify a Schnorr signature produced by :func:`schnorr_sign`.

    Checks that ``s * G1 == R + c * Y``.

    Raises:
        MalformedProofError: If the key or signature cannot be decoded.
    """
    if len(signature) != SCHNORR_SIGNATURE_SIZE:
        raise MalformedProofError(
            f"signature: expected {SCHNORR_SIGNATURE_SIZE} bytes, got {len(signature)}",
            field="signature",
        )
    y_point = bytes_to_g1(public_key, "issuer_public_key")
    r_bytes = signature[:G1_POINT_SIZE]
    r_point = bytes_to_g1(r_bytes, "signature.R")
    s = bytes_to_scalar(signature[G1_POINT_SIZE:], "signature.s")

    c = hash_to_scalar(r_bytes, public_key, message, dst=_SCHNORR_CHALLENGE_DST)
    lhs = multiply(G1, s)
    rhs = add(r_point, multiply(y_point, c))
    return eq(lhs, rhs)


def bytes_equal(a: bytes, b: bytes) -> bool:
    """Constant-time byte comparison."""
    return constant_time.bytes_eq(a, b)
