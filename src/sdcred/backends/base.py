"""Protocol backend contract shared by the pairing and simulated backends.

A backend implements key generation, multi-message signing, proof
derivation and proof verification for one :class:`~sdcred.models.Backend`
tag. Callers select a backend by the tag stored on a key, credential or
proof, never by inspecting object shapes.

Both backends prefix their proof bytes with the same disclosure header::

    uint16 message_count || revealed bitmap (ceil(count / 8) bytes)

Bit ``i % 8`` of byte ``i // 8`` is set when message ``i`` is revealed.
Unused padding bits must be zero.
"""

from abc import ABC, abstractmethod
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any, ClassVar

from sdcred.errors import MalformedProofError, UnsupportedBackendError
from sdcred.models import Backend

MAX_MESSAGES = 0xFFFF


def profile_domain(profile: str | None) -> bytes:
    """Signing domain for a credential profile id (empty when unprofiled)."""
    return profile.encode("utf-8") if profile else b""


@dataclass(frozen=True)
class DisclosureHeader:
    """Message count and revealed index set carried at the start of a proof."""

    message_count: int
    revealed: tuple[int, ...]

    @property
    def hidden(self) -> tuple[int, ...]:
        revealed = set(self.revealed)
        return tuple(i for i in range(self.message_count) if i not in revealed)

    @property
    def size(self) -> int:
        return 2 + (self.message_count + 7) // 8

    def encode(self) -> bytes:
        bitmap = bytearray((self.message_count + 7) // 8)
        for i in self.revealed:
            bitmap[i // 8] |= 1 << (i % 8)
        return self.message_count.to_bytes(2, "big") + bytes(bitmap)

    @classmethod
    def decode(cls, data: bytes) -> "DisclosureHeader":
        """Parse the header at the start of *data*.

        Raises:
            MalformedProofError: If the header is truncated, declares no
                messages, or has non-zero padding bits.
        """
        if len(data) < 2:
            raise MalformedProofError("Proof is too short for a disclosure header", field="header")
        count = int.from_bytes(data[:2], "big")
        if count == 0:
            raise MalformedProofError("Proof declares zero messages", field="header")
        bitmap = data[2 : 2 + (count + 7) // 8]
        if len(bitmap) != (count + 7) // 8:
            raise MalformedProofError("Disclosure bitmap is truncated", field="header")

        revealed = []
        for byte_index, byte in enumerate(bitmap):
            for bit in range(8):
                if byte & (1 << bit):
                    index = byte_index * 8 + bit
                    if index >= count:
                        raise MalformedProofError(
                            "Disclosure bitmap has padding bits set", field="header"
                        )
                    revealed.append(index)
        return cls(message_count=count, revealed=tuple(revealed))


@dataclass
class SignatureBundle:
    """Signature bytes plus any per-message openings the holder must keep."""

    signature: bytes
    blindings: list[bytes] = field(default_factory=list)


@dataclass
class ParsedProof:
    """Structurally validated proof: decoded header plus named components."""

    header: DisclosureHeader
    components: dict[str, Any] = field(default_factory=dict)


@dataclass
class ProofCheck:
    """Outcome of the cryptographic checks on a parsed proof."""

    valid: bool
    checks: dict[str, bool] = field(default_factory=dict)
    errors: list[str] = field(default_factory=list)


class ProtocolBackend(ABC):
    """Contract implemented by every credential backend."""

    tag: ClassVar[Backend]
    simulation: ClassVar[bool] = False
    public_key_size: ClassVar[int]

    # ------------------------------------------------------------------
    # Keys
    # ------------------------------------------------------------------

    @abstractmethod
    def generate_keypair(self) -> tuple[bytes, bytes]:
        """Return ``(private_key, public_key)`` encodings."""

    @abstractmethod
    def derive_public_key(self, private_key: bytes) -> bytes:
        """Recompute the public key belonging to *private_key*."""

    # ------------------------------------------------------------------
    # Signatures
    # ------------------------------------------------------------------

    @abstractmethod
    def sign(
        self,
        private_key: bytes,
        public_key: bytes,
        messages: Sequence[bytes],
        *,
        domain: bytes = b"",
    ) -> SignatureBundle:
        """Sign the ordered *messages* under the issuer key.

        *domain* is signed along with the messages; every later
        verification and proof over the signature must present the same
        bytes.
        """

    @abstractmethod
    def verify_signature(
        self,
        public_key: bytes,
        messages: Sequence[bytes],
        signature: bytes,
        blindings: Sequence[bytes] = (),
        *,
        domain: bytes = b"",
    ) -> bool:
        """Check a credential signature over the full message vector."""

    # ------------------------------------------------------------------
    # Proofs
    # ------------------------------------------------------------------

    @abstractmethod
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
        """Derive proof bytes disclosing only the messages at *revealed*."""

    @abstractmethod
    def parse_proof(
        self, proof_bytes: bytes, public_key: bytes, revealed: Sequence[int]
    ) -> ParsedProof:
        """Structurally validate *proof_bytes*.

        Raises:
            MalformedProofError: On any structural failure.
        """

    @abstractmethod
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
        """Run the cryptographic checks on a parsed proof."""

    # ------------------------------------------------------------------
    # Shared helpers
    # ------------------------------------------------------------------

    def _check_public_key_size(self, public_key: bytes) -> None:
        if len(public_key) != self.public_key_size:
            raise MalformedProofError(
                f"issuer_public_key: expected {self.public_key_size} bytes for "
                f"{self.tag}, got {len(public_key)}",
                field="issuer_public_key",
            )

    @staticmethod
    def _read_header(proof_bytes: bytes, revealed: Sequence[int]) -> DisclosureHeader:
        header = DisclosureHeader.decode(proof_bytes)
        if header.revealed != tuple(revealed):
            raise MalformedProofError(
                f"Disclosure header reveals {list(header.revealed)} but proof lists "
                f"{list(revealed)}",
                field="revealed_indices",
            )
        return header


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------


class BackendRegistry:
    """Global lookup of backend implementations by tag."""

    _backends: ClassVar[dict[Backend, type[ProtocolBackend]]] = {}

    @classmethod
    def register(cls, tag: Backend, backend_cls: type[ProtocolBackend]) -> None:
        cls._backends[tag] = backend_cls

    @classmethod
    def get(cls, tag: Backend | str) -> type[ProtocolBackend]:
        try:
            return cls._backends[Backend(tag)]
        except (KeyError, ValueError):
            raise UnsupportedBackendError(str(tag)) from None

    @classmethod
    def available(cls) -> list[str]:
        return sorted(str(tag) for tag in cls._backends)


def register_backend(tag: Backend) -> Any:
    """Class decorator that registers a backend under *tag*."""

    def decorator(cls: type[ProtocolBackend]) -> type[ProtocolBackend]:
        cls.tag = tag
        BackendRegistry.register(tag, cls)
        return cls

    return decorator


def create_backend(tag: Backend | str, **options: Any) -> ProtocolBackend:
    """Instantiate the backend registered under *tag*.

    Raises:
        UnsupportedBackendError: If no backend is registered for *tag*.
    """
    return BackendRegistry.get(tag)(**options)
