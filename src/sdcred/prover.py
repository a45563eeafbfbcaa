"""Selective-disclosure proof generation.

The holder picks which encoded attribute indices to reveal; everything else
stays hidden behind the backend's proof. Each proof is bound to a nonce. If
the caller omits one, a fresh nonce is generated from random bytes and the
creation time, which is fine for one-off presentations but gives no replay
protection across a protocol session: verifiers that care about freshness
must issue their own nonce and check it.
"""

import asyncio
import hashlib
import logging
import secrets
import time
from collections.abc import Iterable, Sequence

from sdcred.backends import profile_domain
from sdcred.encoding import AttributeEncoder
from sdcred.errors import CredentialNotFoundError, InvalidRevealSetError
from sdcred.keys import KeyMaterialStore
from sdcred.models import Credential, OutcomeHint, Proof
from sdcred.registry import CredentialRegistry, ProofRegistry

logger = logging.getLogger(__name__)

_TIMESTAMP_BYTES = 8


def generate_nonce(size: int = 32) -> bytes:
    """Fresh nonce: random bytes followed by an 8-byte millisecond timestamp."""
    if size <= _TIMESTAMP_BYTES:
        msg = f"Nonce size must exceed {_TIMESTAMP_BYTES} bytes"
        raise ValueError(msg)
    millis = int(time.time() * 1000)
    return secrets.token_bytes(size - _TIMESTAMP_BYTES) + millis.to_bytes(_TIMESTAMP_BYTES, "big")


def proof_id_for(proof_bytes: bytes) -> str:
    return "proof_" + hashlib.sha256(proof_bytes).hexdigest()[:16]


def validate_reveal_set(indices: Iterable[int], message_count: int) -> list[int]:
    """Check reveal indices and return them in ascending order.

    Raises:
        InvalidRevealSetError: On a non-integer, out-of-range or duplicate
            index.
    """
    seen: set[int] = set()
    for index in indices:
        if isinstance(index, bool) or not isinstance(index, int):
            raise InvalidRevealSetError(f"Reveal index {index!r} is not an integer", index=None)
        if not 0 <= index < message_count:
            raise InvalidRevealSetError(
                f"Reveal index {index} is out of range for {message_count} messages",
                index=index,
            )
        if index in seen:
            raise InvalidRevealSetError(f"Duplicate reveal index {index}", index=index)
        seen.add(index)
    return sorted(seen)


class ProofGenerator:
    """Derives proofs from held credentials.

    Args:
        key_store: Supplies the backend instances.
        credentials: Registry used to resolve credential ids.
        proofs: Optional registry that receives every created proof.
        nonce_bytes: Size of generated nonces.
        encoder: Resolves attribute names for
            :meth:`create_proof_for_attributes` when a credential does not
            carry its attribute names.
    """

    def __init__(
        self,
        key_store: KeyMaterialStore,
        credentials: CredentialRegistry | None = None,
        proofs: ProofRegistry | None = None,
        nonce_bytes: int = 32,
        encoder: AttributeEncoder | None = None,
    ) -> None:
        self.key_store = key_store
        self.credentials = credentials
        self.proofs = proofs
        self.nonce_bytes = nonce_bytes
        self.encoder = encoder or AttributeEncoder()

    def _resolve(self, credential: Credential | str) -> Credential:
        if isinstance(credential, Credential):
            return credential
        if self.credentials is None:
            raise CredentialNotFoundError(credential)
        return self.credentials.get(credential)

    async def create_proof(
        self,
        credential: Credential | str,
        revealed_indices: Sequence[int],
        nonce: bytes | None = None,
        *,
        outcome_hint: OutcomeHint | None = None,
    ) -> Proof:
        """Create a proof revealing the messages at *revealed_indices*.

        Args:
            credential: The credential, or its id in the registry.
            revealed_indices: Encoded indices to disclose.
            nonce: Verifier-supplied nonce. Generated when omitted.
            outcome_hint: Optional claim about a predicate outcome, bound
                into the proof.

        Raises:
            CredentialNotFoundError: If the credential id is unknown.
            InvalidRevealSetError: If an index is duplicated or out of range.
            ValueError: If an explicit nonce is empty.
        """
        cred = self._resolve(credential)
        revealed = validate_reveal_set(revealed_indices, cred.message_count)

        if nonce is None:
            nonce = generate_nonce(self.nonce_bytes)
        elif not nonce:
            msg = "Nonce must not be empty"
            raise ValueError(msg)

        header = outcome_hint.to_header() if outcome_hint is not None else b""
        impl = self.key_store.backend(cred.backend)
        proof_bytes = await asyncio.to_thread(
            impl.create_proof,
            cred.issuer_public_key,
            cred.encoded_messages,
            cred.signature,
            cred.blindings,
            revealed,
            nonce,
            header,
            domain=profile_domain(cred.profile),
        )

        proof = Proof(
            id=proof_id_for(proof_bytes),
            credential_id=cred.id,
            backend=cred.backend,
            revealed_indices=revealed,
            revealed_messages=[cred.encoded_messages[i] for i in revealed],
            proof_bytes=proof_bytes,
            nonce=nonce,
            issuer_public_key=cred.issuer_public_key,
            profile=cred.profile,
            outcome_hint=outcome_hint,
        )
        if self.proofs is not None:
            self.proofs.add(proof)

        logger.info(
            f"Created {cred.backend} proof {proof.id} for {cred.id} "
            f"revealing {len(revealed)}/{cred.message_count} attributes"
        )
        return proof

    async def create_proof_for_attributes(
        self,
        credential: Credential | str,
        names: Iterable[str],
        nonce: bytes | None = None,
        *,
        outcome_hint: OutcomeHint | None = None,
    ) -> Proof:
        """Create a proof revealing the named attributes.

        Raises:
            InvalidAttributeSetError: If a name is not in the credential.
        """
        cred = self._resolve(credential)
        indices = self.encoder.indices_for(list(names), cred.attributes or None)
        return await self.create_proof(cred, indices, nonce, outcome_hint=outcome_hint)
