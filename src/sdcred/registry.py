"""Credential and proof registries.

Explicit store objects replacing process-wide caches. Each engine owns its
registries, so independent engines never share state.
"""

import logging
import threading
from typing import Any

from sdcred.errors import CredentialNotFoundError
from sdcred.models import Backend, Credential, Proof

logger = logging.getLogger(__name__)


class CredentialRegistry:
    """Credentials held by this engine, keyed by credential id."""

    def __init__(self) -> None:
        self._items: dict[str, Credential] = {}
        self._lock = threading.Lock()

    def add(self, credential: Credential) -> Credential:
        with self._lock:
            self._items[credential.id] = credential
        logger.debug(f"Registered credential {credential.id}")
        return credential

    def get(self, credential_id: str) -> Credential:
        """Look up a credential.

        Raises:
            CredentialNotFoundError: If no such credential is registered.
        """
        credential = self._items.get(credential_id)
        if credential is None:
            raise CredentialNotFoundError(credential_id)
        return credential

    def list(self, backend: Backend | str | None = None) -> list[Credential]:
        with self._lock:
            items = list(self._items.values())
        if backend is not None:
            items = [c for c in items if c.backend == Backend(backend)]
        return items

    def remove(self, credential_id: str) -> bool:
        with self._lock:
            return self._items.pop(credential_id, None) is not None

    def clear(self) -> None:
        with self._lock:
            self._items.clear()

    def stats(self) -> dict[str, Any]:
        by_backend: dict[str, int] = {str(tag): 0 for tag in Backend}
        with self._lock:
            credentials = list(self._items.values())
        for credential in credentials:
            by_backend[str(credential.backend)] += 1
        return {"total": len(credentials), "by_backend": by_backend}

    def __len__(self) -> int:
        return len(self._items)

    def __contains__(self, credential_id: object) -> bool:
        return credential_id in self._items


class ProofRegistry:
    """Proofs created by this engine, keyed by proof id."""

    def __init__(self) -> None:
        self._items: dict[str, Proof] = {}
        self._lock = threading.Lock()

    def add(self, proof: Proof) -> Proof:
        with self._lock:
            self._items[proof.id] = proof
        return proof

    def get(self, proof_id: str) -> Proof:
        """Look up a proof.

        Raises:
            KeyError: If no such proof is registered.
        """
        proof = self._items.get(proof_id)
        if proof is None:
            raise KeyError(f"Proof not found: {proof_id}")
        return proof

    def list(self, credential_id: str | None = None) -> list[Proof]:
        with self._lock:
            items = list(self._items.values())
        if credential_id is not None:
            items = [p for p in items if p.credential_id == credential_id]
        return items

    def remove(self, proof_id: str) -> bool:
        with self._lock:
            return self._items.pop(proof_id, None) is not None

    def clear(self) -> None:
        with self._lock:
            self._items.clear()

    def stats(self) -> dict[str, Any]:
        by_backend: dict[str, int] = {str(tag): 0 for tag in Backend}
        with self._lock:
            proofs = list(self._items.values())
        for proof in proofs:
            by_backend[str(proof.backend)] += 1
        return {"total": len(proofs), "by_backend": by_backend}

    def __len__(self) -> int:
        return len(self._items)

    def __contains__(self, proof_id: object) -> bool:
        return proof_id in self._items
