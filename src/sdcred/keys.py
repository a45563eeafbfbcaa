"""Per-issuer key material for both credential backends.

The store generates, imports, exports and caches :class:`KeyPair` objects.
Key ids are content-derived from the public key, so importing the same key
twice yields the same entry. Key generation runs in a worker thread; the
store's dict is only touched under a lock once a key is complete.

Example:
    >>> import asyncio
    >>> from sdcred.keys import KeyMaterialStore
    >>> from sdcred.models import Backend
    >>>
    >>> async def main():
    ...     store = KeyMaterialStore()
    ...     key = await store.generate(Backend.SIMULATED_THRESHOLD)
    ...     public = store.export_key(key.key_id)
    ...     print(public["keyId"], "privateKey" in public)
    >>>
    >>> asyncio.run(main())
"""

import asyncio
import hashlib
import logging
import threading
from collections.abc import Mapping
from typing import Any

from sdcred.backends import ProtocolBackend, build_backends
from sdcred.errors import KeyNotFoundError, MalformedProofError, UnsupportedBackendError
from sdcred.models import Backend, KeyPair

logger = logging.getLogger(__name__)


def key_id_for(public_key: bytes) -> str:
    """Derive the key id: first 16 hex chars of SHA-256 of the public key."""
    return hashlib.sha256(public_key).hexdigest()[:16]


class KeyMaterialStore:
    """In-memory store of issuer key pairs.

    Args:
        backends: Backend instances by tag. Defaults to one instance of
            each registered backend.
    """

    def __init__(self, backends: Mapping[Backend, ProtocolBackend] | None = None) -> None:
        self._backends = dict(backends) if backends is not None else build_backends()
        self._keys: dict[str, KeyPair] = {}
        self._lock = threading.Lock()

    def backend(self, tag: Backend | str) -> ProtocolBackend:
        """Return the backend instance for *tag*.

        Raises:
            UnsupportedBackendError: If the store has no such backend.
        """
        try:
            return self._backends[Backend(tag)]
        except (KeyError, ValueError):
            raise UnsupportedBackendError(str(tag)) from None

    # ------------------------------------------------------------------
    # Generation and lookup
    # ------------------------------------------------------------------

    async def generate(self, backend: Backend | str) -> KeyPair:
        """Generate and store a fresh key pair for *backend*."""
        impl = self.backend(backend)
        private_key, public_key = await asyncio.to_thread(impl.generate_keypair)
        key = KeyPair(
            key_id=key_id_for(public_key),
            backend=impl.tag,
            public_key=public_key,
            private_key=private_key,
        )
        with self._lock:
            self._keys[key.key_id] = key
        logger.info(f"Generated {impl.tag} key pair {key.key_id}")
        return key

    def get(self, key_id: str) -> KeyPair:
        """Look up a key pair by id.

        Raises:
            KeyNotFoundError: If the key is not in the store.
        """
        key = self._keys.get(key_id)
        if key is None:
            raise KeyNotFoundError(key_id)
        return key

    def find_by_public_key(self, public_key: bytes) -> KeyPair | None:
        return self._keys.get(key_id_for(public_key))

    def list_keys(self, backend: Backend | str | None = None) -> list[KeyPair]:
        """List stored key pairs, optionally filtered by backend."""
        with self._lock:
            keys = list(self._keys.values())
        if backend is not None:
            keys = [k for k in keys if k.backend == Backend(backend)]
        return sorted(keys, key=lambda k: k.created_at)

    # ------------------------------------------------------------------
    # Import and export
    # ------------------------------------------------------------------

    def import_key(self, data: KeyPair | Mapping[str, Any]) -> KeyPair:
        """Import a key pair, with or without its private key.

        The public key size is checked against the backend, and a private
        key must derive the stated public key. The key id is always
        recomputed from the public key.

        Raises:
            ValueError: If the key material is inconsistent.
            UnsupportedBackendError: If the backend tag is unknown.
        """
        key = data if isinstance(data, KeyPair) else KeyPair.model_validate(data)
        impl = self.backend(key.backend)

        if len(key.public_key) != impl.public_key_size:
            msg = (
                f"Public key for {impl.tag} must be {impl.public_key_size} bytes, "
                f"got {len(key.public_key)}"
            )
            raise ValueError(msg)

        if key.private_key is not None:
            try:
                derived = impl.derive_public_key(key.private_key)
            except MalformedProofError as exc:
                raise ValueError(f"Invalid private key: {exc}") from exc
            if derived != key.public_key:
                msg = "Private key does not match the public key"
                raise ValueError(msg)

        key = key.model_copy(update={"key_id": key_id_for(key.public_key)})
        with self._lock:
            self._keys[key.key_id] = key
        logger.info(
            f"Imported {key.backend} key {key.key_id} "
            f"({'with' if key.has_private_key else 'without'} private key)"
        )
        return key

    def export_key(self, key_id: str, include_private: bool = False) -> dict[str, Any]:
        """Export a stored key as a JSON-safe dict.

        Raises:
            KeyNotFoundError: If the key is not in the store.
        """
        return self.get(key_id).export(include_private=include_private)

    # ------------------------------------------------------------------
    # Removal and stats
    # ------------------------------------------------------------------

    def remove(self, key_id: str) -> bool:
        """Remove a key pair. Returns False if it was not stored."""
        with self._lock:
            removed = self._keys.pop(key_id, None)
        if removed is not None:
            logger.info(f"Removed key {key_id}")
        return removed is not None

    def clear(self) -> None:
        with self._lock:
            self._keys.clear()

    def stats(self) -> dict[str, Any]:
        """Key counts, total and per backend."""
        by_backend = {str(tag): 0 for tag in self._backends}
        private = 0
        with self._lock:
            keys = list(self._keys.values())
        for key in keys:
            by_backend[str(key.backend)] = by_backend.get(str(key.backend), 0) + 1
            private += key.has_private_key
        return {"total": len(keys), "with_private_key": private, "by_backend": by_backend}

    def __len__(self) -> int:
        return len(self._keys)

    def __contains__(self, key_id: object) -> bool:
        return key_id in self._keys
