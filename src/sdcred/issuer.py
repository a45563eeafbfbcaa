"""Credential issuance.

The issuer canonicalizes an attribute set, signs the ordered message vector
under a stored issuer key with that key's backend, and hands back a
:class:`~sdcred.models.Credential` for the holder.
"""

import asyncio
import hashlib
import logging
from collections.abc import Mapping
from typing import Any

from sdcred.backends import profile_domain
from sdcred.encoding import IDENTITY_PROFILE_V1, AttributeEncoder
from sdcred.errors import KeyNotFoundError, MissingPrivateKeyError
from sdcred.keys import KeyMaterialStore
from sdcred.models import Credential, KeyPair
from sdcred.registry import CredentialRegistry

logger = logging.getLogger(__name__)


def credential_id_for(signature: bytes) -> str:
    """Derive the credential id from the signature bytes."""
    return "cred_" + hashlib.sha256(signature).hexdigest()[:16]


class CredentialIssuer:
    """Signs attribute sets into credentials.

    Args:
        key_store: Store holding the issuer key pairs.
        registry: Optional registry that receives every issued credential.
        encoder: Attribute encoder. Defaults to a non-strict encoder that
            recognises the ``identity/v1`` profile.
    """

    def __init__(
        self,
        key_store: KeyMaterialStore,
        registry: CredentialRegistry | None = None,
        encoder: AttributeEncoder | None = None,
    ) -> None:
        self.key_store = key_store
        self.registry = registry
        self.encoder = encoder or AttributeEncoder(profile=IDENTITY_PROFILE_V1)

    def _resolve_key(self, issuer: KeyPair | str) -> KeyPair:
        key_id = issuer.key_id if isinstance(issuer, KeyPair) else issuer
        key = self.key_store.get(key_id)
        if isinstance(issuer, KeyPair) and key.public_key != issuer.public_key:
            raise KeyNotFoundError(key_id)
        if key.private_key is None:
            raise MissingPrivateKeyError(key_id)
        return key

    async def issue(self, issuer: KeyPair | str, attributes: Mapping[str, Any]) -> Credential:
        """Issue a credential over *attributes*.

        Args:
            issuer: Issuer key pair, or its key id.
            attributes: Attribute names mapped to scalar values.

        Returns:
            The signed credential.

        Raises:
            KeyNotFoundError: If the issuer key is not in the store.
            MissingPrivateKeyError: If the stored key has no private half.
            InvalidAttributeSetError: If the attribute set is empty or a
                value cannot be canonicalized.
        """
        key = self._resolve_key(issuer)
        canonical = self.encoder.canonicalize(attributes)
        messages = [value.encode("utf-8") for value in canonical.values()]
        profile = self.encoder.profile_id_for(canonical)
        impl = self.key_store.backend(key.backend)

        bundle = await asyncio.to_thread(
            impl.sign,
            key.private_key,
            key.public_key,
            messages,
            domain=profile_domain(profile),
        )

        credential = Credential(
            id=credential_id_for(bundle.signature),
            issuer_id=key.key_id,
            backend=key.backend,
            issuer_public_key=key.public_key,
            signature=bundle.signature,
            encoded_messages=messages,
            attributes=canonical,
            blindings=bundle.blindings,
            profile=profile,
        )
        if self.registry is not None:
            self.registry.add(credential)

        logger.info(
            f"Issued {key.backend} credential {credential.id} with "
            f"{credential.message_count} attributes under key {key.key_id}"
        )
        return credential

    async def verify_credential(self, credential: Credential) -> bool:
        """Holder-side check that a credential's signature is valid."""
        impl = self.key_store.backend(credential.backend)
        valid = await asyncio.to_thread(
            impl.verify_signature,
            credential.issuer_public_key,
            credential.encoded_messages,
            credential.signature,
            credential.blindings,
            domain=profile_domain(credential.profile),
        )
        if not valid:
            logger.warning(f"Credential {credential.id} failed signature verification")
        return valid
