"""Exception hierarchy for sdcred.

All errors raised by the engine inherit from :class:`SdcredError`. Each
subclass carries the context (key id, field, index) needed to reproduce the
failure. A predicate that evaluates to false is *not* an error; it is
reported through :class:`sdcred.models.VerificationOutcome`.
"""

from typing import Any


class SdcredError(Exception):
    """Base exception for all sdcred errors."""


class KeyNotFoundError(SdcredError):
    """Requested key pair is not present in the key store."""

    def __init__(self, key_id: str) -> None:
        super().__init__(f"Key pair not found: {key_id}")
        self.key_id = key_id


class MissingPrivateKeyError(SdcredError):
    """Key pair holds only a public key, so it cannot sign credentials."""

    def __init__(self, key_id: str) -> None:
        super().__init__(f"Key {key_id} has no private key and cannot issue credentials")
        self.key_id = key_id


class CredentialNotFoundError(SdcredError):
    """Requested credential is not present in the credential registry."""

    def __init__(self, credential_id: str) -> None:
        super().__init__(f"Credential not found: {credential_id}")
        self.credential_id = credential_id


class InvalidAttributeSetError(SdcredError):
    """Attribute set is empty, or a name/value cannot be canonicalized."""

    def __init__(self, message: str, field: str | None = None) -> None:
        super().__init__(message)
        self.field = field


class InvalidRevealSetError(SdcredError):
    """Reveal indices contain a duplicate or an out-of-range entry."""

    def __init__(self, message: str, index: int | None = None) -> None:
        super().__init__(message)
        self.index = index


class MalformedProofError(SdcredError):
    """Proof failed structural validation before any cryptographic check."""

    def __init__(self, message: str, field: str | None = None) -> None:
        super().__init__(message)
        self.field = field


class CryptographicVerificationError(SdcredError):
    """Proof is well-formed but its verification equations do not hold."""

    def __init__(self, message: str, checks: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.checks = checks or {}


class UnsupportedBackendError(SdcredError):
    """No protocol backend is registered for the requested tag."""

    def __init__(self, backend: str) -> None:
        super().__init__(f"Unsupported backend: {backend}")
        self.backend = backend


__all__ = [
    "CredentialNotFoundError",
    "CryptographicVerificationError",
    "InvalidAttributeSetError",
    "InvalidRevealSetError",
    "KeyNotFoundError",
    "MalformedProofError",
    "MissingPrivateKeyError",
    "SdcredError",
    "UnsupportedBackendError",
]
