"""Protocol backends.

Importing this package registers both backends with
:class:`~sdcred.backends.base.BackendRegistry`.
"""

from typing import Any

from sdcred.backends.base import (
    BackendRegistry,
    DisclosureHeader,
    ParsedProof,
    ProofCheck,
    ProtocolBackend,
    SignatureBundle,
    create_backend,
    profile_domain,
    register_backend,
)
from sdcred.backends.pairing import PairingSignatureBackend
from sdcred.backends.threshold import SimulatedThresholdBackend
from sdcred.models import Backend


def build_backends(min_component_bytes: int = 32) -> dict[Backend, ProtocolBackend]:
    """Instantiate one backend per registered tag.

    Args:
        min_component_bytes: Structural minimum for simulated proof
            components.
    """
    options: dict[Backend, dict[str, Any]] = {
        Backend.SIMULATED_THRESHOLD: {"min_component_bytes": min_component_bytes},
    }
    return {
        Backend(tag): create_backend(tag, **options.get(Backend(tag), {}))
        for tag in BackendRegistry.available()
    }


__all__ = [
    "BackendRegistry",
    "DisclosureHeader",
    "PairingSignatureBackend",
    "ParsedProof",
    "ProofCheck",
    "ProtocolBackend",
    "SignatureBundle",
    "SimulatedThresholdBackend",
    "build_backends",
    "create_backend",
    "profile_domain",
    "register_backend",
]
