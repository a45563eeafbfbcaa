"""Tests for the simulated threshold backend."""

import pytest

from sdcred.backends import (
    BackendRegistry,
    DisclosureHeader,
    SimulatedThresholdBackend,
    build_backends,
    create_backend,
)
from sdcred.encoding import AttributeEncoder
from sdcred.errors import MalformedProofError, UnsupportedBackendError
from sdcred.models import Backend

NONCE = b"\x42" * 32
MESSAGES = AttributeEncoder().encode(
    {"age": "16", "country": "France", "name": "Bobby Example", "over_18": "false"}
)


@pytest.fixture
def issued(simulated_backend):
    secret, public = simulated_backend.generate_keypair()
    bundle = simulated_backend.sign(secret, public, MESSAGES)
    return public, bundle


def _proof(backend, issued, revealed, nonce=NONCE, header=b""):
    public, bundle = issued
    return backend.create_proof(
        public, MESSAGES, bundle.signature, bundle.blindings, revealed, nonce, header
    )


def _check(backend, public, proof, revealed, messages=MESSAGES, nonce=NONCE, header=b""):
    parsed = backend.parse_proof(proof, public, revealed)
    return backend.check_proof(parsed, public, {i: messages[i] for i in revealed}, nonce, header)


def test_registered_as_simulation():
    cls = BackendRegistry.get(Backend.SIMULATED_THRESHOLD)
    assert cls is SimulatedThresholdBackend
    assert cls.simulation is True


def test_create_backend_passes_options():
    backend = create_backend("simulated_threshold", min_component_bytes=16)
    assert isinstance(backend, SimulatedThresholdBackend)
    assert backend.min_component_bytes == 16


def test_create_backend_unknown_tag():
    with pytest.raises(UnsupportedBackendError):
        create_backend("idemix")


def test_build_backends_covers_every_tag():
    backends = build_backends(min_component_bytes=24)
    assert set(backends) == set(Backend)
    assert backends[Backend.SIMULATED_THRESHOLD].min_component_bytes == 24


class TestSignature:
    def test_sizes(self, simulated_backend, issued):
        public, bundle = issued
        assert len(public) == 48
        assert len(bundle.signature) == 80
        assert len(bundle.blindings) == len(MESSAGES)
        assert all(len(b) == 32 for b in bundle.blindings)

    def test_verifies_with_blindings(self, simulated_backend, issued):
        public, bundle = issued
        assert simulated_backend.verify_signature(public, MESSAGES, bundle.signature, bundle.blindings)

    def test_fails_without_blindings(self, simulated_backend, issued):
        public, bundle = issued
        assert not simulated_backend.verify_signature(public, MESSAGES, bundle.signature)

    def test_fails_on_altered_message(self, simulated_backend, issued):
        public, bundle = issued
        altered = [b"21", *MESSAGES[1:]]
        assert not simulated_backend.verify_signature(public, altered, bundle.signature, bundle.blindings)

    def test_signature_is_bound_to_its_domain(self, simulated_backend):
        secret, public = simulated_backend.generate_keypair()
        bundle = simulated_backend.sign(secret, public, MESSAGES, domain=b"identity/v1")
        verify = simulated_backend.verify_signature

        assert verify(public, MESSAGES, bundle.signature, bundle.blindings, domain=b"identity/v1")
        assert not verify(public, MESSAGES, bundle.signature, bundle.blindings)

    def test_proof_checked_under_other_domain_fails(self, simulated_backend):
        secret, public = simulated_backend.generate_keypair()
        bundle = simulated_backend.sign(secret, public, MESSAGES, domain=b"identity/v1")
        proof = simulated_backend.create_proof(
            public, MESSAGES, bundle.signature, bundle.blindings, [3], NONCE, domain=b"identity/v1"
        )
        parsed = simulated_backend.parse_proof(proof, public, [3])
        revealed = {3: MESSAGES[3]}

        assert simulated_backend.check_proof(parsed, public, revealed, NONCE, domain=b"identity/v1").valid
        result = simulated_backend.check_proof(parsed, public, revealed, NONCE, domain=b"other/v1")
        assert not result.valid
        assert result.checks["sigma_prime_valid"] is False


class TestProof:
    def test_layout(self, simulated_backend, issued):
        proof = _proof(simulated_backend, issued, [3])
        header = DisclosureHeader.decode(proof)
        assert header.revealed == (3,)
        assert len(proof) == header.size + 80 + 32 * len(MESSAGES) + 64

    def test_round_trip(self, simulated_backend, issued):
        public, _ = issued
        proof = _proof(simulated_backend, issued, [0, 3])
        result = _check(simulated_backend, public, proof, [0, 3])
        assert result.valid, result.errors
        assert result.checks == {
            "kappa_valid": True,
            "sigma_prime_valid": True,
            "nu_valid": True,
            "pi_v_valid": True,
        }

    def test_reveal_nothing(self, simulated_backend, issued):
        public, _ = issued
        proof = _proof(simulated_backend, issued, [])
        assert _check(simulated_backend, public, proof, []).valid

    def test_hidden_messages_not_in_proof(self, simulated_backend, issued):
        proof = _proof(simulated_backend, issued, [3])
        assert b"Bobby Example" not in proof
        assert b"France" not in proof

    def test_wrong_nonce(self, simulated_backend, issued):
        public, _ = issued
        proof = _proof(simulated_backend, issued, [3])
        result = _check(simulated_backend, public, proof, [3], nonce=b"\x43" * 32)
        assert not result.valid
        assert result.checks["nu_valid"] is False

    def test_substituted_revealed_message(self, simulated_backend, issued):
        public, _ = issued
        proof = _proof(simulated_backend, issued, [3])
        forged = [*MESSAGES[:3], b"true"]
        result = _check(simulated_backend, public, proof, [3], messages=forged)
        assert not result.valid
        assert result.checks["sigma_prime_valid"] is False

    def test_wrong_issuer_key(self, simulated_backend, issued):
        _, other = simulated_backend.generate_keypair()
        proof = _proof(simulated_backend, issued, [3])
        result = _check(simulated_backend, other, proof, [3])
        assert not result.valid

    def test_flipped_kappa_byte(self, simulated_backend, issued):
        public, _ = issued
        proof = bytearray(_proof(simulated_backend, issued, [3]))
        offset = DisclosureHeader.decode(bytes(proof)).size + 80
        proof[offset] ^= 0x01
        assert not _check(simulated_backend, public, bytes(proof), [3]).valid


class TestStructure:
    def test_truncated(self, simulated_backend, issued):
        public, _ = issued
        proof = _proof(simulated_backend, issued, [3])
        with pytest.raises(MalformedProofError) as exc:
            simulated_backend.parse_proof(proof[:-5], public, [3])
        assert exc.value.field == "proof_bytes"

    def test_all_zero_component(self, simulated_backend, issued):
        public, _ = issued
        proof = _proof(simulated_backend, issued, [3])
        forged = proof[:-32] + b"\x00" * 32
        with pytest.raises(MalformedProofError) as exc:
            simulated_backend.parse_proof(forged, public, [3])
        assert exc.value.field == "pi_v"

    def test_min_component_bytes_enforced(self, issued):
        public, _ = issued
        strict = SimulatedThresholdBackend(min_component_bytes=33)
        proof = _proof(strict, issued, [3])
        with pytest.raises(MalformedProofError):
            strict.parse_proof(proof, public, [3])

    def test_zero_message_header(self, simulated_backend, issued):
        public, _ = issued
        with pytest.raises(MalformedProofError) as exc:
            simulated_backend.parse_proof(b"\x00\x00" + b"\x11" * 200, public, [])
        assert exc.value.field == "header"

    def test_padding_bits_rejected(self, simulated_backend, issued):
        public, _ = issued
        proof = bytearray(_proof(simulated_backend, issued, [3]))
        proof[2] |= 0x80
        with pytest.raises(MalformedProofError):
            simulated_backend.parse_proof(bytes(proof), public, [3, 7])
