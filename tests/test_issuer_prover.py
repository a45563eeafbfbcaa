"""Tests for credential issuance and proof generation."""

import hashlib

import pytest

from sdcred.errors import (
    CredentialNotFoundError,
    InvalidAttributeSetError,
    InvalidRevealSetError,
    KeyNotFoundError,
    MissingPrivateKeyError,
)
from sdcred.issuer import CredentialIssuer, credential_id_for
from sdcred.keys import KeyMaterialStore
from sdcred.models import Backend, OutcomeHint, Predicate
from sdcred.prover import ProofGenerator, generate_nonce, validate_reveal_set
from sdcred.registry import CredentialRegistry, ProofRegistry


@pytest.fixture
def store() -> KeyMaterialStore:
    return KeyMaterialStore()


@pytest.fixture
def registry() -> CredentialRegistry:
    return CredentialRegistry()


@pytest.fixture
def issuer(store, registry) -> CredentialIssuer:
    return CredentialIssuer(store, registry)


@pytest.fixture
def prover(store, registry) -> ProofGenerator:
    return ProofGenerator(store, registry, ProofRegistry())


@pytest.fixture
async def issuer_key(store):
    return await store.generate(Backend.SIMULATED_THRESHOLD)


# ---------------------------------------------------------------------------
# Issuance
# ---------------------------------------------------------------------------


class TestIssue:
    async def test_issue_identity_credential(self, issuer, issuer_key, adult_attributes, registry):
        credential = await issuer.issue(issuer_key, adult_attributes)

        assert credential.id == credential_id_for(credential.signature)
        assert credential.id == "cred_" + hashlib.sha256(credential.signature).hexdigest()[:16]
        assert credential.issuer_id == issuer_key.key_id
        assert credential.issuer_public_key == issuer_key.public_key
        assert credential.backend == Backend.SIMULATED_THRESHOLD
        assert credential.profile == "identity/v1"
        assert credential.attribute_names == sorted(adult_attributes)
        assert credential.encoded_messages[3] == b"true"
        assert registry.get(credential.id) == credential

    async def test_issue_by_key_id(self, issuer, issuer_key):
        credential = await issuer.issue(issuer_key.key_id, {"age": 40, "member": True})
        assert credential.encoded_messages == [b"40", b"true"]
        assert credential.profile is None

    async def test_unknown_issuer(self, issuer):
        with pytest.raises(KeyNotFoundError):
            await issuer.issue("0000000000000000", {"age": "1"})

    async def test_empty_attributes(self, issuer, issuer_key, registry):
        with pytest.raises(InvalidAttributeSetError):
            await issuer.issue(issuer_key, {})
        assert len(registry) == 0

    async def test_uncoercible_value(self, issuer, issuer_key, registry):
        with pytest.raises(InvalidAttributeSetError) as exc:
            await issuer.issue(issuer_key, {"age": "1", "tags": ["a"]})
        assert exc.value.field == "tags"
        assert len(registry) == 0

    async def test_public_only_key_cannot_issue(self, issuer, issuer_key, store):
        store.import_key(issuer_key.export())
        # The re-import replaced the stored key with a public-only copy
        with pytest.raises(MissingPrivateKeyError, match="no private key") as exc:
            await issuer.issue(issuer_key.key_id, {"age": "1"})
        assert exc.value.key_id == issuer_key.key_id

    async def test_holder_verifies_credential(self, issuer, issuer_key, adult_attributes):
        credential = await issuer.issue(issuer_key, adult_attributes)
        assert await issuer.verify_credential(credential)

        tampered = credential.model_copy(update={"encoded_messages": [b"99", *credential.encoded_messages[1:]]})
        assert not await issuer.verify_credential(tampered)


# ---------------------------------------------------------------------------
# Reveal sets and nonces
# ---------------------------------------------------------------------------


class TestRevealSet:
    def test_sorted(self):
        assert validate_reveal_set([4, 1, 2], 5) == [1, 2, 4]

    def test_empty_allowed(self):
        assert validate_reveal_set([], 3) == []

    @pytest.mark.parametrize("index", [-1, 5, 99])
    def test_out_of_range(self, index):
        with pytest.raises(InvalidRevealSetError) as exc:
            validate_reveal_set([0, index], 5)
        assert exc.value.index == index

    def test_duplicate(self):
        with pytest.raises(InvalidRevealSetError) as exc:
            validate_reveal_set([1, 2, 1], 5)
        assert exc.value.index == 1

    @pytest.mark.parametrize("index", [True, 1.0, "1"])
    def test_non_integer(self, index):
        with pytest.raises(InvalidRevealSetError):
            validate_reveal_set([index], 5)


def test_generated_nonces_are_fresh():
    a, b = generate_nonce(32), generate_nonce(32)
    assert len(a) == 32
    assert a != b


def test_nonce_must_leave_room_for_randomness():
    with pytest.raises(ValueError):
        generate_nonce(8)


# ---------------------------------------------------------------------------
# Proof generation
# ---------------------------------------------------------------------------


class TestCreateProof:
    async def test_create_proof(self, issuer, prover, issuer_key, adult_attributes):
        credential = await issuer.issue(issuer_key, adult_attributes)
        nonce = b"\x07" * 32

        proof = await prover.create_proof(credential.id, [4, 3], nonce)

        assert proof.revealed_indices == [3, 4]
        assert proof.revealed_messages == [b"true", b"true"]
        assert proof.nonce == nonce
        assert proof.issuer_public_key == credential.issuer_public_key
        assert proof.credential_id == credential.id
        assert proof.id == "proof_" + hashlib.sha256(proof.proof_bytes).hexdigest()[:16]
        assert prover.proofs.get(proof.id) == proof

    async def test_generates_nonce_when_omitted(self, issuer, prover, issuer_key, adult_attributes):
        credential = await issuer.issue(issuer_key, adult_attributes)
        proof = await prover.create_proof(credential, [3])
        assert len(proof.nonce) == 32

    async def test_empty_nonce_rejected(self, issuer, prover, issuer_key, adult_attributes):
        credential = await issuer.issue(issuer_key, adult_attributes)
        with pytest.raises(ValueError):
            await prover.create_proof(credential, [3], b"")

    async def test_unknown_credential(self, prover):
        with pytest.raises(CredentialNotFoundError) as exc:
            await prover.create_proof("cred_missing", [0])
        assert exc.value.credential_id == "cred_missing"

    async def test_invalid_reveal_set_creates_nothing(self, issuer, prover, issuer_key, adult_attributes):
        credential = await issuer.issue(issuer_key, adult_attributes)
        with pytest.raises(InvalidRevealSetError):
            await prover.create_proof(credential, [7])
        assert len(prover.proofs) == 0

    async def test_by_attribute_names(self, issuer, prover, issuer_key, adult_attributes):
        credential = await issuer.issue(issuer_key, adult_attributes)
        proof = await prover.create_proof_for_attributes(credential, ["over_21", "country"])
        assert proof.revealed_indices == [1, 4]
        assert proof.revealed_messages == [b"Spain", b"true"]

    async def test_outcome_hint_is_carried(self, issuer, prover, issuer_key, adult_attributes):
        credential = await issuer.issue(issuer_key, adult_attributes)
        hint = OutcomeHint(predicate=Predicate.age_over(18), satisfied=True)
        proof = await prover.create_proof(credential, [3], outcome_hint=hint)
        assert proof.outcome_hint == hint
        assert proof.presentation_header == hint.to_header()
