"""Tests for the data model and JSON boundary."""

import pytest
from pydantic import ValidationError

from sdcred.errors import CryptographicVerificationError, MalformedProofError
from sdcred.models import (
    Backend,
    Credential,
    KeyPair,
    OutcomeHint,
    Predicate,
    PredicateKind,
    Proof,
    VerificationOutcome,
    VerificationResult,
)


def _proof(**overrides) -> Proof:
    fields = {
        "id": "proof_0011223344556677",
        "credential_id": "cred_8899aabbccddeeff",
        "backend": Backend.SIMULATED_THRESHOLD,
        "revealed_indices": [3],
        "revealed_messages": [b"true"],
        "proof_bytes": b"\x00\x07\x08" + b"\x11" * 40,
        "nonce": b"\x01" * 32,
        "issuer_public_key": b"\x02" * 48,
    }
    fields.update(overrides)
    return Proof(**fields)


class TestJsonBoundary:
    def test_bytes_cross_as_lowercase_hex(self):
        data = _proof().to_json_dict()
        assert data["nonce"] == "01" * 32
        assert data["revealedMessages"] == ["74727565"]
        assert data["issuerPublicKey"] == "02" * 48

    def test_camel_case_keys(self):
        data = _proof().to_json_dict()
        assert {"credentialId", "revealedIndices", "proofBytes", "createdAt"} <= set(data)

    def test_round_trip_through_json(self):
        proof = _proof(outcome_hint=OutcomeHint(predicate=Predicate.age_over(18), satisfied=True))
        restored = Proof.model_validate(proof.to_json_dict())
        assert restored == proof

    def test_snake_case_input_accepted(self):
        proof = Proof.model_validate(_proof().model_dump())
        assert proof.credential_id == "cred_8899aabbccddeeff"

    def test_invalid_hex_rejected(self):
        data = _proof().to_json_dict()
        data["nonce"] = "zz"
        with pytest.raises(ValidationError):
            Proof.model_validate(data)

    def test_models_are_frozen(self):
        proof = _proof()
        with pytest.raises(ValidationError):
            proof.nonce = b"other"


class TestKeyPair:
    def test_private_key_hidden_from_repr(self):
        key = KeyPair(
            key_id="k", backend=Backend.PAIRING_SIGNATURE, public_key=b"\x01", private_key=b"\xaa" * 32
        )
        assert "aaaa" not in repr(key)
        assert key.has_private_key

    def test_export_excludes_private_by_default(self):
        key = KeyPair(
            key_id="k", backend=Backend.PAIRING_SIGNATURE, public_key=b"\x01", private_key=b"\x02"
        )
        assert "privateKey" not in key.export()
        assert key.export(include_private=True)["privateKey"] == "02"


class TestPredicate:
    def test_constructors(self):
        assert Predicate.age_over(18).params == {"threshold": 18}
        assert Predicate.age_between(18, 65).kind == PredicateKind.AGE_BETWEEN
        assert Predicate.always().params == {}

    def test_missing_param(self):
        with pytest.raises(ValidationError):
            Predicate(kind=PredicateKind.AGE_OVER)

    def test_negative_threshold(self):
        with pytest.raises(ValidationError):
            Predicate.age_over(-1)

    def test_bool_threshold(self):
        with pytest.raises(ValidationError):
            Predicate.age_over(True)

    @pytest.mark.parametrize("threshold", [None, [18], 18.7, "18", True])
    def test_non_integer_threshold(self, threshold):
        with pytest.raises(ValidationError, match="non-negative integer"):
            Predicate(kind=PredicateKind.AGE_OVER, params={"threshold": threshold})

    def test_non_integer_range_bound(self):
        with pytest.raises(ValidationError):
            Predicate(kind=PredicateKind.AGE_BETWEEN, params={"minimum": None, "maximum": 30})

    def test_inverted_range(self):
        with pytest.raises(ValidationError):
            Predicate.age_between(30, 20)

    def test_unknown_kind(self):
        with pytest.raises(ValidationError):
            Predicate(kind="height_over", params={"threshold": 2})

    def test_outcome_hint_header_is_canonical(self):
        a = OutcomeHint(predicate=Predicate.age_over(18), satisfied=True)
        b = OutcomeHint.model_validate(a.to_json_dict())
        assert a.to_header() == b.to_header()
        assert a.to_header() != OutcomeHint(predicate=Predicate.age_over(18), satisfied=False).to_header()


class TestCredentialAndProof:
    def test_credential_properties(self):
        credential = Credential(
            id="cred_x",
            issuer_id="k",
            backend=Backend.PAIRING_SIGNATURE,
            issuer_public_key=b"\x01",
            signature=b"\x02",
            encoded_messages=[b"25", b"Alice"],
            attributes={"name": "Alice", "age": "25"},
        )
        assert credential.message_count == 2
        assert credential.attribute_names == ["age", "name"]
        assert credential.blindings == []

    def test_presentation_header(self):
        assert _proof().presentation_header == b""
        hint = OutcomeHint(predicate=Predicate.age_over(21), satisfied=False)
        assert _proof(outcome_hint=hint).presentation_header == hint.to_header()


class TestVerificationResult:
    def _result(self, outcome, crypto=True, predicate=True, **kwargs) -> VerificationResult:
        return VerificationResult(
            cryptographically_valid=crypto,
            predicate_satisfied=predicate,
            outcome=outcome,
            backend=Backend.PAIRING_SIGNATURE,
            **kwargs,
        )

    def test_verified_needs_both_flags(self):
        assert self._result(VerificationOutcome.ACCEPTED).verified
        assert not self._result(VerificationOutcome.PREDICATE_NOT_SATISFIED, predicate=False).verified

    def test_raise_for_malformed(self):
        result = self._result(
            VerificationOutcome.MALFORMED_PROOF,
            crypto=False,
            predicate=False,
            details={"field": "proof_bytes"},
            errors=["too short"],
        )
        with pytest.raises(MalformedProofError) as exc:
            result.raise_for_outcome()
        assert exc.value.field == "proof_bytes"

    def test_raise_for_crypto_failure(self):
        result = self._result(
            VerificationOutcome.CRYPTOGRAPHIC_VERIFICATION_FAILED,
            crypto=False,
            details={"checks": {"pairing": False}},
        )
        with pytest.raises(CryptographicVerificationError) as exc:
            result.raise_for_outcome()
        assert exc.value.checks == {"pairing": False}

    def test_predicate_miss_does_not_raise(self):
        self._result(VerificationOutcome.PREDICATE_NOT_SATISFIED, predicate=False).raise_for_outcome()
