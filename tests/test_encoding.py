"""Tests for canonical attribute encoding and profiles."""

from datetime import UTC, date, datetime
from decimal import Decimal

import pytest
from pydantic import ValidationError

from sdcred.encoding import (
    IDENTITY_PROFILE_V1,
    AttributeEncoder,
    CredentialProfile,
    canonicalize_value,
    encode_attributes,
)
from sdcred.errors import InvalidAttributeSetError

# ---------------------------------------------------------------------------
# canonicalize_value
# ---------------------------------------------------------------------------


class TestCanonicalizeValue:
    @pytest.mark.parametrize(
        ("value", "expected"),
        [
            (True, "true"),
            (False, "false"),
            (25, "25"),
            (-3, "-3"),
            (1.5, "1.5"),
            (Decimal("10.250"), "10.250"),
            ("Alice", "Alice"),
            ("", ""),
            (date(2024, 1, 2), "2024-01-02"),
            (datetime(2024, 1, 2, 3, 4, 5, tzinfo=UTC), "2024-01-02T03:04:05+00:00"),
        ],
    )
    def test_canonical_forms(self, value, expected):
        assert canonicalize_value(value) == expected

    def test_bool_is_not_treated_as_int(self):
        assert canonicalize_value(True) != "1"

    def test_float_has_no_exponent(self):
        assert canonicalize_value(1e-7) == "0.0000001"

    @pytest.mark.parametrize("value", [float("nan"), float("inf"), Decimal("NaN")])
    def test_non_finite_rejected(self, value):
        with pytest.raises(InvalidAttributeSetError) as exc:
            canonicalize_value(value, "score")
        assert exc.value.field == "score"

    @pytest.mark.parametrize("value", [None, [1, 2], {"a": 1}, b"raw"])
    def test_non_scalar_rejected(self, value):
        with pytest.raises(InvalidAttributeSetError):
            canonicalize_value(value, "x")


# ---------------------------------------------------------------------------
# AttributeEncoder
# ---------------------------------------------------------------------------


class TestAttributeEncoder:
    def test_encodes_in_sorted_name_order(self):
        messages = AttributeEncoder().encode({"name": "Alice", "age": 25, "over_18": True})
        assert messages == [b"25", b"Alice", b"true"]

    def test_insertion_order_does_not_matter(self):
        a = encode_attributes({"b": "2", "a": "1", "c": "3"})
        b = encode_attributes({"c": "3", "a": "1", "b": "2"})
        assert a == b

    def test_utf8_values(self):
        assert encode_attributes({"name": "Zoë"}) == ["Zoë".encode()]

    def test_decode_round_trips_canonical_values(self):
        encoder = AttributeEncoder()
        messages = encoder.encode({"age": 30, "ok": False})
        assert encoder.decode(messages) == ["30", "false"]

    def test_empty_set_rejected(self):
        with pytest.raises(InvalidAttributeSetError):
            AttributeEncoder().encode({})

    def test_empty_name_rejected(self):
        with pytest.raises(InvalidAttributeSetError):
            AttributeEncoder().encode({"": "x"})

    def test_non_string_name_rejected(self):
        with pytest.raises(InvalidAttributeSetError):
            AttributeEncoder().encode({1: "x"})

    def test_strict_mode_requires_profile_names(self, adult_attributes):
        encoder = AttributeEncoder(profile=IDENTITY_PROFILE_V1, strict=True)
        assert len(encoder.encode(adult_attributes)) == 7

        missing = dict(adult_attributes)
        del missing["name"]
        with pytest.raises(InvalidAttributeSetError) as exc:
            encoder.encode(missing)
        assert exc.value.field == "name"

    def test_strict_mode_needs_profile(self):
        with pytest.raises(ValueError):
            AttributeEncoder(strict=True)

    def test_indices_for_attributes(self):
        encoder = AttributeEncoder()
        indices = encoder.indices_for(["over_18", "age"], {"name": "A", "age": "1", "over_18": "true"})
        assert indices == [0, 2]

    def test_indices_for_profile(self):
        encoder = AttributeEncoder(profile=IDENTITY_PROFILE_V1)
        assert encoder.indices_for(["over_21", "over_18"]) == [3, 4]

    def test_indices_for_unknown_name(self):
        with pytest.raises(InvalidAttributeSetError) as exc:
            AttributeEncoder(profile=IDENTITY_PROFILE_V1).indices_for(["height"])
        assert exc.value.field == "height"

    def test_profile_id_for(self, adult_attributes):
        encoder = AttributeEncoder(profile=IDENTITY_PROFILE_V1)
        assert encoder.profile_id_for(adult_attributes) == "identity/v1"
        assert encoder.profile_id_for({"age": "1"}) is None


# ---------------------------------------------------------------------------
# CredentialProfile
# ---------------------------------------------------------------------------


class TestCredentialProfile:
    def test_identity_profile_order(self):
        assert IDENTITY_PROFILE_V1.attributes == (
            "age",
            "country",
            "name",
            "over_18",
            "over_21",
            "timestamp",
            "user_id",
        )
        assert IDENTITY_PROFILE_V1.id == "identity/v1"
        assert len(IDENTITY_PROFILE_V1) == 7

    def test_attributes_are_sorted(self):
        profile = CredentialProfile(name="p", attributes=("z", "a", "m"))
        assert profile.attributes == ("a", "m", "z")
        assert profile.index_of("m") == 1

    def test_duplicate_names_rejected(self):
        with pytest.raises(ValidationError):
            CredentialProfile(name="p", attributes=("a", "a"))

    def test_empty_profile_rejected(self):
        with pytest.raises(ValidationError):
            CredentialProfile(name="p", attributes=())

    def test_index_of_unknown(self):
        with pytest.raises(InvalidAttributeSetError):
            IDENTITY_PROFILE_V1.index_of("height")

    def test_indices_for_sorted(self):
        assert IDENTITY_PROFILE_V1.indices_for(["user_id", "age"]) == [0, 6]
