"""Canonical attribute encoding.

Attributes are encoded as the lexicographic sort of their names, each value
coerced to a canonical string and UTF-8 encoded. The position of an
attribute in that sequence is the only identifier used during selective
disclosure: no index-to-name dictionary travels with a proof. Issuers,
holders and verifiers therefore agree on a versioned
:class:`CredentialProfile` that lists the attribute names.

Canonical value forms:

* ``bool`` -> ``"true"`` / ``"false"``
* ``int`` / ``Decimal`` / finite ``float`` -> decimal ASCII
* ``datetime`` / ``date`` -> ISO 8601
* ``str`` -> unchanged

Example:
    >>> from sdcred.encoding import AttributeEncoder
    >>> AttributeEncoder().encode({"name": "Alice", "age": 25, "over_18": True})
    [b'25', b'Alice', b'true']
"""

import math
from collections.abc import Iterable, Mapping, Sequence
from datetime import date, datetime
from decimal import Decimal
from typing import Any

from pydantic import BaseModel, ConfigDict, field_validator

from sdcred.errors import InvalidAttributeSetError


def canonicalize_value(value: Any, name: str | None = None) -> str:
    """Coerce an attribute value to its canonical string form.

    Raises:
        InvalidAttributeSetError: If the value is not a string-coercible
            scalar.
    """
    # bool is a subclass of int, so it must be tested first
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        if not math.isfinite(value):
            raise InvalidAttributeSetError(f"Non-finite number for attribute {name!r}", field=name)
        return format(Decimal(repr(value)), "f")
    if isinstance(value, Decimal):
        if not value.is_finite():
            raise InvalidAttributeSetError(f"Non-finite number for attribute {name!r}", field=name)
        return format(value, "f")
    if isinstance(value, datetime | date):
        return value.isoformat()
    if isinstance(value, str):
        return value
    raise InvalidAttributeSetError(
        f"Attribute {name!r} has non-scalar value of type {type(value).__name__}",
        field=name,
    )


class CredentialProfile(BaseModel):
    """A versioned, documented list of attribute names.

    The names are stored sorted, which makes ``attributes[i]`` the name of
    the attribute at encoded index ``i``.

    Attributes:
        name: Profile family name.
        version: Profile version; bump when the attribute list changes.
        attributes: Attribute names in canonical (sorted) order.
    """

    model_config = ConfigDict(frozen=True)

    name: str
    version: int = 1
    attributes: tuple[str, ...]

    @field_validator("attributes")
    @classmethod
    def _sorted_unique(cls, v: tuple[str, ...]) -> tuple[str, ...]:
        if not v:
            msg = "A profile needs at least one attribute"
            raise ValueError(msg)
        if len(set(v)) != len(v):
            msg = "Profile attribute names must be unique"
            raise ValueError(msg)
        return tuple(sorted(v))

    @property
    def id(self) -> str:
        return f"{self.name}/v{self.version}"

    def __len__(self) -> int:
        return len(self.attributes)

    def index_of(self, attribute: str) -> int:
        """Return the encoded index of *attribute*.

        Raises:
            InvalidAttributeSetError: If the profile has no such attribute.
        """
        try:
            return self.attributes.index(attribute)
        except ValueError:
            raise InvalidAttributeSetError(
                f"Attribute {attribute!r} is not part of profile {self.id}",
                field=attribute,
            ) from None

    def indices_for(self, attributes: Iterable[str]) -> list[int]:
        """Translate attribute names into ascending encoded indices."""
        return sorted(self.index_of(a) for a in attributes)

    def matches(self, names: Iterable[str]) -> bool:
        return tuple(sorted(names)) == self.attributes


IDENTITY_PROFILE_V1 = CredentialProfile(
    name="identity",
    version=1,
    attributes=("age", "country", "name", "over_18", "over_21", "timestamp", "user_id"),
)


class AttributeEncoder:
    """Converts attribute mappings into canonically ordered byte messages.

    Args:
        profile: Optional profile. With ``strict=True`` every encoded set
            must carry exactly the profile's attribute names.
        strict: Enforce the profile's attribute list.
    """

    def __init__(self, profile: CredentialProfile | None = None, strict: bool = False) -> None:
        if strict and profile is None:
            msg = "Strict encoding requires a profile"
            raise ValueError(msg)
        self.profile = profile
        self.strict = strict

    def canonicalize(self, attributes: Mapping[str, Any]) -> dict[str, str]:
        """Validate *attributes* and return them sorted with canonical values.

        Raises:
            InvalidAttributeSetError: If the set is empty, a name is not a
                non-empty string, a value cannot be coerced, or (in strict
                mode) the names differ from the profile.
        """
        if not attributes:
            raise InvalidAttributeSetError("Attribute set must not be empty")

        for name in attributes:
            if not isinstance(name, str) or not name:
                raise InvalidAttributeSetError(
                    f"Attribute names must be non-empty strings, got {name!r}",
                    field=str(name),
                )

        if self.strict and self.profile is not None and not self.profile.matches(attributes):
            missing = sorted(set(self.profile.attributes) - set(attributes))
            extra = sorted(set(attributes) - set(self.profile.attributes))
            raise InvalidAttributeSetError(
                f"Attributes do not match profile {self.profile.id}: "
                f"missing={missing} extra={extra}",
                field=(missing or extra)[0],
            )

        return {name: canonicalize_value(attributes[name], name) for name in sorted(attributes)}

    def encode(self, attributes: Mapping[str, Any]) -> list[bytes]:
        """Encode *attributes* as UTF-8 messages in sorted-name order."""
        return [value.encode("utf-8") for value in self.canonicalize(attributes).values()]

    @staticmethod
    def decode(messages: Sequence[bytes]) -> list[str]:
        """Decode encoded messages back to canonical string values.

        Raises:
            UnicodeDecodeError: If a message is not valid UTF-8.
        """
        return [m.decode("utf-8") for m in messages]

    def indices_for(self, names: Iterable[str], attributes: Mapping[str, Any] | None = None) -> list[int]:
        """Translate attribute *names* into ascending encoded indices.

        The index space comes from *attributes* when given (a holder that
        retains its attribute set), otherwise from the encoder's profile.

        Raises:
            InvalidAttributeSetError: If a name is unknown.
        """
        if attributes is not None:
            ordered = sorted(attributes)
        elif self.profile is not None:
            ordered = list(self.profile.attributes)
        else:
            msg = "Either attributes or a profile is needed to resolve names"
            raise ValueError(msg)

        indices = []
        for name in names:
            if name not in ordered:
                raise InvalidAttributeSetError(f"Unknown attribute {name!r}", field=name)
            indices.append(ordered.index(name))
        return sorted(indices)

    def profile_id_for(self, names: Iterable[str]) -> str | None:
        """Return the profile id if *names* match the encoder's profile."""
        if self.profile is not None and self.profile.matches(names):
            return self.profile.id
        return None


def encode_attributes(attributes: Mapping[str, Any]) -> list[bytes]:
    """Encode *attributes* with a non-strict encoder."""
    return AttributeEncoder().encode(attributes)
