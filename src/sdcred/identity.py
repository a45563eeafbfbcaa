"""Identity records and the attribute sets derived from them.

An identity is the personal data a holder wants credentials about. The
helpers here turn it into the ``identity/v1`` attribute set, pick the
attributes to reveal for an age check, and compute an integrity hash that
detects edits to a stored record.
"""

import hashlib
import json
import secrets
import time
from datetime import UTC, datetime

from pydantic import BaseModel, Field


# Thresholds for which identity credentials carry an ``over_<t>`` flag
AGE_THRESHOLDS = (18, 21)


def generate_secure_id() -> str:
    """16 hex chars derived from random bytes and the current time."""
    seed = secrets.token_bytes(16) + str(time.time_ns()).encode("ascii")
    return hashlib.sha256(seed).hexdigest()[:16]


class IdentityRecord(BaseModel):
    """Personal data of one holder.

    Attributes:
        id: Secure random identifier.
        name: Display name.
        age: Age in years.
        country: Country of nationality.
        created_at: When the record was created.
    """

    id: str = Field(default_factory=generate_secure_id)
    name: str = "Anonymous"
    age: int = Field(default=0, ge=0, le=150)
    country: str = "Unknown"
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    def integrity_hash(self) -> str:
        """SHA-256 over the canonical JSON of the record."""
        payload = self.model_dump(mode="json")
        canonical = json.dumps(payload, sort_keys=True, separators=(",", ":"))
        return hashlib.sha256(canonical.encode("utf-8")).hexdigest()

    def verify_integrity(self, expected_hash: str) -> bool:
        return secrets.compare_digest(self.integrity_hash(), expected_hash)


def create_identity(name: str, age: int, country: str) -> IdentityRecord:
    """Create a new identity record with a fresh id."""
    return IdentityRecord(name=name, age=age, country=country)


def identity_attributes(identity: IdentityRecord, issued_at: datetime | None = None) -> dict[str, str]:
    """Build the ``identity/v1`` attribute set for *identity*.

    The ``over_18`` and ``over_21`` flags are derived from the age so that
    an age check can be answered without revealing the age itself.
    """
    issued_at = issued_at or datetime.now(UTC)
    attributes = {
        "user_id": identity.id,
        "name": identity.name,
        "age": str(identity.age),
        "country": identity.country,
        "timestamp": issued_at.isoformat(),
    }
    for threshold in AGE_THRESHOLDS:
        attributes[f"over_{threshold}"] = "true" if identity.age >= threshold else "false"
    return attributes


def age_reveal_names(threshold: int) -> list[str]:
    """Attribute names to reveal to prove ``age >= threshold``.

    Raises:
        ValueError: If no threshold flag exists for *threshold*.
    """
    if threshold == 18:
        return ["over_18"]
    if threshold == 21:
        return ["over_18", "over_21"]
    msg = f"No age flag for threshold {threshold}; supported: {list(AGE_THRESHOLDS)}"
    raise ValueError(msg)
