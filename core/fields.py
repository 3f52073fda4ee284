"""
core/fields.py — Personal Field Catalogue
==========================================
The attributes a holder can commit to, and the commitment record derived
from a field's raw value.
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum


class FieldType(str, Enum):
    FULL_NAME = "full_name"
    DOB = "dob"
    PASSPORT_ID = "passport_id"

    @property
    def tag(self) -> str:
        """Raw wire tag, the exact string mixed into the field hash."""
        return self.value

    @property
    def display_name(self) -> str:
        return _DISPLAY_NAMES[self]


_DISPLAY_NAMES = {
    FieldType.FULL_NAME: "Full Name",
    FieldType.DOB: "Date of Birth",
    FieldType.PASSPORT_ID: "Passport/ID Number",
}


@dataclass(frozen=True)
class FieldCommitment:
    """
    Hash commitment to one field value.
    Never stored on its own: it is recomputed from the value held in the
    secure store, so it lives and dies with that value.
    """

    type: FieldType
    value_hash: str
    field_hash: str
    updated_at: datetime
