"""
api/schemas.py — Wire Payload Shapes
======================================
One typed model per request/response body of the workflow backend.
Wire names are lower-camel-case; Python attributes are snake_case.
Models are strict: a body that does not fit raises a ValidationError,
which the client turns into DecodingError.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from core.fields import FieldType


class RequestStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    EXPIRED = "expired"
    COMPLETED = "completed"


class RevealMode(str, Enum):
    REVEAL = "reveal"
    NO_REVEAL = "no-reveal"


class WireModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        strict=True,
        extra="ignore",
    )

    @field_validator("*")
    @classmethod
    def assume_utc(cls, value):
        # timestamps sent without an offset are UTC
        if isinstance(value, datetime) and value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value


# ── Requests ──────────────────────────────────────────────────────────────────
class VerificationRequest(WireModel):
    model_config = ConfigDict(frozen=True)

    id: str
    verifier_address: str
    verifier_name: Optional[str] = Field(default=None, alias="verifierEns")
    subject_name: str = Field(alias="verifiedEns")
    field: FieldType
    status: RequestStatus
    requested_at: datetime
    approved_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    reveal_mode: Optional[RevealMode] = None

    @property
    def is_pending(self) -> bool:
        return self.status == RequestStatus.PENDING


class FieldRevealLog(WireModel):
    model_config = ConfigDict(frozen=True)

    id: str
    request_id: str
    subject_name: str = Field(alias="verifiedEns")
    field: FieldType
    verifier_address: str
    verifier_name: Optional[str] = Field(default=None, alias="verifierEns")
    revealed_at: datetime
    value_hash: Optional[str] = None


class ApproveBody(WireModel):
    field_value: str
    reveal_mode: RevealMode
    verified_ens_owner: Optional[str] = None

    def to_wire(self) -> dict:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


# ── Verifications ─────────────────────────────────────────────────────────────
class Verification(WireModel):
    id: str
    verified_ens: str
    field: FieldType
    field_hash: str
    verifier_type: str
    verifier_id: str
    ens_name: Optional[str] = None
    owner_snapshot: Optional[str] = None
    expiry_snapshot: Optional[datetime] = None
    method_url: Optional[str] = None
    status: str
    sig: Optional[str] = None
    attestation_uid: Optional[str] = None
    created_at: datetime
    revoked_at: Optional[datetime] = None
    is_valid: Optional[bool] = None
    is_ens_valid: Optional[bool] = None
    is_active: Optional[bool] = None
    ownership_matches: Optional[bool] = None
    expiry_valid: Optional[bool] = None
    verifier_valid: Optional[bool] = None
    attestation_explorer_url: Optional[str] = None

    @property
    def verifier_address(self) -> str:
        return self.verifier_id

    def is_expired(self, now: datetime) -> Optional[bool]:
        """None when the record carries no expiry snapshot."""
        if self.expiry_snapshot is None:
            return None
        return self.expiry_snapshot < now


# ── Ownership ─────────────────────────────────────────────────────────────────
class OwnerInfo(WireModel):
    name: str = Field(validation_alias=AliasChoices("name", "ensName"))
    owner: Optional[str] = None
    expiry: Optional[datetime] = None
    is_valid: bool


class VerifyOwnershipBody(WireModel):
    ens_name: str
    address: str
    signature: str
    message: Optional[str] = None

    def to_wire(self) -> dict:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class OwnershipVerification(WireModel):
    verified: bool
    ens_name: str
    address: str
    message: str


class ErrorBody(WireModel):
    error: str
