"""
modules/fields.py — Holder Field Vault
========================================
Business logic for the holder's personal field values.
Values live only in the secure store, one entry per (name, field).
Commitments are recomputed from the stored value on every read so a hash
can never outlive or drift from the value it commits to.

Flow:
    set_field → raw value stored → commitment returned
    clear_field / empty value → entry deleted → commitment gone
"""

import json
import logging
from typing import Dict, Optional

from core.clock import isoformat_ms, parse_iso, utcnow
from core.crypto import compute_commitment
from core.errors import PreconditionError
from core.fields import FieldCommitment, FieldType
from db.store import SecureStore, field_key

logger = logging.getLogger("verifyens.modules.fields")


class FieldVault:

    def __init__(self, store: SecureStore):
        self._store = store

    async def set_field(self, name: str, field: FieldType, value: str) -> Optional[FieldCommitment]:
        """
        Store (or overwrite) one field value for a name.
        A blank value clears the field and returns None.
        """
        if not name:
            raise PreconditionError("Select an ENS name before editing fields")
        if not value.strip():
            await self.clear_field(name, field)
            return None

        updated_at = utcnow()
        value_hash, field_hash = compute_commitment(field, value)
        await self._store.set(
            field_key(name, field),
            json.dumps({"value": value, "updatedAt": isoformat_ms(updated_at)}),
        )
        logger.info(f"Field {field.tag} set for {name} (valueHash={value_hash[:12]}...)")
        return FieldCommitment(field, value_hash, field_hash, updated_at)

    async def clear_field(self, name: str, field: FieldType):
        await self._store.delete(field_key(name, field))
        logger.info(f"Field {field.tag} cleared for {name}")

    async def get_value(self, name: str, field: FieldType) -> Optional[str]:
        entry = await self._load(name, field)
        return entry["value"] if entry else None

    async def commitment(self, name: str, field: FieldType) -> Optional[FieldCommitment]:
        entry = await self._load(name, field)
        if entry is None:
            return None
        value_hash, field_hash = compute_commitment(field, entry["value"])
        return FieldCommitment(field, value_hash, field_hash, parse_iso(entry["updatedAt"]))

    async def commitments(self, name: str) -> Dict[FieldType, FieldCommitment]:
        found = {}
        for field in FieldType:
            commitment = await self.commitment(name, field)
            if commitment is not None:
                found[field] = commitment
        return found

    async def share_payload(self, name: str, field: FieldType) -> Optional[str]:
        """
        Compact JSON a holder hands to a verifier (rendered as a QR code by
        the UI): {"ens", "field", "valueHash"}. None when the field is unset.
        """
        commitment = await self.commitment(name, field)
        if not name or commitment is None:
            return None
        return json.dumps(
            {"ens": name, "field": field.tag, "valueHash": commitment.value_hash},
            separators=(",", ":"),
        )

    async def _load(self, name: str, field: FieldType) -> Optional[dict]:
        if not name:
            return None
        raw = await self._store.get(field_key(name, field))
        if raw is None:
            return None
        entry = json.loads(raw)
        if not entry.get("value"):
            return None
        return entry
