"""
modules/verifications.py — Verification Records
=================================================
Read side of completed verifications: fetch the records the backend
holds for a name, group them per field, and check that each active
record still commits to the value the holder has on this device.
"""

import logging
from dataclasses import dataclass
from typing import Dict, List

from api.client import WorkflowClient
from api.schemas import Verification
from core.crypto import hashes_equal
from core.fields import FieldType
from modules.fields import FieldVault

logger = logging.getLogger("verifyens.modules.verifications")


@dataclass(frozen=True)
class CommitmentMismatch:
    verification_id: str
    field: FieldType
    server_field_hash: str
    local_field_hash: str      # "" when the field is no longer stored locally


class VerificationBook:

    def __init__(self, client: WorkflowClient, vault: FieldVault):
        self._client = client
        self._vault = vault
        self._verifications: List[Verification] = []

    @property
    def verifications(self) -> List[Verification]:
        return list(self._verifications)

    async def refresh(self, name: str) -> List[Verification]:
        if not name:
            return []
        self._verifications = await self._client.fetch_verifications(name)
        logger.info(f"Fetched {len(self._verifications)} verifications for {name}")
        return self.verifications

    def for_field(self, field: FieldType) -> List[Verification]:
        return [v for v in self._verifications if v.field == field]

    def by_field(self) -> Dict[FieldType, List[Verification]]:
        return {field: self.for_field(field) for field in FieldType}

    async def audit(self, name: str) -> List[CommitmentMismatch]:
        """Active, unrevoked records whose fieldHash differs from the local commitment."""
        commitments = await self._vault.commitments(name)
        mismatches = []
        for record in self._verifications:
            if record.revoked_at is not None or record.is_active is False:
                continue
            local = commitments.get(record.field)
            local_hash = local.field_hash if local else ""
            if not local_hash or not hashes_equal(local_hash, record.field_hash):
                mismatches.append(CommitmentMismatch(record.id, record.field, record.field_hash, local_hash))
        if mismatches:
            logger.warning(f"{len(mismatches)} verification(s) for {name} no longer match local values")
        return mismatches
