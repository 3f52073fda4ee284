"""
db/store.py — Secure Store & Reveal Ledger
============================================
Two capabilities the holder core needs from the device:

    SecureStore   get(key) → value? | set(key, value) | delete(key)
    RevealLedger  append(log) | list(subject_name)   (no update, no delete)

Each has an in-memory implementation (tests, ephemeral sessions) and a
SQLAlchemy one where secure values are Fernet-encrypted before they hit
the database.

Key layout:
    field:<name>:<fieldType>    one field value, scoped per name
    subjectEns                  currently selected name
    verifiedEnsOwner            address proven to own the selected name
    ensNames                    JSON list of names known to this device
    revealMode:<requestId>      reveal mode the holder approved a request with
"""

import logging
from abc import ABC, abstractmethod
from datetime import timezone
from typing import Dict, List, Optional

from sqlalchemy import delete as sql_delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from api.schemas import FieldRevealLog
from core.crypto import CryptoEngine
from core.fields import FieldType
from db.models import RevealLogRecord, SecureItem

logger = logging.getLogger("verifyens.store")

SUBJECT_NAME_KEY = "subjectEns"
VERIFIED_OWNER_KEY = "verifiedEnsOwner"
KNOWN_NAMES_KEY = "ensNames"


def field_key(name: str, field: FieldType) -> str:
    return f"field:{name}:{field.tag}"


def reveal_mode_key(request_id: str) -> str:
    return f"revealMode:{request_id}"


# ── Secure store ──────────────────────────────────────────────────────────────
class SecureStore(ABC):

    @abstractmethod
    async def get(self, key: str) -> Optional[str]:
        ...

    @abstractmethod
    async def set(self, key: str, value: str):
        ...

    @abstractmethod
    async def delete(self, key: str):
        """Deleting a missing key is not an error."""


class MemorySecureStore(SecureStore):

    def __init__(self):
        self._items: Dict[str, str] = {}

    async def get(self, key: str) -> Optional[str]:
        return self._items.get(key)

    async def set(self, key: str, value: str):
        self._items[key] = value

    async def delete(self, key: str):
        self._items.pop(key, None)

    def keys(self) -> List[str]:
        return sorted(self._items)


class SqlSecureStore(SecureStore):

    def __init__(self, session_factory: async_sessionmaker[AsyncSession], crypto: CryptoEngine):
        self._sessions = session_factory
        self._crypto = crypto

    async def get(self, key: str) -> Optional[str]:
        async with self._sessions() as db:
            item = await db.get(SecureItem, key)
            if item is None:
                return None
            return self._crypto.decrypt(item.value_encrypted)

    async def set(self, key: str, value: str):
        encrypted = self._crypto.encrypt(value)
        async with self._sessions() as db:
            item = await db.get(SecureItem, key)
            if item is None:
                db.add(SecureItem(key=key, value_encrypted=encrypted))
            else:
                item.value_encrypted = encrypted
            await db.commit()

    async def delete(self, key: str):
        async with self._sessions() as db:
            await db.execute(sql_delete(SecureItem).where(SecureItem.key == key))
            await db.commit()


# ── Reveal ledger ─────────────────────────────────────────────────────────────
class RevealLedger(ABC):

    @abstractmethod
    async def append(self, log: FieldRevealLog):
        ...

    @abstractmethod
    async def list(self, subject_name: str) -> List[FieldRevealLog]:
        """Entries for one name, oldest first."""


class MemoryRevealLedger(RevealLedger):

    def __init__(self):
        self._entries: List[FieldRevealLog] = []

    async def append(self, log: FieldRevealLog):
        if any(entry.id == log.id for entry in self._entries):
            raise ValueError(f"Reveal log {log.id} already recorded")
        self._entries.append(log)

    async def list(self, subject_name: str) -> List[FieldRevealLog]:
        return [entry for entry in self._entries if entry.subject_name == subject_name]


class SqlRevealLedger(RevealLedger):

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._sessions = session_factory

    async def append(self, log: FieldRevealLog):
        async with self._sessions() as db:
            if await db.get(RevealLogRecord, log.id) is not None:
                raise ValueError(f"Reveal log {log.id} already recorded")
            last = (await db.execute(select(func.max(RevealLogRecord.seq)))).scalar()
            db.add(RevealLogRecord(
                id=log.id,
                request_id=log.request_id,
                subject_name=log.subject_name,
                field=log.field.tag,
                verifier_address=log.verifier_address,
                verifier_name=log.verifier_name,
                revealed_at=log.revealed_at,
                value_hash=log.value_hash,
                seq=(last or 0) + 1,
            ))
            await db.commit()
        logger.info(f"Reveal logged: request {log.request_id} ({log.field.tag}) → {log.verifier_address}")

    async def list(self, subject_name: str) -> List[FieldRevealLog]:
        async with self._sessions() as db:
            result = await db.execute(
                select(RevealLogRecord)
                .where(RevealLogRecord.subject_name == subject_name)
                .order_by(RevealLogRecord.seq)
            )
            rows = result.scalars().all()
        return [
            FieldRevealLog(
                id=row.id,
                request_id=row.request_id,
                subject_name=row.subject_name,
                field=FieldType(row.field),
                verifier_address=row.verifier_address,
                verifier_name=row.verifier_name,
                revealed_at=_as_utc(row.revealed_at),
                value_hash=row.value_hash,
            )
            for row in rows
        ]


def _as_utc(moment):
    # sqlite drops tzinfo on the way back
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment
