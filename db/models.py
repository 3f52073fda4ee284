"""
db/models.py — Local Table Definitions
========================================
Each class = one table in the on-device database.
Secure items are stored ENCRYPTED (Fernet via core/crypto.py before saving).
Reveal logs hold no plaintext, only hashes and who saw what when.
"""

import uuid
from datetime import datetime
from sqlalchemy import String, DateTime, Text
from sqlalchemy.orm import Mapped, mapped_column
from core.clock import utcnow
from db.session import Base


def new_uuid():
    return str(uuid.uuid4())


# ── 1. Secure key/value items ─────────────────────────────────────────────────
class SecureItem(Base):
    __tablename__ = "secure_items"

    key: Mapped[str] = mapped_column(String(512), primary_key=True)    # field:<name>:<type> | subjectEns | ...
    value_encrypted: Mapped[str] = mapped_column(Text, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)


# ── 2. Field reveal log (append-only) ─────────────────────────────────────────
class RevealLogRecord(Base):
    __tablename__ = "field_reveal_logs"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_uuid)
    request_id: Mapped[str] = mapped_column(String(255), nullable=False)
    subject_name: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    field: Mapped[str] = mapped_column(String(64), nullable=False)
    verifier_address: Mapped[str] = mapped_column(String(64), nullable=False)
    verifier_name: Mapped[str] = mapped_column(String(255), nullable=True)
    revealed_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    value_hash: Mapped[str] = mapped_column(String(66), nullable=True)
    seq: Mapped[int] = mapped_column(nullable=False, index=True)      # append order
