"""
core/crypto.py — Hashing & Encryption Engine
==============================================
Central place for ALL commitment hashing and at-rest encryption.
Every module imports from here — never roll your own crypto elsewhere.

Provides:
- normalize / keccak-256 commitments  (valueHash, fieldHash)
- constant-time digest comparison     (commitment opening)
- Fernet encryption / decryption      (field values in the local store)

Commitment scheme:
    valueHash = keccak256(normalize(value))
    fieldHash = keccak256("VerifyENS:" + field + ":" + valueHash)

The fieldHash preimage layout is byte-exact: the external verification
service recomputes it and compares.
"""

import hmac
import logging
from typing import Optional, Tuple

from cryptography.fernet import Fernet, InvalidToken
from eth_utils import keccak

from core.errors import EncodingError
from core.fields import FieldType

logger = logging.getLogger("verifyens.crypto")

DOMAIN_PREFIX = "VerifyENS"


# ── Hashing ────────────────────────────────────────────────────────────────
def normalize(value: str) -> str:
    """Trim surrounding whitespace and lower-case, so cosmetic edits keep the same hash."""
    return value.strip().lower()


def _utf8(text: str) -> bytes:
    try:
        return text.encode("utf-8")
    except UnicodeEncodeError as exc:
        raise EncodingError(f"Value cannot be encoded as UTF-8: {exc.reason}") from exc


def keccak256_hex(text: str) -> str:
    """Ethereum keccak-256 (not NIST SHA3-256) of the UTF-8 bytes, 0x-prefixed hex."""
    return "0x" + keccak(_utf8(text)).hex()


def compute_value_hash(value: str) -> str:
    return keccak256_hex(normalize(value))


def compute_field_hash(field: FieldType, value_hash: str) -> str:
    return keccak256_hex(f"{DOMAIN_PREFIX}:{field.tag}:{value_hash}")


def compute_commitment(field: FieldType, value: str) -> Tuple[str, str]:
    """Returns (valueHash, fieldHash) for a raw field value."""
    value_hash = compute_value_hash(value)
    return value_hash, compute_field_hash(field, value_hash)


def hashes_equal(a: str, b: str) -> bool:
    """
    Compare two hex digests without early exit.
    Inputs are hashes of fixed width, so neither the compare nor the
    preceding hashing step depends on how much of a guess was right.
    """
    return hmac.compare_digest(a.lower().encode("utf-8", "replace"), b.lower().encode("utf-8", "replace"))


# ── Encryption at rest ─────────────────────────────────────────────────────
class CryptoEngine:
    """
    Fernet engine for values stored on the device.
    Built once in main.py lifespan and handed to the SQL secure store.
    """

    def __init__(self, encryption_key: str = ""):
        self._key = encryption_key
        self._fernet: Optional[Fernet] = None
        self._ready = False

    def initialize(self):
        if not self._key:
            raise ValueError(
                "ENCRYPTION_KEY is not set in .env! "
                "Generate one with: python -c \"from cryptography.fernet import Fernet; print(Fernet.generate_key().decode())\""
            )
        self._fernet = Fernet(self._key.encode())
        self._ready = True
        logger.info("Crypto engine initialized.")

    def is_ready(self) -> str:
        return "ok" if self._ready else "not initialized"

    def encrypt(self, plaintext: str) -> str:
        """Returns base64 Fernet token safe to store in the DB."""
        if not self._ready:
            raise RuntimeError("CryptoEngine not initialized. Call initialize() first.")
        return self._fernet.encrypt(_utf8(plaintext)).decode()

    def decrypt(self, ciphertext: str) -> str:
        if not self._ready:
            raise RuntimeError("CryptoEngine not initialized.")
        try:
            return self._fernet.decrypt(ciphertext.encode()).decode("utf-8")
        except InvalidToken as exc:
            raise ValueError("Stored value could not be decrypted with the configured key") from exc
