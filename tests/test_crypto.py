"""
Tests for the commitment hashing engine and at-rest encryption.
"""

import pytest
from cryptography.fernet import Fernet

from core.crypto import (
    CryptoEngine,
    compute_commitment,
    compute_field_hash,
    compute_value_hash,
    hashes_equal,
    keccak256_hex,
    normalize,
)
from core.errors import EncodingError
from core.fields import FieldType


def test_keccak_matches_known_vectors() -> None:
    # Ethereum keccak-256, which differs from NIST SHA3-256
    assert keccak256_hex("") == "0xc5d2460186f7233c927e7db2dcc703c0e500b653ca82273b7bfad8045d85a470"
    assert keccak256_hex("abc") == "0x4e03657aea45a94fc7d47ba826c8d667c0d1e6e33a64a036ec44f58fa12d6c45"


def test_normalize_trims_and_lowercases() -> None:
    assert normalize("  Jane Doe \n") == "jane doe"
    assert normalize("\tABC") == "abc"
    # inner whitespace is part of the value
    assert normalize("Jane  Doe") == "jane  doe"


@pytest.mark.parametrize("variant", ["Jane Doe", "jane doe", "  JANE DOE  ", "\nJane DOE\t"])
def test_value_hash_ignores_case_and_surrounding_whitespace(variant: str) -> None:
    assert compute_value_hash(variant) == keccak256_hex("jane doe")


def test_value_hash_is_prefixed_hex_of_fixed_width() -> None:
    value_hash = compute_value_hash("1990-01-01")
    assert value_hash.startswith("0x")
    assert len(value_hash) == 66
    int(value_hash, 16)


def test_field_hash_preimage_layout() -> None:
    value_hash = compute_value_hash("Jane Doe")
    expected = keccak256_hex("VerifyENS:full_name:" + value_hash)
    assert compute_field_hash(FieldType.FULL_NAME, value_hash) == expected


def test_field_hash_is_stable_across_calls() -> None:
    value_hash = compute_value_hash("P1234567")
    first = compute_field_hash(FieldType.PASSPORT_ID, value_hash)
    assert all(compute_field_hash(FieldType.PASSPORT_ID, value_hash) == first for _ in range(5))


def test_field_hash_differs_per_field_for_same_value() -> None:
    value_hash = compute_value_hash("same value")
    hashes = {compute_field_hash(field, value_hash) for field in FieldType}
    assert len(hashes) == len(FieldType)


def test_jane_doe_commitment_scenario() -> None:
    h1 = compute_value_hash("Jane Doe")
    h2 = compute_field_hash(FieldType.FULL_NAME, h1)
    assert compute_commitment(FieldType.FULL_NAME, "Jane Doe") == (h1, h2)
    assert hashes_equal(compute_value_hash("  jane doe  "), h1)


def test_commitment_is_content_addressed() -> None:
    # two holders with the same value and field produce the same commitment
    assert compute_commitment(FieldType.DOB, "1990-01-01") == compute_commitment(FieldType.DOB, " 1990-01-01 ")


def test_unencodable_value_raises_encoding_error() -> None:
    with pytest.raises(EncodingError):
        compute_value_hash("broken \ud800 surrogate")


def test_hashes_equal_is_case_insensitive_on_hex() -> None:
    value_hash = compute_value_hash("x")
    assert hashes_equal(value_hash, value_hash.upper().replace("0X", "0x"))
    assert not hashes_equal(value_hash, compute_value_hash("y"))
    assert not hashes_equal(value_hash, value_hash[:-1])


def test_field_catalogue_tags_and_display_names() -> None:
    assert [f.tag for f in FieldType] == ["full_name", "dob", "passport_id"]
    assert FieldType.DOB.display_name == "Date of Birth"
    assert FieldType("passport_id") is FieldType.PASSPORT_ID


def test_crypto_engine_round_trip() -> None:
    engine = CryptoEngine(Fernet.generate_key().decode())
    engine.initialize()
    token = engine.encrypt("Jane Doe")
    assert "Jane" not in token
    assert engine.decrypt(token) == "Jane Doe"
    assert engine.is_ready() == "ok"


def test_crypto_engine_requires_key_and_initialization() -> None:
    with pytest.raises(ValueError):
        CryptoEngine("").initialize()
    engine = CryptoEngine(Fernet.generate_key().decode())
    assert engine.is_ready() == "not initialized"
    with pytest.raises(RuntimeError):
        engine.encrypt("x")


def test_crypto_engine_rejects_foreign_ciphertext() -> None:
    writer = CryptoEngine(Fernet.generate_key().decode())
    reader = CryptoEngine(Fernet.generate_key().decode())
    writer.initialize()
    reader.initialize()
    with pytest.raises(ValueError):
        reader.decrypt(writer.encrypt("secret"))
