"""
Tests for startup wiring and the command line.
"""

import asyncio
from datetime import timedelta

import pytest
from cryptography.fernet import Fernet

from config import Settings
from core.crypto import compute_commitment
from core.fields import FieldType
from main import build_parser, lifespan, main

from conftest import TEST_ADDRESS, TEST_KEY


def make_settings(tmp_path, **overrides) -> Settings:
    values = dict(
        DATABASE_URL=f"sqlite+aiosqlite:///{tmp_path / 'holder.db'}",
        ENCRYPTION_KEY=Fernet.generate_key().decode(),
        WALLET_PRIVATE_KEY=TEST_KEY,
        LOG_FILE=str(tmp_path / "holder.log"),
        API_BASE_URL="http://backend.invalid",
    )
    values.update(overrides)
    return Settings(**values)


def test_hash_command_prints_commitment(capsys) -> None:
    assert main(["hash", "full_name", "  Jane Doe "]) == 0
    value_hash, field_hash = compute_commitment(FieldType.FULL_NAME, "Jane Doe")
    assert capsys.readouterr().out.splitlines() == [
        f"valueHash: {value_hash}",
        f"fieldHash: {field_hash}",
    ]


def test_parser_rejects_unknown_field() -> None:
    parser = build_parser()
    args = parser.parse_args(["hash", "dob", "1990-01-01"])
    assert (args.field, args.value) == ("dob", "1990-01-01")
    with pytest.raises(SystemExit):
        parser.parse_args(["hash", "favourite_colour", "blue"])


def test_lifespan_wires_persistent_holder(tmp_path) -> None:
    settings = make_settings(tmp_path)

    async def first_run():
        async with lifespan(settings) as app:
            assert app.wallet.address == TEST_ADDRESS
            assert app.crypto.is_ready() == "ok"
            await app.session.switch_name("alice.eth")
            await app.vault.set_field("alice.eth", FieldType.DOB, "1990-01-01")

    async def second_run():
        async with lifespan(settings) as app:
            return await app.session.current_name(), await app.session.read_field(FieldType.DOB)

    asyncio.run(first_run())
    assert asyncio.run(second_run()) == ("alice.eth", "1990-01-01")


def test_lifespan_without_wallet(tmp_path) -> None:
    settings = make_settings(tmp_path, WALLET_PRIVATE_KEY="")

    async def scenario():
        async with lifespan(settings) as app:
            return app.wallet, app.session.wallet_connected

    assert asyncio.run(scenario()) == (None, False)


def test_pending_requests_have_no_local_ttl_by_default(tmp_path) -> None:
    async def scenario(settings):
        async with lifespan(settings) as app:
            return app.inbox.pending_ttl

    assert make_settings(tmp_path).PENDING_REQUEST_TTL_HOURS is None
    assert asyncio.run(scenario(make_settings(tmp_path))) is None
    configured = make_settings(tmp_path, PENDING_REQUEST_TTL_HOURS=24)
    assert asyncio.run(scenario(configured)) == timedelta(hours=24)
