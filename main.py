"""
main.py — VerifyENS Holder Entry Point
========================================
Wires the holder core together. It does 4 things in order:
    1. Opens the local database and the encrypted secure store
    2. Builds the workflow backend client
    3. Connects the wallet (when WALLET_PRIVATE_KEY is configured)
    4. Builds the holder services (fields, session, inbox, verifications)

Library use:
    async with lifespan(get_settings()) as app:
        await app.vault.set_field("alice.eth", FieldType.FULL_NAME, "Jane Doe")

Command line:
    python main.py hash full_name "Jane Doe"
    python main.py requests alice.eth
    python main.py health
"""

import argparse
import asyncio
import logging
import sys
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import timedelta
from typing import AsyncIterator, Optional

from config import Settings, get_settings

from api.client import WorkflowClient
from core.crypto import CryptoEngine, compute_commitment
from core.fields import FieldType
from core.ownership import OwnershipVerifier
from core.wallet import LocalKeyWallet, Wallet
from db.session import create_engine, create_session_factory, init_db
from db.store import SqlRevealLedger, SqlSecureStore
from modules.fields import FieldVault
from modules.inbox import RequestInbox
from modules.session import HolderSession
from modules.verifications import VerificationBook

logger = logging.getLogger("verifyens.main")


# ── Logging setup ─────────────────────────────────────────────────────────────
def configure_logging(settings: Settings):
    logging.basicConfig(
        level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
        format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        handlers=[
            logging.StreamHandler(),                          # print to terminal
            logging.FileHandler(settings.LOG_FILE),           # also save to file
        ],
    )


@dataclass
class HolderApp:
    settings: Settings
    client: WorkflowClient
    crypto: CryptoEngine
    wallet: Optional[Wallet]
    vault: FieldVault
    session: HolderSession
    inbox: RequestInbox
    verifications: VerificationBook


# ── Lifespan: startup and shutdown ────────────────────────────────────────────
@asynccontextmanager
async def lifespan(settings: Settings) -> AsyncIterator[HolderApp]:
    """
    Everything BEFORE yield → runs on startup.
    Everything AFTER yield  → runs on shutdown.
    """
    logger.info(f"Starting {settings.APP_NAME} v{settings.APP_VERSION}")
    logger.info(f"Environment: {settings.ENVIRONMENT}")

    # 1. Local database + encrypted store
    logger.info("Opening local store...")
    engine = create_engine(settings.DATABASE_URL, echo=settings.DEBUG)
    await init_db(engine)
    sessions = create_session_factory(engine)
    crypto = CryptoEngine(settings.ENCRYPTION_KEY)
    crypto.initialize()
    store = SqlSecureStore(sessions, crypto)
    ledger = SqlRevealLedger(sessions)
    logger.info("✓ Local store ready")

    # 2. Backend client
    client = WorkflowClient(settings.API_BASE_URL, timeout=settings.HTTP_TIMEOUT_SECONDS)
    logger.info(f"✓ Workflow backend: {settings.API_BASE_URL}")

    # 3. Wallet
    wallet: Optional[Wallet] = None
    verifier: Optional[OwnershipVerifier] = None
    if settings.WALLET_PRIVATE_KEY:
        wallet = LocalKeyWallet(settings.WALLET_PRIVATE_KEY)
        await wallet.connect()
        verifier = OwnershipVerifier(client, wallet)
    else:
        logger.info("No wallet configured; ownership checks and approvals need one")

    # 4. Holder services
    pending_ttl = None
    if settings.PENDING_REQUEST_TTL_HOURS is not None:
        pending_ttl = timedelta(hours=settings.PENDING_REQUEST_TTL_HOURS)
    vault = FieldVault(store)
    session = HolderSession(store, vault, wallet, verifier)
    inbox = RequestInbox(
        client,
        session,
        ledger,
        store=store,
        reveal_window=timedelta(seconds=settings.REVEAL_WINDOW_SECONDS),
        pending_ttl=pending_ttl,
        require_wallet=settings.REQUIRE_WALLET_FOR_APPROVAL,
    )
    app = HolderApp(
        settings=settings,
        client=client,
        crypto=crypto,
        wallet=wallet,
        vault=vault,
        session=session,
        inbox=inbox,
        verifications=VerificationBook(client, vault),
    )

    try:
        yield app
    finally:
        logger.info("Shutting down, closing connections...")
        await client.aclose()
        await engine.dispose()
        logger.info("✓ Shutdown complete")


# ── Command line ──────────────────────────────────────────────────────────────
def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="verifyens", description="VerifyENS holder tools")
    sub = parser.add_subparsers(dest="command", required=True)

    hash_cmd = sub.add_parser("hash", help="Print valueHash and fieldHash for a field value")
    hash_cmd.add_argument("field", choices=[f.tag for f in FieldType])
    hash_cmd.add_argument("value")

    requests_cmd = sub.add_parser("requests", help="List verification requests for a name")
    requests_cmd.add_argument("name")

    sub.add_parser("health", help="Check local store and wallet wiring")
    return parser


def cmd_hash(args) -> int:
    value_hash, field_hash = compute_commitment(FieldType(args.field), args.value)
    print(f"valueHash: {value_hash}")
    print(f"fieldHash: {field_hash}")
    return 0


async def cmd_requests(args, settings: Settings) -> int:
    async with lifespan(settings) as app:
        await app.inbox.refresh(args.name)
        for request in app.inbox.pending + app.inbox.others:
            verifier = request.verifier_name or request.verifier_address
            print(f"{request.id}  {request.status.value:<9}  {request.field.tag:<11}  {verifier}")
    return 0


async def cmd_health(args, settings: Settings) -> int:
    async with lifespan(settings) as app:
        print(f"crypto:  {app.crypto.is_ready()}")
        print(f"wallet:  {app.wallet.address if app.wallet else 'not configured'}")
        print(f"subject: {await app.session.current_name() or '<none>'}")
    return 0


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    if args.command == "hash":
        return cmd_hash(args)

    settings = get_settings()
    configure_logging(settings)
    if args.command == "requests":
        return asyncio.run(cmd_requests(args, settings))
    return asyncio.run(cmd_health(args, settings))


# ── Run directly ──────────────────────────────────────────────────────────────
if __name__ == "__main__":
    sys.exit(main())
