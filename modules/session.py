"""
modules/session.py — Holder Session
=====================================
Mutable state for one holder on one device:
    - the active (subject) ENS name
    - the names this device knows about
    - the ownership assertion for the active name, if any

All of it sits behind a single asyncio.Lock. Switching names clears the
assertion and the persisted verified-owner slot inside that lock, so no
read can ever pair a valid assertion with the wrong name. Only holder
actions write here; nothing runs in the background.
"""

import asyncio
import json
import logging
from typing import List, Optional

from core.errors import PreconditionError, WalletNotConnectedError
from core.fields import FieldType
from core.ownership import OwnershipAssertion, OwnershipOutcome, OwnershipVerifier
from core.wallet import Wallet, same_address
from db.store import KNOWN_NAMES_KEY, SUBJECT_NAME_KEY, VERIFIED_OWNER_KEY, SecureStore
from modules.fields import FieldVault

logger = logging.getLogger("verifyens.modules.session")


class HolderSession:

    def __init__(
        self,
        store: SecureStore,
        vault: FieldVault,
        wallet: Optional[Wallet] = None,
        verifier: Optional[OwnershipVerifier] = None,
    ):
        self._store = store
        self._vault = vault
        self._wallet = wallet
        self._verifier = verifier
        self._assertion: Optional[OwnershipAssertion] = None
        self._lock = asyncio.Lock()

    @property
    def wallet(self) -> Optional[Wallet]:
        return self._wallet

    @property
    def wallet_connected(self) -> bool:
        return self._wallet is not None and self._wallet.is_connected

    # ── Active name ────────────────────────────────────────────────────────
    async def current_name(self) -> Optional[str]:
        async with self._lock:
            return await self._current_name()

    async def _current_name(self) -> Optional[str]:
        return await self._store.get(SUBJECT_NAME_KEY) or None

    async def switch_name(self, name: str):
        async with self._lock:
            await self._switch_name(name)

    async def _switch_name(self, name: str):
        if await self._current_name() == name:
            return
        await self._invalidate_ownership()
        if name:
            await self._store.set(SUBJECT_NAME_KEY, name)
        else:
            await self._store.delete(SUBJECT_NAME_KEY)
        logger.info(f"Switched to ENS: {name or '<none>'}")

    async def known_names(self) -> List[str]:
        raw = await self._store.get(KNOWN_NAMES_KEY)
        return json.loads(raw) if raw else []

    async def remember_names(self, names: List[str]):
        """
        Replace the device's name list (as fetched for the wallet). If the
        active name is no longer in it, the first name becomes active.
        """
        async with self._lock:
            await self._store.set(KNOWN_NAMES_KEY, json.dumps(list(names)))
            if await self._current_name() not in names:
                await self._switch_name(names[0] if names else "")

    # ── Field reads scoped to the active name ──────────────────────────────
    async def read_field(self, field: FieldType) -> Optional[str]:
        async with self._lock:
            name = await self._current_name()
            if not name:
                return None
            return await self._vault.get_value(name, field)

    async def field_value_for(self, name: str, field: FieldType) -> Optional[str]:
        """Value for a request's subject; only readable while that name is active."""
        async with self._lock:
            current = await self._current_name()
            if current != name:
                raise PreconditionError(
                    f"Request is for {name}, but the active ENS name is {current or '<none>'}"
                )
            return await self._vault.get_value(name, field)

    # ── Ownership ──────────────────────────────────────────────────────────
    async def assertion(self) -> Optional[OwnershipAssertion]:
        async with self._lock:
            if self._assertion is not None and not await self._assertion_holds():
                await self._invalidate_ownership()
            return self._assertion

    async def verified_owner(self) -> Optional[str]:
        """Address proven for the active name, provided the same wallet is still connected."""
        async with self._lock:
            owner = await self._store.get(VERIFIED_OWNER_KEY)
            if owner and self.wallet_connected and same_address(owner, self._wallet.address):
                return owner
            return None

    async def verify_ownership(self) -> OwnershipOutcome:
        if self._verifier is None or not self.wallet_connected:
            raise WalletNotConnectedError()
        name = await self.current_name()
        if not name:
            raise PreconditionError("Select an ENS name before verifying ownership")

        outcome = await self._verifier.verify(name)

        async with self._lock:
            if await self._current_name() != name:
                logger.warning(f"Active name changed while verifying {name}; result discarded")
                return outcome
            if outcome.verified and same_address(outcome.assertion.claimed_owner_address, self._wallet.address):
                self._assertion = outcome.assertion
                await self._store.set(VERIFIED_OWNER_KEY, outcome.assertion.claimed_owner_address)
        return outcome

    async def disconnect_wallet(self):
        async with self._lock:
            if self._wallet is not None:
                await self._wallet.disconnect()
            await self._invalidate_ownership()

    async def _assertion_holds(self) -> bool:
        assertion = self._assertion
        if assertion is None:
            return False
        if assertion.name != await self._current_name():
            return False
        if not self.wallet_connected:
            return False
        return same_address(assertion.claimed_owner_address, self._wallet.address)

    async def _invalidate_ownership(self):
        if self._assertion is not None:
            logger.info(f"Ownership assertion for {self._assertion.name} invalidated")
        self._assertion = None
        await self._store.delete(VERIFIED_OWNER_KEY)
        if self._verifier is not None:
            self._verifier.forget()
