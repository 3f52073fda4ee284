"""
core/wallet.py — Wallet Capability
====================================
The core only ever talks to a wallet through three calls:

    connect()             → establish the session, learn the address
    disconnect()          → drop it
    sign_message(text)    → EIP-191 personal_sign over the text

Concrete transports (WalletConnect, hardware, browser bridge) plug in by
subclassing Wallet. LocalKeyWallet signs with a configured private key.

Signing is single-outstanding: a second sign request while one is still
pending fails fast with WalletBusyError instead of queueing.
"""

import logging
from abc import ABC, abstractmethod
from typing import Optional

from eth_account import Account
from eth_account.messages import encode_defunct
from eth_utils import to_checksum_address, to_hex

from core.errors import WalletBusyError, WalletNotConnectedError

logger = logging.getLogger("verifyens.wallet")


class Wallet(ABC):

    def __init__(self):
        self._address: Optional[str] = None
        self._signing = False

    @property
    def address(self) -> Optional[str]:
        return self._address

    @property
    def is_connected(self) -> bool:
        return self._address is not None

    async def connect(self) -> str:
        self._address = to_checksum_address(await self._open_session())
        logger.info(f"Wallet connected: {self._address}")
        return self._address

    async def disconnect(self):
        if self._address is None:
            return
        await self._close_session()
        logger.info(f"Wallet disconnected: {self._address}")
        self._address = None

    async def sign_message(self, message: str) -> str:
        if not self.is_connected:
            raise WalletNotConnectedError()
        if self._signing:
            raise WalletBusyError("A signature request is already pending in the wallet.")
        self._signing = True
        try:
            return await self._sign(message)
        finally:
            self._signing = False

    # ── Transport hooks ────────────────────────────────────────────────────
    @abstractmethod
    async def _open_session(self) -> str:
        """Returns the connected account address."""

    async def _close_session(self):
        return None

    @abstractmethod
    async def _sign(self, message: str) -> str:
        """Returns the 0x-prefixed 65-byte signature."""


class LocalKeyWallet(Wallet):
    """Signs with a private key held in process (WALLET_PRIVATE_KEY)."""

    def __init__(self, private_key: str):
        super().__init__()
        if not private_key:
            raise ValueError("LocalKeyWallet needs a private key (set WALLET_PRIVATE_KEY in .env)")
        self._account = Account.from_key(private_key)

    async def _open_session(self) -> str:
        return self._account.address

    async def _sign(self, message: str) -> str:
        signed = self._account.sign_message(encode_defunct(text=message))
        return to_hex(signed.signature)


def recover_signer(message: str, signature: str) -> str:
    """Checksum address that produced an EIP-191 signature over message."""
    return Account.recover_message(encode_defunct(text=message), signature=signature)


def same_address(a: Optional[str], b: Optional[str]) -> bool:
    if not a or not b:
        return False
    return a.lower() == b.lower()
