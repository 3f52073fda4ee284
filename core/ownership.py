"""
core/ownership.py — Name Ownership Verification
=================================================
Binds a wallet-controlled address to an ENS name.

    Unverified → Resolving → Verified
                          └→ Failed (NameUnresolved | OwnerMismatch | SignatureRejected)

Flow:
    resolve owner → build challenge → (fast-fail on address mismatch)
    → wallet signs → backend checks signature → assertion

The local address comparison only saves a pointless signature prompt.
The backend's signature check is the only thing that grants Verified.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from api.client import WorkflowClient
from core.errors import VerificationFailed, WalletNotConnectedError
from core.wallet import Wallet, same_address

logger = logging.getLogger("verifyens.ownership")

CHALLENGE_TEMPLATE = "Verify ENS ownership: {name}\n\nThis signature proves you own the ENS name."


class OwnershipState(str, Enum):
    UNVERIFIED = "unverified"
    RESOLVING = "resolving"
    VERIFIED = "verified"
    FAILED = "failed"


class FailureReason(str, Enum):
    NAME_UNRESOLVED = "NameUnresolved"
    OWNER_MISMATCH = "OwnerMismatch"
    SIGNATURE_REJECTED = "SignatureRejected"


@dataclass(frozen=True)
class OwnershipAssertion:
    name: str
    claimed_owner_address: str
    signature: str
    message: str
    verified: bool


@dataclass(frozen=True)
class OwnershipOutcome:
    name: str
    state: OwnershipState
    assertion: Optional[OwnershipAssertion] = None
    reason: Optional[FailureReason] = None
    detail: Optional[str] = None            # backend text, shown to the holder verbatim

    @property
    def verified(self) -> bool:
        return self.state == OwnershipState.VERIFIED


def build_challenge(name: str) -> str:
    """Exact text the backend re-derives before checking the signature."""
    return CHALLENGE_TEMPLATE.format(name=name)


class OwnershipVerifier:

    def __init__(self, client: WorkflowClient, wallet: Wallet):
        self._client = client
        self._wallet = wallet
        self._states = {}

    def state_of(self, name: str) -> OwnershipState:
        return self._states.get(name, OwnershipState.UNVERIFIED)

    def _fail(self, name: str, reason: FailureReason, detail: str) -> OwnershipOutcome:
        self._states[name] = OwnershipState.FAILED
        logger.warning(f"Ownership of {name} not verified: {reason.value}: {detail}")
        return OwnershipOutcome(name, OwnershipState.FAILED, reason=reason, detail=detail)

    async def verify(self, name: str) -> OwnershipOutcome:
        """
        Runs the whole protocol for one name. Semantic failures come back
        as a Failed outcome; NetworkError / HttpError / DecodingError raise.
        """
        if not self._wallet.is_connected:
            raise WalletNotConnectedError()
        address = self._wallet.address

        self._states[name] = OwnershipState.RESOLVING
        try:
            info = await self._client.resolve_owner(name)
        except BaseException:
            self._states[name] = OwnershipState.UNVERIFIED
            raise

        if not info.is_valid or not info.owner:
            return self._fail(name, FailureReason.NAME_UNRESOLVED, "ENS name not found or expired")

        if not same_address(info.owner, address):
            return self._fail(
                name,
                FailureReason.OWNER_MISMATCH,
                f"{name} resolves to {info.owner}, but the connected wallet is {address}",
            )

        message = build_challenge(name)
        try:
            signature = await self._wallet.sign_message(message)
            result = await self._client.verify_ownership(name, address, signature, message)
        except VerificationFailed as exc:
            return self._fail(name, FailureReason.SIGNATURE_REJECTED, exc.reason)
        except BaseException:
            self._states[name] = OwnershipState.UNVERIFIED
            raise

        name_matches = result.ens_name.lower() == name.lower()
        if not result.verified or not name_matches or not same_address(result.address, address):
            return self._fail(
                name,
                FailureReason.SIGNATURE_REJECTED,
                "Ownership verification failed. Please ensure you're signing with the correct wallet.",
            )

        self._states[name] = OwnershipState.VERIFIED
        logger.info(f"Ownership of {name} verified for {address}")
        return OwnershipOutcome(
            name,
            OwnershipState.VERIFIED,
            assertion=OwnershipAssertion(
                name=name,
                claimed_owner_address=address,
                signature=signature,
                message=message,
                verified=True,
            ),
        )

    def forget(self, name: Optional[str] = None):
        """Drop cached state for one name, or for all names."""
        if name is None:
            self._states.clear()
        else:
            self._states.pop(name, None)
