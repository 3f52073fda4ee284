import json
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Tuple

import httpx
import pytest

from api.client import WorkflowClient
from api.schemas import VerificationRequest
from core.ownership import OwnershipVerifier, build_challenge
from core.wallet import LocalKeyWallet, recover_signer, same_address
from db.store import MemoryRevealLedger, MemorySecureStore
from modules.fields import FieldVault
from modules.inbox import RequestInbox
from modules.session import HolderSession

# Well-known development key (hardhat / anvil account #0)
TEST_KEY = "0xac0974bec39a17e36ba4a6b4d238ff944bacb478cbed5efcae784d7bf4f2ff80"
TEST_ADDRESS = "0xf39Fd6e51aad88F6F4ce6aB8827279cffFb92266"
OTHER_ADDRESS = "0x70997970C51812dc3A010C7d01b50e0d17dc79C8"
VERIFIER_ADDRESS = "0x1111111111111111111111111111111111111111"

T0 = datetime(2025, 11, 22, 10, 0, 0, tzinfo=timezone.utc)


def request_json(**overrides) -> Dict[str, Any]:
    body = {
        "id": "req-1",
        "verifierAddress": VERIFIER_ADDRESS,
        "verifierEns": "bank.eth",
        "verifiedEns": "alice.eth",
        "field": "full_name",
        "status": "pending",
        "requestedAt": "2025-11-22T10:00:00.000Z",
        "approvedAt": None,
        "expiresAt": None,
        "completedAt": None,
    }
    body.update(overrides)
    return body


def make_request(**overrides) -> VerificationRequest:
    return VerificationRequest.model_validate_json(json.dumps(request_json(**overrides)))


def verification_json(**overrides) -> Dict[str, Any]:
    body = {
        "id": "ver-1",
        "verifiedEns": "alice.eth",
        "field": "full_name",
        "fieldHash": "0x00",
        "verifierType": "address",
        "verifierId": VERIFIER_ADDRESS,
        "ensName": "bank.eth",
        "status": "active",
        "createdAt": "2025-11-22T10:00:00.000Z",
        "revokedAt": None,
        "isActive": True,
    }
    body.update(overrides)
    return body


class FakeBackend:
    """In-process stand-in for the workflow backend, served through httpx.MockTransport."""

    def __init__(self):
        self.calls: List[Tuple[str, str, Optional[dict]]] = []
        self.requests: Dict[str, List[dict]] = {}
        self.verifications: Dict[str, List[dict]] = {}
        self.owners: Dict[str, dict] = {}
        self.approve_status = 200
        self.reject_status = 200
        self.verify_handler: Optional[Callable[[dict], Tuple[int, Any]]] = None

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle)

    def count(self, method: str, suffix: str) -> int:
        return sum(1 for m, path, _ in self.calls if m == method and path.endswith(suffix))

    def bodies(self, method: str, suffix: str) -> List[Optional[dict]]:
        return [body for m, path, body in self.calls if m == method and path.endswith(suffix)]

    def handle(self, request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content) if request.content else None
        path = request.url.path
        self.calls.append((request.method, path, body))
        parts = path.strip("/").split("/")

        if request.method == "GET" and parts[:2] == ["api", "requests"]:
            return httpx.Response(200, json=self.requests.get(parts[2], []))
        if request.method == "GET" and parts[:2] == ["api", "verifications"]:
            return httpx.Response(200, json=self.verifications.get(parts[2], []))
        if request.method == "POST" and parts[:2] == ["api", "requests"] and parts[3] == "approve":
            return httpx.Response(self.approve_status)
        if request.method == "POST" and parts[:2] == ["api", "requests"] and parts[3] == "reject":
            return httpx.Response(self.reject_status)
        if request.method == "GET" and parts[:2] == ["api", "resolveOwner"]:
            info = self.owners.get(parts[2], {"name": parts[2], "owner": None, "isValid": False})
            return httpx.Response(200, json=info)
        if request.method == "POST" and path == "/api/verifyOwnership":
            status, payload = (self.verify_handler or self.check_signature)(body)
            return httpx.Response(status, json=payload)
        return httpx.Response(404, json={"error": "not found"})

    @staticmethod
    def check_signature(body: dict) -> Tuple[int, Any]:
        name = body["ensName"]
        if body.get("message") != build_challenge(name):
            return 400, {"error": "Message does not match challenge"}
        if not same_address(recover_signer(body["message"], body["signature"]), body["address"]):
            return 400, {"error": "Signature does not match address"}
        return 200, {"verified": True, "ensName": name, "address": body["address"], "message": body["message"]}


@pytest.fixture
def backend() -> FakeBackend:
    return FakeBackend()


@dataclass
class Holder:
    client: WorkflowClient
    store: MemorySecureStore
    ledger: MemoryRevealLedger
    wallet: Optional[LocalKeyWallet]
    vault: FieldVault
    session: HolderSession
    inbox: RequestInbox


class Clock:
    def __init__(self, now: datetime = T0):
        self.now = now

    def __call__(self) -> datetime:
        return self.now


async def build_holder(
    backend: FakeBackend,
    *,
    name: Optional[str] = "alice.eth",
    with_wallet: bool = True,
    clock: Optional[Clock] = None,
    **inbox_options,
) -> Holder:
    client = WorkflowClient("http://backend.test", transport=backend.transport())
    store = MemorySecureStore()
    ledger = MemoryRevealLedger()
    wallet = None
    verifier = None
    if with_wallet:
        wallet = LocalKeyWallet(TEST_KEY)
        await wallet.connect()
        verifier = OwnershipVerifier(client, wallet)
    vault = FieldVault(store)
    session = HolderSession(store, vault, wallet, verifier)
    if name:
        await session.switch_name(name)
    inbox = RequestInbox(client, session, ledger, store=store, clock=clock or Clock(), **inbox_options)
    return Holder(client, store, ledger, wallet, vault, session, inbox)
