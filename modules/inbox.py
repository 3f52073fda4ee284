"""
modules/inbox.py — Verification Request Inbox
===============================================
Business logic behind the holder's approve / reject buttons.

Flow (approve):
    single-flight guard → local preconditions → optimistic approve (stamped
    by the disclosure policy) → POST approve → remember reveal mode → reveal log
    a failure up to and including the POST → revert local record, re-raise
    a failure after the POST → logged; the approval stands on the server

Every precondition is checked before the network is touched, and nothing
is retried: a second submission only ever comes from the holder.
"""

import logging
from datetime import datetime, timedelta
from typing import Callable, List, Optional, Set

from api.client import WorkflowClient
from api.schemas import RevealMode, VerificationRequest
from core import lifecycle
from core.clock import utcnow
from core.crypto import compute_value_hash
from core.disclosure import REVEAL_WINDOW, answer_guess, build_reveal_log, stamp_approval
from core.errors import PreconditionError, WalletNotConnectedError
from db.store import MemorySecureStore, RevealLedger, SecureStore, reveal_mode_key
from modules.session import HolderSession

logger = logging.getLogger("verifyens.modules.inbox")


class RequestInbox:

    def __init__(
        self,
        client: WorkflowClient,
        session: HolderSession,
        ledger: RevealLedger,
        *,
        store: Optional[SecureStore] = None,
        reveal_window: timedelta = REVEAL_WINDOW,
        pending_ttl: Optional[timedelta] = None,
        require_wallet: bool = True,
        clock: Callable[[], datetime] = utcnow,
    ):
        self._client = client
        self._session = session
        self._ledger = ledger
        self._store = store if store is not None else MemorySecureStore()
        self._reveal_window = reveal_window
        self._pending_ttl = pending_ttl
        self._require_wallet = require_wallet
        self._clock = clock
        self._requests: List[VerificationRequest] = []
        self._in_flight: Set[str] = set()

    # ── Listing ────────────────────────────────────────────────────────────
    @property
    def pending_ttl(self) -> Optional[timedelta]:
        return self._pending_ttl

    @property
    def requests(self) -> List[VerificationRequest]:
        return list(self._requests)

    @property
    def pending(self) -> List[VerificationRequest]:
        return lifecycle.partition(self._requests)[0]

    @property
    def others(self) -> List[VerificationRequest]:
        return lifecycle.partition(self._requests)[1]

    async def refresh(self, name: Optional[str] = None) -> List[VerificationRequest]:
        name = name or await self._session.current_name()
        if not name:
            return []
        fetched = await self._client.fetch_requests(name)
        self._requests = [await self._restore_reveal_mode(r) for r in fetched]
        logger.info(f"Fetched {len(self._requests)} requests for {name}")
        return self.requests

    def get(self, request_id: str) -> VerificationRequest:
        for request in self._requests:
            if request.id == request_id:
                return request
        raise PreconditionError(f"Unknown request {request_id}")

    # ── Holder actions ─────────────────────────────────────────────────────
    async def approve(self, request_id: str, reveal_mode: RevealMode) -> VerificationRequest:
        self._claim(request_id)
        try:
            request = self.get(request_id)
            if not request.is_pending:
                raise PreconditionError(f"Request {request_id} is {request.status.value}, not pending")
            if self._require_wallet and not self._session.wallet_connected:
                raise WalletNotConnectedError()
            value = await self._session.field_value_for(request.subject_name, request.field)
            if not value or not value.strip():
                raise PreconditionError(
                    f"No {request.field.display_name} stored for {request.subject_name}; add it before approving"
                )
            verified_owner = await self._session.verified_owner()

            now = self._clock()
            approved = stamp_approval(request, reveal_mode, now, self._reveal_window)
            self._replace(approved)
            try:
                await self._client.approve_request(request_id, value, reveal_mode, verified_owner)
            except BaseException:
                self._replace(request)
                logger.warning(f"Approval of {request_id} failed; reverted to pending")
                raise

            await self._remember_reveal_mode(approved)
            if reveal_mode == RevealMode.REVEAL:
                await self._log_reveal(approved, now, compute_value_hash(value))
            return approved
        finally:
            self._release(request_id)

    async def reject(self, request_id: str) -> VerificationRequest:
        self._claim(request_id)
        try:
            request = self.get(request_id)
            rejected = lifecycle.reject(request)
            self._replace(rejected)
            try:
                await self._client.reject_request(request_id)
            except BaseException:
                self._replace(request)
                logger.warning(f"Rejection of {request_id} failed; reverted to {request.status.value}")
                raise
            return rejected
        finally:
            self._release(request_id)

    async def answer_guess(self, request_id: str, guess: str) -> bool:
        """Answer a verifier's no-reveal guess; a match is a disclosure and gets logged."""
        request = self.get(request_id)
        value = await self._session.field_value_for(request.subject_name, request.field)
        if not value:
            raise PreconditionError(f"No {request.field.display_name} stored for {request.subject_name}")
        stored_hash = compute_value_hash(value)
        now = self._clock()
        matched = answer_guess(request, guess, stored_hash, now)
        if matched:
            await self._log_reveal(request, now, stored_hash)
        return matched

    def mark_completed(self, request_id: str) -> VerificationRequest:
        completed = lifecycle.complete(self.get(request_id), self._clock())
        self._replace(completed)
        return completed

    def sweep_expired(self, now: Optional[datetime] = None) -> List[VerificationRequest]:
        """Expire lapsed requests; returns the ones that changed. Safe to call repeatedly."""
        now = now or self._clock()
        changed = []
        swept = []
        for request in self._requests:
            updated = lifecycle.check_expiry(request, now, self._pending_ttl)
            if updated is not request:
                changed.append(updated)
            swept.append(updated)
        self._requests = swept
        return changed

    # ── Internals ──────────────────────────────────────────────────────────
    def _claim(self, request_id: str):
        if request_id in self._in_flight:
            raise PreconditionError(f"Request {request_id} is already being processed")
        self._in_flight.add(request_id)

    def _release(self, request_id: str):
        self._in_flight.discard(request_id)

    def _replace(self, updated: VerificationRequest):
        self._requests = [updated if r.id == updated.id else r for r in self._requests]

    # ── Local records of an approval that already stands on the server ────
    async def _remember_reveal_mode(self, approved: VerificationRequest):
        try:
            await self._store.set(reveal_mode_key(approved.id), approved.reveal_mode.value)
        except Exception as exc:
            logger.error(f"Could not store reveal mode for {approved.id}: {exc}")

    async def _restore_reveal_mode(self, request: VerificationRequest) -> VerificationRequest:
        # the backend does not echo revealMode back
        if request.reveal_mode is not None or request.is_pending:
            return request
        stored = await self._store.get(reveal_mode_key(request.id))
        if stored is None:
            return request
        return request.model_copy(update={"reveal_mode": RevealMode(stored)})

    async def _log_reveal(self, request: VerificationRequest, now: datetime, value_hash: str):
        try:
            await self._ledger.append(build_reveal_log(request, now, value_hash))
        except Exception as exc:
            logger.error(f"Disclosure for request {request.id} happened but was not logged: {exc}")
