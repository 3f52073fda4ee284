"""
core/disclosure.py — Disclosure Policy
========================================
Decides what a verifier gets once the holder approves.

    reveal     → plaintext for a bounded window: expiresAt = approvedAt + 1h
    no-reveal  → never plaintext; the verifier submits a guess and learns
                 only whether keccak(normalize(guess)) equals the stored hash

Each actual disclosure produces exactly one FieldRevealLog for the
append-only ledger (db/store.py).
"""

import logging
import uuid
from datetime import datetime, timedelta
from typing import Optional

from api.schemas import FieldRevealLog, RequestStatus, RevealMode, VerificationRequest
from core.crypto import compute_value_hash, hashes_equal
from core.errors import PreconditionError
from core.lifecycle import transition

logger = logging.getLogger("verifyens.disclosure")

REVEAL_WINDOW = timedelta(hours=1)


def stamp_approval(
    request: VerificationRequest,
    mode: RevealMode,
    now: datetime,
    window: timedelta = REVEAL_WINDOW,
) -> VerificationRequest:
    """Move a pending request to approved, stamping the reveal window when plaintext is shared."""
    expires_at = now + window if mode == RevealMode.REVEAL else None
    return transition(
        request,
        RequestStatus.APPROVED,
        approved_at=now,
        expires_at=expires_at,
        reveal_mode=mode,
    )


def is_disclosure_open(request: VerificationRequest, now: datetime) -> bool:
    if request.status != RequestStatus.APPROVED:
        return False
    return request.expires_at is None or now < request.expires_at


def verify_guess(guess: str, stored_value_hash: str) -> bool:
    """
    Open a no-reveal commitment. The guess is hashed in full before any
    comparison and the digests are compared in constant time.
    """
    return hashes_equal(compute_value_hash(guess), stored_value_hash)


def answer_guess(
    request: VerificationRequest,
    guess: str,
    stored_value_hash: str,
    now: datetime,
) -> bool:
    if request.reveal_mode != RevealMode.NO_REVEAL:
        raise PreconditionError(f"Request {request.id} was not approved in no-reveal mode")
    if not is_disclosure_open(request, now):
        raise PreconditionError(f"Request {request.id} is {request.status.value}; no guesses accepted")
    matched = verify_guess(guess, stored_value_hash)
    logger.info(f"No-reveal guess for request {request.id}: {'match' if matched else 'no match'}")
    return matched


def build_reveal_log(
    request: VerificationRequest,
    now: datetime,
    value_hash: Optional[str] = None,
) -> FieldRevealLog:
    return FieldRevealLog(
        id=str(uuid.uuid4()),
        request_id=request.id,
        subject_name=request.subject_name,
        field=request.field,
        verifier_address=request.verifier_address,
        verifier_name=request.verifier_name,
        revealed_at=now,
        value_hash=value_hash,
    )
