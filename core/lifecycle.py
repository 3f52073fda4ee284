"""
core/lifecycle.py — Verification Request State Machine
========================================================
The security gate for every request a verifier submits.
Only two things ever move a request:
    - the holder          (approve / reject / complete)
    - the wall clock      (check_expiry sweep)
The verifier never mutates a request after creating it.

    pending  ──approve──▶ approved ──consume──▶ completed
       │                     │
       ├──reject──▶ rejected └──window lapses──▶ expired
       └──ttl lapses──▶ expired

rejected, expired and completed are terminal.
"""

import logging
from datetime import datetime, timedelta
from typing import Iterable, List, Optional, Tuple

from api.schemas import RequestStatus, VerificationRequest
from core.errors import PreconditionError

logger = logging.getLogger("verifyens.lifecycle")

TRANSITIONS = {
    RequestStatus.PENDING: {RequestStatus.APPROVED, RequestStatus.REJECTED, RequestStatus.EXPIRED},
    RequestStatus.APPROVED: {RequestStatus.COMPLETED, RequestStatus.EXPIRED},
    RequestStatus.REJECTED: set(),
    RequestStatus.EXPIRED: set(),
    RequestStatus.COMPLETED: set(),
}


def is_terminal(status: RequestStatus) -> bool:
    return not TRANSITIONS[status]


def can_transition(current: RequestStatus, target: RequestStatus) -> bool:
    return target in TRANSITIONS[current]


def transition(request: VerificationRequest, target: RequestStatus, **stamps) -> VerificationRequest:
    """
    Returns a new request in the target state. Raises PreconditionError
    for a move the table does not allow, e.g. approving a rejected request.
    """
    if not can_transition(request.status, target):
        raise PreconditionError(
            f"Request {request.id} is {request.status.value}; cannot move to {target.value}"
        )
    logger.info(f"Request {request.id}: {request.status.value} → {target.value}")
    return request.model_copy(update={"status": target, **stamps})


def reject(request: VerificationRequest) -> VerificationRequest:
    return transition(request, RequestStatus.REJECTED)


def complete(request: VerificationRequest, now: datetime) -> VerificationRequest:
    """The verifier consumed the disclosure."""
    return transition(request, RequestStatus.COMPLETED, completed_at=now)


def check_expiry(
    request: VerificationRequest,
    now: datetime,
    pending_ttl: Optional[timedelta] = None,
) -> VerificationRequest:
    """
    Sweep one request. Returns the same object when nothing changes, so
    running it again on an expired request is a no-op.
    """
    if request.status == RequestStatus.APPROVED:
        if request.expires_at is not None and request.expires_at <= now:
            return transition(request, RequestStatus.EXPIRED)
        return request

    if request.status == RequestStatus.PENDING:
        if request.expires_at is not None and request.expires_at <= now:
            return transition(request, RequestStatus.EXPIRED)
        if pending_ttl is not None and request.requested_at + pending_ttl <= now:
            return transition(request, RequestStatus.EXPIRED)

    return request


def sweep(
    requests: Iterable[VerificationRequest],
    now: datetime,
    pending_ttl: Optional[timedelta] = None,
) -> List[VerificationRequest]:
    return [check_expiry(r, now, pending_ttl) for r in requests]


def partition(requests: Iterable[VerificationRequest]) -> Tuple[List[VerificationRequest], List[VerificationRequest]]:
    """(pending, other) in arrival order; never re-sorted."""
    pending, other = [], []
    for request in requests:
        (pending if request.is_pending else other).append(request)
    return pending, other
