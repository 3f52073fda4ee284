"""
Tests for the reveal window and no-reveal guess matching.
"""

from datetime import timedelta

import pytest

from api.schemas import RequestStatus, RevealMode
from core.crypto import compute_value_hash
from core.disclosure import (
    REVEAL_WINDOW,
    answer_guess,
    build_reveal_log,
    is_disclosure_open,
    stamp_approval,
    verify_guess,
)
from core.errors import PreconditionError
from core.fields import FieldType

from conftest import T0, VERIFIER_ADDRESS, make_request


def test_reveal_approval_opens_one_hour_window() -> None:
    approved = stamp_approval(make_request(), RevealMode.REVEAL, T0)
    assert approved.status == RequestStatus.APPROVED
    assert approved.approved_at == T0
    assert approved.expires_at - approved.approved_at == timedelta(seconds=3600)
    assert approved.reveal_mode == RevealMode.REVEAL
    assert REVEAL_WINDOW == timedelta(hours=1)


def test_reveal_window_is_configurable() -> None:
    approved = stamp_approval(make_request(), RevealMode.REVEAL, T0, timedelta(minutes=10))
    assert approved.expires_at == T0 + timedelta(minutes=10)


def test_no_reveal_approval_has_no_expiry() -> None:
    approved = stamp_approval(make_request(), RevealMode.NO_REVEAL, T0)
    assert approved.approved_at == T0
    assert approved.expires_at is None
    assert approved.reveal_mode == RevealMode.NO_REVEAL


def test_disclosure_open_only_inside_window() -> None:
    approved = stamp_approval(make_request(), RevealMode.REVEAL, T0)
    assert is_disclosure_open(approved, T0 + timedelta(minutes=30))
    assert not is_disclosure_open(approved, T0 + timedelta(hours=1))
    assert not is_disclosure_open(make_request(), T0)


def test_guess_matches_after_normalization() -> None:
    stored = compute_value_hash("Jane Doe")
    assert verify_guess("  jane doe  ", stored)
    assert verify_guess("JANE DOE", stored)
    assert not verify_guess("John Doe", stored)
    assert not verify_guess("", stored)


def test_answer_guess_requires_open_no_reveal_approval() -> None:
    stored = compute_value_hash("Jane Doe")

    revealed = stamp_approval(make_request(), RevealMode.REVEAL, T0)
    with pytest.raises(PreconditionError):
        answer_guess(revealed, "Jane Doe", stored, T0)

    with pytest.raises(PreconditionError):
        answer_guess(make_request(), "Jane Doe", stored, T0)

    hidden = stamp_approval(make_request(), RevealMode.NO_REVEAL, T0)
    assert answer_guess(hidden, "  jane doe  ", stored, T0 + timedelta(days=2))
    assert not answer_guess(hidden, "someone else", stored, T0)


def test_reveal_log_copies_request_identity() -> None:
    request = make_request(id="req-9", field="dob")
    log = build_reveal_log(request, T0, compute_value_hash("1990-01-01"))

    assert log.request_id == "req-9"
    assert log.subject_name == "alice.eth"
    assert log.field == FieldType.DOB
    assert log.verifier_address == VERIFIER_ADDRESS
    assert log.verifier_name == "bank.eth"
    assert log.revealed_at == T0
    assert log.value_hash == compute_value_hash("1990-01-01")


def test_reveal_log_ids_are_unique() -> None:
    request = make_request()
    assert build_reveal_log(request, T0).id != build_reveal_log(request, T0).id
