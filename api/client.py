"""
api/client.py — Workflow Backend Client
=========================================
Async HTTP client for the request/approval workflow and the name
resolution / signature verification service.

Endpoints:
    GET  /api/verifications/{name}      → list verification records
    GET  /api/requests/{name}           → list verification requests
    POST /api/requests/{id}/approve     → approve (fieldValue, revealMode, verifiedEnsOwner?)
    POST /api/requests/{id}/reject      → reject
    GET  /api/resolveOwner/{name}       → current owner of a name
    POST /api/verifyOwnership           → check a wallet signature over the challenge

Every call is a single attempt. Failures map onto core.errors:
transport → NetworkError, non-200 → HttpError, rejected ownership →
VerificationFailed, unexpected body → DecodingError.
"""

import logging
from typing import List, Optional
from urllib.parse import quote

import httpx
from pydantic import TypeAdapter, ValidationError

from api.schemas import (
    ApproveBody,
    ErrorBody,
    OwnerInfo,
    OwnershipVerification,
    RevealMode,
    Verification,
    VerificationRequest,
    VerifyOwnershipBody,
)
from core.errors import DecodingError, HttpError, NetworkError, VerificationFailed

logger = logging.getLogger("verifyens.api")

_VERIFICATIONS = TypeAdapter(List[Verification])
_REQUESTS = TypeAdapter(List[VerificationRequest])


def _segment(value: str) -> str:
    return quote(value, safe="")


class WorkflowClient:
    """
    One instance per holder session; constructed with its own base URL so
    tests can point it at an httpx.MockTransport.
    """

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = 15.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._http = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            timeout=timeout,
            transport=transport,
            headers={"Accept": "application/json"},
        )

    async def aclose(self):
        await self._http.aclose()

    async def __aenter__(self) -> "WorkflowClient":
        return self

    async def __aexit__(self, *exc_info):
        await self.aclose()

    # ── Transport ──────────────────────────────────────────────────────────
    async def _send(self, method: str, path: str, json: Optional[dict] = None) -> httpx.Response:
        try:
            response = await self._http.request(method, path, json=json)
        except httpx.TransportError as exc:
            logger.warning(f"{method} {path} failed: {exc.__class__.__name__}")
            raise NetworkError(f"Could not reach {path}: {exc}") from exc
        logger.debug(f"{method} {path} → {response.status_code}")
        return response

    @staticmethod
    def _require_ok(response: httpx.Response):
        if response.status_code != 200:
            raise HttpError(response.status_code)

    @staticmethod
    def _decode(adapter_or_model, response: httpx.Response):
        try:
            if isinstance(adapter_or_model, TypeAdapter):
                return adapter_or_model.validate_json(response.content)
            return adapter_or_model.model_validate_json(response.content)
        except ValidationError as exc:
            raise DecodingError(
                f"Unexpected response shape from {response.request.url.path}: "
                f"{exc.error_count()} validation error(s)"
            ) from exc

    # ── Verifications & requests ───────────────────────────────────────────
    async def fetch_verifications(self, name: str) -> List[Verification]:
        response = await self._send("GET", f"/api/verifications/{_segment(name)}")
        self._require_ok(response)
        return self._decode(_VERIFICATIONS, response)

    async def fetch_requests(self, name: str) -> List[VerificationRequest]:
        response = await self._send("GET", f"/api/requests/{_segment(name)}")
        self._require_ok(response)
        return self._decode(_REQUESTS, response)

    async def approve_request(
        self,
        request_id: str,
        field_value: str,
        reveal_mode: RevealMode,
        verified_owner: Optional[str] = None,
    ):
        body = ApproveBody(
            field_value=field_value,
            reveal_mode=reveal_mode,
            verified_ens_owner=verified_owner,
        )
        response = await self._send(
            "POST", f"/api/requests/{_segment(request_id)}/approve", json=body.to_wire()
        )
        self._require_ok(response)
        logger.info(f"Request {request_id} approved ({reveal_mode.value})")

    async def reject_request(self, request_id: str):
        response = await self._send("POST", f"/api/requests/{_segment(request_id)}/reject")
        self._require_ok(response)
        logger.info(f"Request {request_id} rejected")

    # ── Ownership ──────────────────────────────────────────────────────────
    async def resolve_owner(self, name: str) -> OwnerInfo:
        response = await self._send("GET", f"/api/resolveOwner/{_segment(name)}")
        self._require_ok(response)
        return self._decode(OwnerInfo, response)

    async def verify_ownership(
        self,
        name: str,
        address: str,
        signature: str,
        message: Optional[str] = None,
    ) -> OwnershipVerification:
        body = VerifyOwnershipBody(ens_name=name, address=address, signature=signature, message=message)
        response = await self._send("POST", "/api/verifyOwnership", json=body.to_wire())
        if response.status_code != 200:
            reason = self._error_reason(response)
            if reason is not None:
                raise VerificationFailed(reason)
            raise HttpError(response.status_code)
        return self._decode(OwnershipVerification, response)

    @staticmethod
    def _error_reason(response: httpx.Response) -> Optional[str]:
        try:
            return ErrorBody.model_validate_json(response.content).error
        except ValidationError:
            return None
