"""
core/errors.py — Error Taxonomy
================================
Every failure the holder core can surface. Nothing here retries on its own:
retries are always an explicit holder action.

    NetworkError        transport failure, no response received
    HttpError           server answered with a non-200 status
    VerificationFailed  semantic rejection from the backend (show verbatim)
    PreconditionError   blocked locally, before any network call
    DecodingError       response did not match the expected payload shape
    EncodingError       input cannot be represented as UTF-8
    WalletError         wallet capability failures
"""

from typing import Optional


class VerifyEnsError(Exception):
    """Base class for all holder-core errors."""


class NetworkError(VerifyEnsError):
    """The request never produced a response (DNS, refused, timeout...)."""


class HttpError(VerifyEnsError):
    def __init__(self, status_code: int, detail: Optional[str] = None):
        self.status_code = status_code
        self.detail = detail
        message = f"HTTP error: {status_code}"
        if detail:
            message = f"{message} ({detail})"
        super().__init__(message)


class VerificationFailed(VerifyEnsError):
    """The backend understood the request and refused it."""

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Verification failed: {reason}")


class PreconditionError(VerifyEnsError):
    """A local guard rejected the operation; nothing was sent."""


class DecodingError(VerifyEnsError):
    """Response body did not match the typed payload for that endpoint."""


class EncodingError(VerifyEnsError):
    """Value has no UTF-8 representation and cannot be hashed."""


class WalletError(VerifyEnsError):
    pass


class WalletNotConnectedError(WalletError, PreconditionError):
    def __init__(self, message: str = "Wallet not connected. Please connect your wallet first."):
        super().__init__(message)


class WalletBusyError(WalletError):
    """A signature request is already outstanding on this wallet."""
