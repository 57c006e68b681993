"""Authentication of inbound Omneo webhook requests.

Omneo signs every delivery with HMAC-SHA256 over the raw request body,
keyed with the shared webhook secret, and sends the lowercase hex digest
in the ``x-omneo-hmac-sha256`` header.

SECURITY INVARIANTS:
1. Verification runs on the exact raw body bytes, before any parsing
2. Signatures are compared with hmac.compare_digest, never with ==
3. Malformed or wrong-length signatures are rejected before comparing
4. Secrets and signatures are never logged
"""

from __future__ import annotations

import hashlib
import hmac
import logging
import re
from enum import Enum

logger = logging.getLogger(__name__)

EXPECTED_METHOD = "POST"
SIGNATURE_HEADER = "x-omneo-hmac-sha256"
EVENT_HEADER = "x-omneo-event"

_HEX_PATTERN = re.compile(r"^[0-9a-fA-F]*$")


class AuthFailureReason(str, Enum):
    """Why an inbound request was rejected."""

    INVALID_METHOD = "invalid_method"
    MISSING_CREDENTIALS = "missing_credentials"
    SIGNATURE_MISMATCH = "signature_mismatch"

    @property
    def status_code(self) -> int:
        """HTTP status the router should answer with."""
        match self:
            case AuthFailureReason.INVALID_METHOD:
                return 405
            case AuthFailureReason.MISSING_CREDENTIALS:
                return 422
            case AuthFailureReason.SIGNATURE_MISMATCH:
                return 401


_FAILURE_MESSAGES: dict[AuthFailureReason, str] = {
    AuthFailureReason.INVALID_METHOD: "Invalid Method",
    AuthFailureReason.MISSING_CREDENTIALS: "Invalid Omneo Webhook",
    AuthFailureReason.SIGNATURE_MISMATCH: "Authentication failed",
}


class AuthFailure(Exception):
    """Raised when an inbound webhook request cannot be trusted.

    The message is safe to return to the caller; it carries no detail
    about which part of the signature was wrong.
    """

    def __init__(self, reason: AuthFailureReason) -> None:
        super().__init__(_FAILURE_MESSAGES[reason])
        self.reason = reason

    @property
    def status_code(self) -> int:
        return self.reason.status_code


def compute_signature(raw_body: bytes, secret: str) -> str:
    """Lowercase hex HMAC-SHA256 of the raw body keyed with the secret."""
    return hmac.new(secret.encode("utf-8"), raw_body, hashlib.sha256).hexdigest()


def _decode_signature(signature_header: str) -> bytes | None:
    value = signature_header.strip()
    if len(value) % 2 != 0 or not _HEX_PATTERN.match(value):
        return None
    return bytes.fromhex(value)


def _reject(reason: AuthFailureReason, method: str) -> AuthFailure:
    log_security_audit_event(
        event_type="webhook_auth",
        action=method,
        result=reason.value,
    )
    return AuthFailure(reason)


def verify_signature(
    method: str,
    signature_header: str | None,
    raw_body: bytes,
    secret: str | None,
) -> None:
    """Verify an inbound webhook request.

    Checks run in order and the first failure rejects the request.

    Args:
        method: HTTP method of the request.
        signature_header: Value of the signature header, if any.
        raw_body: Exact, unparsed request body bytes.
        secret: Shared webhook secret.

    Raises:
        AuthFailure: With the reason the request was rejected.
    """
    if method.upper() != EXPECTED_METHOD:
        raise _reject(AuthFailureReason.INVALID_METHOD, method)

    if not signature_header or not secret:
        raise _reject(AuthFailureReason.MISSING_CREDENTIALS, method)

    expected = bytes.fromhex(compute_signature(raw_body, secret))

    provided = _decode_signature(signature_header)
    if provided is None or len(provided) != len(expected):
        raise _reject(AuthFailureReason.SIGNATURE_MISMATCH, method)

    if not hmac.compare_digest(provided, expected):
        raise _reject(AuthFailureReason.SIGNATURE_MISMATCH, method)


def is_valid_signature(
    method: str,
    signature_header: str | None,
    raw_body: bytes,
    secret: str | None,
) -> bool:
    """Boolean form of verify_signature."""
    try:
        verify_signature(method, signature_header, raw_body, secret)
    except AuthFailure:
        return False
    return True


def log_security_audit_event(
    event_type: str,
    action: str | None = None,
    result: str | None = None,
) -> None:
    """Log a security-relevant audit event.

    All security events are logged with structured data for SIEM ingestion.

    Args:
        event_type: Type of security event (webhook_auth, etc.)
        action: Action being performed.
        result: Result of the action (success, failure reason).
    """
    logger.info(
        f"Security audit: {event_type}",
        extra={
            "security_audit": True,
            "event_type": event_type,
            "action": action,
            "result": result,
        },
    )
