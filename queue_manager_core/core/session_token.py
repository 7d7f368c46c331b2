"""Signed, timestamped session tokens.

Token format: base64(session_id:timestamp).signature
- session_id: UUID or other unique identifier
- timestamp: UNIX time in milliseconds
- signature: HMAC-SHA256 of the data portion, lowercase hex (64 chars)

Tokens are stateless: validity is determined by the signature plus an
optional max-age check against the embedded timestamp. Validation never
raises on untrusted input; it returns a structured result instead.
"""

from __future__ import annotations

import base64
import binascii
import hashlib
import hmac
from dataclasses import dataclass

from queue_manager_core.core.errors import invalid_argument
from queue_manager_core.utils.clock import Clock, now_ms

SIGNATURE_HEX_LENGTH = 64


@dataclass(frozen=True)
class TokenValidation:
    """Result of validating a session token.

    Attributes:
        valid: Whether the signature and payload are valid.
        session_id: Extracted session id (only when valid).
        timestamp: Issue time in UNIX milliseconds (only when valid).
        error: Rejection reason (only when invalid).
    """

    valid: bool
    session_id: str | None = None
    timestamp: int | None = None
    error: str | None = None


@dataclass(frozen=True)
class TokenExpiry:
    """Result of an expiry check.

    Attributes:
        expired: True when the token is too old or invalid.
        age_ms: Token age in milliseconds (only for valid tokens).
        error: Validation error for invalid tokens.
    """

    expired: bool
    age_ms: int | None = None
    error: str | None = None


def _sign(secret: str, data: str) -> str:
    return hmac.new(
        secret.encode("utf-8"),
        data.encode("utf-8"),
        hashlib.sha256,
    ).hexdigest()


def _rejected(error: str) -> TokenValidation:
    return TokenValidation(valid=False, error=error)


def generate_session_token(session_id: str, secret: str, *, clock: Clock = now_ms) -> str:
    """Generate a signed session token.

    Args:
        session_id: Unique session identifier.
        secret: Secret key for HMAC signing.
        clock: Time source returning UNIX milliseconds.

    Returns:
        Signed token string ``<base64-data>.<hex-signature>``.

    Raises:
        InvalidArgumentError: If session_id or secret is empty or not a string.

    Example:
        >>> token = generate_session_token("abc-123", "my-secret")
        >>> validate_session_token(token, "my-secret").session_id
        'abc-123'
    """
    if not session_id or not isinstance(session_id, str):
        raise invalid_argument("session_id", "session_id must be a non-empty string")
    if not secret or not isinstance(secret, str):
        raise invalid_argument("secret", "secret must be a non-empty string")

    data = f"{session_id}:{clock()}"
    signature = _sign(secret, data)
    encoded = base64.b64encode(data.encode("utf-8")).decode("ascii")
    return f"{encoded}.{signature}"


def validate_session_token(token: str, secret: str) -> TokenValidation:
    """Validate a session token's signature and extract its payload.

    The signature is compared in constant time after a length check.

    Args:
        token: Session token received from a client.
        secret: Secret key used to sign the token.

    Returns:
        TokenValidation describing the outcome.
    """
    if not token or not isinstance(token, str):
        return _rejected("Token must be a non-empty string")
    if not secret or not isinstance(secret, str):
        return _rejected("Secret must be a non-empty string")

    parts = token.split(".")
    if len(parts) != 2:
        return _rejected("Invalid token format")

    encoded_data, signature = parts

    try:
        data = base64.b64decode(encoded_data, validate=True).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError):
        return _rejected("Invalid base64 encoding")

    expected = _sign(secret, data).encode("ascii")
    provided = signature.encode("utf-8")
    if len(provided) != len(expected) or not hmac.compare_digest(provided, expected):
        return _rejected("Invalid signature")

    session_id, separator, raw_timestamp = data.rpartition(":")
    if not separator:
        return _rejected("Invalid token data format")

    try:
        timestamp = int(raw_timestamp)
    except ValueError:
        return _rejected("Invalid timestamp")

    return TokenValidation(valid=True, session_id=session_id, timestamp=timestamp)


def is_session_token_expired(
    token: str,
    secret: str,
    max_age_ms: int,
    *,
    clock: Clock = now_ms,
) -> TokenExpiry:
    """Check whether a session token is older than ``max_age_ms``.

    Invalid tokens are reported as expired together with the validation
    error.
    """
    validation = validate_session_token(token, secret)
    if not validation.valid:
        return TokenExpiry(expired=True, error=validation.error)

    age_ms = clock() - validation.timestamp
    return TokenExpiry(expired=age_ms > max_age_ms, age_ms=age_ms)
