from __future__ import annotations

import base64
import hashlib
import hmac
import json
import os
import time
from typing import Any


DEFAULT_TOKEN_TTL_SECONDS = 60 * 60 * 12


class IdentityError(RuntimeError):
    pass


def _require_signing_secret() -> bytes:
    raw = (os.environ.get("IDENTITY_SIGNING_SECRET") or "").strip()
    if len(raw) < 32:
        raise IdentityError("IDENTITY_SIGNING_SECRET must be set and at least 32 characters long.")
    return raw.encode("utf-8")


def _token_ttl_seconds() -> int:
    raw = (os.environ.get("IDENTITY_TOKEN_TTL_SECONDS") or "").strip()
    try:
        return int(raw) if raw else DEFAULT_TOKEN_TTL_SECONDS
    except ValueError:
        return DEFAULT_TOKEN_TTL_SECONDS


def _b64encode(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).decode("ascii").rstrip("=")


def _b64decode(encoded: str) -> bytes:
    return base64.urlsafe_b64decode(encoded + "=" * (-len(encoded) % 4))


def issue_token(email: str, ttl_seconds: int | None = None, **claims: Any) -> str:
    secret = _require_signing_secret()
    payload = dict(claims)
    payload["email"] = email
    payload["expiresAt"] = time.time() + (ttl_seconds if ttl_seconds is not None else _token_ttl_seconds())
    encoded = _b64encode(json.dumps(payload, ensure_ascii=True, separators=(",", ":")).encode("utf-8"))
    signature = hmac.new(secret, encoded.encode("ascii"), hashlib.sha256).digest()
    return f"{encoded}.{_b64encode(signature)}"


def verify_token(token: str | None) -> dict[str, Any] | None:
    """Return the token claims when the signature and expiry check out."""
    if not token:
        return None
    secret = _require_signing_secret()
    try:
        encoded, encoded_sig = token.split(".", 1)
        expected_sig = hmac.new(secret, encoded.encode("ascii"), hashlib.sha256).digest()
        if not hmac.compare_digest(expected_sig, _b64decode(encoded_sig)):
            return None
        claims = json.loads(_b64decode(encoded).decode("utf-8"))
    except (ValueError, UnicodeError):
        return None

    if not isinstance(claims, dict) or not claims.get("email"):
        return None
    if time.time() >= float(claims.get("expiresAt") or 0.0):
        return None
    return claims


def principal_from_authorization(header_value: str | None) -> str | None:
    if not header_value:
        return None
    scheme, _, token = header_value.strip().partition(" ")
    if scheme.lower() != "bearer" or not token:
        return None
    claims = verify_token(token.strip())
    return str(claims["email"]) if claims else None
