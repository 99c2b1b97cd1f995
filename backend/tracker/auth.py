"""Signed bearer tokens for signed-in users.

A token is the base64 of ``<json payload>.<hmac-sha256 hex>``. The payload
carries the identity so requests never need a round trip to Google.
"""

from __future__ import annotations

import base64
import hashlib
import hmac
import json
import secrets
import time
from dataclasses import dataclass


@dataclass(frozen=True)
class TokenClaims:
    user_id: str
    email: str
    name: str
    expires_at: int
    nonce: str


def _sign(secret: str, payload: str) -> str:
    return hmac.new(secret.encode("utf-8"), payload.encode("utf-8"), hashlib.sha256).hexdigest()


def create_access_token(user_id: str, email: str, name: str, secret: str, ttl_seconds: int) -> str:
    payload = json.dumps(
        {
            "sub": user_id,
            "email": email,
            "name": name,
            "exp": int(time.time()) + ttl_seconds,
            "nonce": secrets.token_hex(6),
        },
        sort_keys=True,
        separators=(",", ":"),
    )
    token_raw = f"{payload}.{_sign(secret, payload)}".encode("utf-8")
    return base64.urlsafe_b64encode(token_raw).decode("utf-8").rstrip("=")


def decode_access_token(token: str, secret: str) -> TokenClaims | None:
    if not token:
        return None
    padding = "=" * (-len(token) % 4)
    try:
        decoded = base64.urlsafe_b64decode((token + padding).encode("utf-8")).decode("utf-8")
        payload, signature = decoded.rsplit(".", 1)
    except (ValueError, UnicodeDecodeError):
        return None

    if not hmac.compare_digest(_sign(secret, payload), signature):
        return None

    try:
        data = json.loads(payload)
        claims = TokenClaims(
            user_id=str(data["sub"]),
            email=str(data.get("email", "")),
            name=str(data.get("name", "")),
            expires_at=int(data["exp"]),
            nonce=str(data.get("nonce", "")),
        )
    except (ValueError, KeyError, TypeError):
        return None
    if claims.expires_at < int(time.time()):
        return None
    return claims
