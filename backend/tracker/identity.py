"""Google sign-in and session tracking."""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any, Callable

from google.auth import exceptions as google_exceptions
from google.auth.transport import requests as google_requests
from google.oauth2 import id_token as google_id_token

from tracker.auth import create_access_token, decode_access_token
from tracker.errors import AuthError


logger = logging.getLogger(__name__)

Verifier = Callable[[str], dict[str, Any]]
AuthStateListener = Callable[["Identity | None"], None]


@dataclass(frozen=True)
class Identity:
    user_id: str
    email: str
    name: str = ""


class GoogleIdentityProvider:
    def __init__(self, client_id: str, verifier: Verifier | None = None) -> None:
        self.client_id = client_id
        self._verifier = verifier or self._verify_with_google
        self._request: google_requests.Request | None = None

    def _verify_with_google(self, token: str) -> dict[str, Any]:
        if not self.client_id:
            raise AuthError("GOOGLE_CLIENT_ID is not configured")
        if self._request is None:
            self._request = google_requests.Request()
        return google_id_token.verify_oauth2_token(token, self._request, self.client_id)

    def verify(self, token: str) -> Identity:
        try:
            claims = self._verifier(token)
        except (ValueError, google_exceptions.GoogleAuthError) as exc:
            raise AuthError(f"Failed to sign in with Google: {exc}") from exc

        user_id = str(claims.get("sub") or "")
        email = str(claims.get("email") or "")
        if not user_id or not email:
            raise AuthError("Google token is missing the subject or email claim")
        if claims.get("email_verified") is False:
            raise AuthError(f"Google account email {email} is not verified")
        return Identity(user_id=user_id, email=email, name=str(claims.get("name") or ""))


class IdentityClient:
    """Turns Google ID tokens into session tokens and tracks sign-outs."""

    def __init__(self, provider: GoogleIdentityProvider, secret: str, ttl_seconds: int) -> None:
        self.provider = provider
        self.secret = secret
        self.ttl_seconds = ttl_seconds
        self._revoked: dict[str, int] = {}
        self._listeners: list[AuthStateListener] = []

    async def sign_in(self, id_token: str) -> tuple[str, Identity]:
        # certificate fetch inside google-auth is blocking
        identity = await asyncio.to_thread(self.provider.verify, id_token)
        token = create_access_token(identity.user_id, identity.email, identity.name, self.secret, self.ttl_seconds)
        logger.info("User %s signed in", identity.user_id)
        self._emit(identity)
        return token, identity

    def sign_out(self, token: str) -> None:
        claims = decode_access_token(token, self.secret)
        if claims is None:
            raise AuthError("Invalid token")
        self._purge_revoked()
        self._revoked[token] = claims.expires_at
        logger.info("User %s signed out", claims.user_id)
        self._emit(None)

    def current(self, token: str) -> Identity:
        claims = decode_access_token(token, self.secret)
        if claims is None or token in self._revoked:
            raise AuthError("Invalid token")
        return Identity(user_id=claims.user_id, email=claims.email, name=claims.name)

    def on_auth_state_changed(self, listener: AuthStateListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def _remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _remove

    def _emit(self, identity: Identity | None) -> None:
        for listener in list(self._listeners):
            try:
                listener(identity)
            except Exception:
                logger.exception("Auth state listener failed")

    def _purge_revoked(self) -> None:
        now = int(time.time())
        for token, expires_at in list(self._revoked.items()):
            if expires_at < now:
                del self._revoked[token]
