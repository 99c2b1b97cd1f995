from __future__ import annotations

from fastapi import APIRouter, Depends

from tracker.api.deps import get_backend, get_bearer_token, get_current_identity
from tracker.backend import Backend
from tracker.identity import Identity
from tracker.schemas.auth import AuthResponse, GoogleSignInRequest, MeResponse


router = APIRouter()


def _me(identity: Identity) -> MeResponse:
    return MeResponse(user_id=identity.user_id, email=identity.email, name=identity.name)


@router.post("/google", response_model=AuthResponse)
async def sign_in_with_google(
    payload: GoogleSignInRequest,
    backend: Backend = Depends(get_backend),
) -> AuthResponse:
    token, identity = await backend.identity.sign_in(payload.id_token)
    return AuthResponse(access_token=token, user=_me(identity))


@router.post("/logout")
def logout(
    token: str = Depends(get_bearer_token),
    backend: Backend = Depends(get_backend),
) -> dict[str, str]:
    backend.identity.sign_out(token)
    return {"status": "signed_out"}


@router.get("/me", response_model=MeResponse)
def me(identity: Identity = Depends(get_current_identity)) -> MeResponse:
    return _me(identity)
