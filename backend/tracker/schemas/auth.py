from __future__ import annotations

from pydantic import BaseModel, Field
from pydantic.alias_generators import to_camel


class GoogleSignInRequest(BaseModel):
    id_token: str = Field(min_length=1)

    class Config:
        alias_generator = to_camel
        populate_by_name = True


class MeResponse(BaseModel):
    user_id: str
    email: str
    name: str = ""

    class Config:
        alias_generator = to_camel
        populate_by_name = True


class AuthResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user: MeResponse

    class Config:
        alias_generator = to_camel
        populate_by_name = True
