from __future__ import annotations

from typing import Any, Iterator

import pytest

from tracker.database import make_engine
from tracker.store import DocumentStore

GOOGLE_USERS: dict[str, dict[str, Any]] = {
    "google-token-alice": {
        "sub": "alice-uid",
        "email": "alice@example.com",
        "email_verified": True,
        "name": "Alice Example",
    },
    "google-token-bob": {
        "sub": "bob-uid",
        "email": "bob@example.com",
        "email_verified": True,
        "name": "Bob Example",
    },
    "google-token-unverified": {
        "sub": "carol-uid",
        "email": "carol@example.com",
        "email_verified": False,
    },
}


def fake_google_verifier(token: str) -> dict[str, Any]:
    if token not in GOOGLE_USERS:
        raise ValueError("Token used too late or malformed")
    return GOOGLE_USERS[token]


@pytest.fixture
def store() -> Iterator[DocumentStore]:
    document_store = DocumentStore(make_engine("sqlite://"))
    document_store.create_schema()
    yield document_store
    document_store.close()

