from __future__ import annotations

import logging

from tracker.config import Settings
from tracker.database import make_engine
from tracker.identity import GoogleIdentityProvider, IdentityClient, Verifier
from tracker.services.duplicate_guard import DuplicateGuard
from tracker.services.jobs import JobService
from tracker.store import DocumentStore


logger = logging.getLogger(__name__)


class Backend:
    """Owns the store and identity clients for the lifetime of the app."""

    def __init__(self, store: DocumentStore, identity: IdentityClient, settings: Settings) -> None:
        self.store = store
        self.identity = identity
        self.settings = settings
        self.collection = settings.jobs_collection
        guard = DuplicateGuard(store, self.collection, fail_open=settings.duplicate_check_fail_open)
        self.jobs = JobService(store, guard, self.collection)

    @classmethod
    def from_settings(cls, settings: Settings, verifier: Verifier | None = None) -> "Backend":
        store = DocumentStore(make_engine(settings.database_url))
        provider = GoogleIdentityProvider(settings.google_client_id, verifier=verifier)
        identity = IdentityClient(provider, settings.auth_secret, settings.auth_token_ttl_seconds)
        return cls(store, identity, settings)

    def start(self) -> None:
        self.store.create_schema()
        logger.info("Backend started on %s", self.store.engine.url.render_as_string(hide_password=True))

    def close(self) -> None:
        self.store.close()
        logger.info("Backend closed")
