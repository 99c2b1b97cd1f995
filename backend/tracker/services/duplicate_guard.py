from __future__ import annotations

import logging

from tracker.errors import StoreError
from tracker.store import DocumentStore


logger = logging.getLogger(__name__)


class DuplicateGuard:
    """Pre-write check on (userId, companyName, role), exact and case-sensitive.

    With ``fail_open`` a failed lookup counts as "not a duplicate" and creation
    goes ahead, which can let duplicates through while the store is degraded.
    Otherwise the ``StoreError`` propagates and the caller refuses the write.
    """

    def __init__(self, store: DocumentStore, collection: str = "jobs", fail_open: bool = False) -> None:
        self.store = store
        self.collection = collection
        self.fail_open = fail_open

    async def is_duplicate(self, user_id: str, company_name: str, role: str) -> bool:
        filters = {"userId": user_id, "companyName": company_name, "role": role}
        try:
            matches = await self.store.query(self.collection, filters)
        except StoreError as exc:
            if not self.fail_open:
                raise
            logger.error("Duplicate check failed for user %s, allowing write: %s", user_id, exc)
            return False
        return len(matches) > 0
