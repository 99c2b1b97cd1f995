from __future__ import annotations

import logging
from datetime import date, datetime, timezone
from typing import Any, Callable

from tracker.errors import DuplicateError, NotFoundError, ValidationError
from tracker.models.job import JobRecord, JobStatus
from tracker.services.duplicate_guard import DuplicateGuard
from tracker.store import DocumentStore


logger = logging.getLogger(__name__)

PROTECTED_FIELDS = frozenset({"id", "userId", "appliedAt", "createdAt", "updatedAt"})
EDITABLE_FIELDS = frozenset({"companyName", "role", "status"})


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _require_text(name: str, value: Any) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{name} is required", {"missing": [name]})
    return value


def _require_status(value: Any) -> str:
    raw = value.value if isinstance(value, JobStatus) else value
    if raw not in JobStatus.values():
        raise ValidationError(
            "Invalid status. Must be: Applied, Interview, or Rejected",
            {"status": raw},
        )
    return raw


def display_name(user_name: str, user_email: str) -> str:
    if user_name:
        return user_name
    return user_email.split("@")[0] or "User"


def _record_date(record: JobRecord) -> date:
    return record.updated_at or date.min


class JobService:
    """Create, read, update and delete job records in the document store.

    Writes never touch any local snapshot; open watches pick them up on their
    own. Failures are raised immediately, there is no retry.
    """

    def __init__(
        self,
        store: DocumentStore,
        guard: DuplicateGuard | None = None,
        collection: str = "jobs",
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.store = store
        self.collection = collection
        self.guard = guard or DuplicateGuard(store, collection)
        self.clock = clock

    async def create(
        self,
        user_id: str,
        company_name: str,
        role: str,
        status: JobStatus | str,
        user_email: str = "",
        user_name: str = "",
    ) -> JobRecord:
        user_id = _require_text("userId", user_id)
        company_name = _require_text("companyName", company_name)
        role = _require_text("role", role)
        status_value = _require_status(status)

        if await self.guard.is_duplicate(user_id, company_name, role):
            logger.info("Rejected duplicate application for user %s: %s - %s", user_id, company_name, role)
            raise DuplicateError()

        now = self.clock().isoformat()
        fields = {
            "companyName": company_name,
            "role": role,
            "status": status_value,
            "userId": user_id,
            "userEmail": user_email or "",
            "userName": display_name(user_name or "", user_email or ""),
            "appliedAt": now,
            "createdAt": now,
            "updatedAt": now,
        }
        job_id = await self.store.insert(self.collection, fields)
        logger.info("Created job %s for user %s: %s - %s", job_id, user_id, company_name, role)
        return JobRecord.from_document(job_id, fields)

    async def get(self, job_id: str) -> JobRecord:
        doc = await self.store.get(self.collection, job_id)
        if doc is None:
            raise NotFoundError("Job not found")
        return JobRecord.from_document(doc.id, doc.fields)

    async def list_for_user(self, user_id: str) -> list[JobRecord]:
        docs = await self.store.query(self.collection, {"userId": user_id})
        records = [JobRecord.from_document(doc.id, doc.fields) for doc in docs]
        return sorted(records, key=_record_date, reverse=True)

    async def update(self, job_id: str, fields: dict[str, Any]) -> JobRecord:
        protected = sorted(PROTECTED_FIELDS.intersection(fields))
        if protected:
            raise ValidationError("These fields cannot be changed", {"protected": protected})
        unknown = sorted(set(fields) - EDITABLE_FIELDS)
        if unknown:
            raise ValidationError("Unknown fields", {"unknown": unknown})

        changes: dict[str, Any] = {}
        for name, value in fields.items():
            if name == "status":
                changes[name] = _require_status(value)
            else:
                changes[name] = _require_text(name, value)
        changes["updatedAt"] = self.clock().isoformat()

        try:
            await self.store.update(self.collection, job_id, changes)
        except NotFoundError:
            raise NotFoundError("Job not found") from None
        logger.info("Updated job %s: %s", job_id, sorted(fields))
        return await self.get(job_id)

    async def delete(self, job_id: str) -> None:
        try:
            await self.store.delete(self.collection, job_id)
        except NotFoundError:
            raise NotFoundError("Job not found") from None
        logger.info("Deleted job %s", job_id)
