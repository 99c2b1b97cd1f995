from __future__ import annotations

import asyncio
from datetime import date, datetime, timezone

import pytest

from tracker.errors import DuplicateError, NotFoundError, StoreError, ValidationError
from tracker.models.job import JobStatus
from tracker.services.duplicate_guard import DuplicateGuard
from tracker.services.jobs import JobService
from tracker.store import DocumentStore


class _Clock:
    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now


def _service(store: DocumentStore, clock: _Clock | None = None, fail_open: bool = False) -> JobService:
    guard = DuplicateGuard(store, "jobs", fail_open=fail_open)
    if clock is None:
        return JobService(store, guard)
    return JobService(store, guard, clock=clock)


async def _create(service: JobService, user_id: str = "alice-uid", company: str = "Acme", role: str = "Engineer"):
    return await service.create(user_id, company, role, JobStatus.APPLIED, "alice@example.com", "Alice Example")


def test_create_stamps_today_and_returns_store_id(store: DocumentStore):
    service = _service(store)
    record = asyncio.run(_create(service))
    today = datetime.now(timezone.utc).date()

    assert record.id
    assert record.applied_at == today
    assert record.updated_at == today
    assert record.status == "Applied"
    assert record.user_email == "alice@example.com"
    assert record.user_name == "Alice Example"


def test_duplicate_is_rejected_without_writing(store: DocumentStore):
    service = _service(store)

    async def scenario():
        await _create(service)
        with pytest.raises(DuplicateError):
            await _create(service)
        return await service.list_for_user("alice-uid")

    assert len(asyncio.run(scenario())) == 1


def test_duplicate_check_is_per_user_and_case_sensitive(store: DocumentStore):
    service = _service(store)

    async def scenario():
        await _create(service)
        await _create(service, user_id="bob-uid")
        await _create(service, company="ACME")
        await _create(service, role="Senior Engineer")
        return await service.list_for_user("alice-uid")

    assert len(asyncio.run(scenario())) == 3


def test_update_changes_status_and_keeps_applied_at(store: DocumentStore):
    clock = _Clock(datetime(2024, 12, 1, 9, 30, tzinfo=timezone.utc))
    service = _service(store, clock)

    async def scenario():
        created = await _create(service)
        clock.now = datetime(2024, 12, 10, 18, 0, tzinfo=timezone.utc)
        await service.update(created.id, {"status": "Interview"})
        return await service.get(created.id)

    fetched = asyncio.run(scenario())
    assert fetched.status == "Interview"
    assert fetched.applied_at == date(2024, 12, 1)
    assert fetched.updated_at == date(2024, 12, 10)


def test_update_rejects_protected_and_unknown_fields(store: DocumentStore):
    service = _service(store)

    async def scenario():
        created = await _create(service)
        for fields in ({"userId": "bob-uid"}, {"appliedAt": "2020-01-01"}, {"id": "x"}, {"salary": "lots"}):
            with pytest.raises(ValidationError):
                await service.update(created.id, fields)
        with pytest.raises(ValidationError):
            await service.update(created.id, {"status": "Hired"})
        return await service.get(created.id)

    fetched = asyncio.run(scenario())
    assert fetched.user_id == "alice-uid"
    assert fetched.status == "Applied"


def test_update_may_reintroduce_duplicate_pair(store: DocumentStore):
    service = _service(store)

    async def scenario():
        await _create(service, role="Engineer")
        other = await _create(service, role="Designer")
        await service.update(other.id, {"role": "Engineer"})
        return await service.list_for_user("alice-uid")

    assert [record.role for record in asyncio.run(scenario())] == ["Engineer", "Engineer"]


def test_update_and_delete_of_missing_id_raise_not_found(store: DocumentStore):
    service = _service(store)

    async def scenario():
        with pytest.raises(NotFoundError):
            await service.update("missing", {"status": "Interview"})
        with pytest.raises(NotFoundError):
            await service.delete("missing")

    asyncio.run(scenario())


def test_delete_then_get_is_absent(store: DocumentStore):
    service = _service(store)

    async def scenario():
        created = await _create(service)
        await service.delete(created.id)
        assert await store.get("jobs", created.id) is None
        with pytest.raises(NotFoundError):
            await service.get(created.id)

    asyncio.run(scenario())


def test_create_validates_inputs(store: DocumentStore):
    service = _service(store)

    async def scenario():
        with pytest.raises(ValidationError):
            await service.create("alice-uid", "  ", "Engineer", "Applied")
        with pytest.raises(ValidationError):
            await service.create("alice-uid", "Acme", "Engineer", "Offer")
        return await service.list_for_user("alice-uid")

    assert asyncio.run(scenario()) == []


def test_list_is_newest_update_first(store: DocumentStore):
    clock = _Clock(datetime(2024, 11, 20, tzinfo=timezone.utc))
    service = _service(store, clock)

    async def scenario():
        older = await _create(service, company="Apple")
        clock.now = datetime(2024, 12, 5, tzinfo=timezone.utc)
        await _create(service, company="Microsoft")
        clock.now = datetime(2024, 12, 8, tzinfo=timezone.utc)
        await service.update(older.id, {"status": "Rejected"})
        return await service.list_for_user("alice-uid")

    assert [record.company_name for record in asyncio.run(scenario())] == ["Apple", "Microsoft"]


def _break_queries(store: DocumentStore, monkeypatch) -> None:
    async def broken_query(collection, filters=None):
        raise StoreError("connection refused")

    monkeypatch.setattr(store, "query", broken_query)


def test_duplicate_check_failure_blocks_creation_by_default(store: DocumentStore, monkeypatch):
    service = _service(store)
    _break_queries(store, monkeypatch)

    with pytest.raises(StoreError):
        asyncio.run(_create(service))


def test_duplicate_check_failure_allows_creation_when_fail_open(store: DocumentStore, monkeypatch):
    service = _service(store, fail_open=True)
    _break_queries(store, monkeypatch)

    record = asyncio.run(_create(service))
    assert record.company_name == "Acme"


def test_trailing_whitespace_is_not_normalized(store: DocumentStore):
    service = _service(store)

    async def scenario():
        await _create(service, company="Acme")
        spaced = await _create(service, company="Acme ")
        return spaced, await service.list_for_user("alice-uid")

    spaced, records = asyncio.run(scenario())
    assert spaced.company_name == "Acme "
    assert sorted(record.company_name for record in records) == ["Acme", "Acme "]


def test_user_name_falls_back_to_email_local_part(store: DocumentStore):
    service = _service(store)

    async def scenario():
        from_email = await service.create("bob-uid", "Acme", "Engineer", "Applied", "bob@example.com", "")
        anonymous = await service.create("carol-uid", "Acme", "Engineer", "Applied", "", "")
        return from_email, anonymous

    from_email, anonymous = asyncio.run(scenario())
    assert from_email.user_name == "bob"
    assert anonymous.user_name == "User"


def test_update_rejects_identity_snapshot_fields(store: DocumentStore):
    service = _service(store)

    async def scenario():
        created = await _create(service)
        for fields in ({"userEmail": "new@example.com"}, {"userName": "New Name"}):
            with pytest.raises(ValidationError):
                await service.update(created.id, fields)
        return await service.get(created.id)

    fetched = asyncio.run(scenario())
    assert fetched.user_email == "alice@example.com"
    assert fetched.user_name == "Alice Example"
