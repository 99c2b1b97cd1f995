from __future__ import annotations

import asyncio
import logging

from fastapi import APIRouter, Depends, Query, WebSocket, WebSocketDisconnect, status

from tracker.api.deps import get_backend, get_current_identity
from tracker.backend import Backend
from tracker.errors import AuthError, NotFoundError, StoreError
from tracker.identity import Identity
from tracker.models.job import JobRecord
from tracker.schemas.job import JobCreate, JobStats, JobUpdate, LiveFrame
from tracker.services.stats import compute_stats
from tracker.services.subscriptions import JobFeed, open_job_feed


logger = logging.getLogger(__name__)
router = APIRouter()


async def _owned_job(backend: Backend, job_id: str, identity: Identity) -> JobRecord:
    record = await backend.jobs.get(job_id)
    if record.user_id != identity.user_id:
        raise NotFoundError("Job not found")
    return record


@router.get("", response_model=list[JobRecord])
async def list_jobs(
    backend: Backend = Depends(get_backend),
    identity: Identity = Depends(get_current_identity),
) -> list[JobRecord]:
    return await backend.jobs.list_for_user(identity.user_id)


@router.post("", response_model=JobRecord, status_code=status.HTTP_201_CREATED)
async def create_job(
    payload: JobCreate,
    backend: Backend = Depends(get_backend),
    identity: Identity = Depends(get_current_identity),
) -> JobRecord:
    return await backend.jobs.create(
        user_id=identity.user_id,
        company_name=payload.company_name,
        role=payload.role,
        status=payload.status,
        user_email=identity.email,
        user_name=identity.name,
    )


@router.get("/stats", response_model=JobStats)
async def job_stats(
    backend: Backend = Depends(get_backend),
    identity: Identity = Depends(get_current_identity),
) -> JobStats:
    return compute_stats(await backend.jobs.list_for_user(identity.user_id))


@router.websocket("/live")
async def live_jobs(websocket: WebSocket, token: str = Query("")) -> None:
    backend: Backend = websocket.app.state.backend
    try:
        identity = backend.identity.current(token)
    except AuthError:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    await websocket.accept()
    try:
        feed = await open_job_feed(backend.store, identity.user_id, backend.collection)
    except StoreError as exc:
        logger.error("Could not open live feed for user %s: %s", identity.user_id, exc)
        await websocket.send_json({"error": exc.public_message})
        await websocket.close(code=status.WS_1011_INTERNAL_ERROR)
        return

    watcher = asyncio.create_task(_cancel_on_disconnect(websocket, feed))
    try:
        async for records in feed:
            frame = LiveFrame(jobs=records, stats=compute_stats(records))
            await websocket.send_json(frame.model_dump(mode="json", by_alias=True))
    except StoreError as exc:
        logger.error("Live feed for user %s stopped: %s", identity.user_id, exc)
        await websocket.send_json({"error": exc.public_message})
        await websocket.close(code=status.WS_1011_INTERNAL_ERROR)
    except WebSocketDisconnect:
        pass
    finally:
        feed.cancel()
        watcher.cancel()


async def _cancel_on_disconnect(websocket: WebSocket, feed: JobFeed) -> None:
    try:
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        pass
    finally:
        feed.cancel()


@router.get("/{job_id}", response_model=JobRecord)
async def get_job(
    job_id: str,
    backend: Backend = Depends(get_backend),
    identity: Identity = Depends(get_current_identity),
) -> JobRecord:
    return await _owned_job(backend, job_id, identity)


@router.patch("/{job_id}", response_model=JobRecord)
async def update_job(
    job_id: str,
    payload: JobUpdate,
    backend: Backend = Depends(get_backend),
    identity: Identity = Depends(get_current_identity),
) -> JobRecord:
    await _owned_job(backend, job_id, identity)
    return await backend.jobs.update(job_id, payload.to_fields())


@router.delete("/{job_id}")
async def delete_job(
    job_id: str,
    backend: Backend = Depends(get_backend),
    identity: Identity = Depends(get_current_identity),
) -> dict[str, str]:
    await _owned_job(backend, job_id, identity)
    await backend.jobs.delete(job_id)
    return {"status": "deleted", "id": job_id}
