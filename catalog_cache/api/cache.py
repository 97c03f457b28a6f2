from __future__ import annotations

import logging
from typing import Dict, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel

from catalog_cache.core.dependencies import get_marker_store, get_refresh_queue
from catalog_cache.domain.models import RefreshJob, SourceModes, VersionChange
from catalog_cache.services.freshness import all_updates
from catalog_cache.services.refresh_queue import RefreshQueue
from catalog_cache.storage.marker_store import VersionMarkerStore

logger = logging.getLogger(__name__)
router = APIRouter()


class CacheStatus(BaseModel):
    markers: Dict[str, Optional[str]]
    updates: Dict[str, Optional[VersionChange]]


@router.get("/status")
async def get_status(markers: VersionMarkerStore = Depends(get_marker_store)) -> CacheStatus:
    """
    Stored marker values and the update comparisons derived from them.
    """
    return CacheStatus(markers=markers.snapshot(), updates=all_updates(markers))


@router.post("/refresh", status_code=status.HTTP_202_ACCEPTED)
async def request_refresh(
    modes: SourceModes,
    queue: RefreshQueue = Depends(get_refresh_queue),
) -> RefreshJob:
    """
    Queue a refresh for the given package sources. Poll the returned job.
    """
    return queue.submit(modes)


@router.get("/refresh/{job_id}")
async def get_refresh(job_id: str, queue: RefreshQueue = Depends(get_refresh_queue)) -> RefreshJob:
    job = queue.get(job_id)
    if job is None:
        raise HTTPException(status_code=404, detail="Refresh job not found")
    return job


@router.delete("/refresh/{job_id}")
async def cancel_refresh(job_id: str, queue: RefreshQueue = Depends(get_refresh_queue)) -> RefreshJob:
    job = queue.get(job_id)
    if job is None:
        raise HTTPException(status_code=404, detail="Refresh job not found")
    if not queue.cancel(job_id):
        raise HTTPException(status_code=409, detail=f"Refresh job is already {job.state.value}")
    return job
