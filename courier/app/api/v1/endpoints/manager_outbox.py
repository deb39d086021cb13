"""
Status Outbox API Endpoints.

Lets a manager inspect queued status updates and push them to the
status webhook on demand.
"""

from typing import Optional, List
from fastapi import APIRouter, Depends, Path, Query
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select

from courier.app.db.session import get_db
from courier.app.core.dependencies import get_outbox_dispatcher
from courier.app.core.guards import require_manager
from courier.app.models.status_outbox import StatusOutbox, OutboxState
from courier.app.schemas.manager import OutboxEntryResponse, FlushResponse
from courier.app.services.status_outbox import OutboxDispatcher, requeue_failed

router = APIRouter(prefix="/manager/outbox", tags=["Manager - Outbox"])


@router.get("", response_model=List[OutboxEntryResponse])
async def list_outbox(
    state: Optional[OutboxState] = Query(None),
    job_id: Optional[int] = Query(None),
    limit: int = Query(100, ge=1, le=500),
    current_user: dict = Depends(require_manager),
    db: AsyncSession = Depends(get_db)
):
    query = select(StatusOutbox)
    if state is not None:
        query = query.where(StatusOutbox.state == state)
    if job_id is not None:
        query = query.where(StatusOutbox.job_id == job_id)
    result = await db.execute(query.order_by(StatusOutbox.id.desc()).limit(limit))
    return [OutboxEntryResponse.model_validate(e) for e in result.scalars().all()]


@router.post("/flush", response_model=FlushResponse)
async def flush_outbox(
    limit: Optional[int] = Query(None, ge=1, le=1000),
    current_user: dict = Depends(require_manager),
    db: AsyncSession = Depends(get_db),
    dispatcher: OutboxDispatcher = Depends(get_outbox_dispatcher)
):
    """Deliver due entries now. ``skipped`` is true when no webhook is configured."""
    report = await dispatcher.flush(db, limit=limit)
    return FlushResponse(
        sent=report.sent,
        retried=report.retried,
        failed=report.failed,
        skipped=report.skipped,
        errors=report.errors,
    )


@router.post("/{entry_id}/retry", response_model=OutboxEntryResponse)
async def retry_entry(
    entry_id: int = Path(..., description="Outbox entry ID"),
    current_user: dict = Depends(require_manager),
    db: AsyncSession = Depends(get_db)
):
    """Put a FAILED entry back in the queue with its attempt count reset."""
    entry = await requeue_failed(db, entry_id)
    return OutboxEntryResponse.model_validate(entry)
