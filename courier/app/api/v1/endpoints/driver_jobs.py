"""
Driver Jobs Board API Endpoints.

Drivers browse open jobs and claim one. Claims are first-come: the loser
of a race gets 409 ERR_JOB_CLAIMED.
"""

from typing import Optional
from fastapi import APIRouter, Depends, Path, Query
from sqlalchemy.ext.asyncio import AsyncSession

from courier.app.db.session import get_db
from courier.app.core.guards import require_driver
from courier.app.schemas.job import JobListResponse, JobSummary, JobDetail, AcceptJobResponse
from courier.app.services.delivery_flow import DeliveryFlowService
from courier.app.services.job_repository import JobRepository

router = APIRouter(prefix="/driver/jobs", tags=["Driver - Jobs Board"])


@router.get("", response_model=JobListResponse)
async def list_open_jobs(
    search: Optional[str] = Query(None, max_length=100, description="Match label or addresses"),
    current_user: dict = Depends(require_driver),
    db: AsyncSession = Depends(get_db)
):
    """
    Open, unexpired jobs, newest first.

    Each card carries the seconds left before the job drops off the board.
    """
    jobs = await JobRepository(db).list_open_jobs(search=search)
    return JobListResponse(jobs=[JobSummary.from_job(job) for job in jobs], total=len(jobs))


@router.get("/{job_id}", response_model=JobDetail)
async def get_job(
    job_id: int = Path(..., description="Job ID"),
    current_user: dict = Depends(require_driver),
    db: AsyncSession = Depends(get_db)
):
    job, stops = await JobRepository(db).get_job_with_stops(job_id)
    return JobDetail.from_job_and_stops(job, stops)


@router.post("/{job_id}/accept", response_model=AcceptJobResponse)
async def accept_job(
    job_id: int = Path(..., description="Job ID"),
    current_user: dict = Depends(require_driver),
    db: AsyncSession = Depends(get_db)
):
    """
    Accept a job (Driver only).

    Validates:
    - Driver is online
    - Driver has no other active job
    - Job is still OPEN and unexpired (atomic claim)
    """
    job = await DeliveryFlowService(db).accept_job(
        job_id, current_user["user_id"], current_user.get("sub")
    )
    return AcceptJobResponse(job_id=job.id, status=job.status, accepted_at=job.accepted_at)
