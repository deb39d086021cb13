"""
Manager Jobs & Orders API Endpoints.

Managers post jobs to the board, withdraw them, and follow every order
with its stops, driver, route overlay and audit timeline.
"""

from typing import Optional, List
from fastapi import APIRouter, Depends, Path, Query, Body, status
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select

from courier.app.db.session import get_db
from courier.app.core.dependencies import get_route_fetcher
from courier.app.core.geo import parse_point
from courier.app.core.guards import require_manager
from courier.app.models.job_enums import JobStatus
from courier.app.models.user import User
from courier.app.schemas.delivery import RouteResponse
from courier.app.schemas.job import JobCreate, JobDetail, JobListResponse, JobSummary
from courier.app.schemas.manager import OrderDetail, AuditEntry
from courier.app.services.audit import get_job_audit_trail
from courier.app.services.dispatch_board import DispatchBoard
from courier.app.services.job_repository import JobRepository
from courier.app.services.route_fetcher import RouteFetcher

router = APIRouter(prefix="/manager", tags=["Manager - Orders"])


@router.post("/jobs", response_model=JobDetail, status_code=status.HTTP_201_CREATED)
async def create_job(
    job_data: JobCreate = Body(...),
    current_user: dict = Depends(require_manager),
    db: AsyncSession = Depends(get_db)
):
    """
    Post a job to the board (Manager only).

    Payout is quoted from the stop path (base fare + per km + per minute)
    unless given explicitly.
    """
    job, stops = await DispatchBoard(db).create_job(
        label=job_data.label,
        stops=job_data.stop_dicts(),
        created_by_id=current_user["user_id"],
        username=current_user.get("sub"),
        payout=job_data.payout,
        expires_at=job_data.expires_at,
    )
    return JobDetail.from_job_and_stops(job, stops)


@router.post("/jobs/{job_id}/cancel", response_model=JobSummary)
async def cancel_job(
    job_id: int = Path(..., description="Job ID"),
    current_user: dict = Depends(require_manager),
    db: AsyncSession = Depends(get_db)
):
    job = await DispatchBoard(db).cancel_job(job_id, current_user["user_id"], current_user.get("sub"))
    return JobSummary.from_job(job)


@router.get("/orders", response_model=JobListResponse)
async def list_orders(
    status_filter: Optional[List[JobStatus]] = Query(None, alias="status"),
    search: Optional[str] = Query(None, max_length=100),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    current_user: dict = Depends(require_manager),
    db: AsyncSession = Depends(get_db)
):
    """All orders, optionally filtered by status (repeatable) and a search term."""
    jobs, total = await JobRepository(db).list_jobs(
        statuses=status_filter, search=search, limit=limit, offset=offset
    )
    return JobListResponse(jobs=[JobSummary.from_job(job) for job in jobs], total=total)


@router.get("/orders/{job_id}", response_model=OrderDetail)
async def get_order(
    job_id: int = Path(..., description="Job ID"),
    current_user: dict = Depends(require_manager),
    db: AsyncSession = Depends(get_db),
    fetcher: RouteFetcher = Depends(get_route_fetcher)
):
    """Order detail with the pickup-to-destination route and the audit timeline."""
    job, stops = await JobRepository(db).get_job_with_stops(job_id)

    driver_username = None
    if job.assigned_driver_id:
        result = await db.execute(select(User.username).where(User.id == job.assigned_driver_id))
        driver_username = result.scalar_one_or_none()

    route = await fetcher.fetch_pair_route(
        parse_point(job.pickup_location), parse_point(job.destination_location)
    )
    trail = await get_job_audit_trail(db, job_id)

    return OrderDetail.from_job_and_stops(
        job,
        stops,
        driver_username=driver_username,
        route=RouteResponse(
            coordinates=[[lat, lng] for lat, lng in route.coordinates],
            source=route.source,
            dashed=route.dashed,
            distance_km=route.distance_km,
            duration_min=route.duration_min,
        ),
        timeline=[
            AuditEntry(
                action=entry.action,
                actor_username=entry.actor_username,
                metadata=entry.meta_data,
                timestamp=entry.timestamp,
            )
            for entry in trail
        ],
    )
