"""
Driver Profile, History and Payouts API Endpoints.
"""

from fastapi import APIRouter, Depends, Body, Query
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select

from courier.app.db.session import get_db
from courier.app.core.guards import require_driver
from courier.app.models.driver_profile import DriverProfile
from courier.app.models.job_enums import JobStatus
from courier.app.schemas.driver import ProfileResponse, ProfileUpdate, PayoutSummary
from courier.app.schemas.job import JobListResponse, JobSummary
from courier.app.services.dispatch_board import DispatchBoard
from courier.app.services.job_repository import JobRepository

router = APIRouter(prefix="/driver", tags=["Driver - Profile"])


async def _load_profile(db: AsyncSession, driver_id: int) -> DriverProfile:
    result = await db.execute(select(DriverProfile).where(DriverProfile.driver_id == driver_id))
    profile = result.scalar_one_or_none()
    if profile is None:
        profile = DriverProfile(driver_id=driver_id)
        db.add(profile)
        await db.flush()
    return profile


@router.get("/profile", response_model=ProfileResponse)
async def get_profile(
    current_user: dict = Depends(require_driver),
    db: AsyncSession = Depends(get_db)
):
    profile = await _load_profile(db, current_user["user_id"])
    await db.commit()
    return ProfileResponse.model_validate(profile)


@router.patch("/profile", response_model=ProfileResponse)
async def update_profile(
    update: ProfileUpdate = Body(...),
    current_user: dict = Depends(require_driver),
    db: AsyncSession = Depends(get_db)
):
    """Partial update; fields left out of the body are unchanged."""
    profile = await _load_profile(db, current_user["user_id"])
    for field, value in update.model_dump(exclude_unset=True).items():
        setattr(profile, field, value)
    await db.commit()
    await db.refresh(profile)
    return ProfileResponse.model_validate(profile)


@router.get("/history", response_model=JobListResponse)
async def get_history(
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    current_user: dict = Depends(require_driver),
    db: AsyncSession = Depends(get_db)
):
    """Finished and withdrawn jobs this driver worked, newest first."""
    jobs, total = await JobRepository(db).list_jobs(
        statuses=[JobStatus.COMPLETED, JobStatus.CANCELLED],
        driver_id=current_user["user_id"],
        limit=limit,
        offset=offset,
    )
    return JobListResponse(jobs=[JobSummary.from_job(job) for job in jobs], total=total)


@router.get("/payouts", response_model=PayoutSummary)
async def get_payouts(
    current_user: dict = Depends(require_driver),
    db: AsyncSession = Depends(get_db)
):
    summary = await DispatchBoard(db).earnings_summary(current_user["user_id"])
    return PayoutSummary(
        completed_jobs=summary["completed_jobs"],
        total_earnings=summary["total_earnings"],
        currency=summary["currency"],
        recent=[JobSummary.from_job(job) for job in summary["recent"]],
    )
