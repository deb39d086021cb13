"""
Dispatch board service.

Manager-side operations: posting jobs to the board, withdrawing them,
the driver roster and per-driver statistics, plus the earnings summary a
driver sees on the payouts screen.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, List, Optional, Sequence, Tuple

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func

from courier.app.core.exceptions import InvalidTransitionError, ResourceNotFoundError
from courier.app.domain.pricing.payout_calculator import PayoutCalculator
from courier.app.models.driver_profile import DriverProfile
from courier.app.models.driver_session import DriverSession
from courier.app.models.enums import UserRole
from courier.app.models.job import Job
from courier.app.models.job_stop import JobStop
from courier.app.models.job_enums import JobStatus, StopStatus
from courier.app.models.user import User
from courier.app.services.audit import log_event, AuditAction
from courier.app.services.driver_session_repository import DriverSessionRepository, clear_active_batch
from courier.app.services.job_repository import JobRepository

logger = logging.getLogger("courier.dispatch")

STATUS_AVAILABLE = "Available"
STATUS_MAKING_DELIVERY = "Making delivery"
STATUS_OFFLINE = "Offline"


def roster_status(session: Optional[DriverSession]) -> str:
    if session is None or not session.is_online:
        return STATUS_OFFLINE
    if session.active_job_id is not None:
        return STATUS_MAKING_DELIVERY
    return STATUS_AVAILABLE


@dataclass
class RosterEntry:
    user: User
    profile: Optional[DriverProfile]
    session: Optional[DriverSession]

    @property
    def status(self) -> str:
        return roster_status(self.session)


@dataclass
class DriverStats:
    completed_jobs: int = 0
    cancelled_jobs: int = 0
    total_earnings: float = 0.0
    completed_stops: int = 0
    failed_stops: int = 0


class DispatchBoard:

    def __init__(self, db: AsyncSession, calculator: Optional[PayoutCalculator] = None):
        self.db = db
        self.jobs = JobRepository(db)
        self.sessions = DriverSessionRepository(db)
        self.calculator = calculator or PayoutCalculator()

    async def create_job(
        self,
        label: str,
        stops: Sequence[dict],
        created_by_id: int,
        username: Optional[str] = None,
        payout: Optional[float] = None,
        expires_at: Optional[datetime] = None
    ) -> Tuple[Job, List[JobStop]]:
        """
        Post a job to the board.

        The distance/time estimate always comes from the stop path; the
        payout is quoted from it unless the manager set one explicitly.
        """
        quote = self.calculator.quote((s["latitude"], s["longitude"]) for s in stops)
        job, job_stops = await self.jobs.create_job(
            label=label,
            stops=stops,
            payout=quote.payout if payout is None else payout,
            currency=quote.currency,
            estimated_distance_km=quote.distance_km,
            estimated_duration_min=quote.duration_min,
            expires_at=expires_at,
            created_by_id=created_by_id,
        )
        await log_event(
            db=self.db,
            action=AuditAction.JOB_CREATED,
            actor_id=created_by_id,
            actor_username=username,
            job_id=job.id,
            metadata={"stops": len(job_stops), "payout": job.payout, "quoted": payout is None},
            commit=False
        )
        await self.db.commit()
        await self.db.refresh(job)
        logger.info("Job %s posted with %d stops, payout %s %s", job.id, len(job_stops), job.payout, job.currency)
        return job, job_stops

    async def cancel_job(self, job_id: int, actor_id: int, username: Optional[str] = None) -> Job:
        """
        Withdraw a job. A driver working it loses the batch reference.

        Raises:
            InvalidTransitionError: job already COMPLETED or CANCELLED
        """
        job = await self.jobs.get_job(job_id)
        if job.status in (JobStatus.COMPLETED, JobStatus.CANCELLED):
            raise InvalidTransitionError("job", job.status.value, "cancel")

        previous = job.status
        await self.jobs.advance_job_status(job_id, JobStatus.CANCELLED)

        session = await self.sessions.find_by_active_job(job_id)
        if session is not None:
            clear_active_batch(session)
            await self.sessions.save(session)

        await log_event(
            db=self.db,
            action=AuditAction.JOB_CANCELLED,
            actor_id=actor_id,
            actor_username=username,
            job_id=job_id,
            metadata={"previous_status": previous.value, "driver_id": job.assigned_driver_id},
            commit=False
        )
        await self.db.commit()
        await self.db.refresh(job)
        return job

    async def roster(self) -> List[RosterEntry]:
        result = await self.db.execute(
            select(User).where(User.role == UserRole.DRIVER).order_by(User.username)
        )
        drivers = list(result.scalars().all())
        ids = [d.id for d in drivers]

        profiles = await self._profiles_for(ids)
        sessions = await self.sessions.map_for_drivers(ids)
        return [RosterEntry(user=d, profile=profiles.get(d.id), session=sessions.get(d.id)) for d in drivers]

    async def driver_detail(self, driver_id: int) -> Tuple[RosterEntry, DriverStats]:
        result = await self.db.execute(
            select(User).where(User.id == driver_id, User.role == UserRole.DRIVER)
        )
        user = result.scalar_one_or_none()
        if not user:
            raise ResourceNotFoundError("Driver", driver_id)

        profiles = await self._profiles_for([driver_id])
        entry = RosterEntry(user=user, profile=profiles.get(driver_id), session=await self.sessions.get(driver_id))
        return entry, await self.driver_stats(driver_id)

    async def driver_stats(self, driver_id: int) -> DriverStats:
        job_counts = await self.db.execute(
            select(Job.status, func.count(Job.id), func.coalesce(func.sum(Job.payout), 0.0))
            .where(Job.assigned_driver_id == driver_id)
            .group_by(Job.status)
        )
        stats = DriverStats()
        for status, count, payout_sum in job_counts.all():
            if status == JobStatus.COMPLETED:
                stats.completed_jobs = count
                stats.total_earnings = round(float(payout_sum), 2)
            elif status == JobStatus.CANCELLED:
                stats.cancelled_jobs = count

        stop_counts = await self.db.execute(
            select(JobStop.status, func.count(JobStop.id))
            .join(Job, Job.id == JobStop.job_id)
            .where(Job.assigned_driver_id == driver_id, JobStop.completed_at.is_not(None))
            .group_by(JobStop.status)
        )
        for status, count in stop_counts.all():
            if status == StopStatus.FAILED:
                stats.failed_stops = count
            else:
                stats.completed_stops += count
        return stats

    async def earnings_summary(self, driver_id: int, limit: int = 20) -> Dict:
        """Totals and the most recent completed jobs for the payouts screen."""
        stats = await self.driver_stats(driver_id)
        recent, _ = await self.jobs.list_jobs(
            statuses=[JobStatus.COMPLETED], driver_id=driver_id, limit=limit
        )
        return {
            "completed_jobs": stats.completed_jobs,
            "total_earnings": stats.total_earnings,
            "currency": self.calculator.currency,
            "recent": recent,
        }

    async def _profiles_for(self, driver_ids: List[int]) -> Dict[int, DriverProfile]:
        if not driver_ids:
            return {}
        result = await self.db.execute(
            select(DriverProfile).where(DriverProfile.driver_id.in_(driver_ids))
        )
        return {p.driver_id: p for p in result.scalars().all()}
