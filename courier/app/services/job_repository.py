"""
Job repository.

Reads and writes job records and their stops. Methods flush but never
commit; the caller owns the transaction.
"""

import logging
from datetime import datetime, timezone
from typing import Optional, List, Tuple, Sequence

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update, or_, func

from courier.app.core.exceptions import (
    AlreadyClaimedError, JobExpiredError, ResourceNotFoundError
)
from courier.app.core.geo import format_point
from courier.app.models.job import Job
from courier.app.models.job_stop import JobStop
from courier.app.models.job_enums import JobStatus, StopKind, StopStatus

logger = logging.getLogger("courier.jobs")


def as_naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    """SQLite hands back naive datetimes, Postgres aware ones. Compare in naive UTC."""
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def seconds_until_expiry(job: Job, now: Optional[datetime] = None) -> Optional[int]:
    """Seconds left before the job drops off the board, None if it never expires."""
    if job.expires_at is None:
        return None
    now = now or datetime.utcnow()
    remaining = (as_naive_utc(job.expires_at) - now).total_seconds()
    return max(int(remaining), 0)


class JobRepository:

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_job(self, job_id: int) -> Job:
        result = await self.db.execute(select(Job).where(Job.id == job_id))
        job = result.scalar_one_or_none()
        if not job:
            raise ResourceNotFoundError("Job", job_id)
        return job

    async def get_stops(self, job_id: int) -> List[JobStop]:
        result = await self.db.execute(
            select(JobStop).where(JobStop.job_id == job_id).order_by(JobStop.sequence_number)
        )
        return list(result.scalars().all())

    async def get_job_with_stops(self, job_id: int) -> Tuple[Job, List[JobStop]]:
        job = await self.get_job(job_id)
        return job, await self.get_stops(job_id)

    async def list_open_jobs(
        self,
        search: Optional[str] = None,
        now: Optional[datetime] = None
    ) -> List[Job]:
        """
        Jobs still on the board: OPEN and not past their expiry.

        Args:
            search: Case-insensitive match against label and addresses
            now: Reference time (naive UTC), defaults to utcnow
        """
        now = now or datetime.utcnow()
        query = select(Job).where(
            Job.status == JobStatus.OPEN,
            or_(Job.expires_at.is_(None), Job.expires_at > now)
        )
        query = self._apply_search(query, search)
        result = await self.db.execute(query.order_by(Job.created_at.desc(), Job.id.desc()))
        return list(result.scalars().all())

    async def list_jobs(
        self,
        statuses: Optional[Sequence[JobStatus]] = None,
        driver_id: Optional[int] = None,
        search: Optional[str] = None,
        limit: int = 100,
        offset: int = 0
    ) -> Tuple[List[Job], int]:
        """Filtered job listing with total count, newest first."""
        query = select(Job)
        count_query = select(func.count(Job.id))

        conditions = []
        if statuses:
            conditions.append(Job.status.in_(list(statuses)))
        if driver_id is not None:
            conditions.append(Job.assigned_driver_id == driver_id)
        if conditions:
            query = query.where(*conditions)
            count_query = count_query.where(*conditions)

        query = self._apply_search(query, search)
        count_query = self._apply_search(count_query, search)

        total = (await self.db.execute(count_query)).scalar()
        result = await self.db.execute(
            query.order_by(Job.created_at.desc(), Job.id.desc()).offset(offset).limit(limit)
        )
        return list(result.scalars().all()), total

    async def accept_job(self, job_id: int, driver_id: int, now: Optional[datetime] = None) -> Job:
        """
        Claim an OPEN job for a driver.

        Compare-and-swap on status: the UPDATE only matches while the job is
        still OPEN and unexpired, so two drivers racing for the same job
        cannot both win.

        Raises:
            ResourceNotFoundError: unknown job
            JobExpiredError: job is past its expiry
            AlreadyClaimedError: someone else got there first
        """
        now = now or datetime.utcnow()
        job = await self.get_job(job_id)

        if job.status == JobStatus.OPEN and job.expires_at is not None and as_naive_utc(job.expires_at) <= now:
            raise JobExpiredError(job_id)

        result = await self.db.execute(
            update(Job)
            .where(
                Job.id == job_id,
                Job.status == JobStatus.OPEN,
                or_(Job.expires_at.is_(None), Job.expires_at > now)
            )
            .values(status=JobStatus.CLAIMED, assigned_driver_id=driver_id, accepted_at=now)
            .execution_options(synchronize_session=False)
        )

        if result.rowcount != 1:
            logger.warning(
                "Claim rejected: job %s is %s (assigned to %s), driver %s lost the race",
                job_id, job.status.value, job.assigned_driver_id, driver_id
            )
            raise AlreadyClaimedError(job_id)

        await self.db.flush()
        await self.db.refresh(job)
        logger.info("Job %s claimed by driver %s", job_id, driver_id)
        return job

    async def advance_job_status(self, job_id: int, new_status: JobStatus) -> None:
        """Unconditional status write."""
        values = {"status": new_status}
        if new_status == JobStatus.COMPLETED:
            values["completed_at"] = datetime.utcnow()
        await self.db.execute(update(Job).where(Job.id == job_id).values(**values))
        await self.db.flush()

    async def create_job(
        self,
        label: str,
        stops: Sequence[dict],
        payout: float,
        currency: str,
        estimated_distance_km: Optional[float] = None,
        estimated_duration_min: Optional[float] = None,
        expires_at: Optional[datetime] = None,
        created_by_id: Optional[int] = None
    ) -> Tuple[Job, List[JobStop]]:
        """
        Create an OPEN job and its stops.

        Each stop dict carries kind, address, latitude, longitude and the
        optional manifest/contact/confirmation fields. Sequence numbers
        follow list order. The job's pickup/destination summary comes from
        the first pickup and the last dropoff.
        """
        first_pickup = next(s for s in stops if s["kind"] == StopKind.PICKUP)
        last_dropoff = [s for s in stops if s["kind"] == StopKind.DROPOFF][-1]

        job = Job(
            label=label,
            status=JobStatus.OPEN,
            pickup_address=first_pickup["address"],
            pickup_location=format_point(first_pickup["latitude"], first_pickup["longitude"]),
            destination_address=last_dropoff["address"],
            destination_location=format_point(last_dropoff["latitude"], last_dropoff["longitude"]),
            payout=payout,
            currency=currency,
            estimated_distance_km=estimated_distance_km,
            estimated_duration_min=estimated_duration_min,
            expires_at=as_naive_utc(expires_at),
            created_by_id=created_by_id,
        )
        self.db.add(job)
        await self.db.flush()

        job_stops = []
        for sequence, data in enumerate(stops, start=1):
            stop = JobStop(
                job_id=job.id,
                kind=data["kind"],
                sequence_number=sequence,
                address=data["address"],
                short_address=data.get("short_address"),
                location=format_point(data["latitude"], data["longitude"]),
                status=StopStatus.PENDING,
                items=data.get("items"),
                contact_name=data.get("contact_name"),
                contact_phone=data.get("contact_phone"),
                confirmation_code=data.get("confirmation_code"),
            )
            self.db.add(stop)
            job_stops.append(stop)

        await self.db.flush()
        return job, job_stops

    @staticmethod
    def _apply_search(query, search: Optional[str]):
        if not search:
            return query
        pattern = f"%{search.strip()}%"
        return query.where(or_(
            Job.label.ilike(pattern),
            Job.pickup_address.ilike(pattern),
            Job.destination_address.ilike(pattern),
        ))
