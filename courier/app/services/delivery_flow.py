"""
Delivery flow service.

Runs the driver side of a job: accepting from the board, working stops in
order, the route overlay and the online/location state that gates them.
Each public method is one transaction; it commits on success and leaves
the database untouched when it raises.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional, Tuple

from sqlalchemy.ext.asyncio import AsyncSession

from courier.app.core.exceptions import (
    AlreadyClaimedError, ActiveBatchExistsError, DriverOfflineError,
    LocationUnavailableError, NoActiveBatchError
)
from courier.app.domain.delivery import stop_progression
from courier.app.domain.delivery.proof import ProofOfDelivery, ProofVerifier
from courier.app.domain.delivery.stop_progression import AdvanceOutcome, AdvanceResult
from courier.app.models.driver_session import DriverSession
from courier.app.models.job import Job
from courier.app.models.job_stop import JobStop
from courier.app.models.job_enums import JobStatus, StopAction, StopStatus
from courier.app.services.audit import log_event, AuditAction
from courier.app.services.driver_session_repository import DriverSessionRepository, clear_active_batch
from courier.app.services.geolocation import SensorErrorCode, record_fix, record_sensor_error
from courier.app.services.job_repository import JobRepository
from courier.app.services.route_fetcher import (
    RouteFetcher, RouteResult, begin_route_request, store_route
)
from courier.app.services.status_outbox import enqueue_status_update

logger = logging.getLogger("courier.delivery")

ARRIVAL_STATUSES = {StopStatus.ARRIVED_AT_PICKUP, StopStatus.ARRIVED_AT_DROPOFF}


@dataclass
class ActiveBatch:
    session: DriverSession
    job: Job
    stops: List[JobStop] = field(default_factory=list)

    @property
    def current_stop(self) -> Optional[JobStop]:
        return stop_progression.current_stop(self.stops)

    @property
    def remaining_stops(self) -> List[JobStop]:
        return stop_progression.remaining_stops(self.stops)

    @property
    def next_action(self) -> Optional[tuple]:
        return stop_progression.available_action(self.current_stop)


class DeliveryFlowService:

    def __init__(
        self,
        db: AsyncSession,
        route_fetcher: Optional[RouteFetcher] = None,
        verifier: Optional[ProofVerifier] = None
    ):
        self.db = db
        self.jobs = JobRepository(db)
        self.sessions = DriverSessionRepository(db)
        self.route_fetcher = route_fetcher or RouteFetcher()
        self.verifier = verifier or ProofVerifier()

    async def accept_job(self, job_id: int, driver_id: int, username: Optional[str] = None) -> Job:
        """
        Claim a job from the board and make it the driver's active batch.

        Raises:
            DriverOfflineError: driver has not gone online
            ActiveBatchExistsError: driver is still working another job
            AlreadyClaimedError / JobExpiredError / ResourceNotFoundError
        """
        session = await self.sessions.get_or_create(driver_id)
        if not session.is_online:
            raise DriverOfflineError()
        if session.active_job_id is not None:
            raise ActiveBatchExistsError(session.active_job_id)

        try:
            job = await self.jobs.accept_job(job_id, driver_id)
        except AlreadyClaimedError:
            await self.db.rollback()
            await log_event(
                db=self.db,
                action=AuditAction.JOB_CLAIM_REJECTED,
                actor_id=driver_id,
                actor_username=username,
                job_id=job_id,
            )
            raise

        clear_active_batch(session)
        session.active_job_id = job.id
        await self.sessions.save(session)

        await log_event(
            db=self.db,
            action=AuditAction.JOB_ACCEPTED,
            actor_id=driver_id,
            actor_username=username,
            job_id=job.id,
            metadata={"payout": job.payout, "currency": job.currency},
            commit=False
        )
        await self.db.commit()
        return job

    async def get_active_batch(self, driver_id: int) -> ActiveBatch:
        """
        Raises:
            NoActiveBatchError: driver has nothing in progress
        """
        session = await self.sessions.get(driver_id)
        if session is None or session.active_job_id is None:
            raise NoActiveBatchError()
        job, stops = await self.jobs.get_job_with_stops(session.active_job_id)
        return ActiveBatch(session=session, job=job, stops=stops)

    async def advance(
        self,
        driver_id: int,
        action: StopAction,
        proof: Optional[ProofOfDelivery] = None,
        failure_reason: Optional[str] = None,
        username: Optional[str] = None
    ) -> Tuple[AdvanceOutcome, ActiveBatch]:
        """
        Apply a driver action to the current stop.

        Flow:
        1. Load the active batch and check the position for ARRIVE
        2. Run the transition (proof is verified before anything changes)
        3. Stamp the stop, queue the status update, move the job status
        4. Clear the batch when the last stop went terminal
        5. Commit once

        A PROOF_REQUIRED outcome writes nothing.

        Raises:
            NoActiveBatchError, LocationUnavailableError,
            InvalidTransitionError, ConfirmationRejectedError
        """
        batch = await self.get_active_batch(driver_id)
        session, job = batch.session, batch.job

        if action == StopAction.ARRIVE:
            # An invalid arrive is rejected as such, whatever the sensor says
            stop = batch.current_stop
            if stop is not None:
                stop_progression.next_status(stop.kind, stop.status, action)
            if session.position is None:
                raise LocationUnavailableError(session.sensor_error)

        outcome = stop_progression.advance(batch.stops, action, proof, self.verifier)
        if outcome.result == AdvanceResult.PROOF_REQUIRED:
            return outcome, batch

        now = datetime.utcnow()
        stop = outcome.stop
        if outcome.new_status in ARRIVAL_STATUSES:
            stop.arrived_at = now
        elif outcome.new_status == StopStatus.DELIVERED:
            stop.proof_photo_url = proof.photo_url
            stop.proof_signature = proof.signature
            stop.completed_at = now
        elif outcome.new_status == StopStatus.FAILED:
            stop.failure_reason = failure_reason
            stop.completed_at = now
        else:
            stop.completed_at = now
        await self.db.flush()

        if outcome.stop_completed:
            await enqueue_status_update(
                self.db,
                job_id=job.id,
                stop_id=stop.id,
                status=outcome.new_status.value,
                payload={
                    "kind": stop.kind.value,
                    "sequence_number": stop.sequence_number,
                    "driver_id": driver_id,
                    "occurred_at": now.isoformat(),
                    "failure_reason": stop.failure_reason,
                }
            )
            if outcome.new_status == StopStatus.PICKED_UP and job.status == JobStatus.CLAIMED:
                await self.jobs.advance_job_status(job.id, JobStatus.IN_TRANSIT)

        await log_event(
            db=self.db,
            action=AuditAction.STOP_ADVANCED,
            actor_id=driver_id,
            actor_username=username,
            job_id=job.id,
            metadata={
                "stop_id": stop.id,
                "action": action.value,
                "from": outcome.previous_status.value,
                "to": outcome.new_status.value,
            },
            commit=False
        )

        if outcome.batch_cleared:
            await self.jobs.advance_job_status(job.id, JobStatus.COMPLETED)
            clear_active_batch(session)
            await self.sessions.save(session)
            await log_event(
                db=self.db,
                action=AuditAction.BATCH_COMPLETED,
                actor_id=driver_id,
                actor_username=username,
                job_id=job.id,
                metadata={"payout": job.payout, "currency": job.currency},
                commit=False
            )
            logger.info("Driver %s finished job %s", driver_id, job.id)

        await self.db.commit()
        return outcome, batch

    async def set_online(self, driver_id: int, is_online: bool, username: Optional[str] = None) -> DriverSession:
        """Toggle availability. Going offline drops the active batch reference."""
        session = await self.sessions.get_or_create(driver_id)
        was_online = session.is_online
        session.is_online = is_online

        if not is_online and session.active_job_id is not None:
            logger.info("Driver %s went offline holding job %s", driver_id, session.active_job_id)
            clear_active_batch(session)

        await self.sessions.save(session)
        if was_online != is_online:
            await log_event(
                db=self.db,
                action=AuditAction.DRIVER_WENT_ONLINE if is_online else AuditAction.DRIVER_WENT_OFFLINE,
                actor_id=driver_id,
                actor_username=username,
                commit=False
            )
        await self.db.commit()
        return session

    async def record_position(
        self,
        driver_id: int,
        latitude: float,
        longitude: float,
        accuracy_meters: Optional[float] = None,
        recorded_at: Optional[datetime] = None
    ) -> DriverSession:
        session = await self.sessions.get_or_create(driver_id)
        record_fix(session, latitude, longitude, accuracy_meters, recorded_at)
        await self.sessions.save(session)
        await self.db.commit()
        return session

    async def report_sensor_error(self, driver_id: int, code: SensorErrorCode) -> DriverSession:
        session = await self.sessions.get_or_create(driver_id)
        record_sensor_error(session, code)
        await self.sessions.save(session)
        await self.db.commit()
        return session

    async def refresh_route(self, driver_id: int) -> Tuple[RouteResult, bool]:
        """
        Fetch the overlay from the driver's position through the remaining stops.

        The generation is committed before the remote call, so whichever
        request started last wins even if an older one answers later.

        Returns:
            (route, stored) where stored is False for a superseded response
        """
        batch = await self.get_active_batch(driver_id)
        session = batch.session
        position = session.position
        if position is None:
            raise LocationUnavailableError(session.sensor_error)

        generation = begin_route_request(session)
        await self.db.commit()

        result = await self.route_fetcher.fetch_route(position, batch.remaining_stops)

        await self.db.refresh(session)
        stored = store_route(session, result, generation)
        if stored:
            await self.db.commit()
        return result, stored
