"""
Driver session repository.

Explicit load/save for the per-driver session (online flag, last fix,
active job, route overlay). Flushes only; callers commit.
"""

from typing import Dict, Iterable, Optional

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select

from courier.app.models.driver_session import DriverSession


class DriverSessionRepository:

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get(self, driver_id: int) -> Optional[DriverSession]:
        result = await self.db.execute(
            select(DriverSession).where(DriverSession.driver_id == driver_id)
        )
        return result.scalar_one_or_none()

    async def get_or_create(self, driver_id: int) -> DriverSession:
        """Load the driver's session, creating an offline one on first use."""
        session = await self.get(driver_id)
        if session is None:
            session = DriverSession(driver_id=driver_id, is_online=False, route_generation=0)
            self.db.add(session)
            await self.db.flush()
        return session

    async def save(self, session: DriverSession) -> DriverSession:
        self.db.add(session)
        await self.db.flush()
        return session

    async def find_by_active_job(self, job_id: int) -> Optional[DriverSession]:
        result = await self.db.execute(
            select(DriverSession).where(DriverSession.active_job_id == job_id)
        )
        return result.scalar_one_or_none()

    async def map_for_drivers(self, driver_ids: Iterable[int]) -> Dict[int, DriverSession]:
        ids = list(driver_ids)
        if not ids:
            return {}
        result = await self.db.execute(
            select(DriverSession).where(DriverSession.driver_id.in_(ids))
        )
        return {s.driver_id: s for s in result.scalars().all()}


def clear_active_batch(session: DriverSession) -> None:
    """Drop the batch reference and the overlay drawn for it."""
    session.active_job_id = None
    session.route_geometry = None
    session.route_source = None
    session.route_generation = (session.route_generation or 0) + 1
