"""
Manager Drivers API Endpoints.

Roster with live availability, and a per-driver profile with stats.
"""

from typing import List
from fastapi import APIRouter, Depends, Path
from sqlalchemy.ext.asyncio import AsyncSession

from courier.app.db.session import get_db
from courier.app.core.guards import require_manager
from courier.app.schemas.driver import ProfileResponse
from courier.app.schemas.manager import DriverRosterItem, DriverDetail, DriverStatsResponse
from courier.app.services.dispatch_board import DispatchBoard, RosterEntry

router = APIRouter(prefix="/manager/drivers", tags=["Manager - Drivers"])


def _roster_fields(entry: RosterEntry) -> dict:
    session = entry.session
    return {
        "driver_id": entry.user.id,
        "username": entry.user.username,
        "full_name": entry.profile.full_name if entry.profile else None,
        "vehicle_type": entry.profile.vehicle_type.value if entry.profile else None,
        "status": entry.status,
        "active_job_id": session.active_job_id if session else None,
        "latitude": session.last_latitude if session else None,
        "longitude": session.last_longitude if session else None,
        "position_at": session.last_position_at if session else None,
    }


@router.get("", response_model=List[DriverRosterItem])
async def list_drivers(
    current_user: dict = Depends(require_manager),
    db: AsyncSession = Depends(get_db)
):
    """Every driver with Available / Making delivery / Offline status."""
    roster = await DispatchBoard(db).roster()
    return [DriverRosterItem(**_roster_fields(entry)) for entry in roster]


@router.get("/{driver_id}", response_model=DriverDetail)
async def get_driver(
    driver_id: int = Path(..., description="Driver user ID"),
    current_user: dict = Depends(require_manager),
    db: AsyncSession = Depends(get_db)
):
    entry, stats = await DispatchBoard(db).driver_detail(driver_id)
    return DriverDetail(
        **_roster_fields(entry),
        email=entry.user.email,
        is_active=entry.user.is_active,
        profile=ProfileResponse.model_validate(entry.profile) if entry.profile else None,
        stats=DriverStatsResponse(**stats.__dict__),
    )
