"""
Driver Session API Endpoints.

Online/offline toggle and the location stream from the device.
"""

from fastapi import APIRouter, Depends, Body
from sqlalchemy.ext.asyncio import AsyncSession

from courier.app.db.session import get_db
from courier.app.core.guards import require_driver
from courier.app.schemas.driver import OnlineToggle, LocationUpdate, SessionResponse
from courier.app.services.delivery_flow import DeliveryFlowService
from courier.app.services.driver_session_repository import DriverSessionRepository

router = APIRouter(prefix="/driver/session", tags=["Driver - Session"])


@router.get("", response_model=SessionResponse)
async def get_session(
    current_user: dict = Depends(require_driver),
    db: AsyncSession = Depends(get_db)
):
    session = await DriverSessionRepository(db).get_or_create(current_user["user_id"])
    await db.commit()
    return SessionResponse.from_session(session)


@router.put("/online", response_model=SessionResponse)
async def set_online(
    toggle: OnlineToggle = Body(...),
    current_user: dict = Depends(require_driver),
    db: AsyncSession = Depends(get_db)
):
    """
    Go online or offline.

    Going offline drops the active job reference; the job itself keeps its
    status for the manager to follow up.
    """
    session = await DeliveryFlowService(db).set_online(
        current_user["user_id"], toggle.is_online, current_user.get("sub")
    )
    return SessionResponse.from_session(session)


@router.post("/location", response_model=SessionResponse)
async def report_location(
    update: LocationUpdate = Body(...),
    current_user: dict = Depends(require_driver),
    db: AsyncSession = Depends(get_db)
):
    """
    Record a GPS fix, or the sensor error that prevented one.

    A sensor error clears the last position, which blocks ``arrive`` until
    a new fix comes in.
    """
    service = DeliveryFlowService(db)
    if update.error_code is not None:
        session = await service.report_sensor_error(current_user["user_id"], update.error_code)
    else:
        session = await service.record_position(
            current_user["user_id"],
            update.latitude,
            update.longitude,
            update.accuracy_meters,
            update.recorded_at,
        )
    return SessionResponse.from_session(session)
