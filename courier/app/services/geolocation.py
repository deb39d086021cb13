"""
Device geolocation handling.

The driver app streams fixes from the phone's location sensor. A fix
replaces the last known position; a sensor error clears it and leaves a
banner message for the driver.
"""

import enum
import logging
from datetime import datetime
from typing import Optional

from courier.app.core.geo import validate_coordinate
from courier.app.models.driver_session import DriverSession
from courier.app.services.job_repository import as_naive_utc

logger = logging.getLogger("courier.geolocation")


class SensorErrorCode(str, enum.Enum):
    PERMISSION_DENIED = "PERMISSION_DENIED"
    POSITION_UNAVAILABLE = "POSITION_UNAVAILABLE"
    TIMEOUT = "TIMEOUT"


SENSOR_ERROR_MESSAGES = {
    SensorErrorCode.PERMISSION_DENIED: "Location permission denied. Enable location access for this app in your device settings.",
    SensorErrorCode.POSITION_UNAVAILABLE: "Location unavailable. Move to an open area or check that GPS is enabled.",
    SensorErrorCode.TIMEOUT: "Timed out waiting for a GPS fix. Please try again.",
}


def record_fix(
    session: DriverSession,
    latitude: float,
    longitude: float,
    accuracy_meters: Optional[float] = None,
    recorded_at: Optional[datetime] = None
) -> None:
    validate_coordinate(latitude, longitude)
    session.last_latitude = latitude
    session.last_longitude = longitude
    session.last_accuracy_meters = accuracy_meters
    session.last_position_at = as_naive_utc(recorded_at) or datetime.utcnow()
    session.sensor_error = None


def record_sensor_error(session: DriverSession, code: SensorErrorCode) -> str:
    """Clear the position and store the banner text. Returns the message."""
    message = SENSOR_ERROR_MESSAGES[code]
    logger.warning("Driver %s location error: %s", session.driver_id, code.value)
    session.last_latitude = None
    session.last_longitude = None
    session.last_accuracy_meters = None
    session.sensor_error = message
    return message
