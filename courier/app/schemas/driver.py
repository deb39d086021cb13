"""
Driver session, location and profile schemas.
"""

from pydantic import BaseModel, Field, model_validator
from datetime import datetime
from typing import Optional, List

from courier.app.models.job_enums import VehicleType
from courier.app.schemas.job import JobSummary
from courier.app.services.geolocation import SensorErrorCode


class OnlineToggle(BaseModel):
    is_online: bool


class LocationUpdate(BaseModel):
    """
    A fix from the device, or the sensor error that replaced it.

    Send either latitude/longitude or error_code, never both.
    """
    latitude: Optional[float] = Field(None, ge=-90, le=90)
    longitude: Optional[float] = Field(None, ge=-180, le=180)
    accuracy_meters: Optional[float] = Field(None, gt=0)
    recorded_at: Optional[datetime] = None
    error_code: Optional[SensorErrorCode] = None

    @model_validator(mode="after")
    def check_fix_or_error(self):
        has_fix = self.latitude is not None and self.longitude is not None
        if self.error_code is not None and (self.latitude is not None or self.longitude is not None):
            raise ValueError("Send either a position or an error_code, not both")
        if self.error_code is None and not has_fix:
            raise ValueError("latitude and longitude are required unless error_code is set")
        return self


class SessionResponse(BaseModel):
    driver_id: int
    is_online: bool
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    accuracy_meters: Optional[float] = None
    position_at: Optional[datetime] = None
    sensor_error: Optional[str] = None
    active_job_id: Optional[int] = None

    @classmethod
    def from_session(cls, session) -> "SessionResponse":
        return cls(
            driver_id=session.driver_id,
            is_online=session.is_online,
            latitude=session.last_latitude,
            longitude=session.last_longitude,
            accuracy_meters=session.last_accuracy_meters,
            position_at=session.last_position_at,
            sensor_error=session.sensor_error,
            active_job_id=session.active_job_id,
        )


class ProfileResponse(BaseModel):
    driver_id: int
    full_name: Optional[str] = None
    phone: Optional[str] = None
    vehicle_type: VehicleType = VehicleType.CAR
    vehicle_model: Optional[str] = None
    license_plate: Optional[str] = None
    emergency_contact_name: Optional[str] = None
    emergency_contact_phone: Optional[str] = None
    rating: Optional[float] = None

    class Config:
        from_attributes = True


class ProfileUpdate(BaseModel):
    full_name: Optional[str] = Field(None, max_length=200)
    phone: Optional[str] = Field(None, max_length=50)
    vehicle_type: Optional[VehicleType] = None
    vehicle_model: Optional[str] = Field(None, max_length=100)
    license_plate: Optional[str] = Field(None, max_length=30)
    emergency_contact_name: Optional[str] = Field(None, max_length=200)
    emergency_contact_phone: Optional[str] = Field(None, max_length=50)


class PayoutSummary(BaseModel):
    completed_jobs: int
    total_earnings: float
    currency: str
    recent: List[JobSummary]
