"""
Job and stop schemas.

Shared by the driver's jobs board and the manager's order views.
"""

from pydantic import BaseModel, Field, model_validator
from datetime import datetime
from typing import Optional, List, Any

from courier.app.core.geo import parse_point
from courier.app.domain.pricing.payout_calculator import distance_label, duration_label
from courier.app.models.job_enums import JobStatus, StopKind, StopStatus
from courier.app.services.job_repository import seconds_until_expiry


class StopItem(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    quantity: int = Field(default=1, ge=1)


class StopCreate(BaseModel):
    """One pickup or dropoff on a new job. Order in the list is work order."""
    kind: StopKind
    address: str = Field(..., min_length=1, max_length=500)
    short_address: Optional[str] = Field(None, max_length=200)
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)
    items: List[StopItem] = Field(default_factory=list)
    contact_name: Optional[str] = Field(None, max_length=200)
    contact_phone: Optional[str] = Field(None, max_length=50)
    confirmation_code: Optional[str] = Field(None, pattern=r"^\d{6}$", description="6-digit code for dropoffs")


class JobCreate(BaseModel):
    """
    Schema for posting a job (Manager).

    Payout is quoted from the stop path when omitted.
    """
    label: str = Field(..., min_length=1, max_length=200)
    stops: List[StopCreate] = Field(..., min_length=2)
    payout: Optional[float] = Field(None, ge=0)
    expires_at: Optional[datetime] = None

    @model_validator(mode="after")
    def check_stop_order(self):
        kinds = [s.kind for s in self.stops]
        if StopKind.PICKUP not in kinds or StopKind.DROPOFF not in kinds:
            raise ValueError("A job needs at least one pickup and one dropoff")
        if kinds[0] != StopKind.PICKUP:
            raise ValueError("The first stop must be a pickup")
        if kinds[-1] != StopKind.DROPOFF:
            raise ValueError("The last stop must be a dropoff")
        return self

    def stop_dicts(self) -> List[dict]:
        return [
            {**s.model_dump(exclude={"items"}), "items": [i.model_dump() for i in s.items]}
            for s in self.stops
        ]


class StopResponse(BaseModel):
    id: int
    kind: StopKind
    sequence_number: int
    address: str
    short_address: Optional[str] = None
    latitude: float
    longitude: float
    status: StopStatus
    items: List[Any] = Field(default_factory=list)
    contact_name: Optional[str] = None
    contact_phone: Optional[str] = None
    arrived_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    failure_reason: Optional[str] = None

    @classmethod
    def from_stop(cls, stop) -> "StopResponse":
        lat, lng = parse_point(stop.location)
        return cls(
            id=stop.id,
            kind=stop.kind,
            sequence_number=stop.sequence_number,
            address=stop.address,
            short_address=stop.short_address,
            latitude=lat,
            longitude=lng,
            status=stop.status,
            items=stop.items or [],
            contact_name=stop.contact_name,
            contact_phone=stop.contact_phone,
            arrived_at=stop.arrived_at,
            completed_at=stop.completed_at,
            failure_reason=stop.failure_reason,
        )


class JobSummary(BaseModel):
    """Card on the jobs board or in an order list."""
    id: int
    label: str
    status: JobStatus
    pickup_address: str
    destination_address: str
    payout: float
    currency: str
    estimated_distance_km: Optional[float] = None
    estimated_duration_min: Optional[float] = None
    distance_label: Optional[str] = None  # "3.2 km"
    duration_label: Optional[str] = None  # "6 mins"
    assigned_driver_id: Optional[int] = None
    expires_at: Optional[datetime] = None
    expires_in_seconds: Optional[int] = None
    created_at: datetime
    accepted_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    class Config:
        from_attributes = True

    @classmethod
    def from_job(cls, job, now: Optional[datetime] = None):
        summary = cls.model_validate(job)
        summary.expires_in_seconds = seconds_until_expiry(job, now)
        if job.estimated_distance_km is not None:
            summary.distance_label = distance_label(job.estimated_distance_km)
        if job.estimated_duration_min is not None:
            summary.duration_label = duration_label(job.estimated_duration_min)
        return summary


class JobDetail(JobSummary):
    stops: List[StopResponse] = Field(default_factory=list)

    @classmethod
    def from_job_and_stops(cls, job, stops, **extra):
        detail = cls.from_job(job)
        detail.stops = [StopResponse.from_stop(s) for s in stops]
        for key, value in extra.items():
            setattr(detail, key, value)
        return detail


class JobListResponse(BaseModel):
    jobs: List[JobSummary]
    total: int


class AcceptJobResponse(BaseModel):
    job_id: int
    status: JobStatus
    accepted_at: datetime
    message: str = "Job accepted"
