"""
Manager dashboard schemas.
"""

from pydantic import BaseModel, Field
from datetime import datetime
from typing import Optional, List, Any, Dict

from courier.app.models.status_outbox import OutboxState
from courier.app.schemas.delivery import RouteResponse
from courier.app.schemas.driver import ProfileResponse
from courier.app.schemas.job import JobDetail


class AuditEntry(BaseModel):
    action: str
    actor_username: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = None
    timestamp: datetime


class OrderDetail(JobDetail):
    driver_username: Optional[str] = None
    route: Optional[RouteResponse] = None
    timeline: List[AuditEntry] = Field(default_factory=list)


class DriverRosterItem(BaseModel):
    driver_id: int
    username: str
    full_name: Optional[str] = None
    vehicle_type: Optional[str] = None
    status: str  # Available | Making delivery | Offline
    active_job_id: Optional[int] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    position_at: Optional[datetime] = None


class DriverStatsResponse(BaseModel):
    completed_jobs: int
    cancelled_jobs: int
    total_earnings: float
    completed_stops: int
    failed_stops: int


class DriverDetail(DriverRosterItem):
    email: str
    is_active: bool
    profile: Optional[ProfileResponse] = None
    stats: DriverStatsResponse


class OutboxEntryResponse(BaseModel):
    id: int
    idempotency_key: str
    job_id: int
    stop_id: Optional[int] = None
    status: str
    state: OutboxState
    attempts: int
    last_error: Optional[str] = None
    next_attempt_at: Optional[datetime] = None
    created_at: datetime
    sent_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class FlushResponse(BaseModel):
    sent: int
    retried: int
    failed: int
    skipped: bool
    errors: List[str] = Field(default_factory=list)
