"""
Active delivery schemas.
"""

from pydantic import BaseModel, Field, model_validator
from typing import Optional, List

from courier.app.models.job_enums import StopAction, StopStatus
from courier.app.schemas.job import JobSummary, StopResponse


class ProofPayload(BaseModel):
    code: Optional[str] = Field(None, max_length=12, description="6-digit confirmation code from the recipient")
    photo_url: Optional[str] = Field(None, max_length=500)
    signature: Optional[str] = Field(None, max_length=500, description="Signature image URL or data reference")


class AdvanceRequest(BaseModel):
    """Driver presses the primary button (or reports a failed stop)."""
    action: StopAction
    proof: Optional[ProofPayload] = None
    failure_reason: Optional[str] = Field(None, max_length=500)

    @model_validator(mode="after")
    def check_failure_reason(self):
        if self.action == StopAction.FAIL and not (self.failure_reason or "").strip():
            raise ValueError("failure_reason is required when failing a stop")
        return self


class NextAction(BaseModel):
    action: StopAction
    label: str


class ActiveBatchResponse(BaseModel):
    job: JobSummary
    stops: List[StopResponse]
    current_stop: Optional[StopResponse] = None
    next_action: Optional[NextAction] = None
    remaining_stops: int
    route: Optional[List[List[float]]] = None
    route_source: Optional[str] = None


class AdvanceResponse(BaseModel):
    result: str  # ADVANCED | PROOF_REQUIRED
    stop_id: int
    previous_status: StopStatus
    status: StopStatus
    next_stop: Optional[StopResponse] = None
    next_action: Optional[NextAction] = None
    batch_cleared: bool = False
    message: str


class RouteResponse(BaseModel):
    coordinates: List[List[float]]  # [[lat, lng], ...]
    source: str
    dashed: bool
    distance_km: Optional[float] = None
    duration_min: Optional[float] = None
    stored: bool = True
