"""
Route planning schemas.
"""

from pydantic import BaseModel, Field, model_validator
from typing import Optional, List

from courier.app.models.job_enums import StopKind, VehicleType


class PlanOrderIn(BaseModel):
    order_id: str = Field(..., min_length=1, max_length=50)
    pickup_address: str = Field(..., min_length=1, max_length=500)
    pickup_latitude: float = Field(..., ge=-90, le=90)
    pickup_longitude: float = Field(..., ge=-180, le=180)
    delivery_address: str = Field(..., min_length=1, max_length=500)
    delivery_latitude: float = Field(..., ge=-90, le=90)
    delivery_longitude: float = Field(..., ge=-180, le=180)


class RoutePlanRequest(BaseModel):
    """
    Orders to sequence, given inline or as posted job IDs (or both).

    Jobs contribute their pickup and destination summary.
    """
    orders: List[PlanOrderIn] = Field(default_factory=list)
    job_ids: List[int] = Field(default_factory=list)
    vehicle_type: VehicleType = VehicleType.CAR
    start_latitude: Optional[float] = Field(None, ge=-90, le=90)
    start_longitude: Optional[float] = Field(None, ge=-180, le=180)

    @model_validator(mode="after")
    def check_orders(self):
        if not self.orders and not self.job_ids:
            raise ValueError("No orders provided for route planning")
        if (self.start_latitude is None) != (self.start_longitude is None):
            raise ValueError("start_latitude and start_longitude go together")
        return self


class PlannedStopOut(BaseModel):
    order_id: str
    kind: StopKind
    address: str
    latitude: float
    longitude: float
    leg_distance_km: float
    leg_duration_min: float


class RoutePlanResponse(BaseModel):
    vehicle_type: VehicleType
    optimized_route: List[str]
    stops: List[PlannedStopOut]
    directions: List[str]
    total_distance_km: float
    total_duration_min: float
