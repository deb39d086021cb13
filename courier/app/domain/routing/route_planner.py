"""
Multi-order route planner.

Orders a set of pickup/dropoff pairs into one driving sequence with a
nearest-neighbour walk: from the current point, go to the closest stop that
is allowed next. An order's dropoff only becomes allowed once its pickup is
done. Distances are great-circle, times use the vehicle's average speed.
"""

from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from courier.app.core.config import settings
from courier.app.core.geo import LatLng, haversine_km
from courier.app.models.job_enums import StopKind, VehicleType


@dataclass
class PlanOrder:
    order_id: str
    pickup_address: str
    pickup: LatLng
    delivery_address: str
    delivery: LatLng


@dataclass
class PlannedStop:
    order_id: str
    kind: StopKind
    address: str
    location: LatLng
    leg_distance_km: float
    leg_duration_min: float

    @property
    def instruction(self) -> str:
        if self.kind == StopKind.PICKUP:
            return f'Pick up order {self.order_id} from "{self.address}".'
        return f'Deliver order {self.order_id} to "{self.address}".'


@dataclass
class RoutePlan:
    vehicle_type: VehicleType
    stops: List[PlannedStop] = field(default_factory=list)
    total_distance_km: float = 0.0
    total_duration_min: float = 0.0

    @property
    def order_sequence(self) -> List[str]:
        """Order IDs in the order they get delivered."""
        return [s.order_id for s in self.stops if s.kind == StopKind.DROPOFF]

    @property
    def directions(self) -> List[str]:
        steps = [s.instruction for s in self.stops]
        if steps:
            steps.append("Route finished. All orders handled.")
        return steps


def speed_for(vehicle_type: VehicleType) -> float:
    if vehicle_type == VehicleType.BIKE:
        return settings.bike_average_speed_kmh
    return settings.average_speed_kmh


def plan_route(
    orders: Sequence[PlanOrder],
    vehicle_type: VehicleType = VehicleType.CAR,
    start: Optional[LatLng] = None,
    speed_kmh: Optional[float] = None,
) -> RoutePlan:
    """
    Sequence every pickup and dropoff of ``orders``.

    Without a start position the walk begins at the first order's pickup.
    Ties go to the stop listed first.

    Raises:
        ValueError: no orders, or duplicate order IDs
    """
    if not orders:
        raise ValueError("No orders provided for route planning")
    ids = [o.order_id for o in orders]
    if len(set(ids)) != len(ids):
        raise ValueError("Order IDs must be unique")

    speed = speed_kmh or speed_for(vehicle_type)
    position = start if start is not None else orders[0].pickup

    # (order, kind) candidates; a dropoff is appended when its pickup is visited
    candidates = [(o, StopKind.PICKUP) for o in orders]
    plan = RoutePlan(vehicle_type=vehicle_type)

    while candidates:
        best_index = min(
            range(len(candidates)),
            key=lambda i: haversine_km(position, _location(*candidates[i])),
        )
        order, kind = candidates.pop(best_index)
        target = _location(order, kind)
        leg_km = haversine_km(position, target)

        plan.stops.append(PlannedStop(
            order_id=order.order_id,
            kind=kind,
            address=order.pickup_address if kind == StopKind.PICKUP else order.delivery_address,
            location=target,
            leg_distance_km=round(leg_km, 2),
            leg_duration_min=round(leg_km / speed * 60, 1),
        ))
        plan.total_distance_km += leg_km
        position = target

        if kind == StopKind.PICKUP:
            candidates.append((order, StopKind.DROPOFF))

    plan.total_duration_min = round(plan.total_distance_km / speed * 60, 1)
    plan.total_distance_km = round(plan.total_distance_km, 2)
    return plan


def _location(order: PlanOrder, kind: StopKind) -> LatLng:
    return order.pickup if kind == StopKind.PICKUP else order.delivery
