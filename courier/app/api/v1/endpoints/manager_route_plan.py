"""
Manager Route Planning API Endpoint.

Sequences several orders into one run for a car or a bike.
"""

from fastapi import APIRouter, Depends, Body, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from courier.app.db.session import get_db
from courier.app.core.geo import parse_point
from courier.app.core.guards import require_manager
from courier.app.domain.routing.route_planner import PlanOrder, plan_route
from courier.app.schemas.route_plan import RoutePlanRequest, RoutePlanResponse, PlannedStopOut
from courier.app.services.job_repository import JobRepository

router = APIRouter(prefix="/manager", tags=["Manager - Route Planning"])


@router.post("/route-plan", response_model=RoutePlanResponse)
async def create_route_plan(
    request: RoutePlanRequest = Body(...),
    current_user: dict = Depends(require_manager),
    db: AsyncSession = Depends(get_db)
):
    """
    Plan one run through every order.

    Each pickup comes before its delivery; the next stop is always the
    closest one allowed. Unknown job IDs are 404.
    """
    orders = [
        PlanOrder(
            order_id=o.order_id,
            pickup_address=o.pickup_address,
            pickup=(o.pickup_latitude, o.pickup_longitude),
            delivery_address=o.delivery_address,
            delivery=(o.delivery_latitude, o.delivery_longitude),
        )
        for o in request.orders
    ]

    repo = JobRepository(db)
    for job_id in request.job_ids:
        job = await repo.get_job(job_id)
        orders.append(PlanOrder(
            order_id=str(job.id),
            pickup_address=job.pickup_address,
            pickup=parse_point(job.pickup_location),
            delivery_address=job.destination_address,
            delivery=parse_point(job.destination_location),
        ))

    start = None
    if request.start_latitude is not None:
        start = (request.start_latitude, request.start_longitude)

    try:
        plan = plan_route(orders, vehicle_type=request.vehicle_type, start=start)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    return RoutePlanResponse(
        vehicle_type=plan.vehicle_type,
        optimized_route=plan.order_sequence,
        stops=[
            PlannedStopOut(
                order_id=s.order_id,
                kind=s.kind,
                address=s.address,
                latitude=s.location[0],
                longitude=s.location[1],
                leg_distance_km=s.leg_distance_km,
                leg_duration_min=s.leg_duration_min,
            )
            for s in plan.stops
        ],
        directions=plan.directions,
        total_distance_km=plan.total_distance_km,
        total_duration_min=plan.total_duration_min,
    )
