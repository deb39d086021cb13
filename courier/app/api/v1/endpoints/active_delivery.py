"""
Active Delivery API Endpoints.

The driver's in-progress batch: current stop, the primary button, and the
route overlay.
"""

from fastapi import APIRouter, Depends, Body
from sqlalchemy.ext.asyncio import AsyncSession

from courier.app.db.session import get_db
from courier.app.core.dependencies import get_route_fetcher
from courier.app.core.guards import require_driver
from courier.app.domain.delivery.proof import ProofOfDelivery
from courier.app.domain.delivery.stop_progression import AdvanceResult, available_action
from courier.app.schemas.delivery import (
    ActiveBatchResponse, AdvanceRequest, AdvanceResponse, NextAction, RouteResponse
)
from courier.app.schemas.job import JobSummary, StopResponse
from courier.app.services.delivery_flow import DeliveryFlowService
from courier.app.services.route_fetcher import RouteFetcher

router = APIRouter(prefix="/driver/active", tags=["Driver - Active Delivery"])


def _next_action(stop):
    hint = available_action(stop)
    if hint is None:
        return None
    action, label = hint
    return NextAction(action=action, label=label)


@router.get("", response_model=ActiveBatchResponse)
async def get_active_delivery(
    current_user: dict = Depends(require_driver),
    db: AsyncSession = Depends(get_db)
):
    """Current batch with its stops in work order. 404 when nothing is active."""
    batch = await DeliveryFlowService(db).get_active_batch(current_user["user_id"])
    current = batch.current_stop
    return ActiveBatchResponse(
        job=JobSummary.from_job(batch.job),
        stops=[StopResponse.from_stop(s) for s in batch.stops],
        current_stop=StopResponse.from_stop(current) if current else None,
        next_action=_next_action(current),
        remaining_stops=len(batch.remaining_stops),
        route=batch.session.route_geometry,
        route_source=batch.session.route_source,
    )


@router.post("/advance", response_model=AdvanceResponse)
async def advance_current_stop(
    request: AdvanceRequest = Body(...),
    current_user: dict = Depends(require_driver),
    db: AsyncSession = Depends(get_db)
):
    """
    Apply the driver's action to the current stop.

    Returns PROOF_REQUIRED (200) when ``deliver`` arrives without proof, so
    the app can open the confirmation step. A wrong code is 422
    ERR_CONFIRMATION_REJECTED and changes nothing.
    """
    proof = ProofOfDelivery(**request.proof.model_dump()) if request.proof else None
    outcome, _ = await DeliveryFlowService(db).advance(
        driver_id=current_user["user_id"],
        action=request.action,
        proof=proof,
        failure_reason=request.failure_reason,
        username=current_user.get("sub"),
    )

    if outcome.result == AdvanceResult.PROOF_REQUIRED:
        message = "Enter the recipient's confirmation to complete this delivery"
    elif outcome.batch_cleared:
        message = "All stops complete"
    else:
        message = f"Stop {outcome.stop.sequence_number} is now {outcome.new_status.value}"

    return AdvanceResponse(
        result=outcome.result.value,
        stop_id=outcome.stop.id,
        previous_status=outcome.previous_status,
        status=outcome.new_status,
        next_stop=StopResponse.from_stop(outcome.next_stop) if outcome.next_stop else None,
        next_action=_next_action(outcome.next_stop),
        batch_cleared=outcome.batch_cleared,
        message=message,
    )


@router.post("/route", response_model=RouteResponse)
async def refresh_route(
    current_user: dict = Depends(require_driver),
    db: AsyncSession = Depends(get_db),
    fetcher: RouteFetcher = Depends(get_route_fetcher)
):
    """
    Fetch the overlay from the driver's position through every remaining stop.

    Falls back to a dashed straight line when the routing service is
    unavailable; never fails because of the provider.
    """
    result, stored = await DeliveryFlowService(db, route_fetcher=fetcher).refresh_route(current_user["user_id"])
    return RouteResponse(
        coordinates=[[lat, lng] for lat, lng in result.coordinates],
        source=result.source,
        dashed=result.dashed,
        distance_km=result.distance_km,
        duration_min=result.duration_min,
        stored=stored,
    )
