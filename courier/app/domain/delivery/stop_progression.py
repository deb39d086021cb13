"""
Stop Progression (Domain Logic).

Two small per-kind state graphs drive the driver's delivery flow:

    pickup:   pending -> arrived_at_pickup -> picked_up
    dropoff:  pending -> arrived_at_dropoff -> delivered   (proof gated)

``failed`` is terminal for both kinds and is reachable from any
non-terminal status through an explicit FAIL action.

Nothing here touches the database. Functions work on any object exposing
``kind``, ``status`` and ``sequence_number`` (the JobStop model in
practice) and mutate ``status`` in place. Persistence and side effects
belong to ``services.delivery_flow``.
"""

import enum
from dataclasses import dataclass
from typing import Any, Optional, Sequence, List

from courier.app.core.exceptions import InvalidTransitionError
from courier.app.models.job_enums import StopKind, StopStatus, StopAction
from courier.app.domain.delivery.proof import ProofOfDelivery, ProofVerifier


TRANSITIONS = {
    (StopKind.PICKUP, StopStatus.PENDING, StopAction.ARRIVE): StopStatus.ARRIVED_AT_PICKUP,
    (StopKind.PICKUP, StopStatus.ARRIVED_AT_PICKUP, StopAction.CONFIRM_PICKUP): StopStatus.PICKED_UP,
    (StopKind.DROPOFF, StopStatus.PENDING, StopAction.ARRIVE): StopStatus.ARRIVED_AT_DROPOFF,
    (StopKind.DROPOFF, StopStatus.ARRIVED_AT_DROPOFF, StopAction.DELIVER): StopStatus.DELIVERED,
}

TERMINAL_STATUSES = {
    StopKind.PICKUP: frozenset({StopStatus.PICKED_UP, StopStatus.FAILED}),
    StopKind.DROPOFF: frozenset({StopStatus.DELIVERED, StopStatus.FAILED}),
}

# Button labels for the active delivery screen
ACTION_LABELS = {
    (StopKind.PICKUP, StopStatus.PENDING): (StopAction.ARRIVE, "Arrived at Pickup"),
    (StopKind.PICKUP, StopStatus.ARRIVED_AT_PICKUP): (StopAction.CONFIRM_PICKUP, "Confirm Pickup"),
    (StopKind.DROPOFF, StopStatus.PENDING): (StopAction.ARRIVE, "Arrived at Dropoff"),
    (StopKind.DROPOFF, StopStatus.ARRIVED_AT_DROPOFF): (StopAction.DELIVER, "Deliver Items & Get Proof"),
}


class AdvanceResult(str, enum.Enum):
    ADVANCED = "ADVANCED"
    PROOF_REQUIRED = "PROOF_REQUIRED"


@dataclass
class AdvanceOutcome:
    """What a single advance did to the batch."""
    result: AdvanceResult
    stop: Any
    previous_status: StopStatus
    new_status: StopStatus
    next_stop: Optional[Any] = None
    batch_cleared: bool = False

    @property
    def stop_completed(self) -> bool:
        return self.new_status in TERMINAL_STATUSES[self.stop.kind] and self.new_status != self.previous_status


def is_terminal(stop) -> bool:
    return stop.status in TERMINAL_STATUSES[stop.kind]


def ordered(stops: Sequence) -> List:
    return sorted(stops, key=lambda s: s.sequence_number)


def current_stop(stops: Sequence) -> Optional[Any]:
    """First stop in sequence order that is not terminal for its kind."""
    for stop in ordered(stops):
        if not is_terminal(stop):
            return stop
    return None


def remaining_stops(stops: Sequence) -> List:
    """Non-terminal stops in sequence order, the current stop first."""
    return [stop for stop in ordered(stops) if not is_terminal(stop)]


def next_status(kind: StopKind, status: StopStatus, action: StopAction) -> StopStatus:
    """
    Look up the target status for an action.

    Raises:
        InvalidTransitionError: if the action is not allowed from this status
    """
    if action == StopAction.FAIL and status not in TERMINAL_STATUSES[kind]:
        return StopStatus.FAILED
    target = TRANSITIONS.get((kind, status, action))
    if target is None:
        raise InvalidTransitionError(kind.value, status.value, action.value)
    return target


def available_action(stop) -> Optional[tuple]:
    """(action, label) the primary button should offer for this stop."""
    if stop is None:
        return None
    return ACTION_LABELS.get((stop.kind, stop.status))


def advance(
    stops: Sequence,
    action: StopAction,
    proof: Optional[ProofOfDelivery] = None,
    verifier: Optional[ProofVerifier] = None,
) -> AdvanceOutcome:
    """
    Apply a driver action to the current stop of a batch.

    Flow:
    1. Resolve the current stop (first non-terminal by sequence)
    2. Look up the transition for (kind, status, action)
    3. For DELIVER, require and verify proof of delivery
    4. Mutate the stop's status
    5. Report the next stop, or that the batch is finished

    Raises:
        InvalidTransitionError: no current stop, or action not allowed
        ConfirmationRejectedError: proof did not verify (stop untouched)
    """
    stop = current_stop(stops)
    if stop is None:
        raise InvalidTransitionError("batch", "completed", action.value)

    previous = stop.status
    target = next_status(stop.kind, previous, action)

    if target == StopStatus.DELIVERED:
        if proof is None or proof.is_empty():
            return AdvanceOutcome(
                result=AdvanceResult.PROOF_REQUIRED,
                stop=stop,
                previous_status=previous,
                new_status=previous,
                next_stop=stop,
            )
        (verifier or ProofVerifier()).verify(stop, proof)

    stop.status = target

    following = current_stop(stops)
    return AdvanceOutcome(
        result=AdvanceResult.ADVANCED,
        stop=stop,
        previous_status=previous,
        new_status=target,
        next_stop=following,
        batch_cleared=following is None,
    )
