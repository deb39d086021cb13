"""
Stop progression state machine tests.

Pure domain: stops are plain objects, nothing touches the database.
"""

import pytest
from types import SimpleNamespace

from courier.app.core.exceptions import InvalidTransitionError, ConfirmationRejectedError
from courier.app.domain.delivery import stop_progression
from courier.app.domain.delivery.proof import ProofOfDelivery, ProofVerifier
from courier.app.domain.delivery.stop_progression import AdvanceResult
from courier.app.models.job_enums import StopKind, StopStatus, StopAction


def make_stop(stop_id, kind, sequence, status=StopStatus.PENDING, code=None):
    return SimpleNamespace(
        id=stop_id, kind=kind, sequence_number=sequence, status=status, confirmation_code=code
    )


@pytest.fixture
def verifier():
    return ProofVerifier(mode="code", default_code="123456")


@pytest.fixture
def batch():
    return [
        make_stop("P1", StopKind.PICKUP, 1),
        make_stop("D1", StopKind.DROPOFF, 2),
    ]


def test_pickup_follows_its_path(batch, verifier):
    first = stop_progression.advance(batch, StopAction.ARRIVE, verifier=verifier)
    assert first.new_status == StopStatus.ARRIVED_AT_PICKUP
    assert not first.stop_completed

    second = stop_progression.advance(batch, StopAction.CONFIRM_PICKUP, verifier=verifier)
    assert second.previous_status == StopStatus.ARRIVED_AT_PICKUP
    assert second.new_status == StopStatus.PICKED_UP
    assert second.stop_completed
    assert second.next_stop.id == "D1"
    assert not second.batch_cleared


@pytest.mark.parametrize("status,action", [
    (StopStatus.PENDING, StopAction.CONFIRM_PICKUP),
    (StopStatus.PENDING, StopAction.DELIVER),
    (StopStatus.ARRIVED_AT_PICKUP, StopAction.ARRIVE),
    (StopStatus.ARRIVED_AT_PICKUP, StopAction.DELIVER),
])
def test_pickup_rejects_out_of_order_actions(status, action):
    stops = [make_stop("P1", StopKind.PICKUP, 1, status=status)]
    with pytest.raises(InvalidTransitionError):
        stop_progression.advance(stops, action)
    assert stops[0].status == status


@pytest.mark.parametrize("status,action", [
    (StopStatus.PENDING, StopAction.DELIVER),
    (StopStatus.PENDING, StopAction.CONFIRM_PICKUP),
    (StopStatus.ARRIVED_AT_DROPOFF, StopAction.ARRIVE),
    (StopStatus.ARRIVED_AT_DROPOFF, StopAction.CONFIRM_PICKUP),
])
def test_dropoff_rejects_out_of_order_actions(status, action):
    stops = [make_stop("D1", StopKind.DROPOFF, 1, status=status)]
    with pytest.raises(InvalidTransitionError):
        stop_progression.advance(stops, action)
    assert stops[0].status == status


def test_deliver_without_proof_asks_for_it(verifier):
    stops = [make_stop("D1", StopKind.DROPOFF, 1, status=StopStatus.ARRIVED_AT_DROPOFF)]

    outcome = stop_progression.advance(stops, StopAction.DELIVER, proof=None, verifier=verifier)

    assert outcome.result == AdvanceResult.PROOF_REQUIRED
    assert stops[0].status == StopStatus.ARRIVED_AT_DROPOFF
    assert not outcome.batch_cleared


def test_wrong_code_never_delivers(verifier):
    stops = [make_stop("D1", StopKind.DROPOFF, 1, status=StopStatus.ARRIVED_AT_DROPOFF)]

    with pytest.raises(ConfirmationRejectedError):
        stop_progression.advance(stops, StopAction.DELIVER, ProofOfDelivery(code="000000"), verifier)
    assert stops[0].status == StopStatus.ARRIVED_AT_DROPOFF

    # Retry straight away with the right code
    outcome = stop_progression.advance(stops, StopAction.DELIVER, ProofOfDelivery(code="123456"), verifier)
    assert outcome.new_status == StopStatus.DELIVERED


def test_stop_specific_code_overrides_default(verifier):
    stops = [make_stop("D1", StopKind.DROPOFF, 1, status=StopStatus.ARRIVED_AT_DROPOFF, code="482913")]

    with pytest.raises(ConfirmationRejectedError):
        stop_progression.advance(stops, StopAction.DELIVER, ProofOfDelivery(code="123456"), verifier)

    outcome = stop_progression.advance(stops, StopAction.DELIVER, ProofOfDelivery(code="482913"), verifier)
    assert outcome.new_status == StopStatus.DELIVERED


def test_photo_signature_mode_needs_both():
    verifier = ProofVerifier(mode="photo_signature")
    stops = [make_stop("D1", StopKind.DROPOFF, 1, status=StopStatus.ARRIVED_AT_DROPOFF)]

    with pytest.raises(ConfirmationRejectedError):
        stop_progression.advance(stops, StopAction.DELIVER, ProofOfDelivery(photo_url="https://img/1.jpg"), verifier)

    outcome = stop_progression.advance(
        stops, StopAction.DELIVER,
        ProofOfDelivery(photo_url="https://img/1.jpg", signature="https://img/sig.png"),
        verifier,
    )
    assert outcome.new_status == StopStatus.DELIVERED


def test_current_stop_is_first_non_terminal():
    stops = [
        make_stop("S3", StopKind.PICKUP, 3),
        make_stop("S1", StopKind.PICKUP, 1, status=StopStatus.PICKED_UP),
        make_stop("S2", StopKind.DROPOFF, 2, status=StopStatus.FAILED),
        make_stop("S4", StopKind.DROPOFF, 4),
    ]
    assert stop_progression.current_stop(stops).id == "S3"
    assert [s.id for s in stop_progression.remaining_stops(stops)] == ["S3", "S4"]


def test_batch_clears_exactly_once(batch, verifier):
    stop_progression.advance(batch, StopAction.ARRIVE, verifier=verifier)
    stop_progression.advance(batch, StopAction.CONFIRM_PICKUP, verifier=verifier)
    stop_progression.advance(batch, StopAction.ARRIVE, verifier=verifier)
    final = stop_progression.advance(batch, StopAction.DELIVER, ProofOfDelivery(code="123456"), verifier)

    assert final.batch_cleared
    assert final.next_stop is None
    assert stop_progression.current_stop(batch) is None

    with pytest.raises(InvalidTransitionError):
        stop_progression.advance(batch, StopAction.ARRIVE, verifier=verifier)


def test_fail_is_terminal_and_moves_on(batch, verifier):
    stop_progression.advance(batch, StopAction.ARRIVE, verifier=verifier)
    outcome = stop_progression.advance(batch, StopAction.FAIL, verifier=verifier)

    assert outcome.new_status == StopStatus.FAILED
    assert outcome.stop_completed
    assert outcome.next_stop.id == "D1"


def test_available_action_labels():
    pickup = make_stop("P1", StopKind.PICKUP, 1)
    assert stop_progression.available_action(pickup) == (StopAction.ARRIVE, "Arrived at Pickup")

    dropoff = make_stop("D1", StopKind.DROPOFF, 2, status=StopStatus.ARRIVED_AT_DROPOFF)
    assert stop_progression.available_action(dropoff) == (StopAction.DELIVER, "Deliver Items & Get Proof")

    assert stop_progression.available_action(None) is None
