"""
Status outbox tests: idempotent enqueue and webhook delivery with backoff.
"""

import httpx
from datetime import datetime, timedelta
from sqlalchemy import select, func

from courier.app.core.dependencies import get_outbox_dispatcher
from courier.app.main import app
from courier.app.models.status_outbox import StatusOutbox, OutboxState
from courier.app.services.status_outbox import (
    OutboxDispatcher, enqueue_status_update, idempotency_key_for
)

WEBHOOK = "https://hooks.test/status"


def dispatcher_with(handler, max_attempts=3):
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return OutboxDispatcher(webhook_url=WEBHOOK, client=client, max_attempts=max_attempts, max_backoff_seconds=60)


async def test_replayed_transition_collapses_to_one_row(db_session):
    first = await enqueue_status_update(db_session, job_id=1, stop_id=2, status="delivered", payload={"kind": "dropoff"})
    second = await enqueue_status_update(db_session, job_id=1, stop_id=2, status="delivered")
    await db_session.commit()

    assert first.id == second.id
    assert first.idempotency_key == idempotency_key_for(1, 2, "delivered") == "job:1:stop:2:delivered"
    count = (await db_session.execute(select(func.count(StatusOutbox.id)))).scalar()
    assert count == 1


async def test_flush_without_webhook_is_skipped(db_session):
    await enqueue_status_update(db_session, job_id=1, stop_id=2, status="picked_up")
    await db_session.commit()

    report = await OutboxDispatcher(webhook_url="").flush(db_session)

    assert report.skipped is True
    entry = (await db_session.execute(select(StatusOutbox))).scalar_one()
    assert entry.state == OutboxState.PENDING
    assert entry.attempts == 0


async def test_flush_sends_with_idempotency_header(db_session):
    received = []

    def handler(request: httpx.Request):
        received.append(request)
        return httpx.Response(202)

    await enqueue_status_update(db_session, job_id=7, stop_id=11, status="delivered", payload={"driver_id": 3})
    await db_session.commit()

    report = await dispatcher_with(handler).flush(db_session)

    assert report.sent == 1
    assert received[0].headers["Idempotency-Key"] == "job:7:stop:11:delivered"
    assert b'"driver_id":3' in received[0].content.replace(b" ", b"")

    entry = (await db_session.execute(select(StatusOutbox))).scalar_one()
    assert entry.state == OutboxState.SENT
    assert entry.sent_at is not None

    # Nothing left to send
    assert (await dispatcher_with(handler).flush(db_session)).sent == 0
    assert len(received) == 1


async def test_failures_back_off_then_give_up(db_session):
    def handler(request):
        return httpx.Response(503)

    await enqueue_status_update(db_session, job_id=1, stop_id=1, status="picked_up")
    await db_session.commit()
    dispatcher = dispatcher_with(handler, max_attempts=3)
    now = datetime(2024, 5, 1, 10, 0, 0)

    report = await dispatcher.flush(db_session, now=now)
    entry = (await db_session.execute(select(StatusOutbox))).scalar_one()
    assert report.retried == 1
    assert entry.attempts == 1
    assert entry.next_attempt_at == now + timedelta(seconds=2)

    # Not due yet
    assert (await dispatcher.flush(db_session, now=now + timedelta(seconds=1))).retried == 0

    await dispatcher.flush(db_session, now=now + timedelta(seconds=2))
    assert entry.attempts == 2
    assert entry.next_attempt_at == now + timedelta(seconds=2) + timedelta(seconds=4)

    report = await dispatcher.flush(db_session, now=now + timedelta(minutes=5))
    assert report.failed == 1
    assert entry.state == OutboxState.FAILED
    assert entry.last_error


def test_backoff_is_capped():
    dispatcher = OutboxDispatcher(webhook_url=WEBHOOK, max_backoff_seconds=60)
    assert dispatcher.backoff(3) == timedelta(seconds=8)
    assert dispatcher.backoff(10) == timedelta(seconds=60)


async def test_manager_flush_endpoint(client, manager_headers, db_session):
    await enqueue_status_update(db_session, job_id=1, stop_id=1, status="picked_up")
    await db_session.commit()

    app.dependency_overrides[get_outbox_dispatcher] = lambda: dispatcher_with(lambda request: httpx.Response(200))
    try:
        r = await client.post("/v1/manager/outbox/flush", headers=manager_headers)
    finally:
        app.dependency_overrides.pop(get_outbox_dispatcher, None)

    assert r.status_code == 200
    assert r.json()["sent"] == 1

    listing = await client.get("/v1/manager/outbox", params={"state": "SENT"}, headers=manager_headers)
    assert [e["idempotency_key"] for e in listing.json()] == ["job:1:stop:1:picked_up"]


async def test_failed_entry_can_be_requeued(client, manager_headers, db_session):
    entry = await enqueue_status_update(db_session, job_id=1, stop_id=1, status="picked_up")
    entry.state = OutboxState.FAILED
    entry.attempts = 5
    await db_session.commit()

    r = await client.post(f"/v1/manager/outbox/{entry.id}/retry", headers=manager_headers)

    assert r.status_code == 200
    assert r.json()["state"] == "PENDING"
    assert r.json()["attempts"] == 0


async def test_only_failed_entries_can_be_retried(client, manager_headers, db_session):
    sent = await enqueue_status_update(db_session, job_id=1, stop_id=1, status="picked_up")
    pending = await enqueue_status_update(db_session, job_id=1, stop_id=2, status="delivered")
    sent.state = OutboxState.SENT
    sent.attempts = 1
    await db_session.commit()

    for entry, state in ((sent, "SENT"), (pending, "PENDING")):
        r = await client.post(f"/v1/manager/outbox/{entry.id}/retry", headers=manager_headers)
        assert r.status_code == 409
        assert r.json()["error_code"] == "ERR_OUTBOX_NOT_RETRYABLE"
        assert r.json()["details"]["state"] == state

    listing = await client.get("/v1/manager/outbox", params={"state": "SENT"}, headers=manager_headers)
    assert [(e["id"], e["attempts"]) for e in listing.json()] == [(sent.id, 1)]


async def test_retry_unknown_entry_is_404(client, manager_headers):
    r = await client.post("/v1/manager/outbox/999/retry", headers=manager_headers)
    assert r.status_code == 404
