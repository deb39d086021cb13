"""
Integration tests for the manager dashboard: posting and cancelling jobs,
order views, the driver roster, and the driver's own history screens.
"""

import pytest
from sqlalchemy import select

from courier.app.models.driver_session import DriverSession
from courier.app.models.job_enums import JobStatus

JOB_PAYLOAD = {
    "label": "Downtown Multi-Drop",
    "stops": [
        {"kind": "pickup", "address": "Cairo Road, Warehouse A", "latitude": -15.4167, "longitude": 28.2833,
         "items": [{"name": "Electronics Box"}]},
        {"kind": "dropoff", "address": "Manda Hill Shopping Mall", "latitude": -15.3982, "longitude": 28.3063,
         "contact_name": "Mary Banda", "confirmation_code": "482913"},
    ],
}


async def test_create_job_quotes_payout(client, manager_headers):
    r = await client.post("/v1/manager/jobs", json=JOB_PAYLOAD, headers=manager_headers)

    assert r.status_code == 201, r.text
    job = r.json()
    assert job["status"] == "OPEN"
    assert job["currency"] == "ZMW"
    assert 3.0 < job["estimated_distance_km"] < 3.5
    # 25 base + 5/km + 0.5/min at 30 km/h
    expected = 25 + job["estimated_distance_km"] * 5 + job["estimated_distance_km"] * 2 * 0.5
    assert job["payout"] == pytest.approx(expected, abs=0.1)
    # Card text, e.g. "3.2 km" / "6 mins"
    assert job["distance_label"] == f"{job['estimated_distance_km']:.1f} km"
    assert job["duration_label"] == f"{round(job['estimated_duration_min'])} mins"
    assert [s["sequence_number"] for s in job["stops"]] == [1, 2]
    assert job["stops"][0]["items"] == [{"name": "Electronics Box", "quantity": 1}]
    # Codes never leave the server
    assert "confirmation_code" not in job["stops"][1]


async def test_create_job_keeps_explicit_payout(client, manager_headers):
    r = await client.post("/v1/manager/jobs", json={**JOB_PAYLOAD, "payout": 80.0}, headers=manager_headers)
    assert r.json()["payout"] == 80.0


@pytest.mark.parametrize("stops", [
    [JOB_PAYLOAD["stops"][1], JOB_PAYLOAD["stops"][0]],
    [JOB_PAYLOAD["stops"][0], JOB_PAYLOAD["stops"][0]],
])
async def test_create_job_rejects_bad_stop_order(client, manager_headers, stops):
    r = await client.post("/v1/manager/jobs", json={"label": "Bad", "stops": stops}, headers=manager_headers)
    assert r.status_code == 422


async def test_drivers_cannot_post_jobs(client, driver_headers):
    r = await client.post("/v1/manager/jobs", json=JOB_PAYLOAD, headers=driver_headers)
    assert r.status_code == 403


async def test_orders_filter_and_detail(client, manager_headers, driver, driver_headers, put_online, make_job):
    await put_online(driver)
    claimed, _ = await make_job("Pharmacy Run")
    await make_job("Downtown Multi-Drop")
    await client.post(f"/v1/driver/jobs/{claimed.id}/accept", headers=driver_headers)

    r = await client.get("/v1/manager/orders", params={"status": "CLAIMED"}, headers=manager_headers)
    assert [j["label"] for j in r.json()["jobs"]] == ["Pharmacy Run"]

    r = await client.get("/v1/manager/orders", params={"search": "downtown"}, headers=manager_headers)
    assert r.json()["total"] == 1

    detail = await client.get(f"/v1/manager/orders/{claimed.id}", headers=manager_headers)
    assert detail.status_code == 200
    body = detail.json()
    assert body["driver_username"] == driver.username
    # No routing key in tests: straight line between pickup and destination
    assert body["route"]["dashed"] is True
    assert len(body["route"]["coordinates"]) == 2
    assert [e["action"] for e in body["timeline"]] == ["JOB_ACCEPTED"]


async def test_unknown_order_is_404(client, manager_headers):
    r = await client.get("/v1/manager/orders/4242", headers=manager_headers)
    assert r.status_code == 404
    assert r.json()["error_code"] == "ERR_NOT_FOUND_001"


async def test_cancel_job_frees_the_driver(client, manager_headers, driver, driver_headers, put_online, make_job, db_reader):
    await put_online(driver)
    job, _ = await make_job()
    await client.post(f"/v1/driver/jobs/{job.id}/accept", headers=driver_headers)

    r = await client.post(f"/v1/manager/jobs/{job.id}/cancel", headers=manager_headers)
    assert r.status_code == 200
    assert r.json()["status"] == "CANCELLED"

    async with db_reader() as s:
        session = (await s.execute(select(DriverSession).where(DriverSession.driver_id == driver.id))).scalar_one()
        assert session.active_job_id is None

    again = await client.post(f"/v1/manager/jobs/{job.id}/cancel", headers=manager_headers)
    assert again.status_code == 400


async def test_roster_statuses(client, manager_headers, make_user, put_online, make_job, auth_headers):
    busy = await make_user("busy_driver")
    idle = await make_user("idle_driver")
    await make_user("offline_driver")
    await put_online(busy)
    await put_online(idle)
    job, _ = await make_job()
    await client.post(f"/v1/driver/jobs/{job.id}/accept", headers=auth_headers(busy))

    r = await client.get("/v1/manager/drivers", headers=manager_headers)

    statuses = {d["username"]: d["status"] for d in r.json()}
    assert statuses == {
        "busy_driver": "Making delivery",
        "idle_driver": "Available",
        "offline_driver": "Offline",
    }


async def _complete_job(client, headers, job_id):
    await client.post(f"/v1/driver/jobs/{job_id}/accept", headers=headers)
    for body in (
        {"action": "arrive"},
        {"action": "confirm_pickup"},
        {"action": "arrive"},
        {"action": "deliver", "proof": {"code": "123456"}},
    ):
        r = await client.post("/v1/driver/active/advance", json=body, headers=headers)
        assert r.status_code == 200, r.text


async def test_history_payouts_and_driver_stats(client, driver, driver_headers, manager_headers, put_online, make_job):
    await put_online(driver)
    first, _ = await make_job("First", payout=40.0)
    second, _ = await make_job("Second", payout=60.5)
    await _complete_job(client, driver_headers, first.id)
    await _complete_job(client, driver_headers, second.id)

    history = await client.get("/v1/driver/history", headers=driver_headers)
    assert history.json()["total"] == 2
    assert {j["status"] for j in history.json()["jobs"]} == {JobStatus.COMPLETED.value}

    payouts = (await client.get("/v1/driver/payouts", headers=driver_headers)).json()
    assert payouts["completed_jobs"] == 2
    assert payouts["total_earnings"] == 100.5
    assert payouts["currency"] == "ZMW"

    detail = await client.get(f"/v1/manager/drivers/{driver.id}", headers=manager_headers)
    assert detail.status_code == 200
    stats = detail.json()["stats"]
    assert stats["completed_jobs"] == 2
    assert stats["completed_stops"] == 4
    assert stats["failed_stops"] == 0
    assert detail.json()["status"] == "Available"


async def test_profile_partial_update(client, driver_headers):
    r = await client.patch(
        "/v1/driver/profile",
        json={"phone": "+260971234567", "vehicle_type": "bike"},
        headers=driver_headers,
    )
    assert r.status_code == 200
    body = r.json()
    assert body["phone"] == "+260971234567"
    assert body["vehicle_type"] == "bike"
    assert body["full_name"] == "Driver_One"

    again = (await client.get("/v1/driver/profile", headers=driver_headers)).json()
    assert again["vehicle_type"] == "bike"
