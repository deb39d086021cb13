"""
Failure Injection Tests.

Validates resilience against component failures, from a dead routing
provider to Redis going away.
"""

import json
import pytest

from courier.app.core.exceptions import generic_exception_handler
from courier.app.core.reliability import CircuitBreaker, CircuitOpenError


async def failing_func():
    raise ValueError("Boom")


async def ok_func():
    return "ok"


@pytest.mark.asyncio
async def test_circuit_breaker_activates():
    """Test that circuit breaker opens after threshold failures."""
    cb = CircuitBreaker("test", failure_threshold=2, reset_timeout=1)

    for _ in range(2):
        with pytest.raises(ValueError):
            await cb.call(failing_func)

    assert cb.state == "OPEN"
    with pytest.raises(CircuitOpenError):
        await cb.call(ok_func)


@pytest.mark.asyncio
async def test_circuit_breaker_half_open_recovers(mocker):
    cb = CircuitBreaker("test", failure_threshold=1, reset_timeout=30)
    clock = mocker.patch("courier.app.core.reliability.time.time", return_value=1000.0)

    with pytest.raises(ValueError):
        await cb.call(failing_func)
    assert cb.state == "OPEN"

    # After the reset timeout one trial call goes through and closes the circuit
    clock.return_value = 1031.0
    assert await cb.call(ok_func) == "ok"
    assert cb.state == "CLOSED"
    assert cb.failures == 0


@pytest.mark.asyncio
async def test_failed_trial_call_reopens():
    cb = CircuitBreaker("test", failure_threshold=3, reset_timeout=30)
    cb.state = "OPEN"
    cb.last_failure_time = 0.0

    with pytest.raises(ValueError):
        await cb.call(failing_func)
    assert cb.state == "OPEN"


@pytest.mark.asyncio
async def test_success_resets_failure_count():
    cb = CircuitBreaker("test", failure_threshold=2, reset_timeout=30)

    with pytest.raises(ValueError):
        await cb.call(failing_func)
    await cb.call(ok_func)
    with pytest.raises(ValueError):
        await cb.call(failing_func)

    assert cb.state == "CLOSED"


@pytest.mark.asyncio
async def test_generic_handler_hides_internals():
    response = await generic_exception_handler(None, RuntimeError("db password is hunter2"))

    assert response.status_code == 500
    body = json.loads(response.body)
    assert body["error_code"] == "ERR_INTERNAL_SERVER"
    assert "hunter2" not in body["message"]


@pytest.mark.asyncio
async def test_health_reports_redis_outage(client, mock_redis):
    healthy = await client.get("/health")
    assert healthy.json()["status"] == "healthy"
    assert healthy.json()["routing_circuit"] in ("CLOSED", "OPEN", "HALF_OPEN")

    mock_redis._closed = True
    try:
        degraded = await client.get("/health")
    finally:
        mock_redis._closed = False

    assert degraded.status_code == 200
    assert degraded.json()["status"] == "degraded"
    assert degraded.json()["redis"] == "down"


@pytest.mark.asyncio
async def test_revocation_check_fails_open_without_redis(client, driver_headers, mock_redis):
    mock_redis._closed = True
    try:
        response = await client.get("/v1/auth/me", headers=driver_headers)
    finally:
        mock_redis._closed = False

    assert response.status_code == 200
