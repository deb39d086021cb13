"""
Job repository tests: the jobs board query and the atomic claim.
"""

import pytest
from datetime import datetime, timedelta
from sqlalchemy import select

from courier.app.core.exceptions import AlreadyClaimedError, JobExpiredError, ResourceNotFoundError
from courier.app.models.job import Job
from courier.app.models.job_enums import JobStatus
from courier.app.services.job_repository import JobRepository, seconds_until_expiry


async def test_open_jobs_hide_claimed_and_expired(db_session, make_job, driver):
    open_job, _ = await make_job("Open one")
    claimed_job, _ = await make_job("Claimed one")
    expired_job, _ = await make_job("Expired one", expires_in_minutes=-5)
    forever_job, _ = await make_job("No expiry", expires_in_minutes=None)

    repo = JobRepository(db_session)
    await repo.accept_job(claimed_job.id, driver.id)
    await db_session.commit()

    ids = {job.id for job in await repo.list_open_jobs()}
    assert ids == {open_job.id, forever_job.id}


async def test_open_jobs_search_matches_label_and_address(db_session, make_job):
    await make_job("Pharmacy Run")
    await make_job("Downtown Multi-Drop")

    repo = JobRepository(db_session)
    assert [j.label for j in await repo.list_open_jobs(search="pharmacy")] == ["Pharmacy Run"]
    # Both default jobs share the pickup address
    assert len(await repo.list_open_jobs(search="cairo road")) == 2


async def test_accept_claims_open_job(db_session, make_job, driver):
    job, _ = await make_job()

    claimed = await JobRepository(db_session).accept_job(job.id, driver.id)

    assert claimed.status == JobStatus.CLAIMED
    assert claimed.assigned_driver_id == driver.id
    assert claimed.accepted_at is not None


async def test_second_accept_loses(db_session, make_job, make_user, driver):
    job, _ = await make_job()
    rival = await make_user("driver_two")
    repo = JobRepository(db_session)

    await repo.accept_job(job.id, driver.id)
    await db_session.commit()

    with pytest.raises(AlreadyClaimedError) as exc_info:
        await repo.accept_job(job.id, rival.id)
    assert exc_info.value.status_code == 409
    assert exc_info.value.error_code == "ERR_JOB_CLAIMED"

    result = await db_session.execute(select(Job.assigned_driver_id).where(Job.id == job.id))
    assert result.scalar_one() == driver.id


async def test_accept_expired_job(db_session, make_job, driver):
    job, _ = await make_job(expires_in_minutes=-1)

    with pytest.raises(JobExpiredError):
        await JobRepository(db_session).accept_job(job.id, driver.id)


async def test_accept_unknown_job(db_session, driver):
    with pytest.raises(ResourceNotFoundError):
        await JobRepository(db_session).accept_job(9999, driver.id)


async def test_advance_job_status_is_unconditional(db_session, make_job, db_reader):
    job, _ = await make_job()
    repo = JobRepository(db_session)

    await repo.advance_job_status(job.id, JobStatus.COMPLETED)
    await db_session.commit()

    async with db_reader() as s:
        stored = (await s.execute(select(Job).where(Job.id == job.id))).scalar_one()
        assert stored.status == JobStatus.COMPLETED
        assert stored.completed_at is not None


async def test_stops_keep_list_order(db_session, make_job):
    job, stops = await make_job()

    loaded_job, loaded = await JobRepository(db_session).get_job_with_stops(job.id)
    assert [s.sequence_number for s in loaded] == [1, 2]
    assert loaded[0].location.startswith("POINT(28.283300 -15.416700")


def test_seconds_until_expiry():
    now = datetime(2024, 1, 1, 12, 0, 0)
    job = Job(expires_at=now + timedelta(seconds=90))
    assert seconds_until_expiry(job, now) == 90
    assert seconds_until_expiry(Job(expires_at=now - timedelta(minutes=1)), now) == 0
    assert seconds_until_expiry(Job(expires_at=None), now) is None
