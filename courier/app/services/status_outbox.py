"""
Status outbox.

Stop completions are recorded as outbox rows inside the same transaction
as the stop update, then pushed to the status webhook by the dispatcher.
Each row has a deterministic idempotency key, so replaying a transition
never creates a second row and the receiver can drop duplicate deliveries.
Delivery is at-least-once with exponential backoff; rows give up as FAILED
after the configured number of attempts.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

import httpx
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, or_

from courier.app.core.config import settings
from courier.app.core.exceptions import OutboxEntryNotRetryableError, ResourceNotFoundError
from courier.app.models.status_outbox import StatusOutbox, OutboxState

logger = logging.getLogger("courier.outbox")


def idempotency_key_for(job_id: int, stop_id: Optional[int], status: str) -> str:
    return f"job:{job_id}:stop:{stop_id}:{status}"


async def enqueue_status_update(
    db: AsyncSession,
    job_id: int,
    stop_id: Optional[int],
    status: str,
    payload: Optional[Dict[str, Any]] = None
) -> StatusOutbox:
    """
    Add an outbox row for a transition, or return the existing one.

    Flushes only; the row commits with the caller's transaction.
    """
    key = idempotency_key_for(job_id, stop_id, status)
    existing = await db.execute(select(StatusOutbox).where(StatusOutbox.idempotency_key == key))
    entry = existing.scalar_one_or_none()
    if entry:
        logger.info("Outbox entry %s already queued", key)
        return entry

    entry = StatusOutbox(
        idempotency_key=key,
        job_id=job_id,
        stop_id=stop_id,
        status=status,
        payload=payload or {},
        state=OutboxState.PENDING,
        attempts=0,
    )
    db.add(entry)
    await db.flush()
    return entry


@dataclass
class FlushReport:
    sent: int = 0
    retried: int = 0
    failed: int = 0
    skipped: bool = False
    errors: List[str] = field(default_factory=list)


class OutboxDispatcher:
    """Pushes due PENDING rows to the status webhook."""

    def __init__(
        self,
        webhook_url: Optional[str] = None,
        client: Optional[httpx.AsyncClient] = None,
        max_attempts: Optional[int] = None,
        max_backoff_seconds: Optional[int] = None,
        timeout: Optional[float] = None,
    ):
        self.webhook_url = webhook_url if webhook_url is not None else settings.status_webhook_url
        self._client = client
        self.max_attempts = max_attempts or settings.outbox_max_attempts
        self.max_backoff_seconds = max_backoff_seconds or settings.outbox_max_backoff_seconds
        self.timeout = timeout or settings.status_webhook_timeout_seconds

    def backoff(self, attempts: int) -> timedelta:
        return timedelta(seconds=min(2 ** attempts, self.max_backoff_seconds))

    async def due_entries(self, db: AsyncSession, now: datetime, limit: int) -> List[StatusOutbox]:
        result = await db.execute(
            select(StatusOutbox).where(
                StatusOutbox.state == OutboxState.PENDING,
                or_(StatusOutbox.next_attempt_at.is_(None), StatusOutbox.next_attempt_at <= now)
            ).order_by(StatusOutbox.id).limit(limit)
        )
        return list(result.scalars().all())

    async def flush(self, db: AsyncSession, limit: Optional[int] = None, now: Optional[datetime] = None) -> FlushReport:
        """
        Deliver due outbox rows and commit their new state.

        Returns:
            FlushReport with counts. ``skipped`` is True when no webhook
            URL is configured; rows then stay PENDING.
        """
        report = FlushReport()
        if not self.webhook_url:
            logger.debug("No status webhook configured, outbox flush skipped")
            report.skipped = True
            return report

        now = now or datetime.utcnow()
        entries = await self.due_entries(db, now, limit or settings.outbox_batch_size)
        if not entries:
            return report

        if self._client is not None:
            await self._deliver_all(self._client, entries, now, report)
        else:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                await self._deliver_all(client, entries, now, report)

        await db.commit()
        logger.info("Outbox flush: %d sent, %d retrying, %d failed", report.sent, report.retried, report.failed)
        return report

    async def _deliver_all(self, client: httpx.AsyncClient, entries, now: datetime, report: FlushReport):
        for entry in entries:
            try:
                response = await client.post(
                    self.webhook_url,
                    json={
                        "idempotency_key": entry.idempotency_key,
                        "job_id": entry.job_id,
                        "stop_id": entry.stop_id,
                        "status": entry.status,
                        **(entry.payload or {}),
                    },
                    headers={"Idempotency-Key": entry.idempotency_key},
                    timeout=self.timeout,
                )
                response.raise_for_status()
            except httpx.HTTPError as e:
                self._record_failure(entry, str(e) or type(e).__name__, now, report)
                continue

            entry.state = OutboxState.SENT
            entry.sent_at = now
            entry.attempts += 1
            entry.last_error = None
            report.sent += 1

    def _record_failure(self, entry: StatusOutbox, error: str, now: datetime, report: FlushReport):
        entry.attempts += 1
        entry.last_error = error
        report.errors.append(f"{entry.idempotency_key}: {error}")
        if entry.attempts >= self.max_attempts:
            entry.state = OutboxState.FAILED
            entry.next_attempt_at = None
            report.failed += 1
            logger.error("Outbox entry %s failed permanently after %d attempts: %s",
                         entry.idempotency_key, entry.attempts, error)
        else:
            entry.next_attempt_at = now + self.backoff(entry.attempts)
            report.retried += 1
            logger.warning("Outbox entry %s attempt %d failed: %s",
                           entry.idempotency_key, entry.attempts, error)


async def requeue_failed(db: AsyncSession, entry_id: int) -> StatusOutbox:
    """
    Give a FAILED row a fresh set of attempts.

    Raises:
        ResourceNotFoundError: unknown entry
        OutboxEntryNotRetryableError: entry is PENDING or SENT
    """
    result = await db.execute(select(StatusOutbox).where(StatusOutbox.id == entry_id))
    entry = result.scalar_one_or_none()
    if entry is None:
        raise ResourceNotFoundError("Outbox entry", entry_id)
    if entry.state != OutboxState.FAILED:
        raise OutboxEntryNotRetryableError(entry_id, entry.state.value)
    entry.state = OutboxState.PENDING
    entry.attempts = 0
    entry.next_attempt_at = None
    await db.commit()
    await db.refresh(entry)
    return entry
