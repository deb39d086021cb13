"""
Status outbox model.

Stop status transitions waiting to be delivered to the status webhook.
Rows are written in the same transaction as the stop update; the
idempotency key makes a replayed transition collapse onto one row.
"""

from sqlalchemy import Column, Integer, String, Text, DateTime, JSON, Enum
from sqlalchemy.sql import func
from courier.app.db.session import Base
import enum


class OutboxState(str, enum.Enum):
    PENDING = "PENDING"
    SENT = "SENT"
    FAILED = "FAILED"  # Gave up after max attempts


class StatusOutbox(Base):
    __tablename__ = "status_outbox"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    idempotency_key = Column(String(200), unique=True, nullable=False)
    job_id = Column(Integer, nullable=False, index=True)
    stop_id = Column(Integer, nullable=True)
    status = Column(String(50), nullable=False)
    payload = Column(JSON, nullable=True)

    state = Column(Enum(OutboxState), default=OutboxState.PENDING, nullable=False, index=True)
    attempts = Column(Integer, default=0, nullable=False)
    last_error = Column(Text, nullable=True)
    next_attempt_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    sent_at = Column(DateTime(timezone=True), nullable=True)

    def __repr__(self):
        return f"<StatusOutbox(id={self.id}, key='{self.idempotency_key}', state='{self.state}')>"
