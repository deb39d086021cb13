"""
Job stop database model.

Stops are pickup or dropoff points worked strictly in sequence order.
Status only ever moves forward.
"""

from sqlalchemy import Column, Integer, String, ForeignKey, DateTime, Enum, JSON, UniqueConstraint
from sqlalchemy.sql import func
from courier.app.db.session import Base
from courier.app.models.job_enums import StopKind, StopStatus


class JobStop(Base):
    __tablename__ = "job_stops"
    __table_args__ = (
        UniqueConstraint("job_id", "sequence_number", name="uq_job_stop_sequence"),
    )

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    job_id = Column(Integer, ForeignKey('jobs.id'), nullable=False, index=True)

    kind = Column(Enum(StopKind), nullable=False)
    sequence_number = Column(Integer, nullable=False)  # 1, 2, 3, ...

    address = Column(String(500), nullable=False)
    short_address = Column(String(200), nullable=True)
    location = Column(String(64), nullable=False)  # POINT(lng lat)

    status = Column(Enum(StopStatus), default=StopStatus.PENDING, nullable=False)

    # Manifest and counterparty
    items = Column(JSON, nullable=True)
    contact_name = Column(String(200), nullable=True)
    contact_phone = Column(String(50), nullable=True)

    # Proof of delivery (dropoff only)
    confirmation_code = Column(String(12), nullable=True)
    proof_photo_url = Column(String(500), nullable=True)
    proof_signature = Column(String(500), nullable=True)
    failure_reason = Column(String(500), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    arrived_at = Column(DateTime(timezone=True), nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)

    def __repr__(self):
        return f"<JobStop(id={self.id}, job_id={self.job_id}, kind='{self.kind.value}', seq={self.sequence_number}, status='{self.status.value}')>"
