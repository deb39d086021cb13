"""
Job database model.

A job is one unit of work on the jobs board: an ordered batch of pickup and
dropoff stops. Managers create it OPEN; exactly one driver claims it.
"""

from sqlalchemy import Column, Integer, String, Float, ForeignKey, DateTime, Enum
from sqlalchemy.sql import func
from courier.app.db.session import Base
from courier.app.models.job_enums import JobStatus


class Job(Base):
    __tablename__ = "jobs"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    label = Column(String(200), nullable=False)

    status = Column(Enum(JobStatus), default=JobStatus.OPEN, nullable=False, index=True)

    # Summary for list cards; coordinates as POINT(lng lat) text
    pickup_address = Column(String(500), nullable=False)
    pickup_location = Column(String(64), nullable=False)
    destination_address = Column(String(500), nullable=False)
    destination_location = Column(String(64), nullable=False)

    payout = Column(Float, nullable=False)
    currency = Column(String(3), nullable=False, default="ZMW")
    estimated_distance_km = Column(Float, nullable=True)
    estimated_duration_min = Column(Float, nullable=True)

    # Claim
    assigned_driver_id = Column(Integer, ForeignKey('users.id'), nullable=True, index=True)
    created_by_id = Column(Integer, ForeignKey('users.id'), nullable=True)

    # Timestamps
    expires_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)
    accepted_at = Column(DateTime(timezone=True), nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)

    def __repr__(self):
        return f"<Job(id={self.id}, label='{self.label}', status='{self.status.value}')>"
