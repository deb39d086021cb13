"""
Audit Log Database Model.

Records who did what to which job: logins, claims, stop transitions,
cancellations.
"""

from sqlalchemy import Column, Integer, String, DateTime, JSON
from sqlalchemy.sql import func
from courier.app.db.session import Base


class AuditLog(Base):
    """
    Audit log entry.

    Events logged:
    - LOGIN_SUCCESS / LOGIN_FAILED / LOGOUT
    - JOB_CREATED / JOB_ACCEPTED / JOB_CLAIM_REJECTED / JOB_CANCELLED
    - STOP_ADVANCED / BATCH_COMPLETED
    """
    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    # Who performed the action (None for system actions)
    actor_id = Column(Integer, index=True, nullable=True)
    actor_username = Column(String(100), nullable=True)

    action = Column(String(100), nullable=False, index=True)

    # Job the action touched, if any
    job_id = Column(Integer, index=True, nullable=True)

    meta_data = Column(JSON, nullable=True)

    timestamp = Column(DateTime(timezone=True), server_default=func.now(), nullable=False, index=True)

    def __repr__(self):
        return f"<AuditLog(id={self.id}, action='{self.action}', actor={self.actor_username}, job={self.job_id})>"
