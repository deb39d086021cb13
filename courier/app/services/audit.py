"""
Audit logging service.

Keeps a trail of logins and of every change made to a job, which the
manager's order detail view shows as a timeline.
"""

from typing import Optional, Dict, Any
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from courier.app.models.audit_log import AuditLog


class AuditAction:
    """Standardized audit action constants."""
    LOGIN_SUCCESS = "LOGIN_SUCCESS"
    LOGIN_FAILED = "LOGIN_FAILED"
    LOGOUT = "LOGOUT"

    JOB_CREATED = "JOB_CREATED"
    JOB_ACCEPTED = "JOB_ACCEPTED"
    JOB_CLAIM_REJECTED = "JOB_CLAIM_REJECTED"
    JOB_CANCELLED = "JOB_CANCELLED"

    STOP_ADVANCED = "STOP_ADVANCED"
    BATCH_COMPLETED = "BATCH_COMPLETED"
    DRIVER_WENT_ONLINE = "DRIVER_WENT_ONLINE"
    DRIVER_WENT_OFFLINE = "DRIVER_WENT_OFFLINE"


async def log_event(
    db: AsyncSession,
    action: str,
    actor_id: Optional[int] = None,
    actor_username: Optional[str] = None,
    job_id: Optional[int] = None,
    metadata: Optional[Dict[str, Any]] = None,
    commit: bool = True
) -> AuditLog:
    """
    Write an audit log entry.

    Args:
        db: Database session
        action: Action being performed (use AuditAction constants)
        actor_id: ID of user performing the action
        actor_username: Username of actor
        job_id: Job the action touched
        metadata: Additional context as JSON
        commit: Commit immediately. Pass False to ride along with the
            caller's transaction.

    Returns:
        Created AuditLog instance
    """
    audit_log = AuditLog(
        actor_id=actor_id,
        actor_username=actor_username,
        action=action,
        job_id=job_id,
        meta_data=metadata,
    )

    db.add(audit_log)
    if commit:
        await db.commit()
        await db.refresh(audit_log)
    else:
        await db.flush()

    return audit_log


async def get_job_audit_trail(
    db: AsyncSession,
    job_id: int,
    limit: int = 100
) -> list[AuditLog]:
    """Audit entries for one job, oldest first."""
    query = select(AuditLog).where(
        AuditLog.job_id == job_id
    ).order_by(AuditLog.timestamp, AuditLog.id).limit(limit)

    result = await db.execute(query)
    return result.scalars().all()
