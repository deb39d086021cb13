"""
Driver session database model.

Online flag, last GPS fix and active job for one driver. The cached route
overlay carries a generation number so a late routing response cannot
overwrite a newer one.
"""

from sqlalchemy import Column, Integer, String, Float, ForeignKey, DateTime, Boolean, JSON
from sqlalchemy.sql import func
from courier.app.db.session import Base


class DriverSession(Base):
    __tablename__ = "driver_sessions"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    driver_id = Column(Integer, ForeignKey('users.id'), unique=True, nullable=False, index=True)

    is_online = Column(Boolean, default=False, nullable=False)

    # Last GPS fix
    last_latitude = Column(Float, nullable=True)
    last_longitude = Column(Float, nullable=True)
    last_accuracy_meters = Column(Float, nullable=True)
    last_position_at = Column(DateTime(timezone=True), nullable=True)
    sensor_error = Column(String(300), nullable=True)

    active_job_id = Column(Integer, ForeignKey('jobs.id'), nullable=True)

    # Route overlay
    route_geometry = Column(JSON, nullable=True)  # [[lat, lng], ...]
    route_source = Column(String(30), nullable=True)
    route_generation = Column(Integer, default=0, nullable=False)

    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    @property
    def position(self):
        """(lat, lng) of the last fix, or None."""
        if self.last_latitude is None or self.last_longitude is None:
            return None
        return (self.last_latitude, self.last_longitude)

    def __repr__(self):
        return f"<DriverSession(driver_id={self.driver_id}, online={self.is_online}, job={self.active_job_id})>"
