"""
Driver profile database model.

Contact and vehicle details edited from the driver's profile screen.
"""

from sqlalchemy import Column, Integer, String, Float, ForeignKey, DateTime, Enum
from sqlalchemy.sql import func
from courier.app.db.session import Base
from courier.app.models.job_enums import VehicleType


class DriverProfile(Base):
    __tablename__ = "driver_profiles"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    driver_id = Column(Integer, ForeignKey('users.id'), unique=True, nullable=False, index=True)

    full_name = Column(String(200), nullable=True)
    phone = Column(String(50), nullable=True)

    vehicle_type = Column(Enum(VehicleType), default=VehicleType.CAR, nullable=False)
    vehicle_model = Column(String(100), nullable=True)
    license_plate = Column(String(30), nullable=True)

    emergency_contact_name = Column(String(200), nullable=True)
    emergency_contact_phone = Column(String(50), nullable=True)

    rating = Column(Float, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    def __repr__(self):
        return f"<DriverProfile(driver_id={self.driver_id}, name='{self.full_name}')>"
