"""
Job and stop enumerations.
"""

import enum


class JobStatus(str, enum.Enum):
    """Job (delivery batch) status enumeration."""
    OPEN = "OPEN"  # Listed on the jobs board
    CLAIMED = "CLAIMED"  # Accepted by a driver, nothing picked up yet
    IN_TRANSIT = "IN_TRANSIT"  # At least one pickup done
    COMPLETED = "COMPLETED"  # Every stop reached a terminal status
    CANCELLED = "CANCELLED"  # Withdrawn by a manager


class StopKind(str, enum.Enum):
    PICKUP = "pickup"
    DROPOFF = "dropoff"


class StopStatus(str, enum.Enum):
    PENDING = "pending"
    ARRIVED_AT_PICKUP = "arrived_at_pickup"
    PICKED_UP = "picked_up"
    ARRIVED_AT_DROPOFF = "arrived_at_dropoff"
    DELIVERED = "delivered"
    FAILED = "failed"


class StopAction(str, enum.Enum):
    """Driver-initiated actions on the current stop."""
    ARRIVE = "arrive"
    CONFIRM_PICKUP = "confirm_pickup"
    DELIVER = "deliver"
    FAIL = "fail"


class VehicleType(str, enum.Enum):
    CAR = "car"
    BIKE = "bike"
