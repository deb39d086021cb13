"""
User roles enumeration.
"""

import enum


class UserRole(str, enum.Enum):
    """
    User role enumeration.

    Roles:
        ADMIN: System-level access, passes every role gate
        MANAGER: Runs the dispatch dashboard (jobs, roster, orders)
        DRIVER: Accepts jobs and works stops (default role)
    """
    ADMIN = "ADMIN"
    MANAGER = "MANAGER"
    DRIVER = "DRIVER"
