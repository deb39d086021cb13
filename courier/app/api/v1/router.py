"""
API v1 Router.

Aggregates all v1 API endpoints.
"""

from fastapi import APIRouter
from courier.app.api.v1.endpoints import (
    auth,
    driver_jobs, active_delivery, driver_session, driver_profile,
    manager_orders, manager_drivers, manager_outbox, manager_route_plan
)

router = APIRouter()

# Authentication endpoints
router.include_router(auth.router)

# Driver app
router.include_router(driver_jobs.router)
router.include_router(active_delivery.router)
router.include_router(driver_session.router)
router.include_router(driver_profile.router)

# Manager dashboard
router.include_router(manager_orders.router)
router.include_router(manager_drivers.router)
router.include_router(manager_outbox.router)
router.include_router(manager_route_plan.router)
