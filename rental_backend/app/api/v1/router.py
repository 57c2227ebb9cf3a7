"""
API v1 Router.

Aggregates all v1 API endpoints.
"""

from fastapi import APIRouter
from rental_backend.app.api.v1.endpoints import driver_bookings, ledger, audit, admin_ops

router = APIRouter()

# Booking settlement
router.include_router(driver_bookings.router)

# Saldo
router.include_router(ledger.router)

# Audit trail
router.include_router(audit.router)

# Scheduled jobs
router.include_router(admin_ops.router)
