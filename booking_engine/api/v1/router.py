"""
API v1 router setup
Organized by resource: availability, providers, reservations, bookings, packages
"""
from fastapi import APIRouter

from booking_engine.api.v1 import availability, providers, reservations, bookings, packages

api_v1_router = APIRouter()

# ============================================================================
# READ SIDE (projections over the provider calendar)
# ============================================================================
api_v1_router.include_router(
    availability.router,
    prefix="/availability",
    tags=["Availability"]
)

# ============================================================================
# PROVIDER CALENDAR MANAGEMENT
# ============================================================================
api_v1_router.include_router(
    providers.router,
    prefix="/providers",
    tags=["Providers"]
)

api_v1_router.include_router(
    packages.router,
    prefix="/packages",
    tags=["Packages"]
)

# ============================================================================
# WRITE SIDE (holds and bookings)
# ============================================================================
api_v1_router.include_router(
    reservations.router,
    prefix="/reservations",
    tags=["Reservations"]
)

api_v1_router.include_router(
    bookings.router,
    prefix="/bookings",
    tags=["Bookings"]
)


# ============================================================================
# ROOT ENDPOINT - API Info
# ============================================================================
@api_v1_router.get("/", tags=["Info"])
async def api_info():
    """
    API information and available resources.
    """
    return {
        "version": "1.0",
        "resources": [
            "/availability",
            "/providers",
            "/packages",
            "/reservations",
            "/bookings"
        ]
    }
