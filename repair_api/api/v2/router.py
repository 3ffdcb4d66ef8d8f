from fastapi import APIRouter
from repair_api.api.v2 import (
    auth,
    technician_levels,
    technicians,
    faults,
    services,
    customer_devices,
    notifications,
)

api_router = APIRouter()

# Include all v2 routers
api_router.include_router(auth.router, prefix="/auth", tags=["auth"])
api_router.include_router(technician_levels.router, prefix="/technician-levels", tags=["technician-levels"])
api_router.include_router(technicians.router, prefix="/technicians", tags=["technicians"])
api_router.include_router(faults.router, prefix="/faults", tags=["faults"])
api_router.include_router(services.router, prefix="/services", tags=["services"])
api_router.include_router(customer_devices.router, prefix="/customer-devices", tags=["customer-devices"])
api_router.include_router(notifications.router, prefix="/notifications", tags=["notifications"])
