from fastapi import APIRouter

from .booking_routes import router as booking_router
from .equipment_routes import router as equipment_router
from .room_routes import router as room_router
from .staff_routes import router as staff_router

router = APIRouter()
router.include_router(booking_router)
router.include_router(equipment_router)
router.include_router(room_router)
router.include_router(staff_router)

__all__ = [
    "router",
    "booking_router",
    "equipment_router",
    "room_router",
    "staff_router",
]
