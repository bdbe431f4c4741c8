from collections.abc import Iterator

from fastapi import Depends
from sqlalchemy.orm import Session

from studio_scheduling.core.database import SessionLocal
from studio_scheduling.services.availability_service import AvailabilityService
from studio_scheduling.services.booking_service import BookingService
from studio_scheduling.services.equipment_ledger import EquipmentLedger
from studio_scheduling.services.notification_client import NotificationClient
from studio_scheduling.services.resource_service import ResourceService


def get_db() -> Iterator:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_notifier() -> NotificationClient:
    return NotificationClient()


def get_availability_service() -> AvailabilityService:
    return AvailabilityService(SessionLocal)


def get_booking_service(
    db: Session = Depends(get_db),
    availability: AvailabilityService = Depends(get_availability_service),
    notifier: NotificationClient = Depends(get_notifier),
) -> BookingService:
    return BookingService(db, availability=availability, notifier=notifier)


def get_equipment_ledger(
    db: Session = Depends(get_db),
    notifier: NotificationClient = Depends(get_notifier),
) -> EquipmentLedger:
    return EquipmentLedger(db, notifier=notifier)


def get_resource_service(db: Session = Depends(get_db)) -> ResourceService:
    return ResourceService(db)
