"""API routes for equipment, custody and maintenance."""

from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status

from studio_scheduling.core.security import require_admin
from studio_scheduling.dependencies import get_equipment_ledger, get_resource_service
from studio_scheduling.models.enums import EquipmentStatus
from studio_scheduling.schemas.equipment import (
    CheckInRequest,
    CheckOutRequest,
    EquipmentAssignmentResponse,
    EquipmentCreate,
    EquipmentResponse,
    MaintenanceComplete,
    MaintenanceDueResponse,
    MaintenanceLogResponse,
    MaintenanceRequest,
)
from studio_scheduling.services.equipment_ledger import EquipmentLedger
from studio_scheduling.services.resource_service import ResourceService

router = APIRouter(prefix="/equipment", tags=["equipment"])


@router.get("/", response_model=List[EquipmentResponse])
def list_equipment(
    *,
    service: ResourceService = Depends(get_resource_service),
    studio_id: Optional[int] = Query(None, alias="studioId", description="Filter by studio"),
    status_filter: Optional[EquipmentStatus] = Query(
        None, alias="status", description="Filter by equipment status"
    ),
    category: Optional[str] = Query(None, description="Filter by category"),
) -> List[EquipmentResponse]:
    """Retrieve equipment optionally filtered by studio, status or category."""

    return service.list_equipment(
        studio_id=studio_id,
        status_filter=status_filter,
        category=category,
    )


@router.post("/", response_model=EquipmentResponse, status_code=status.HTTP_201_CREATED)
def create_equipment(
    payload: EquipmentCreate,
    service: ResourceService = Depends(get_resource_service),
) -> EquipmentResponse:
    return service.create_equipment(payload)


@router.get("/maintenance/schedule", response_model=List[MaintenanceDueResponse])
def maintenance_schedule(
    *,
    ledger: EquipmentLedger = Depends(get_equipment_ledger),
    studio_id: int = Query(..., alias="studioId", description="Studio to plan for"),
    days_ahead: int = Query(30, alias="daysAhead", ge=0, description="Planning window in days"),
) -> List[MaintenanceDueResponse]:
    """Retrieve equipment due for maintenance, overdue items first."""

    return ledger.maintenance_schedule(studio_id, days_ahead=days_ahead)


@router.get("/assignments/overdue", response_model=List[EquipmentAssignmentResponse])
def list_overdue_assignments(
    *,
    ledger: EquipmentLedger = Depends(get_equipment_ledger),
    studio_id: Optional[int] = Query(None, alias="studioId", description="Filter by studio"),
) -> List[EquipmentAssignmentResponse]:
    """Retrieve equipment still out past its expected return time."""

    return ledger.list_overdue_assignments(studio_id=studio_id)


@router.get("/{equipment_id}", response_model=EquipmentResponse)
def get_equipment(
    equipment_id: int,
    service: ResourceService = Depends(get_resource_service),
) -> EquipmentResponse:
    return service.get_equipment(equipment_id)


@router.get("/{equipment_id}/assignments", response_model=List[EquipmentAssignmentResponse])
def list_assignments(
    equipment_id: int,
    open_only: bool = Query(False, alias="openOnly"),
    ledger: EquipmentLedger = Depends(get_equipment_ledger),
) -> List[EquipmentAssignmentResponse]:
    """Retrieve the custody history of an equipment item, newest first."""

    return ledger.list_assignments(equipment_id, open_only=open_only)


@router.post(
    "/{equipment_id}/checkout",
    response_model=EquipmentAssignmentResponse,
    status_code=status.HTTP_201_CREATED,
)
def check_out(
    equipment_id: int,
    payload: CheckOutRequest,
    ledger: EquipmentLedger = Depends(get_equipment_ledger),
) -> EquipmentAssignmentResponse:
    """Hand an equipment item over to a custodian."""

    return ledger.check_out(
        equipment_id,
        payload.custodian_id,
        expected_return_at=payload.expected_return_at,
        booking_id=payload.booking_id,
        notes=payload.notes,
    )


@router.post("/{assignment_id}/checkin", response_model=EquipmentAssignmentResponse)
def check_in(
    assignment_id: int,
    payload: CheckInRequest,
    ledger: EquipmentLedger = Depends(get_equipment_ledger),
) -> EquipmentAssignmentResponse:
    """Return an equipment item; reported damage sends it to maintenance."""

    return ledger.check_in(
        assignment_id,
        payload.condition,
        notes=payload.notes,
        damage_reported=payload.damage_reported,
        damage_description=payload.damage_description,
    )


@router.post("/{equipment_id}/maintenance", response_model=EquipmentResponse)
def send_to_maintenance(
    equipment_id: int,
    payload: MaintenanceRequest,
    ledger: EquipmentLedger = Depends(get_equipment_ledger),
) -> EquipmentResponse:
    return ledger.send_to_maintenance(equipment_id, payload.reason, kind=payload.kind)


@router.post("/{equipment_id}/maintenance/complete", response_model=MaintenanceLogResponse)
def log_maintenance(
    equipment_id: int,
    payload: MaintenanceComplete,
    ledger: EquipmentLedger = Depends(get_equipment_ledger),
) -> MaintenanceLogResponse:
    """Record finished maintenance and return the item to service."""

    return ledger.log_maintenance(
        equipment_id,
        description=payload.description,
        performed_by=payload.performed_by,
        kind=payload.kind,
        cost=payload.cost,
        notes=payload.notes,
        next_due_at=payload.next_due_at,
    )


@router.post("/{equipment_id}/retire", response_model=EquipmentResponse)
def retire_equipment(
    equipment_id: int,
    ledger: EquipmentLedger = Depends(get_equipment_ledger),
    _admin: dict = Depends(require_admin),
) -> EquipmentResponse:
    return ledger.retire(equipment_id)
