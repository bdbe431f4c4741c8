"""API routes for bookable staff members."""

from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status

from studio_scheduling.dependencies import get_resource_service
from studio_scheduling.schemas.resource import StaffCreate, StaffResponse
from studio_scheduling.services.resource_service import ResourceService

router = APIRouter(prefix="/staff", tags=["staff"])


@router.get("/", response_model=List[StaffResponse])
def list_staff(
    studio_id: Optional[int] = Query(None, alias="studioId", description="Filter by studio"),
    service: ResourceService = Depends(get_resource_service),
) -> List[StaffResponse]:
    return service.list_staff(studio_id=studio_id)


@router.post("/", response_model=StaffResponse, status_code=status.HTTP_201_CREATED)
def create_staff(
    payload: StaffCreate,
    service: ResourceService = Depends(get_resource_service),
) -> StaffResponse:
    return service.create_staff(payload)


@router.get("/{staff_id}", response_model=StaffResponse)
def get_staff(
    staff_id: int,
    service: ResourceService = Depends(get_resource_service),
) -> StaffResponse:
    return service.get_staff(staff_id)
