"""API routes for studio rooms."""

from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status

from studio_scheduling.dependencies import get_resource_service
from studio_scheduling.schemas.resource import RoomCreate, RoomResponse
from studio_scheduling.services.resource_service import ResourceService

router = APIRouter(prefix="/rooms", tags=["rooms"])


@router.get("/", response_model=List[RoomResponse])
def list_rooms(
    studio_id: Optional[int] = Query(None, alias="studioId", description="Filter by studio"),
    service: ResourceService = Depends(get_resource_service),
) -> List[RoomResponse]:
    return service.list_rooms(studio_id=studio_id)


@router.post("/", response_model=RoomResponse, status_code=status.HTTP_201_CREATED)
def create_room(
    payload: RoomCreate,
    service: ResourceService = Depends(get_resource_service),
) -> RoomResponse:
    return service.create_room(payload)


@router.get("/{room_id}", response_model=RoomResponse)
def get_room(
    room_id: int,
    service: ResourceService = Depends(get_resource_service),
) -> RoomResponse:
    return service.get_room(room_id)
