from typing import List

from fastapi import APIRouter, Depends, Query, status

from teamspark.routers.auth_deps import get_service
from teamspark.schemas.kudos import KudosCreate, KudosResponse
from teamspark.services.kudos_service import KudosService

router = APIRouter(prefix="/kudos", tags=["kudos"])


@router.get("/", response_model=List[KudosResponse])
def get_kudos_feed(
    limit: int = Query(50, ge=1, le=200),
    service: KudosService = Depends(get_service(KudosService)),
):
    return service.feed(limit=limit)


@router.post("/", response_model=KudosResponse, status_code=status.HTTP_201_CREATED)
def send_kudos(data: KudosCreate, service: KudosService = Depends(get_service(KudosService))):
    return service.send(data.receiver_id, data.category, data.message, is_public=data.is_public)
