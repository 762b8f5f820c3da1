from typing import List, Optional

from fastapi import APIRouter, Depends, status

from teamspark.models.evaluation import CycleStatus
from teamspark.routers.auth_deps import get_service
from teamspark.schemas.evaluation import CycleCreate, CycleCreateResponse, CycleResponse, CycleUpdate
from teamspark.services.cycle_service import CycleService

router = APIRouter(prefix="/evaluations/cycles", tags=["evaluation cycles"])


@router.get("/", response_model=List[CycleResponse])
def list_cycles(
    status: Optional[CycleStatus] = None,
    service: CycleService = Depends(get_service(CycleService)),
):
    return service.list_cycles(status)


@router.post("/", response_model=CycleCreateResponse, status_code=status.HTTP_201_CREATED)
def create_cycle(data: CycleCreate, service: CycleService = Depends(get_service(CycleService))):
    cycle, generated = service.create(data)
    response = CycleCreateResponse.model_validate(cycle)
    response.generated_evaluations = generated
    return response


@router.get("/{cycle_id}", response_model=CycleResponse)
def get_cycle(cycle_id: int, service: CycleService = Depends(get_service(CycleService))):
    return service.get(cycle_id)


@router.patch("/{cycle_id}", response_model=CycleResponse)
def update_cycle(
    cycle_id: int,
    data: CycleUpdate,
    service: CycleService = Depends(get_service(CycleService)),
):
    return service.update(cycle_id, data)
