from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status

from teamspark.models.okr import ObjectiveOwner, ObjectiveStatus, OkrCycle
from teamspark.routers.auth_deps import get_service
from teamspark.schemas.okr import (
    CheckInCreate, CheckInResponse, KeyResultCreate, KeyResultResponse, KeyResultUpdate,
    ObjectiveCreate, ObjectiveResponse, ObjectiveUpdate, OkrAlignment, OkrSummary,
)
from teamspark.services.okr_service import OkrService

router = APIRouter(prefix="/okr", tags=["okr"])


# --- Objectives ---

@router.get("/objectives", response_model=List[ObjectiveResponse])
def list_objectives(
    cycle: Optional[OkrCycle] = None,
    year: Optional[int] = None,
    owner_type: Optional[ObjectiveOwner] = None,
    owner_id: Optional[int] = None,
    status: Optional[ObjectiveStatus] = None,
    service: OkrService = Depends(get_service(OkrService)),
):
    return service.list_objectives(cycle=cycle, year=year, owner_type=owner_type, owner_id=owner_id, status=status)


@router.post("/objectives", response_model=ObjectiveResponse, status_code=status.HTTP_201_CREATED)
def create_objective(data: ObjectiveCreate, service: OkrService = Depends(get_service(OkrService))):
    return service.create_objective(data)


@router.get("/objectives/{objective_id}", response_model=ObjectiveResponse)
def get_objective(objective_id: int, service: OkrService = Depends(get_service(OkrService))):
    return service.get_objective(objective_id)


@router.patch("/objectives/{objective_id}", response_model=ObjectiveResponse)
def update_objective(
    objective_id: int,
    data: ObjectiveUpdate,
    service: OkrService = Depends(get_service(OkrService)),
):
    return service.update_objective(objective_id, data)


@router.delete("/objectives/{objective_id}", response_model=ObjectiveResponse)
def cancel_objective(objective_id: int, service: OkrService = Depends(get_service(OkrService))):
    """Objectives are never removed; a draft objective is cancelled instead."""
    return service.cancel_objective(objective_id)


# --- Key results ---

@router.post("/key-results", response_model=KeyResultResponse, status_code=status.HTTP_201_CREATED)
def create_key_result(data: KeyResultCreate, service: OkrService = Depends(get_service(OkrService))):
    return service.create_key_result(data)


@router.patch("/key-results/{key_result_id}", response_model=KeyResultResponse)
def update_key_result(
    key_result_id: int,
    data: KeyResultUpdate,
    service: OkrService = Depends(get_service(OkrService)),
):
    return service.update_key_result(key_result_id, data)


@router.delete("/key-results/{key_result_id}")
def delete_key_result(key_result_id: int, service: OkrService = Depends(get_service(OkrService))):
    service.delete_key_result(key_result_id)
    return {"success": True, "message": "Key result deleted"}


@router.get("/key-results/{key_result_id}/check-ins", response_model=List[CheckInResponse])
def get_check_in_history(
    key_result_id: int,
    limit: int = Query(10, ge=1, le=100),
    service: OkrService = Depends(get_service(OkrService)),
):
    return service.check_in_history(key_result_id, limit=limit)


# --- Check-ins ---

@router.post("/check-ins", response_model=KeyResultResponse, status_code=status.HTTP_201_CREATED)
def create_check_in(data: CheckInCreate, service: OkrService = Depends(get_service(OkrService))):
    return service.create_check_in(data)


# --- Reporting ---

@router.get("/summary", response_model=OkrSummary)
def get_okr_summary(cycle: OkrCycle, year: int, service: OkrService = Depends(get_service(OkrService))):
    return service.summary(cycle, year)


@router.get("/alignment", response_model=OkrAlignment)
def get_okr_alignment(cycle: OkrCycle, year: int, service: OkrService = Depends(get_service(OkrService))):
    return service.alignment(cycle, year)
