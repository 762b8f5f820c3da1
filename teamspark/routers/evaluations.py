from typing import List, Optional

from fastapi import APIRouter, Depends, status

from teamspark.models.evaluation import EvaluationStatus, EvaluationType
from teamspark.routers.auth_deps import get_service
from teamspark.schemas.evaluation import (
    EvaluationCreate, EvaluationResponse, EvaluationResults, EvaluationReview,
    EvaluationSubmit, EvaluationUpdate,
)
from teamspark.services.evaluation_service import EvaluationService

router = APIRouter(prefix="/evaluations", tags=["evaluations"])


@router.get("/", response_model=List[EvaluationResponse])
def list_evaluations(
    cycle_id: Optional[int] = None,
    evaluatee_id: Optional[int] = None,
    evaluator_id: Optional[int] = None,
    type: Optional[EvaluationType] = None,
    status: Optional[EvaluationStatus] = None,
    service: EvaluationService = Depends(get_service(EvaluationService)),
):
    return service.list_evaluations(
        cycle_id=cycle_id,
        evaluatee_id=evaluatee_id,
        evaluator_id=evaluator_id,
        type=type,
        status=status,
    )


@router.post("/", response_model=EvaluationResponse, status_code=status.HTTP_201_CREATED)
def create_evaluation(data: EvaluationCreate, service: EvaluationService = Depends(get_service(EvaluationService))):
    return service.create(data)


@router.get("/results", response_model=EvaluationResults)
def get_evaluation_results(
    cycle_id: int,
    evaluatee_id: int,
    service: EvaluationService = Depends(get_service(EvaluationService)),
):
    """Released (shared or visible) evaluations of one person in a cycle, aggregated."""
    return service.results(cycle_id, evaluatee_id)


@router.get("/{evaluation_id}", response_model=EvaluationResponse)
def get_evaluation(evaluation_id: int, service: EvaluationService = Depends(get_service(EvaluationService))):
    return service.get(evaluation_id)


@router.patch("/{evaluation_id}", response_model=EvaluationResponse)
def save_evaluation_draft(
    evaluation_id: int,
    data: EvaluationUpdate,
    service: EvaluationService = Depends(get_service(EvaluationService)),
):
    return service.save_draft(evaluation_id, data)


@router.post("/{evaluation_id}/submit", response_model=EvaluationResponse)
def submit_evaluation(
    evaluation_id: int,
    data: EvaluationSubmit,
    service: EvaluationService = Depends(get_service(EvaluationService)),
):
    return service.submit(evaluation_id, data)


@router.post("/{evaluation_id}/review", response_model=EvaluationResponse)
def review_evaluation(
    evaluation_id: int,
    data: EvaluationReview,
    service: EvaluationService = Depends(get_service(EvaluationService)),
):
    return service.review(evaluation_id, data)


@router.post("/{evaluation_id}/share", response_model=EvaluationResponse)
def share_evaluation(evaluation_id: int, service: EvaluationService = Depends(get_service(EvaluationService))):
    return service.share(evaluation_id)


@router.delete("/{evaluation_id}")
def delete_evaluation(evaluation_id: int, service: EvaluationService = Depends(get_service(EvaluationService))):
    service.delete(evaluation_id)
    return {"success": True, "message": "Evaluation deleted"}
