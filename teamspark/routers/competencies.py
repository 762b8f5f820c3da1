from typing import List

from fastapi import APIRouter, Depends, status

from teamspark.routers.auth_deps import get_service, require_admin
from teamspark.schemas.evaluation import CompetencyCreate, CompetencyResponse
from teamspark.services.competency_service import CompetencyService

router = APIRouter(prefix="/competencies", tags=["competencies"])


@router.get("/", response_model=List[CompetencyResponse])
def list_competencies(service: CompetencyService = Depends(get_service(CompetencyService))):
    return service.list_active()


@router.post("/", response_model=CompetencyResponse, status_code=status.HTTP_201_CREATED)
def create_competency(data: CompetencyCreate, service: CompetencyService = Depends(get_service(CompetencyService))):
    return service.create(data)


@router.post(
    "/initialize",
    response_model=List[CompetencyResponse],
    dependencies=[Depends(require_admin())],
)
def initialize_default_competencies(service: CompetencyService = Depends(get_service(CompetencyService))):
    """Create the default competency set; names that already exist are skipped."""
    service.initialize_defaults()
    return service.list_active()
