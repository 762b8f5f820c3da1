from datetime import date, datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from teamspark.models.evaluation import (
    CompetencyCategory, CycleStatus, EvaluationCycleType, EvaluationPhaseType,
    EvaluationStatus, EvaluationType,
)


# --- Cycles ---

class CycleCreate(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    type: EvaluationCycleType
    start_date: date
    end_date: date
    description: Optional[str] = None
    generate_evaluations: bool = False

    @model_validator(mode="after")
    def check_dates(self):
        if self.start_date >= self.end_date:
            raise ValueError("start_date must be before end_date")
        return self


class CycleUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=200)
    description: Optional[str] = None
    status: Optional[CycleStatus] = None


class PhaseResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    type: EvaluationPhaseType
    name: str
    description: Optional[str] = None
    order: int
    start_date: date
    end_date: date


class CycleResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    type: EvaluationCycleType
    status: CycleStatus
    start_date: date
    end_date: date
    description: Optional[str] = None
    phases: List[PhaseResponse] = []


class CycleCreateResponse(CycleResponse):
    generated_evaluations: int = 0


# --- Competencies ---

class CompetencyCreate(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    description: Optional[str] = None
    category: CompetencyCategory
    behaviors: List[str] = []
    order: int = 0


class CompetencyResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    description: Optional[str] = None
    category: CompetencyCategory
    behaviors: Optional[List[str]] = None
    order: int
    is_active: bool


# --- Evaluations ---

class CompetencyRatingInput(BaseModel):
    competency_id: int
    rating: int = Field(ge=1, le=5)
    comments: Optional[str] = None
    behaviors: Optional[List[str]] = None
    examples: Optional[str] = None
    improvement_areas: Optional[str] = None


class CompetencyRatingResponse(CompetencyRatingInput):
    model_config = ConfigDict(from_attributes=True)

    id: int


class EvaluationCreate(BaseModel):
    cycle_id: int
    evaluatee_id: int
    evaluator_id: int
    type: EvaluationType


class EvaluationUpdate(BaseModel):
    overall_rating: Optional[int] = Field(default=None, ge=1, le=5)
    overall_comments: Optional[str] = None
    strengths: Optional[str] = None
    improvements: Optional[str] = None
    career_goals: Optional[str] = None
    development_plan: Optional[str] = None
    competency_ratings: Optional[List[CompetencyRatingInput]] = None


class EvaluationSubmit(EvaluationUpdate):
    pass


class EvaluationReview(BaseModel):
    approved: bool
    manager_comments: Optional[str] = None


class EvaluationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    cycle_id: int
    evaluatee_id: int
    evaluator_id: int
    reviewer_id: Optional[int] = None
    type: EvaluationType
    status: EvaluationStatus
    overall_rating: Optional[int] = None
    overall_comments: Optional[str] = None
    strengths: Optional[str] = None
    improvements: Optional[str] = None
    career_goals: Optional[str] = None
    development_plan: Optional[str] = None
    manager_comments: Optional[str] = None
    is_visible: bool
    submitted_at: Optional[datetime] = None
    reviewed_at: Optional[datetime] = None
    shared_at: Optional[datetime] = None
    competency_ratings: List[CompetencyRatingResponse] = []


class CompetencyResult(BaseModel):
    competency_id: int
    competency_name: str
    average_rating: float
    rating_count: int


class EvaluationResults(BaseModel):
    cycle_id: int
    evaluatee_id: int
    evaluation_count: int
    averages_by_type: Dict[str, float]
    overall_average: float
    competency_results: List[CompetencyResult]
