from datetime import date, datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, computed_field, model_validator

from teamspark.models.okr import (
    KeyResultType, MilestoneStatus, ObjectiveOwner, ObjectiveStatus, OkrCycle,
)
from teamspark.services import okr_progress


class ObjectiveCreate(BaseModel):
    title: str = Field(min_length=1, max_length=200)
    description: Optional[str] = None
    owner_type: ObjectiveOwner
    owner_team_id: Optional[int] = None
    parent_id: Optional[int] = None
    cycle: OkrCycle
    year: int = Field(ge=2000, le=2100)
    start_date: date
    end_date: date

    @model_validator(mode="after")
    def check_dates(self):
        if self.start_date > self.end_date:
            raise ValueError("start_date must not be after end_date")
        return self


class ObjectiveUpdate(BaseModel):
    title: Optional[str] = Field(default=None, min_length=1, max_length=200)
    description: Optional[str] = None
    status: Optional[ObjectiveStatus] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None


class KeyResultCreate(BaseModel):
    objective_id: int
    title: str = Field(min_length=1, max_length=200)
    description: Optional[str] = None
    type: KeyResultType
    owner_id: Optional[int] = None
    start_value: Optional[float] = None
    target_value: Optional[float] = None
    unit: Optional[str] = None

    @model_validator(mode="after")
    def check_metric(self):
        if self.type == KeyResultType.METRIC and self.target_value is None:
            raise ValueError("target_value is required for METRIC key results")
        return self


class KeyResultUpdate(BaseModel):
    title: Optional[str] = Field(default=None, min_length=1, max_length=200)
    description: Optional[str] = None
    owner_id: Optional[int] = None
    target_value: Optional[float] = None
    current_value: Optional[float] = None
    milestone_status: Optional[MilestoneStatus] = None
    progress: Optional[float] = Field(default=None, ge=0, le=1)
    confidence: Optional[float] = Field(default=None, ge=0, le=1)


class CheckInCreate(BaseModel):
    key_result_id: int
    current_value: Optional[float] = None
    progress: Optional[float] = Field(default=None, ge=0, le=1)
    confidence: Optional[float] = Field(default=None, ge=0, le=1)
    milestone_status: Optional[MilestoneStatus] = None
    comment: Optional[str] = None
    blockers: Optional[str] = None


class CheckInResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    key_result_id: int
    user_id: int
    previous_value: Optional[float] = None
    current_value: Optional[float] = None
    progress: float
    confidence: Optional[float] = None
    comment: Optional[str] = None
    blockers: Optional[str] = None
    created_at: Optional[datetime] = None


class KeyResultResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    objective_id: int
    title: str
    description: Optional[str] = None
    type: KeyResultType
    owner_id: Optional[int] = None
    start_value: Optional[float] = None
    target_value: Optional[float] = None
    current_value: Optional[float] = None
    unit: Optional[str] = None
    milestone_status: Optional[MilestoneStatus] = None
    progress: float
    confidence: Optional[float] = None
    latest_check_in: Optional[CheckInResponse] = None


class ObjectiveResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    title: str
    description: Optional[str] = None
    owner_type: ObjectiveOwner
    owner_user_id: Optional[int] = None
    owner_team_id: Optional[int] = None
    parent_id: Optional[int] = None
    cycle: OkrCycle
    year: int
    start_date: date
    end_date: date
    status: ObjectiveStatus
    key_results: List[KeyResultResponse] = []

    @computed_field
    @property
    def average_progress(self) -> float:
        return okr_progress.average_progress(self.key_results)

    @computed_field
    @property
    def average_confidence(self) -> float:
        return okr_progress.average_confidence(self.key_results)


class OkrSummary(BaseModel):
    total_objectives: int
    active_objectives: int
    completed_objectives: int
    average_progress: float
    average_confidence: float
    key_results_by_type: Dict[str, int]
    objectives_by_cycle: Dict[str, int]


class OkrAlignment(BaseModel):
    company_objectives: List[ObjectiveResponse]
    team_objectives: Dict[int, List[ObjectiveResponse]]
    individual_objectives: Dict[int, List[ObjectiveResponse]]
