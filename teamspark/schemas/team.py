from pydantic import BaseModel, ConfigDict, Field
from typing import List, Optional


class TeamCreate(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    description: Optional[str] = None
    manager_id: Optional[int] = None
    member_ids: List[int] = []


class TeamMemberAdd(BaseModel):
    user_id: int


class TeamResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    description: Optional[str] = None
    manager_id: Optional[int] = None
    member_ids: List[int] = []
    member_count: int = 0
