from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from teamspark.models.kudos import KudosCategory


class KudosCreate(BaseModel):
    receiver_id: int
    category: KudosCategory
    message: str = Field(min_length=1, max_length=1000)
    is_public: bool = True


class KudosResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    sender_id: int
    receiver_id: int
    category: KudosCategory
    message: str
    is_public: bool
    created_at: Optional[datetime] = None


class SlackCommandResponse(BaseModel):
    response_type: str = "ephemeral"
    text: str
