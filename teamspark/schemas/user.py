from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from teamspark.models.user import UserRole
from teamspark.schemas.auth import UserResponse


class UserCreateRequest(BaseModel):
    email: EmailStr
    name: str = Field(min_length=1, max_length=100)
    password: str = Field(min_length=8)
    role: UserRole = UserRole.MEMBER
    bio: Optional[str] = None
    slack_user_id: Optional[str] = None
    team_ids: List[int] = []


class UserUpdateRequest(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    bio: Optional[str] = None
    slack_user_id: Optional[str] = None
    role: Optional[UserRole] = None
    is_active: Optional[bool] = None
    deactivation_reason: Optional[str] = None


class UserDetail(UserResponse):
    model_config = ConfigDict(from_attributes=True)

    bio: Optional[str] = None
    slack_user_id: Optional[str] = None
    team_ids: List[int] = []
    last_role_change: Optional[datetime] = None
    deactivated_at: Optional[datetime] = None
    deactivation_reason: Optional[str] = None


class UserListResponse(BaseModel):
    users: List[UserDetail]
    pagination: Dict[str, Any]
