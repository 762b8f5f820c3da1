from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from teamspark.models.audit_log import AuditAction


class AuditUser(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: Optional[str] = None
    email: str


class AuditLogResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: Optional[int] = None
    user: Optional[AuditUser] = None
    action: AuditAction
    entity_type: str
    entity_id: Optional[str] = None
    old_values: Optional[Dict[str, Any]] = None
    new_values: Optional[Dict[str, Any]] = None
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    success: bool
    error_message: Optional[str] = None
    created_at: datetime


class AuditLogPage(BaseModel):
    logs: List[AuditLogResponse]
    pagination: Dict[str, Any]


class AuditStats(BaseModel):
    total_logs: int
    successful_actions: int
    failed_actions: int
    success_rate: int
    action_breakdown: List[Dict[str, Any]]
    top_active_users: List[Dict[str, Any]]


class AuditCleanupRequest(BaseModel):
    retention_days: int = Field(default=365, ge=1)


class AuditCleanupResponse(BaseModel):
    deleted: int
    retention_days: int
