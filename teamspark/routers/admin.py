"""
Audit log administration.
Managers may read the log, but only their own actions.
"""
from datetime import date, datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import Response

from teamspark.core.exceptions import AccessDeniedError
from teamspark.models.audit_log import AuditAction
from teamspark.models.user import UserRole
from teamspark.routers.auth_deps import get_service
from teamspark.schemas.audit import AuditCleanupRequest, AuditCleanupResponse, AuditLogPage, AuditStats
from teamspark.services import permissions
from teamspark.services.audit import AuditService
from teamspark.services.permissions import Permission

router = APIRouter(prefix="/admin/audit-logs", tags=["admin"])


def _visible_user_id(service: AuditService, user_id: Optional[int]) -> Optional[int]:
    if not permissions.can_access_audit_logs(service.actor):
        raise AccessDeniedError(action="view", resource="audit logs")
    if service.actor.role == UserRole.MANAGER:
        return service.actor.id
    return user_id


@router.get("/", response_model=AuditLogPage)
def get_audit_logs(
    user_id: Optional[int] = None,
    action: Optional[AuditAction] = None,
    entity_type: Optional[str] = None,
    entity_id: Optional[str] = None,
    success: Optional[bool] = None,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=200),
    sort_by: str = "created_at",
    sort_order: str = Query("desc", pattern="^(asc|desc)$"),
    service: AuditService = Depends(get_service(AuditService)),
):
    return service.query(
        page=page,
        limit=limit,
        sort_by=sort_by,
        sort_order=sort_order,
        user_id=_visible_user_id(service, user_id),
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        success=success,
        start_date=start_date,
        end_date=end_date,
    )


@router.get("/stats", response_model=AuditStats)
def get_audit_stats(
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    service: AuditService = Depends(get_service(AuditService)),
):
    if not permissions.is_admin(service.actor):
        raise AccessDeniedError(action="view", resource="audit statistics")
    return service.stats(start_date=start_date, end_date=end_date)


@router.get("/export.csv")
def export_audit_logs(
    user_id: Optional[int] = None,
    action: Optional[AuditAction] = None,
    entity_type: Optional[str] = None,
    success: Optional[bool] = None,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    service: AuditService = Depends(get_service(AuditService)),
):
    if not permissions.has_permission(service.actor, Permission.EXPORT_AUDIT_LOGS):
        raise AccessDeniedError(action="export", resource="audit logs")

    filters = {
        "user_id": user_id,
        "action": action,
        "entity_type": entity_type,
        "success": success,
        "start_date": start_date,
        "end_date": end_date,
    }
    content = service.export_csv(**filters)
    service.log_action(
        AuditAction.EXPORT, "audit_log",
        new_values={"filters": {k: v for k, v in filters.items() if v is not None}},
    )
    filename = f"audit-logs-{date.today().isoformat()}.csv"
    return Response(
        content=content,
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.post("/cleanup", response_model=AuditCleanupResponse)
def cleanup_audit_logs(
    data: AuditCleanupRequest,
    service: AuditService = Depends(get_service(AuditService)),
):
    if not permissions.has_permission(service.actor, Permission.MANAGE_COMPLIANCE):
        raise AccessDeniedError(action="clean up", resource="audit logs")
    deleted = service.cleanup(retention_days=data.retention_days)
    service.log_action(
        AuditAction.DELETE, "audit_log",
        new_values={"deleted": deleted, "retention_days": data.retention_days},
    )
    return {"deleted": deleted, "retention_days": data.retention_days}
