import csv
import enum
import io
from datetime import date, datetime, timedelta, timezone
from typing import Any, Dict, Optional

from sqlalchemy import func
from starlette.requests import Request

from teamspark.core.config import settings
from teamspark.core.limiter import get_client_ip
from teamspark.models.audit_log import AuditLog, AuditAction
from teamspark.models.user import User
from teamspark.services.base import BaseService

CSV_HEADERS = [
    "Timestamp",
    "User",
    "Action",
    "Entity Type",
    "Entity ID",
    "Success",
    "IP Address",
    "User Agent",
    "Error Message",
]

SORTABLE_FIELDS = {
    "created_at": AuditLog.created_at,
    "action": AuditLog.action,
    "entity_type": AuditLog.entity_type,
}


def _jsonable(obj: Any) -> Any:
    if obj is None:
        return None
    if hasattr(obj, "model_dump"):
        return _jsonable(obj.model_dump())
    if isinstance(obj, enum.Enum):
        return obj.value
    if isinstance(obj, (datetime, date)):
        return obj.isoformat()
    if isinstance(obj, dict):
        return {k: _jsonable(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple, set)):
        return [_jsonable(i) for i in obj]
    return obj


def request_context(request: Optional[Request]) -> Dict[str, Optional[str]]:
    """IP address and user agent of the request, for audit entries."""
    if request is None:
        return {"ip_address": None, "user_agent": None}
    return {
        "ip_address": get_client_ip(request),
        "user_agent": request.headers.get("user-agent", "unknown"),
    }


class AuditService(BaseService):
    """
    Audit trail for the organization.

    Recording is best-effort and happens after the primary mutation has
    committed: ``log_action`` writes the entry in its own transaction and
    swallows (and logs) any failure, so an audit problem never blocks or
    reverts the change it describes.
    """

    def _build_entry(
        self,
        action: AuditAction,
        entity_type: str,
        entity_id: Any,
        user_id: Optional[int],
        old_values: Optional[dict],
        new_values: Optional[dict],
        ip_address: Optional[str],
        user_agent: Optional[str],
        success: bool,
        error_message: Optional[str],
    ) -> AuditLog:
        return AuditLog(
            organization_id=self.org_id,
            user_id=user_id,
            action=action,
            entity_type=entity_type,
            entity_id=str(entity_id) if entity_id is not None else None,
            old_values=_jsonable(old_values),
            new_values=_jsonable(new_values),
            ip_address=ip_address,
            user_agent=user_agent,
            success=success,
            error_message=error_message,
        )

    def log_action(
        self,
        action: AuditAction,
        entity_type: str,
        entity_id: Any = None,
        user_id: Optional[int] = None,
        old_values: Optional[dict] = None,
        new_values: Optional[dict] = None,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
        success: bool = True,
        error_message: Optional[str] = None,
    ) -> Optional[AuditLog]:
        """Append an entry. Returns None when the entry could not be written."""
        if user_id is None and self.actor is not None:
            user_id = self.actor.id
        ip_address = ip_address or self.request_meta.get("ip_address")
        user_agent = user_agent or self.request_meta.get("user_agent")

        entry = None
        try:
            entry = self._build_entry(
                action, entity_type, entity_id, user_id,
                old_values, new_values, ip_address, user_agent,
                success, error_message,
            )
            self.db.add(entry)
            self.db.commit()
            return entry
        except Exception as e:
            self.log_error(f"FAILED TO AUDIT LOG: {e}", exc_info=True)
            if entry is not None:
                # Only the audit entry is pending here; the primary change is already committed
                self.db.rollback()
            return None

    def log_failure(
        self,
        action: AuditAction,
        entity_type: str,
        entity_id: Any,
        error_message: str,
        user_id: Optional[int] = None,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> Optional[AuditLog]:
        return self.log_action(
            action=action,
            entity_type=entity_type,
            entity_id=entity_id,
            user_id=user_id,
            ip_address=ip_address,
            user_agent=user_agent,
            success=False,
            error_message=error_message,
        )

    def _filtered(
        self,
        user_id: Optional[int] = None,
        action: Optional[AuditAction] = None,
        entity_type: Optional[str] = None,
        entity_id: Optional[str] = None,
        success: Optional[bool] = None,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
    ):
        query = self.scoped(AuditLog)
        if user_id is not None:
            query = query.filter(AuditLog.user_id == user_id)
        if action is not None:
            query = query.filter(AuditLog.action == action)
        if entity_type:
            query = query.filter(AuditLog.entity_type == entity_type)
        if entity_id:
            query = query.filter(AuditLog.entity_id == str(entity_id))
        if success is not None:
            query = query.filter(AuditLog.success == success)
        if start_date is not None:
            query = query.filter(AuditLog.created_at >= start_date)
        if end_date is not None:
            query = query.filter(AuditLog.created_at <= end_date)
        return query

    def query(
        self,
        page: int = 1,
        limit: int = 50,
        sort_by: str = "created_at",
        sort_order: str = "desc",
        **filters,
    ) -> Dict[str, Any]:
        query = self._filtered(**filters)
        total = query.count()

        column = SORTABLE_FIELDS.get(sort_by, AuditLog.created_at)
        if sort_order == "asc":
            query = query.order_by(column.asc(), AuditLog.id.asc())
        else:
            query = query.order_by(column.desc(), AuditLog.id.desc())

        logs = query.offset((page - 1) * limit).limit(limit).all()
        total_pages = (total + limit - 1) // limit if limit else 0
        return {
            "logs": logs,
            "pagination": {
                "page": page,
                "limit": limit,
                "total_count": total,
                "total_pages": total_pages,
                "has_next": page < total_pages,
                "has_prev": page > 1,
            },
        }

    def stats(self, start_date: Optional[datetime] = None, end_date: Optional[datetime] = None) -> Dict[str, Any]:
        base = self._filtered(start_date=start_date, end_date=end_date)
        total = base.count()
        successful = base.filter(AuditLog.success.is_(True)).count()
        failed = total - successful

        breakdown = (
            base.with_entities(AuditLog.action, func.count(AuditLog.id))
            .group_by(AuditLog.action)
            .order_by(func.count(AuditLog.id).desc())
            .all()
        )
        top_users = (
            base.filter(AuditLog.user_id.isnot(None))
            .with_entities(AuditLog.user_id, func.count(AuditLog.id))
            .group_by(AuditLog.user_id)
            .order_by(func.count(AuditLog.id).desc())
            .limit(10)
            .all()
        )
        users = {}
        if top_users:
            ids = [user_id for user_id, _ in top_users]
            users = {u.id: u for u in self.db.query(User).filter(User.id.in_(ids)).all()}

        return {
            "total_logs": total,
            "successful_actions": successful,
            "failed_actions": failed,
            "success_rate": round(successful / total * 100) if total else 0,
            "action_breakdown": [
                {"action": action.value if isinstance(action, enum.Enum) else action, "count": count}
                for action, count in breakdown
            ],
            "top_active_users": [
                {
                    "user": {"id": users[user_id].id, "name": users[user_id].name, "email": users[user_id].email},
                    "action_count": count,
                }
                for user_id, count in top_users
                if user_id in users
            ],
        }

    def export_csv(self, **filters) -> str:
        """
        Render matching entries as CSV, newest first.
        Fields containing commas, quotes or newlines are quote-wrapped with
        embedded quotes doubled.
        """
        logs = (
            self._filtered(**filters)
            .order_by(AuditLog.created_at.desc(), AuditLog.id.desc())
            .limit(settings.audit_export_max_rows)
            .all()
        )
        output = io.StringIO()
        writer = csv.writer(output, quoting=csv.QUOTE_MINIMAL, lineterminator="\n")
        writer.writerow(CSV_HEADERS)
        for log in logs:
            writer.writerow([
                log.created_at.isoformat() if log.created_at else "",
                (log.user.name or log.user.email) if log.user else "System",
                log.action.value,
                log.entity_type,
                log.entity_id or "",
                "Success" if log.success else "Failed",
                log.ip_address or "",
                log.user_agent or "",
                log.error_message or "",
            ])
        return output.getvalue()

    def cleanup(self, retention_days: Optional[int] = None) -> int:
        """Delete entries older than the retention window. Returns the number removed."""
        days = retention_days if retention_days is not None else settings.audit_retention_days
        cutoff = datetime.now(timezone.utc) - timedelta(days=days)
        deleted = (
            self.scoped(AuditLog)
            .filter(AuditLog.created_at < cutoff)
            .delete(synchronize_session=False)
        )
        self.db.commit()
        self.log_info(f"Audit retention cleanup removed {deleted} entries older than {days} days")
        return deleted
