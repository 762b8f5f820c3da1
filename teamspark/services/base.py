import logging
from typing import Optional, Type

from sqlalchemy.orm import Session, Query

from teamspark.core.exceptions import NotFoundError


class BaseService:
    """
    Common base for domain services.

    Every service is bound to exactly one organization. Queries for
    tenant-owned rows go through ``scoped`` so a lookup outside the
    organization behaves exactly like a missing row.
    """

    def __init__(self, db: Session, org_id: int, actor=None, request_meta: Optional[dict] = None):
        if org_id is None:
            raise ValueError(f"{type(self).__name__} requires an organization id")
        self.db = db
        self.org_id = org_id
        self.actor = actor
        # ip_address / user_agent of the originating request, copied onto audit entries
        self.request_meta = request_meta or {}
        self._logger = logging.getLogger(type(self).__module__)

    def scoped(self, model: Type) -> Query:
        return self.db.query(model).filter(model.organization_id == self.org_id)

    def get_scoped_or_404(self, model: Type, obj_id: int, resource: Optional[str] = None):
        obj = self.scoped(model).filter(model.id == obj_id).first()
        if obj is None:
            raise NotFoundError(resource or model.__name__, obj_id)
        return obj

    @property
    def audit(self):
        from teamspark.services.audit import AuditService
        return AuditService(self.db, self.org_id, self.actor, self.request_meta)

    def _context(self) -> dict:
        ctx = {"org_id": self.org_id}
        if self.actor is not None:
            ctx["actor_id"] = self.actor.id
        return ctx

    def log_info(self, message: str, **extra):
        self._logger.info(message, extra={**self._context(), **extra})

    def log_warning(self, message: str, **extra):
        self._logger.warning(message, extra={**self._context(), **extra})

    def log_error(self, message: str, exc_info: bool = False, **extra):
        self._logger.error(message, exc_info=exc_info, extra={**self._context(), **extra})
