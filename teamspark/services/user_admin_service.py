from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import or_

from teamspark.core.exceptions import AccessDeniedError, InvalidInputError, NotFoundError
from teamspark.core.security import sanitize_input
from teamspark.models.audit_log import AuditAction
from teamspark.models.team import Team, TeamMember
from teamspark.models.user import User, UserRole
from teamspark.schemas.user import UserCreateRequest, UserUpdateRequest
from teamspark.services import auth as auth_service
from teamspark.services import permissions
from teamspark.services.base import BaseService
from teamspark.services.permissions import Permission, SelfAction, SelfActionPolicy

AUDITED_FIELDS = ("name", "role", "is_active", "bio", "slack_user_id", "deactivation_reason")


class UserAdminService(BaseService):
    """
    Organization user management.

    Every mutation is checked against the role matrix and the self-action
    policy. Refused mutations leave a failed audit entry behind.
    """

    def _deny(self, action: AuditAction, target_id: Optional[int], message: str):
        self.audit.log_failure(action, "user", target_id, message)
        self.log_warning(f"Denied user {action.value.lower()}: {message}", target_user_id=target_id)
        raise AccessDeniedError(message)

    def _guard_self(self, action: AuditAction, target_id: int, self_action: SelfAction):
        try:
            SelfActionPolicy.enforce(self.actor, target_id, self_action)
        except AccessDeniedError as e:
            self._deny(action, target_id, e.message)

    def _get_user(self, user_id: int) -> User:
        user = self.scoped(User).filter(User.id == user_id).first()
        if user is None:
            raise NotFoundError("User", user_id)
        return user

    def list_users(
        self,
        search: Optional[str] = None,
        role: Optional[UserRole] = None,
        is_active: Optional[bool] = None,
        page: int = 1,
        limit: int = 20,
    ) -> dict:
        if not permissions.can_access_user_management(self.actor):
            raise AccessDeniedError(action="view", resource="users")

        query = self.scoped(User)
        if search:
            pattern = f"%{search}%"
            query = query.filter(or_(User.name.ilike(pattern), User.email.ilike(pattern)))
        if role is not None:
            query = query.filter(User.role == role)
        if is_active is not None:
            query = query.filter(User.is_active == is_active)

        total = query.count()
        users = query.order_by(User.created_at.desc(), User.id.desc()).offset((page - 1) * limit).limit(limit).all()
        total_pages = (total + limit - 1) // limit
        return {
            "users": users,
            "pagination": {
                "page": page,
                "limit": limit,
                "total_count": total,
                "total_pages": total_pages,
                "has_next": page < total_pages,
                "has_prev": page > 1,
            },
        }

    def get_user(self, user_id: int) -> User:
        if not permissions.can_access_user_management(self.actor):
            raise AccessDeniedError(action="view", resource="users")
        user = self._get_user(user_id)
        if not permissions.can_manage_specific_user(
            self.actor, user.id, user.team_ids, self.actor.managed_team_ids
        ):
            raise AccessDeniedError("You do not have permission to view this user")
        return user

    def create_user(self, data: UserCreateRequest) -> User:
        if not permissions.has_permission(self.actor, Permission.CREATE_USERS):
            self._deny(AuditAction.CREATE, None, "Only admins can create users")

        email = data.email.lower()
        if self.db.query(User).filter(User.email == email).first():
            raise InvalidInputError("A user with this email already exists", field="email")

        teams = []
        for team_id in dict.fromkeys(data.team_ids):
            team = self.scoped(Team).filter(Team.id == team_id).first()
            if team is None:
                raise NotFoundError("Team", team_id)
            teams.append(team)

        user = User(
            email=email,
            hashed_password=auth_service.get_password_hash(data.password),
            name=sanitize_input(data.name),
            bio=sanitize_input(data.bio) if data.bio else None,
            slack_user_id=data.slack_user_id,
            role=data.role,
            organization_id=self.org_id,
            is_active=True,
        )
        for team in teams:
            user.team_memberships.append(TeamMember(team_id=team.id))
        self.db.add(user)
        self.db.commit()
        self.db.refresh(user)
        self.log_info(f"User {user.id} created", target_user_id=user.id)

        self.audit.log_action(
            AuditAction.CREATE, "user", user.id,
            new_values={"email": user.email, "name": user.name, "role": user.role, "team_ids": [t.id for t in teams]},
        )
        return user

    def update_user(self, user_id: int, data: UserUpdateRequest) -> User:
        if not permissions.can_access_user_management(self.actor):
            self._deny(AuditAction.UPDATE, user_id, "You do not have permission to update users")
        user = self._get_user(user_id)
        if not permissions.can_manage_specific_user(
            self.actor, user.id, user.team_ids, self.actor.managed_team_ids
        ):
            self._deny(AuditAction.UPDATE, user.id, "You do not have permission to update this user")

        values = data.model_dump(exclude_unset=True)
        role_change = values.get("role") is not None and values["role"] != user.role
        deactivating = values.get("is_active") is False and user.is_active
        reactivating = values.get("is_active") is True and not user.is_active

        if role_change:
            if not permissions.has_permission(self.actor, Permission.CHANGE_USER_ROLES):
                self._deny(AuditAction.UPDATE, user.id, "Only admins can change user roles")
            self._guard_self(AuditAction.UPDATE, user.id, SelfAction.CHANGE_ROLE)
        if deactivating or reactivating:
            if not permissions.has_permission(self.actor, Permission.DEACTIVATE_USERS):
                self._deny(AuditAction.UPDATE, user.id, "Only admins can change account status")
        if deactivating:
            self._guard_self(AuditAction.UPDATE, user.id, SelfAction.DEACTIVATE)

        before = {field: getattr(user, field) for field in AUDITED_FIELDS}
        now = datetime.now(timezone.utc)

        for field in ("name", "bio"):
            if values.get(field) is not None:
                setattr(user, field, sanitize_input(values[field]))
        if "slack_user_id" in values:
            user.slack_user_id = values["slack_user_id"]
        if role_change:
            user.role = values["role"]
            user.last_role_change = now
            user.last_role_changed_by_id = self.actor.id
        if deactivating:
            user.is_active = False
            user.deactivated_at = now
            user.deactivated_by_id = self.actor.id
            user.deactivation_reason = values.get("deactivation_reason")
        elif reactivating:
            user.is_active = True
            user.deactivated_at = None
            user.deactivated_by_id = None
            user.deactivation_reason = None

        after = {field: getattr(user, field) for field in AUDITED_FIELDS}
        changed = [field for field in AUDITED_FIELDS if before[field] != after[field]]

        self.db.commit()
        self.db.refresh(user)

        if changed:
            self.audit.log_action(
                AuditAction.UPDATE, "user", user.id,
                old_values={field: before[field] for field in changed},
                new_values={field: after[field] for field in changed},
            )
        return user

    def delete_user(self, user_id: int, reason: str = "Deleted by admin") -> User:
        """Soft delete: the account is deactivated, never removed."""
        if not permissions.has_permission(self.actor, Permission.DELETE_USERS):
            self._deny(AuditAction.DELETE, user_id, "Only admins can delete users")
        user = self._get_user(user_id)
        self._guard_self(AuditAction.DELETE, user.id, SelfAction.DELETE)

        was_active = user.is_active
        user.is_active = False
        user.deactivated_at = datetime.now(timezone.utc)
        user.deactivated_by_id = self.actor.id
        user.deactivation_reason = reason
        self.db.commit()
        self.db.refresh(user)
        self.log_info(f"User {user.id} deactivated (soft delete)", target_user_id=user.id)

        self.audit.log_action(
            AuditAction.DELETE, "user", user.id,
            old_values={"name": user.name, "email": user.email, "is_active": was_active},
            new_values={"is_active": False, "deactivation_reason": reason},
        )
        return user
