"""
Permission predicates.

Pure functions of (actor, resource) that return bool. They never touch the
database; callers pass in the team ids a predicate needs. Inactive users
have no permissions at all.
"""
import enum
from typing import Iterable, Optional

from teamspark.core.exceptions import AccessDeniedError
from teamspark.models.user import UserRole
from teamspark.models.evaluation import EvaluationStatus
from teamspark.models.okr import ObjectiveOwner


class Permission(str, enum.Enum):
    # User management
    VIEW_USERS = "view_users"
    CREATE_USERS = "create_users"
    UPDATE_USERS = "update_users"
    DELETE_USERS = "delete_users"
    CHANGE_USER_ROLES = "change_user_roles"
    DEACTIVATE_USERS = "deactivate_users"
    INVITE_USERS = "invite_users"

    # Team management
    VIEW_TEAMS = "view_teams"
    CREATE_TEAMS = "create_teams"
    UPDATE_TEAMS = "update_teams"
    DELETE_TEAMS = "delete_teams"
    MANAGE_TEAM_MEMBERS = "manage_team_members"

    # Organization
    VIEW_ORGANIZATION = "view_organization"
    UPDATE_ORGANIZATION = "update_organization"

    # Audit
    VIEW_AUDIT_LOGS = "view_audit_logs"
    EXPORT_AUDIT_LOGS = "export_audit_logs"
    MANAGE_COMPLIANCE = "manage_compliance"


ROLE_PERMISSIONS = {
    UserRole.ADMIN: frozenset(Permission),
    UserRole.MANAGER: frozenset({
        Permission.VIEW_USERS,
        Permission.INVITE_USERS,
        Permission.UPDATE_USERS,  # limited to members of managed teams
        Permission.VIEW_TEAMS,
        Permission.CREATE_TEAMS,
        Permission.UPDATE_TEAMS,  # limited to managed teams
        Permission.MANAGE_TEAM_MEMBERS,
        Permission.VIEW_ORGANIZATION,
        Permission.VIEW_AUDIT_LOGS,  # limited to own actions
    }),
    UserRole.MEMBER: frozenset({
        Permission.VIEW_ORGANIZATION,
    }),
}

_ROLE_RANK = {UserRole.MEMBER: 0, UserRole.MANAGER: 1, UserRole.ADMIN: 2}


def has_permission(user, permission: Permission) -> bool:
    if user is None or not user.is_active:
        return False
    return permission in ROLE_PERMISSIONS.get(user.role, frozenset())


def has_role(user, required_role: UserRole) -> bool:
    """True when the user's role is ``required_role`` or more privileged."""
    if user is None or not user.is_active:
        return False
    return _ROLE_RANK[user.role] >= _ROLE_RANK[required_role]


def is_admin(user) -> bool:
    return has_role(user, UserRole.ADMIN)


def is_manager_or_higher(user) -> bool:
    return has_role(user, UserRole.MANAGER)


def can_access_user_management(user) -> bool:
    return is_manager_or_higher(user)


def can_access_audit_logs(user) -> bool:
    return has_permission(user, Permission.VIEW_AUDIT_LOGS)


def can_manage_specific_user(
    actor,
    target_user_id: int,
    target_team_ids: Iterable[int] = (),
    managed_team_ids: Optional[Iterable[int]] = None,
) -> bool:
    """
    ADMIN manages anyone. A MANAGER manages another user only when that
    user belongs to at least one team the manager manages.
    """
    if is_admin(actor):
        return True
    if actor is None or not actor.is_active or actor.id == target_user_id:
        return False
    if actor.role != UserRole.MANAGER:
        return False
    managed = set(managed_team_ids if managed_team_ids is not None else actor.managed_team_ids)
    return bool(managed.intersection(target_team_ids))


def can_manage_team(actor, team) -> bool:
    if is_admin(actor):
        return True
    return (
        actor is not None
        and actor.is_active
        and actor.role == UserRole.MANAGER
        and team.manager_id == actor.id
    )


def can_view_evaluation(
    actor,
    evaluation,
    evaluatee_team_ids: Iterable[int] = (),
    managed_team_ids: Iterable[int] = (),
) -> bool:
    if actor is None or not actor.is_active:
        return False
    if actor.role == UserRole.ADMIN:
        return True

    # Evaluatee sees their own evaluation only once it is released
    if actor.id == evaluation.evaluatee_id:
        return bool(evaluation.is_visible) or evaluation.status == EvaluationStatus.SHARED

    if actor.id == evaluation.evaluator_id:
        return True

    if actor.role == UserRole.MANAGER:
        return bool(set(managed_team_ids).intersection(evaluatee_team_ids))

    return False


def can_edit_evaluation(actor, evaluation) -> bool:
    if evaluation.status != EvaluationStatus.DRAFT:
        return False
    return is_evaluation_author(actor, evaluation)


def is_evaluation_author(actor, evaluation) -> bool:
    """The evaluator (or an ADMIN acting for them) owns the evaluation's content."""
    if actor is None or not actor.is_active:
        return False
    return actor.id == evaluation.evaluator_id or actor.role == UserRole.ADMIN


def can_review_evaluation(actor) -> bool:
    return is_manager_or_higher(actor)


def can_delete_evaluation(actor) -> bool:
    return is_admin(actor)


def can_create_objective(actor, owner_type: ObjectiveOwner, team=None) -> bool:
    if actor is None or not actor.is_active:
        return False
    if owner_type == ObjectiveOwner.COMPANY:
        return actor.role == UserRole.ADMIN
    if owner_type == ObjectiveOwner.TEAM:
        return team is not None and can_manage_team(actor, team)
    return True


def can_manage_objective(actor, objective) -> bool:
    if actor is None or not actor.is_active:
        return False
    if actor.role == UserRole.ADMIN:
        return True
    if objective.owner_type == ObjectiveOwner.COMPANY:
        return False
    if objective.owner_type == ObjectiveOwner.TEAM:
        return objective.owner_team_id in actor.managed_team_ids
    return objective.owner_user_id == actor.id or actor.role == UserRole.MANAGER


class SelfAction(str, enum.Enum):
    CHANGE_ROLE = "change_role"
    DEACTIVATE = "deactivate"
    DELETE = "delete"


class SelfActionPolicy:
    """
    Guards against users acting on their own account.
    Consulted by every admin user mutation.
    """

    FORBIDDEN = {
        SelfAction.CHANGE_ROLE: "You cannot change your own role",
        SelfAction.DEACTIVATE: "You cannot deactivate your own account",
        SelfAction.DELETE: "You cannot delete your own account",
    }

    @classmethod
    def is_allowed(cls, actor, target_user_id: int, action: SelfAction) -> bool:
        return actor.id != target_user_id or action not in cls.FORBIDDEN

    @classmethod
    def enforce(cls, actor, target_user_id: int, action: SelfAction) -> None:
        if not cls.is_allowed(actor, target_user_id, action):
            raise AccessDeniedError(cls.FORBIDDEN[action])
