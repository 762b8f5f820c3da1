from typing import List

from teamspark.core.exceptions import AccessDeniedError, InvalidInputError, NotFoundError
from teamspark.core.security import sanitize_input
from teamspark.models.audit_log import AuditAction
from teamspark.models.team import Team, TeamMember
from teamspark.models.user import User, UserRole
from teamspark.schemas.team import TeamCreate
from teamspark.services import permissions
from teamspark.services.base import BaseService
from teamspark.services.permissions import Permission


class TeamService(BaseService):
    def list_teams(self) -> List[Team]:
        return self.scoped(Team).order_by(Team.name, Team.id).all()

    def get_team(self, team_id: int) -> Team:
        return self.get_scoped_or_404(Team, team_id, "Team")

    def _user_in_org(self, user_id: int) -> User:
        user = self.scoped(User).filter(User.id == user_id).first()
        if user is None:
            raise NotFoundError("User", user_id)
        return user

    def create_team(self, data: TeamCreate) -> Team:
        if not permissions.has_permission(self.actor, Permission.CREATE_TEAMS):
            raise AccessDeniedError(action="create", resource="team")

        manager_id = data.manager_id
        if manager_id is None and self.actor.role == UserRole.MANAGER:
            manager_id = self.actor.id
        if manager_id is not None:
            manager = self._user_in_org(manager_id)
            if manager.role == UserRole.MEMBER:
                raise InvalidInputError("Team manager must have the MANAGER or ADMIN role", field="manager_id")

        member_ids = list(dict.fromkeys(data.member_ids))
        for user_id in member_ids:
            self._user_in_org(user_id)

        team = Team(
            organization_id=self.org_id,
            name=sanitize_input(data.name),
            description=sanitize_input(data.description) if data.description else None,
            manager_id=manager_id,
        )
        for user_id in member_ids:
            team.members.append(TeamMember(user_id=user_id))
        self.db.add(team)
        self.db.commit()
        self.db.refresh(team)
        self.log_info(f"Team {team.id} created", team_id=team.id)

        self.audit.log_action(
            AuditAction.CREATE, "team", team.id,
            new_values={"name": team.name, "manager_id": team.manager_id, "member_ids": member_ids},
        )
        return team

    def add_member(self, team_id: int, user_id: int) -> Team:
        team = self.get_team(team_id)
        if not permissions.can_manage_team(self.actor, team):
            raise AccessDeniedError(action="manage members of", resource="team")
        self._user_in_org(user_id)
        if user_id in team.member_ids:
            raise InvalidInputError("User is already a member of this team", field="user_id")

        team.members.append(TeamMember(user_id=user_id))
        self.db.commit()
        self.db.refresh(team)

        self.audit.log_action(
            AuditAction.UPDATE, "team", team.id,
            new_values={"added_member_id": user_id},
        )
        return team
