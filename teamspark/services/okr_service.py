from collections import defaultdict
from typing import Dict, List, Optional

from teamspark.core.exceptions import AccessDeniedError, InvalidInputError, NotFoundError
from teamspark.core.security import sanitize_input
from teamspark.models.audit_log import AuditAction
from teamspark.models.okr import (
    KeyResult, KeyResultType, MilestoneStatus, Objective, ObjectiveOwner,
    ObjectiveStatus, OkrCheckIn, OkrCycle,
)
from teamspark.models.team import Team
from teamspark.models.user import User
from teamspark.schemas.okr import (
    CheckInCreate, KeyResultCreate, KeyResultUpdate, ObjectiveCreate, ObjectiveUpdate,
)
from teamspark.services import okr_progress, permissions
from teamspark.services.base import BaseService


class OkrService(BaseService):
    """
    Objectives, key results and check-ins.

    Key results are reached through their objective's organization; a
    key result of another organization is reported as not found.
    """

    # --- Objectives ---

    def get_objective(self, objective_id: int) -> Objective:
        return self.get_scoped_or_404(Objective, objective_id, "Objective")

    def list_objectives(
        self,
        cycle: Optional[OkrCycle] = None,
        year: Optional[int] = None,
        owner_type: Optional[ObjectiveOwner] = None,
        owner_id: Optional[int] = None,
        status: Optional[ObjectiveStatus] = None,
    ) -> List[Objective]:
        query = self.scoped(Objective)
        if cycle is not None:
            query = query.filter(Objective.cycle == cycle)
        if year is not None:
            query = query.filter(Objective.year == year)
        if owner_type is not None:
            query = query.filter(Objective.owner_type == owner_type)
            if owner_id is not None:
                column = Objective.owner_team_id if owner_type == ObjectiveOwner.TEAM else Objective.owner_user_id
                query = query.filter(column == owner_id)
        if status is not None:
            query = query.filter(Objective.status == status)
        return query.order_by(Objective.owner_type, Objective.id.desc()).all()

    def create_objective(self, data: ObjectiveCreate) -> Objective:
        team = None
        if data.owner_type == ObjectiveOwner.TEAM:
            if data.owner_team_id is None:
                raise InvalidInputError("owner_team_id is required for team objectives", field="owner_team_id")
            team = self.get_scoped_or_404(Team, data.owner_team_id, "Team")

        if not permissions.can_create_objective(self.actor, data.owner_type, team):
            raise AccessDeniedError(action="create", resource=f"{data.owner_type.value.lower()} objective")

        if data.parent_id is not None:
            self.get_scoped_or_404(Objective, data.parent_id, "Parent objective")

        objective = Objective(
            organization_id=self.org_id,
            title=sanitize_input(data.title),
            description=sanitize_input(data.description) if data.description else None,
            owner_type=data.owner_type,
            # Exactly the owner reference matching owner_type is populated
            owner_user_id=self.actor.id if data.owner_type == ObjectiveOwner.INDIVIDUAL else None,
            owner_team_id=team.id if team is not None else None,
            parent_id=data.parent_id,
            cycle=data.cycle,
            year=data.year,
            start_date=data.start_date,
            end_date=data.end_date,
            status=ObjectiveStatus.DRAFT,
        )
        self.db.add(objective)
        self.db.commit()
        self.db.refresh(objective)

        self.audit.log_action(
            AuditAction.CREATE, "objective", objective.id,
            new_values={"title": objective.title, "owner_type": objective.owner_type,
                        "cycle": objective.cycle, "year": objective.year},
        )
        return objective

    def _ensure_can_manage(self, objective: Objective, action: str) -> None:
        if not permissions.can_manage_objective(self.actor, objective):
            raise AccessDeniedError(action=action, resource="objective")

    def update_objective(self, objective_id: int, data: ObjectiveUpdate) -> Objective:
        objective = self.get_objective(objective_id)
        self._ensure_can_manage(objective, "update")

        values = data.model_dump(exclude_unset=True)
        start = values.get("start_date") or objective.start_date
        end = values.get("end_date") or objective.end_date
        if start > end:
            raise InvalidInputError("start_date must not be after end_date")

        old, new = {}, {}
        for field, value in values.items():
            if value is None and field in ("title", "status", "start_date", "end_date"):
                continue
            if field in ("title", "description") and value is not None:
                value = sanitize_input(value)
            current = getattr(objective, field)
            if current != value:
                old[field], new[field] = current, value
                setattr(objective, field, value)
        self.db.commit()
        self.db.refresh(objective)

        if new:
            self.audit.log_action(AuditAction.UPDATE, "objective", objective.id, old_values=old, new_values=new)
        return objective

    def cancel_objective(self, objective_id: int) -> Objective:
        """Objectives are never hard-deleted; only drafts can be cancelled."""
        objective = self.get_objective(objective_id)
        self._ensure_can_manage(objective, "delete")
        if objective.status != ObjectiveStatus.DRAFT:
            raise InvalidInputError("Only draft objectives can be deleted")

        objective.status = ObjectiveStatus.CANCELLED
        self.db.commit()

        self.audit.log_action(
            AuditAction.DELETE, "objective", objective.id,
            old_values={"status": ObjectiveStatus.DRAFT},
            new_values={"status": ObjectiveStatus.CANCELLED},
        )
        return objective

    # --- Key results ---

    def get_key_result(self, key_result_id: int) -> KeyResult:
        key_result = (
            self.db.query(KeyResult)
            .join(Objective, KeyResult.objective_id == Objective.id)
            .filter(KeyResult.id == key_result_id, Objective.organization_id == self.org_id)
            .first()
        )
        if key_result is None:
            raise NotFoundError("Key result", key_result_id)
        return key_result

    def _check_owner(self, owner_id: Optional[int]) -> None:
        if owner_id is not None and not self.scoped(User).filter(User.id == owner_id).first():
            raise NotFoundError("User", owner_id)

    def create_key_result(self, data: KeyResultCreate) -> KeyResult:
        objective = self.get_objective(data.objective_id)
        self._ensure_can_manage(objective, "update")
        self._check_owner(data.owner_id)

        key_result = KeyResult(
            objective_id=objective.id,
            title=sanitize_input(data.title),
            description=sanitize_input(data.description) if data.description else None,
            type=data.type,
            owner_id=data.owner_id,
            confidence=None,
        )
        if data.type == KeyResultType.METRIC:
            key_result.start_value = data.start_value if data.start_value is not None else 0.0
            key_result.target_value = data.target_value
            key_result.current_value = key_result.start_value
            key_result.unit = data.unit
            key_result.progress = okr_progress.compute_metric_progress(
                key_result.current_value, key_result.target_value, key_result.start_value
            )
        else:
            key_result.milestone_status = MilestoneStatus.NOT_STARTED
            key_result.progress = 0.0

        self.db.add(key_result)
        self.db.commit()
        self.db.refresh(key_result)

        self.audit.log_action(
            AuditAction.CREATE, "key_result", key_result.id,
            new_values={"objective_id": objective.id, "title": key_result.title, "type": key_result.type},
        )
        return key_result

    def _apply_progress(
        self,
        key_result: KeyResult,
        current_value: Optional[float] = None,
        progress: Optional[float] = None,
        milestone_status: Optional[MilestoneStatus] = None,
    ) -> None:
        """Recompute the cached progress from a new value or milestone update."""
        if key_result.type == KeyResultType.METRIC:
            if current_value is not None:
                key_result.current_value = current_value
            key_result.progress = okr_progress.compute_metric_progress(
                key_result.current_value, key_result.target_value, key_result.start_value
            )
        else:
            if milestone_status is not None:
                key_result.milestone_status = milestone_status
            if progress is not None:
                key_result.progress = okr_progress.clamp(progress)
            elif milestone_status == MilestoneStatus.COMPLETED:
                key_result.progress = 1.0

    def update_key_result(self, key_result_id: int, data: KeyResultUpdate) -> KeyResult:
        key_result = self.get_key_result(key_result_id)
        self._ensure_can_manage(key_result.objective, "update")
        values = data.model_dump(exclude_unset=True)
        if "owner_id" in values:
            self._check_owner(values["owner_id"])

        before = {"progress": key_result.progress, "current_value": key_result.current_value,
                  "confidence": key_result.confidence}
        for field in ("title", "description"):
            if values.get(field) is not None:
                setattr(key_result, field, sanitize_input(values[field]))
        if "owner_id" in values:
            key_result.owner_id = values["owner_id"]
        if "confidence" in values:
            key_result.confidence = values["confidence"]
        if values.get("target_value") is not None and key_result.type == KeyResultType.METRIC:
            key_result.target_value = values["target_value"]

        self._apply_progress(
            key_result,
            current_value=values.get("current_value"),
            progress=values.get("progress"),
            milestone_status=values.get("milestone_status"),
        )
        self.db.commit()
        self.db.refresh(key_result)

        self.audit.log_action(
            AuditAction.UPDATE, "key_result", key_result.id,
            old_values=before,
            new_values={"progress": key_result.progress, "current_value": key_result.current_value,
                        "confidence": key_result.confidence},
        )
        return key_result

    def delete_key_result(self, key_result_id: int) -> None:
        key_result = self.get_key_result(key_result_id)
        self._ensure_can_manage(key_result.objective, "update")
        title = key_result.title
        self.db.delete(key_result)
        self.db.commit()
        self.audit.log_action(AuditAction.DELETE, "key_result", key_result_id, old_values={"title": title})

    # --- Check-ins ---

    def create_check_in(self, data: CheckInCreate) -> KeyResult:
        """
        Record a check-in and update its key result in one transaction.
        For METRIC key results progress follows from ``current_value``;
        for MILESTONE key results it is taken from ``progress``.
        """
        key_result = self.get_key_result(data.key_result_id)
        objective = key_result.objective
        if not (
            permissions.can_manage_objective(self.actor, objective)
            or key_result.owner_id == self.actor.id
        ):
            raise AccessDeniedError(action="check in", resource="key result")

        if key_result.type == KeyResultType.METRIC and data.current_value is None:
            raise InvalidInputError("current_value is required for metric key results", field="current_value")
        if key_result.type == KeyResultType.MILESTONE and data.progress is None and data.milestone_status is None:
            raise InvalidInputError("progress or milestone_status is required for milestone key results")

        previous_value = key_result.current_value
        self._apply_progress(
            key_result,
            current_value=data.current_value,
            progress=data.progress,
            milestone_status=data.milestone_status,
        )
        if data.confidence is not None:
            key_result.confidence = data.confidence

        key_result.check_ins.append(OkrCheckIn(
            user_id=self.actor.id,
            previous_value=previous_value,
            current_value=key_result.current_value,
            progress=key_result.progress,
            confidence=data.confidence,
            comment=sanitize_input(data.comment) if data.comment else None,
            blockers=sanitize_input(data.blockers) if data.blockers else None,
        ))
        self.db.commit()
        self.db.refresh(key_result)
        self.log_info(
            f"Check-in recorded for key result {key_result.id} (progress={key_result.progress:.2f})",
            key_result_id=key_result.id,
        )

        self.audit.log_action(
            AuditAction.UPDATE, "key_result", key_result.id,
            old_values={"current_value": previous_value},
            new_values={"current_value": key_result.current_value, "progress": key_result.progress,
                        "confidence": key_result.confidence, "check_in": True},
        )
        return key_result

    def check_in_history(self, key_result_id: int, limit: int = 10) -> List[OkrCheckIn]:
        key_result = self.get_key_result(key_result_id)
        return (
            self.db.query(OkrCheckIn)
            .filter(OkrCheckIn.key_result_id == key_result.id)
            .order_by(OkrCheckIn.created_at.desc(), OkrCheckIn.id.desc())
            .limit(limit)
            .all()
        )

    # --- Reporting ---

    def summary(self, cycle: OkrCycle, year: int) -> Dict:
        objectives = self.list_objectives(cycle=cycle, year=year)
        key_results = [kr for obj in objectives for kr in obj.key_results]

        by_cycle = defaultdict(int)
        for obj in objectives:
            by_cycle[obj.cycle.value] += 1

        return {
            "total_objectives": len(objectives),
            "active_objectives": sum(1 for o in objectives if o.status == ObjectiveStatus.ACTIVE),
            "completed_objectives": sum(1 for o in objectives if o.status == ObjectiveStatus.COMPLETED),
            "average_progress": okr_progress.average_progress(key_results),
            "average_confidence": okr_progress.average_confidence(key_results),
            "key_results_by_type": {
                "metric": sum(1 for kr in key_results if kr.type == KeyResultType.METRIC),
                "milestone": sum(1 for kr in key_results if kr.type == KeyResultType.MILESTONE),
            },
            "objectives_by_cycle": dict(by_cycle),
        }

    def alignment(self, cycle: OkrCycle, year: int) -> Dict:
        objectives = self.list_objectives(cycle=cycle, year=year, status=ObjectiveStatus.ACTIVE)
        teams = defaultdict(list)
        individuals = defaultdict(list)
        company = []
        for obj in objectives:
            if obj.owner_type == ObjectiveOwner.COMPANY:
                company.append(obj)
            elif obj.owner_type == ObjectiveOwner.TEAM and obj.owner_team_id is not None:
                teams[obj.owner_team_id].append(obj)
            elif obj.owner_type == ObjectiveOwner.INDIVIDUAL and obj.owner_user_id is not None:
                individuals[obj.owner_user_id].append(obj)
        return {
            "company_objectives": company,
            "team_objectives": dict(teams),
            "individual_objectives": dict(individuals),
        }
