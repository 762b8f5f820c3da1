from datetime import date, timedelta
from typing import List, Optional, Tuple

from teamspark.core.config import settings
from teamspark.core.exceptions import AccessDeniedError, ConflictError, InvalidInputError
from teamspark.core.security import sanitize_input
from teamspark.models.audit_log import AuditAction
from teamspark.models.evaluation import (
    CycleStatus, Evaluation, EvaluationCycle, EvaluationPhase, EvaluationPhaseType,
    EvaluationType,
)
from teamspark.models.team import Team
from teamspark.models.user import User
from teamspark.schemas.evaluation import CycleCreate, CycleUpdate
from teamspark.services import permissions
from teamspark.services.base import BaseService

# (type, name, description, share of the cycle span)
DEFAULT_PHASES = [
    (EvaluationPhaseType.SELF, "Self evaluation", "Reflect on your own results and growth", 0.3),
    (EvaluationPhaseType.PEER, "Peer evaluation", "Feedback from colleagues", 0.3),
    (EvaluationPhaseType.MANAGER, "Manager evaluation", "Evaluation and feedback from your manager", 0.3),
    (EvaluationPhaseType.CALIBRATION, "Calibration", "Align and finalize ratings", 0.1),
]

CYCLE_TRANSITIONS = {
    CycleStatus.DRAFT: {CycleStatus.ACTIVE, CycleStatus.CANCELLED},
    CycleStatus.ACTIVE: {CycleStatus.COMPLETED, CycleStatus.CANCELLED},
    CycleStatus.COMPLETED: set(),
    CycleStatus.CANCELLED: set(),
}


def default_phases(start_date: date, end_date: date) -> List[dict]:
    """Split the cycle span into consecutive phases by the default ratios."""
    total_days = (end_date - start_date).days
    current = start_date
    phases = []
    for order, (phase_type, name, description, ratio) in enumerate(DEFAULT_PHASES, start=1):
        phase_start = current
        current = current + timedelta(days=int(total_days * ratio))
        phases.append({
            "type": phase_type,
            "name": name,
            "description": description,
            "order": order,
            "start_date": phase_start,
            "end_date": current,
        })
    return phases


class CycleService(BaseService):
    def list_cycles(self, status: Optional[CycleStatus] = None) -> List[EvaluationCycle]:
        query = self.scoped(EvaluationCycle)
        if status is not None:
            query = query.filter(EvaluationCycle.status == status)
        return query.order_by(EvaluationCycle.start_date.desc(), EvaluationCycle.id.desc()).all()

    def get(self, cycle_id: int) -> EvaluationCycle:
        return self.get_scoped_or_404(EvaluationCycle, cycle_id, "Evaluation cycle")

    def _check_overlap(self, start_date: date, end_date: date) -> None:
        overlapping = self.scoped(EvaluationCycle).filter(
            EvaluationCycle.status.in_([CycleStatus.DRAFT, CycleStatus.ACTIVE]),
            EvaluationCycle.start_date <= end_date,
            EvaluationCycle.end_date >= start_date,
        ).first()
        if overlapping:
            raise InvalidInputError(
                f"The period overlaps with cycle '{overlapping.name}'",
                details={"cycle_id": overlapping.id},
            )

    def create(self, data: CycleCreate) -> Tuple[EvaluationCycle, int]:
        if not permissions.is_manager_or_higher(self.actor):
            raise AccessDeniedError(action="create", resource="evaluation cycle")
        self._check_overlap(data.start_date, data.end_date)

        cycle = EvaluationCycle(
            organization_id=self.org_id,
            name=sanitize_input(data.name),
            type=data.type,
            status=CycleStatus.DRAFT,
            start_date=data.start_date,
            end_date=data.end_date,
            description=sanitize_input(data.description) if data.description else None,
        )
        for phase in default_phases(data.start_date, data.end_date):
            cycle.phases.append(EvaluationPhase(**phase))
        self.db.add(cycle)
        self.db.commit()
        self.db.refresh(cycle)

        generated = self.generate_evaluations(cycle) if data.generate_evaluations else 0
        self.log_info(f"Evaluation cycle {cycle.id} created ({generated} evaluations generated)")

        self.audit.log_action(
            AuditAction.CREATE, "evaluation_cycle", cycle.id,
            new_values={"name": cycle.name, "type": cycle.type, "start_date": cycle.start_date,
                        "end_date": cycle.end_date, "generated_evaluations": generated},
        )
        return cycle, generated

    def update(self, cycle_id: int, data: CycleUpdate) -> EvaluationCycle:
        if not permissions.is_manager_or_higher(self.actor):
            raise AccessDeniedError(action="update", resource="evaluation cycle")
        cycle = self.get(cycle_id)

        if data.status is not None and data.status != cycle.status:
            if data.status not in CYCLE_TRANSITIONS[cycle.status]:
                raise ConflictError(
                    f"Cannot move cycle from {cycle.status.value} to {data.status.value}"
                )

        before = {"name": cycle.name, "status": cycle.status, "description": cycle.description}
        if data.name is not None:
            cycle.name = sanitize_input(data.name)
        if data.description is not None:
            cycle.description = sanitize_input(data.description)
        if data.status is not None:
            cycle.status = data.status
        self.db.commit()
        self.db.refresh(cycle)

        after = {"name": cycle.name, "status": cycle.status, "description": cycle.description}
        self.audit.log_action(
            AuditAction.UPDATE, "evaluation_cycle", cycle.id,
            old_values={k: v for k, v in before.items() if after[k] != v},
            new_values={k: v for k, v in after.items() if before[k] != v},
        )
        return cycle

    def generate_evaluations(self, cycle: EvaluationCycle) -> int:
        """
        Create the standard assignments for every active user: one SELF, one
        MANAGER per manager of the user's teams and up to ``max_peer_evaluators``
        PEER evaluations from teammates. Existing assignments are skipped.
        """
        users = self.scoped(User).filter(User.is_active.is_(True)).order_by(User.id).all()
        teams = {t.id: t for t in self.scoped(Team).all()}

        active_ids = {u.id for u in users}
        planned = []
        for user in users:
            planned.append((user.id, user.id, EvaluationType.SELF))

            peers = set()
            for team_id in user.team_ids:
                team = teams.get(team_id)
                if team is None:
                    continue
                if team.manager_id in active_ids and team.manager_id != user.id:
                    planned.append((user.id, team.manager_id, EvaluationType.MANAGER))
                peers.update(uid for uid in team.member_ids if uid != user.id and uid in active_ids)

            for peer_id in sorted(peers)[:settings.max_peer_evaluators]:
                planned.append((user.id, peer_id, EvaluationType.PEER))

        existing = {
            (e.evaluatee_id, e.evaluator_id, e.type)
            for e in self.db.query(Evaluation).filter(Evaluation.cycle_id == cycle.id).all()
        }
        created = 0
        for key in dict.fromkeys(planned):
            if key in existing:
                continue
            evaluatee_id, evaluator_id, eval_type = key
            self.db.add(Evaluation(
                cycle_id=cycle.id,
                evaluatee_id=evaluatee_id,
                evaluator_id=evaluator_id,
                type=eval_type,
            ))
            created += 1
        self.db.commit()
        return created
