from collections import defaultdict
from typing import List, Optional

from teamspark.core.exceptions import (
    AccessDeniedError, ConflictError, InvalidInputError, NotFoundError,
)
from teamspark.core.security import sanitize_input
from teamspark.models.audit_log import AuditAction
from teamspark.models.evaluation import (
    Competency, CompetencyRating, CycleStatus, Evaluation, EvaluationCycle,
    EvaluationStatus, EvaluationType,
)
from teamspark.models.user import User
from teamspark.schemas.evaluation import (
    CompetencyRatingInput, EvaluationCreate, EvaluationReview, EvaluationUpdate,
)
from teamspark.services import evaluation_workflow, permissions
from teamspark.services.base import BaseService

TEXT_FIELDS = (
    "overall_comments", "strengths", "improvements", "career_goals", "development_plan",
)

RESULT_STATUSES = (EvaluationStatus.SUBMITTED, EvaluationStatus.REVIEWED, EvaluationStatus.SHARED)


def snapshot(evaluation: Evaluation) -> dict:
    return {
        "status": evaluation.status,
        "overall_rating": evaluation.overall_rating,
        "reviewer_id": evaluation.reviewer_id,
        "is_visible": evaluation.is_visible,
    }


class EvaluationService(BaseService):
    """
    Evaluation CRUD and review workflow.
    An evaluation belongs to the organization of its cycle; anything outside
    it is reported as not found.
    """

    def _query(self):
        return (
            self.db.query(Evaluation)
            .join(EvaluationCycle, Evaluation.cycle_id == EvaluationCycle.id)
            .filter(EvaluationCycle.organization_id == self.org_id)
        )

    def _get(self, evaluation_id: int) -> Evaluation:
        evaluation = self._query().filter(Evaluation.id == evaluation_id).first()
        if evaluation is None:
            raise NotFoundError("Evaluation", evaluation_id)
        return evaluation

    def _user_in_org(self, user_id: int) -> User:
        user = self.scoped(User).filter(User.id == user_id).first()
        if user is None:
            raise NotFoundError("User", user_id)
        return user

    def _can_view(self, evaluation: Evaluation) -> bool:
        return permissions.can_view_evaluation(
            self.actor,
            evaluation,
            evaluatee_team_ids=evaluation.evaluatee.team_ids,
            managed_team_ids=self.actor.managed_team_ids,
        )

    def list_evaluations(
        self,
        cycle_id: Optional[int] = None,
        evaluatee_id: Optional[int] = None,
        evaluator_id: Optional[int] = None,
        type: Optional[EvaluationType] = None,
        status: Optional[EvaluationStatus] = None,
    ) -> List[Evaluation]:
        query = self._query()
        if cycle_id is not None:
            query = query.filter(Evaluation.cycle_id == cycle_id)
        if evaluatee_id is not None:
            query = query.filter(Evaluation.evaluatee_id == evaluatee_id)
        if evaluator_id is not None:
            query = query.filter(Evaluation.evaluator_id == evaluator_id)
        if type is not None:
            query = query.filter(Evaluation.type == type)
        if status is not None:
            query = query.filter(Evaluation.status == status)
        evaluations = query.order_by(Evaluation.id.desc()).all()
        return [e for e in evaluations if self._can_view(e)]

    def get(self, evaluation_id: int) -> Evaluation:
        evaluation = self._get(evaluation_id)
        if not self._can_view(evaluation):
            raise AccessDeniedError(action="view", resource="evaluation")
        return evaluation

    def create(self, data: EvaluationCreate) -> Evaluation:
        if not permissions.is_manager_or_higher(self.actor):
            raise AccessDeniedError(action="create", resource="evaluation")

        self.get_scoped_or_404(EvaluationCycle, data.cycle_id, "Evaluation cycle")
        self._user_in_org(data.evaluatee_id)
        self._user_in_org(data.evaluator_id)

        existing = self.db.query(Evaluation).filter(
            Evaluation.cycle_id == data.cycle_id,
            Evaluation.evaluatee_id == data.evaluatee_id,
            Evaluation.evaluator_id == data.evaluator_id,
            Evaluation.type == data.type,
        ).first()
        if existing:
            raise InvalidInputError("An evaluation with this assignment already exists in the cycle")

        evaluation = Evaluation(
            cycle_id=data.cycle_id,
            evaluatee_id=data.evaluatee_id,
            evaluator_id=data.evaluator_id,
            type=data.type,
            status=EvaluationStatus.DRAFT,
        )
        self.db.add(evaluation)
        self.db.commit()
        self.db.refresh(evaluation)
        self.log_info(f"Evaluation {evaluation.id} created", evaluation_id=evaluation.id)

        self.audit.log_action(
            AuditAction.CREATE, "evaluation", evaluation.id,
            new_values={"cycle_id": data.cycle_id, "evaluatee_id": data.evaluatee_id,
                        "evaluator_id": data.evaluator_id, "type": data.type},
        )
        return evaluation

    def _validate_ratings(self, ratings: List[CompetencyRatingInput]) -> None:
        ids = [r.competency_id for r in ratings]
        if len(ids) != len(set(ids)):
            raise InvalidInputError("Each competency may be rated only once", field="competency_ratings")
        found = {
            c.id for c in self.scoped(Competency).filter(Competency.id.in_(ids)).all()
        }
        missing = sorted(set(ids) - found)
        if missing:
            raise InvalidInputError(
                f"Unknown competencies: {missing}", field="competency_ratings"
            )

    def _replace_ratings(self, evaluation: Evaluation, ratings: List[CompetencyRatingInput]) -> None:
        # Old rows must be gone before inserting, the (evaluation, competency) pair is unique
        evaluation.competency_ratings.clear()
        self.db.flush()
        for rating in ratings:
            evaluation.competency_ratings.append(CompetencyRating(
                competency_id=rating.competency_id,
                rating=rating.rating,
                comments=sanitize_input(rating.comments) if rating.comments else None,
                behaviors=rating.behaviors,
                examples=sanitize_input(rating.examples) if rating.examples else None,
                improvement_areas=sanitize_input(rating.improvement_areas) if rating.improvement_areas else None,
            ))

    def _apply_fields(self, evaluation: Evaluation, data: EvaluationUpdate) -> None:
        values = data.model_dump(exclude_unset=True, exclude={"competency_ratings"})
        for field, value in values.items():
            if field in TEXT_FIELDS and value is not None:
                value = sanitize_input(value)
            setattr(evaluation, field, value)
        if data.competency_ratings:
            self._replace_ratings(evaluation, data.competency_ratings)

    def save_draft(self, evaluation_id: int, data: EvaluationUpdate) -> Evaluation:
        evaluation = self._get(evaluation_id)
        if not permissions.is_evaluation_author(self.actor, evaluation):
            raise AccessDeniedError(action="edit", resource="evaluation")
        if not permissions.can_edit_evaluation(self.actor, evaluation):
            raise ConflictError("Only draft evaluations can be edited")
        if data.competency_ratings:
            self._validate_ratings(data.competency_ratings)

        before = snapshot(evaluation)
        self._apply_fields(evaluation, data)
        self.db.commit()
        self.db.refresh(evaluation)

        self.audit.log_action(
            AuditAction.UPDATE, "evaluation", evaluation.id,
            old_values=before, new_values=snapshot(evaluation),
        )
        return evaluation

    def submit(self, evaluation_id: int, data: EvaluationUpdate) -> Evaluation:
        evaluation = self._get(evaluation_id)
        if not permissions.is_evaluation_author(self.actor, evaluation):
            raise AccessDeniedError(action="submit", resource="evaluation")
        evaluation_workflow.ensure_transition(evaluation, EvaluationStatus.SUBMITTED)
        if evaluation.cycle.status != CycleStatus.ACTIVE:
            raise ConflictError("Evaluations can only be submitted while the cycle is active")

        overall_rating = data.overall_rating if data.overall_rating is not None else evaluation.overall_rating
        if overall_rating is None:
            raise InvalidInputError("An overall rating is required to submit", field="overall_rating")
        if data.competency_ratings:
            self._validate_ratings(data.competency_ratings)

        before = snapshot(evaluation)
        self._apply_fields(evaluation, data)
        evaluation_workflow.submit(evaluation)
        self.db.commit()
        self.db.refresh(evaluation)
        self.log_info(f"Evaluation {evaluation.id} submitted", evaluation_id=evaluation.id)

        self.audit.log_action(
            AuditAction.SUBMIT, "evaluation", evaluation.id,
            old_values=before, new_values=snapshot(evaluation),
        )
        return evaluation

    def review(self, evaluation_id: int, data: EvaluationReview) -> Evaluation:
        evaluation = self._get(evaluation_id)
        if not permissions.can_review_evaluation(self.actor):
            raise AccessDeniedError(action="review", resource="evaluation")

        before = snapshot(evaluation)
        comments = sanitize_input(data.manager_comments) if data.manager_comments else None
        if data.approved:
            evaluation_workflow.approve(evaluation, self.actor.id, comments)
        else:
            evaluation_workflow.reject(evaluation, comments)
        self.db.commit()
        self.db.refresh(evaluation)
        self.log_info(
            f"Evaluation {evaluation.id} {'approved' if data.approved else 'returned to draft'}",
            evaluation_id=evaluation.id,
        )

        self.audit.log_action(
            AuditAction.REVIEW, "evaluation", evaluation.id,
            old_values=before, new_values={**snapshot(evaluation), "approved": data.approved},
        )
        return evaluation

    def share(self, evaluation_id: int) -> Evaluation:
        evaluation = self._get(evaluation_id)
        if not permissions.can_review_evaluation(self.actor):
            raise AccessDeniedError(action="share", resource="evaluation")

        before = snapshot(evaluation)
        evaluation_workflow.share(evaluation)
        self.db.commit()
        self.db.refresh(evaluation)

        self.audit.log_action(
            AuditAction.SHARE, "evaluation", evaluation.id,
            old_values=before, new_values=snapshot(evaluation),
        )
        return evaluation

    def delete(self, evaluation_id: int) -> None:
        evaluation = self._get(evaluation_id)
        if not permissions.can_delete_evaluation(self.actor):
            raise AccessDeniedError(action="delete", resource="evaluation")
        if evaluation.status != EvaluationStatus.DRAFT:
            raise InvalidInputError("Only draft evaluations can be deleted")

        before = snapshot(evaluation)
        self.db.delete(evaluation)
        self.db.commit()
        self.log_info(f"Evaluation {evaluation_id} deleted", evaluation_id=evaluation_id)

        self.audit.log_action(AuditAction.DELETE, "evaluation", evaluation_id, old_values=before)

    def results(self, cycle_id: int, evaluatee_id: int) -> dict:
        """Aggregate released evaluations (SHARED or visible) of one evaluatee in a cycle."""
        self.get_scoped_or_404(EvaluationCycle, cycle_id, "Evaluation cycle")
        evaluatee = self._user_in_org(evaluatee_id)

        allowed = (
            permissions.is_admin(self.actor)
            or self.actor.id == evaluatee_id
            or permissions.can_manage_specific_user(
                self.actor, evaluatee_id, evaluatee.team_ids, self.actor.managed_team_ids
            )
        )
        if not allowed:
            raise AccessDeniedError(action="view", resource="evaluation results")

        evaluations = [
            e for e in self.db.query(Evaluation).filter(
                Evaluation.cycle_id == cycle_id,
                Evaluation.evaluatee_id == evaluatee_id,
                Evaluation.status.in_(RESULT_STATUSES),
            ).all()
            if e.status == EvaluationStatus.SHARED or e.is_visible
        ]

        by_type = defaultdict(list)
        for e in evaluations:
            if e.overall_rating is not None:
                by_type[e.type.value].append(e.overall_rating)

        by_competency = {}
        for e in evaluations:
            for rating in e.competency_ratings:
                entry = by_competency.setdefault(
                    rating.competency_id,
                    {"competency_id": rating.competency_id,
                     "competency_name": rating.competency.name, "ratings": []},
                )
                entry["ratings"].append(rating.rating)

        overall = [e.overall_rating for e in evaluations if e.overall_rating is not None]
        return {
            "cycle_id": cycle_id,
            "evaluatee_id": evaluatee_id,
            "evaluation_count": len(evaluations),
            "averages_by_type": {t: sum(v) / len(v) for t, v in by_type.items()},
            "overall_average": sum(overall) / len(overall) if overall else 0.0,
            "competency_results": [
                {
                    "competency_id": entry["competency_id"],
                    "competency_name": entry["competency_name"],
                    "average_rating": sum(entry["ratings"]) / len(entry["ratings"]),
                    "rating_count": len(entry["ratings"]),
                }
                for entry in by_competency.values()
            ],
        }
