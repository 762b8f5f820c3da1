"""
Evaluation review state machine.

    DRAFT --submit--> SUBMITTED --approve--> REVIEWED --share--> SHARED
                      SUBMITTED --reject---> DRAFT

SHARED is terminal. Functions here mutate the evaluation in memory only
after the transition has been validated; an illegal transition raises
ConflictError and leaves the record untouched. Persisting is the caller's job.
"""
from datetime import datetime, timezone
from typing import Optional

from teamspark.core.exceptions import ConflictError
from teamspark.models.evaluation import EvaluationStatus

TRANSITIONS = frozenset({
    (EvaluationStatus.DRAFT, EvaluationStatus.SUBMITTED),
    (EvaluationStatus.SUBMITTED, EvaluationStatus.REVIEWED),
    (EvaluationStatus.SUBMITTED, EvaluationStatus.DRAFT),
    (EvaluationStatus.REVIEWED, EvaluationStatus.SHARED),
})

_CONFLICT_MESSAGES = {
    EvaluationStatus.SUBMITTED: "Only draft evaluations can be submitted",
    EvaluationStatus.REVIEWED: "Only submitted evaluations can be reviewed",
    EvaluationStatus.SHARED: "Only reviewed evaluations can be shared",
    EvaluationStatus.DRAFT: "Only submitted evaluations can be returned to draft",
}


def can_transition(current: EvaluationStatus, target: EvaluationStatus) -> bool:
    return (current, target) in TRANSITIONS


def ensure_transition(evaluation, target: EvaluationStatus) -> None:
    current = evaluation.status
    if not can_transition(current, target):
        raise ConflictError(
            _CONFLICT_MESSAGES[target],
            details={"current_status": current.value, "target_status": target.value},
        )


def _now():
    return datetime.now(timezone.utc)


def submit(evaluation) -> None:
    ensure_transition(evaluation, EvaluationStatus.SUBMITTED)
    evaluation.status = EvaluationStatus.SUBMITTED
    evaluation.submitted_at = _now()


def approve(evaluation, reviewer_id: int, manager_comments: Optional[str] = None) -> None:
    ensure_transition(evaluation, EvaluationStatus.REVIEWED)
    evaluation.status = EvaluationStatus.REVIEWED
    evaluation.reviewed_at = _now()
    evaluation.reviewer_id = reviewer_id
    evaluation.manager_comments = manager_comments


def reject(evaluation, manager_comments: Optional[str] = None) -> None:
    ensure_transition(evaluation, EvaluationStatus.DRAFT)
    evaluation.status = EvaluationStatus.DRAFT
    evaluation.reviewed_at = None
    evaluation.reviewer_id = None
    evaluation.submitted_at = None
    evaluation.manager_comments = manager_comments


def share(evaluation) -> None:
    ensure_transition(evaluation, EvaluationStatus.SHARED)
    evaluation.status = EvaluationStatus.SHARED
    evaluation.shared_at = _now()
    evaluation.is_visible = True
