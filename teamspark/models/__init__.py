# Models package
# Importing modules here ensures they are registered with SQLAlchemy Base
from . import (
    organization, user, team, evaluation, okr,
    audit_log, kudos, notification
)

# Explicit class exports for cleaner imports
from .organization import Organization
from .user import User, UserRole
from .team import Team, TeamMember
from .evaluation import (
    EvaluationCycle, EvaluationPhase, Evaluation, Competency, CompetencyRating,
    EvaluationStatus, EvaluationType, CycleStatus,
)
from .okr import Objective, KeyResult, OkrCheckIn
from .audit_log import AuditLog, AuditAction
from .kudos import Kudos, KudosCategory, SlackWorkspace
from .notification import Notification

__all__ = [
    "Organization",
    "User",
    "UserRole",
    "Team",
    "TeamMember",
    "EvaluationCycle",
    "EvaluationPhase",
    "Evaluation",
    "EvaluationStatus",
    "EvaluationType",
    "CycleStatus",
    "Competency",
    "CompetencyRating",
    "Objective",
    "KeyResult",
    "OkrCheckIn",
    "AuditLog",
    "AuditAction",
    "Kudos",
    "KudosCategory",
    "SlackWorkspace",
    "Notification",
]
