from typing import List

from teamspark.core.exceptions import AccessDeniedError, InvalidInputError
from teamspark.core.security import sanitize_input
from teamspark.models.audit_log import AuditAction
from teamspark.models.evaluation import Competency, CompetencyCategory
from teamspark.schemas.evaluation import CompetencyCreate
from teamspark.services import permissions
from teamspark.services.base import BaseService

DEFAULT_COMPETENCIES = [
    {
        "name": "Communication",
        "description": "Communicates clearly and effectively and works well with others",
        "category": CompetencyCategory.CORE,
        "behaviors": [
            "Shares information clearly and concisely",
            "Listens actively and asks for feedback",
            "Respects differing opinions and keeps discussion constructive",
        ],
        "order": 1,
    },
    {
        "name": "Teamwork",
        "description": "Collaborates as part of the team towards shared goals",
        "category": CompetencyCategory.CORE,
        "behaviors": [
            "Understands team goals and contributes actively",
            "Supports teammates and shares knowledge",
            "Resolves conflict constructively",
        ],
        "order": 2,
    },
    {
        "name": "Problem Solving",
        "description": "Identifies issues and finds and executes effective solutions",
        "category": CompetencyCategory.CORE,
        "behaviors": [
            "Analyzes root causes",
            "Proposes creative solutions",
            "Implements solutions and evaluates the outcome",
        ],
        "order": 3,
    },
    {
        "name": "Vision Setting",
        "description": "Sets a clear direction and leads the team towards it",
        "category": CompetencyCategory.LEADERSHIP,
        "behaviors": [
            "Communicates a clear future direction",
            "Engages and motivates team members",
            "Adapts to change",
        ],
        "order": 4,
    },
    {
        "name": "People Development",
        "description": "Supports the growth and development of team members",
        "category": CompetencyCategory.LEADERSHIP,
        "behaviors": [
            "Knows each member's strengths and growth areas",
            "Gives constructive feedback",
            "Creates growth opportunities",
        ],
        "order": 5,
    },
]


class CompetencyService(BaseService):
    def list_active(self) -> List[Competency]:
        return (
            self.scoped(Competency)
            .filter(Competency.is_active.is_(True))
            .order_by(Competency.order, Competency.id)
            .all()
        )

    def create(self, data: CompetencyCreate) -> Competency:
        if not permissions.is_admin(self.actor):
            raise AccessDeniedError(action="create", resource="competency")
        name = sanitize_input(data.name)
        if self.scoped(Competency).filter(Competency.name == name).first():
            raise InvalidInputError(f"Competency '{name}' already exists", field="name")

        competency = Competency(
            organization_id=self.org_id,
            name=name,
            description=sanitize_input(data.description) if data.description else None,
            category=data.category,
            behaviors=data.behaviors,
            order=data.order,
        )
        self.db.add(competency)
        self.db.commit()
        self.db.refresh(competency)

        self.audit.log_action(
            AuditAction.CREATE, "competency", competency.id,
            new_values={"name": competency.name, "category": competency.category},
        )
        return competency

    def initialize_defaults(self) -> List[Competency]:
        """Create the default competency set. Existing names are left untouched."""
        existing = {c.name for c in self.scoped(Competency).all()}
        created = []
        for item in DEFAULT_COMPETENCIES:
            if item["name"] in existing:
                continue
            competency = Competency(organization_id=self.org_id, **item)
            self.db.add(competency)
            created.append(competency)
        if created:
            self.db.commit()
            self.log_info(f"Initialized {len(created)} default competencies")
        return created
