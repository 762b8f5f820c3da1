import logging
import re

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, EmailStr, Field
from sqlalchemy.orm import Session

from teamspark.database import get_db
from teamspark.models.audit_log import AuditAction
from teamspark.models.organization import Organization
from teamspark.models.user import User, UserRole
from teamspark.services import auth as auth_service
from teamspark.services.competency_service import CompetencyService

router = APIRouter()
logger = logging.getLogger(__name__)


class InitializeRequest(BaseModel):
    organization_name: str = Field(min_length=1, max_length=100)
    admin_name: str = Field(min_length=1, max_length=100)
    admin_email: EmailStr
    password: str = Field(min_length=8)


def slugify(name: str) -> str:
    return re.sub(r"[^a-z0-9]+", "-", name.lower()).strip("-") or "organization"


@router.get("/status")
def get_setup_status(db: Session = Depends(get_db)):
    """Check if the system is already initialized."""
    initialized = db.query(Organization).first() is not None
    return {"initialized": initialized}


@router.post("/initialize", status_code=status.HTTP_201_CREATED)
def initialize_system(data: InitializeRequest, db: Session = Depends(get_db)):
    """
    Bootstrap the system: create the first organization, its admin user and
    the default competency set. Only runs if no organization exists.
    """
    if db.query(Organization).first():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="System already initialized. Initialization can only be performed once."
        )

    try:
        org = Organization(name=data.organization_name, slug=slugify(data.organization_name), is_active=True)
        db.add(org)
        db.flush()  # Get org.id

        user = User(
            email=data.admin_email.lower(),
            hashed_password=auth_service.get_password_hash(data.password),
            name=data.admin_name,
            role=UserRole.ADMIN,
            organization_id=org.id,
            is_active=True
        )
        db.add(user)
        db.commit()

        competencies = CompetencyService(db, org.id, actor=user).initialize_defaults()
    except Exception as e:
        db.rollback()
        logger.error(f"System initialization failed: {str(e)}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Initialization failed. Please check server logs."
        )

    CompetencyService(db, org.id, actor=user).audit.log_action(
        AuditAction.CREATE, "organization", org.id,
        new_values={"name": org.name, "slug": org.slug, "admin_email": user.email},
    )
    logger.info(f"System bootstrap complete for {org.name} (admin user {user.id})")

    return {
        "success": True,
        "message": "System initialized successfully",
        "organization_id": org.id,
        "admin_user_id": user.id,
        "competencies_created": len(competencies),
    }
