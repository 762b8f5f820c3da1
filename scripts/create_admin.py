"""
Create an organization and its first ADMIN user from the command line.

    ADMIN_EMAIL=... ADMIN_PASSWORD=... python scripts/create_admin.py "Acme Inc"
"""
import logging
import os
import sys

from sqlalchemy.orm import Session

from teamspark.database import SessionLocal, init_db
from teamspark.models.organization import Organization
from teamspark.models.user import User, UserRole
from teamspark.routers.setup import slugify
from teamspark.services.auth import get_password_hash
from teamspark.services.competency_service import CompetencyService

logging.basicConfig(level=logging.INFO, format="%(levelname)s: %(message)s")
logger = logging.getLogger(__name__)


def create_admin_user(org_name: str, email: str, password: str) -> None:
    init_db()
    db: Session = SessionLocal()
    try:
        email = email.lower()
        if db.query(User).filter(User.email == email).first():
            logger.warning(f"User '{email}' already exists.")
            return

        slug = slugify(org_name)
        org = db.query(Organization).filter(Organization.slug == slug).first()
        if org is None:
            org = Organization(name=org_name, slug=slug, is_active=True)
            db.add(org)
            db.flush()

        admin_user = User(
            email=email,
            hashed_password=get_password_hash(password),
            name="System Administrator",
            role=UserRole.ADMIN,
            organization_id=org.id,
            is_active=True,
        )
        db.add(admin_user)
        db.commit()
        CompetencyService(db, org.id, actor=admin_user).initialize_defaults()

        logger.info(f"Admin user {email} created in organization '{org.name}'.")
    except Exception as e:
        logger.error(f"Error creating admin user: {e}")
        db.rollback()
        raise
    finally:
        db.close()


if __name__ == "__main__":
    admin_email = os.getenv("ADMIN_EMAIL")
    admin_password = os.getenv("ADMIN_PASSWORD")
    if len(sys.argv) != 2 or not admin_email or not admin_password:
        sys.exit(__doc__)
    create_admin_user(sys.argv[1], admin_email, admin_password)
