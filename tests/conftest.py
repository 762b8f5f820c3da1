import pytest
import os
import uuid
from datetime import date, timedelta

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

# Set env before importing app components
os.environ["APP_ENV"] = "testing"
os.environ["DATABASE_URL"] = "sqlite:///:memory:"
os.environ["RATE_LIMIT_PER_MINUTE"] = "1000"
os.environ["AUTH_RATE_LIMIT"] = "1000/minute"
os.environ["SLACK_SIGNING_SECRET"] = "test-signing-secret"

from teamspark.database import Base, get_db
from teamspark.main import app
from teamspark.models.evaluation import (
    CycleStatus, EvaluationCycle, EvaluationCycleType, Evaluation, EvaluationType,
)
from teamspark.models.organization import Organization
from teamspark.models.team import Team, TeamMember
from teamspark.models.user import User, UserRole
from teamspark.services import auth as auth_service
from fastapi.testclient import TestClient

# SQLite in-memory database configuration
SQLALCHEMY_DATABASE_URL = "sqlite:///:memory:"

engine = create_engine(
    SQLALCHEMY_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

PASSWORD = "Password123!"
# Hashing is slow; every fixture user shares one hash
PASSWORD_HASH = auth_service.get_password_hash(PASSWORD)


@pytest.fixture(scope="session", autouse=True)
def setup_database():
    """Create tables once for the whole test session."""
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def db_session():
    """Clean database session per test; everything is rolled back afterwards."""
    connection = engine.connect()
    transaction = connection.begin()
    # Service commits stay inside the outer transaction
    session = TestingSessionLocal(bind=connection)

    yield session

    session.close()
    transaction.rollback()
    connection.close()


def _make_org(db_session, name):
    org = Organization(name=name, slug=f"{name.lower().replace(' ', '-')}-{uuid.uuid4().hex[:8]}")
    db_session.add(org)
    db_session.commit()
    return org


@pytest.fixture(scope="function")
def org(db_session):
    return _make_org(db_session, "Alpha Corp")


@pytest.fixture(scope="function")
def other_org(db_session):
    return _make_org(db_session, "Beta Corp")


@pytest.fixture(scope="function")
def make_user(db_session):
    """Factory creating users with the shared test password."""
    def _make_user(org, role=UserRole.MEMBER, name=None, email=None, slack_user_id=None, is_active=True):
        user = User(
            email=email or f"{uuid.uuid4().hex[:10]}@example.com",
            hashed_password=PASSWORD_HASH,
            name=name or role.value.title(),
            role=role,
            organization_id=org.id,
            slack_user_id=slack_user_id,
            is_active=is_active,
        )
        db_session.add(user)
        db_session.commit()
        return user
    return _make_user


@pytest.fixture(scope="function")
def admin_user(make_user, org):
    return make_user(org, UserRole.ADMIN, name="Ada Admin", email="admin@alphacorp.com")


@pytest.fixture(scope="function")
def manager_user(make_user, org):
    return make_user(org, UserRole.MANAGER, name="Max Manager", email="manager@alphacorp.com")


@pytest.fixture(scope="function")
def member_user(make_user, org):
    return make_user(org, UserRole.MEMBER, name="Mia Member", email="member@alphacorp.com")


@pytest.fixture(scope="function")
def other_admin(make_user, other_org):
    return make_user(other_org, UserRole.ADMIN, name="Otto Other", email="admin@betacorp.com")


@pytest.fixture(scope="function")
def team(db_session, org, manager_user, member_user):
    """A team managed by manager_user with member_user as its only member."""
    team = Team(organization_id=org.id, name="Platform", manager_id=manager_user.id)
    team.members.append(TeamMember(user_id=member_user.id))
    db_session.add(team)
    db_session.commit()
    db_session.refresh(manager_user)
    db_session.refresh(member_user)
    return team


@pytest.fixture(scope="function")
def active_cycle(db_session, org):
    cycle = EvaluationCycle(
        organization_id=org.id,
        name="2026 H1",
        type=EvaluationCycleType.SEMI_ANNUAL,
        status=CycleStatus.ACTIVE,
        start_date=date.today() - timedelta(days=30),
        end_date=date.today() + timedelta(days=60),
    )
    db_session.add(cycle)
    db_session.commit()
    return cycle


@pytest.fixture(scope="function")
def manager_evaluation(db_session, active_cycle, manager_user, member_user):
    """DRAFT evaluation of member_user written by manager_user."""
    evaluation = Evaluation(
        cycle_id=active_cycle.id,
        evaluatee_id=member_user.id,
        evaluator_id=manager_user.id,
        type=EvaluationType.MANAGER,
    )
    db_session.add(evaluation)
    db_session.commit()
    return evaluation


@pytest.fixture(scope="function")
def get_token():
    """Helper fixture to create access tokens with org_id."""
    def _get_token(user, org_id=None):
        return auth_service.create_access_token(data={
            "sub": user.email,
            "role": user.role.value,
            "org_id": org_id if org_id is not None else user.organization_id,
        })
    return _get_token


@pytest.fixture(scope="function")
def auth_headers(get_token):
    def _auth_headers(user):
        return {"Authorization": f"Bearer {get_token(user)}"}
    return _auth_headers


@pytest.fixture(scope="function")
def client(db_session):
    """Get a TestClient that uses the test database session via dependency override."""
    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()
