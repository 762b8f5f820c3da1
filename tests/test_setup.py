from teamspark.models.audit_log import AuditAction, AuditLog
from teamspark.models.evaluation import Competency
from teamspark.models.organization import Organization
from teamspark.models.user import User, UserRole
from teamspark.routers.setup import slugify

PAYLOAD = {
    "organization_name": "Gamma Labs",
    "admin_name": "Gil Admin",
    "admin_email": "Gil@GammaLabs.com",
    "password": "Sup3rSecret!",
}


def test_slugify():
    assert slugify("Gamma Labs, Inc.") == "gamma-labs-inc"
    assert slugify("!!!") == "organization"


def test_initialize_bootstraps_system(client, db_session):
    assert client.get("/api/setup/status").json() == {"initialized": False}

    response = client.post("/api/setup/initialize", json=PAYLOAD)
    assert response.status_code == 201
    body = response.json()
    assert body["success"] is True
    assert body["competencies_created"] > 0

    org = db_session.query(Organization).one()
    assert org.slug == "gamma-labs"
    admin = db_session.query(User).filter(User.id == body["admin_user_id"]).one()
    assert admin.role == UserRole.ADMIN
    assert admin.email == "gil@gammalabs.com"
    assert db_session.query(Competency).filter(Competency.organization_id == org.id).count() == body["competencies_created"]
    assert db_session.query(AuditLog).filter(AuditLog.entity_type == "organization").count() == 1

    assert client.get("/api/setup/status").json() == {"initialized": True}


def test_admin_can_log_in_after_setup(client):
    client.post("/api/setup/initialize", json=PAYLOAD)
    response = client.post("/api/auth/login", json={"email": "gil@gammalabs.com", "password": "Sup3rSecret!"})
    assert response.status_code == 200
    assert response.json()["user"]["role"] == "ADMIN"


def test_initialize_only_once(client, org):
    response = client.post("/api/setup/initialize", json=PAYLOAD)
    assert response.status_code == 400
    assert "already initialized" in response.json()["errors"][0]["msg"]


def test_initialize_validates_payload(client):
    response = client.post("/api/setup/initialize", json={**PAYLOAD, "password": "short"})
    assert response.status_code == 400
