from teamspark.models.audit_log import AuditAction, AuditLog
from teamspark.models.user import UserRole


def test_manager_creates_team_and_manages_it(client, auth_headers, manager_user, member_user, db_session):
    response = client.post("/api/teams/", headers=auth_headers(manager_user), json={
        "name": "Payments",
        "member_ids": [member_user.id, member_user.id],
    })
    assert response.status_code == 201
    body = response.json()
    assert body["manager_id"] == manager_user.id
    assert body["member_ids"] == [member_user.id]
    assert body["member_count"] == 1

    entry = db_session.query(AuditLog).filter(AuditLog.entity_type == "team").one()
    assert entry.action == AuditAction.CREATE
    assert entry.new_values["member_ids"] == [member_user.id]


def test_member_cannot_create_team(client, auth_headers, member_user):
    response = client.post("/api/teams/", headers=auth_headers(member_user), json={"name": "Rogue"})
    assert response.status_code == 403


def test_team_manager_must_not_be_member_role(client, auth_headers, admin_user, member_user):
    response = client.post("/api/teams/", headers=auth_headers(admin_user), json={
        "name": "Ops",
        "manager_id": member_user.id,
    })
    assert response.status_code == 400


def test_team_members_must_belong_to_org(client, auth_headers, admin_user, other_admin):
    response = client.post("/api/teams/", headers=auth_headers(admin_user), json={
        "name": "Ops",
        "member_ids": [other_admin.id],
    })
    assert response.status_code == 404


def test_add_member(client, auth_headers, team, manager_user, make_user, org):
    newcomer = make_user(org, UserRole.MEMBER, name="Nia New")
    response = client.post(f"/api/teams/{team.id}/members", headers=auth_headers(manager_user),
                           json={"user_id": newcomer.id})
    assert response.status_code == 200
    assert newcomer.id in response.json()["member_ids"]

    again = client.post(f"/api/teams/{team.id}/members", headers=auth_headers(manager_user),
                        json={"user_id": newcomer.id})
    assert again.status_code == 400


def test_only_team_manager_or_admin_adds_members(client, auth_headers, team, make_user, org, admin_user):
    other_manager = make_user(org, UserRole.MANAGER)
    newcomer = make_user(org, UserRole.MEMBER)
    denied = client.post(f"/api/teams/{team.id}/members", headers=auth_headers(other_manager),
                         json={"user_id": newcomer.id})
    assert denied.status_code == 403

    allowed = client.post(f"/api/teams/{team.id}/members", headers=auth_headers(admin_user),
                          json={"user_id": newcomer.id})
    assert allowed.status_code == 200


def test_teams_are_tenant_scoped(client, auth_headers, team, other_admin):
    assert client.get("/api/teams/", headers=auth_headers(other_admin)).json() == []
    assert client.get(f"/api/teams/{team.id}", headers=auth_headers(other_admin)).status_code == 404
