import pytest
from fastapi import status

from teamspark.models.audit_log import AuditAction, AuditLog
from teamspark.models.user import User, UserRole


def _audit(db_session, action, success=True):
    return (
        db_session.query(AuditLog)
        .filter(AuditLog.action == action, AuditLog.entity_type == "user", AuditLog.success == success)
        .all()
    )


def test_admin_creates_user(client, auth_headers, admin_user, team, db_session):
    response = client.post("/api/admin/users/", headers=auth_headers(admin_user), json={
        "email": "New.Hire@AlphaCorp.com",
        "name": "New Hire",
        "password": "Welcome123!",
        "team_ids": [team.id],
    })
    assert response.status_code == status.HTTP_201_CREATED
    data = response.json()
    assert data["email"] == "new.hire@alphacorp.com"
    assert data["role"] == "MEMBER"
    assert data["team_ids"] == [team.id]

    (entry,) = _audit(db_session, AuditAction.CREATE)
    assert entry.new_values["email"] == "new.hire@alphacorp.com"


def test_duplicate_email_is_rejected(client, auth_headers, admin_user, member_user):
    response = client.post("/api/admin/users/", headers=auth_headers(admin_user), json={
        "email": member_user.email, "name": "Copy", "password": "Welcome123!",
    })
    assert response.status_code == status.HTTP_400_BAD_REQUEST


def test_manager_cannot_create_user_and_is_audited(client, auth_headers, manager_user, db_session):
    response = client.post("/api/admin/users/", headers=auth_headers(manager_user), json={
        "email": "x@alphacorp.com", "name": "X", "password": "Welcome123!",
    })
    assert response.status_code == status.HTTP_403_FORBIDDEN
    (entry,) = _audit(db_session, AuditAction.CREATE, success=False)
    assert entry.user_id == manager_user.id
    assert entry.error_message == "Only admins can create users"


def test_member_cannot_list_users(client, auth_headers, member_user):
    assert client.get("/api/admin/users/", headers=auth_headers(member_user)).status_code == 403


def test_list_users_search_and_pagination(client, auth_headers, admin_user, manager_user, member_user, other_admin):
    headers = auth_headers(admin_user)
    everyone = client.get("/api/admin/users/", headers=headers).json()
    assert everyone["pagination"]["total_count"] == 3
    assert other_admin.id not in [u["id"] for u in everyone["users"]]

    found = client.get("/api/admin/users/?search=mia", headers=headers).json()
    assert [u["id"] for u in found["users"]] == [member_user.id]

    managers = client.get("/api/admin/users/?role=MANAGER", headers=headers).json()
    assert [u["id"] for u in managers["users"]] == [manager_user.id]

    page = client.get("/api/admin/users/?limit=2&page=2", headers=headers).json()
    assert len(page["users"]) == 1
    assert page["pagination"]["has_prev"] is True
    assert page["pagination"]["has_next"] is False


def test_manager_sees_only_their_team(client, auth_headers, manager_user, member_user, admin_user, team):
    headers = auth_headers(manager_user)
    assert client.get(f"/api/admin/users/{member_user.id}", headers=headers).status_code == 200
    assert client.get(f"/api/admin/users/{admin_user.id}", headers=headers).status_code == 403


def test_role_change_is_admin_only(client, auth_headers, manager_user, member_user, team, db_session):
    response = client.patch(f"/api/admin/users/{member_user.id}", headers=auth_headers(manager_user),
                            json={"role": "MANAGER"})
    assert response.status_code == status.HTTP_403_FORBIDDEN
    db_session.refresh(member_user)
    assert member_user.role == UserRole.MEMBER
    assert len(_audit(db_session, AuditAction.UPDATE, success=False)) == 1


def test_manager_cannot_deactivate(client, auth_headers, manager_user, member_user, team):
    response = client.patch(f"/api/admin/users/{member_user.id}", headers=auth_headers(manager_user),
                            json={"is_active": False})
    assert response.status_code == status.HTTP_403_FORBIDDEN


def test_manager_updates_team_member_profile(client, auth_headers, manager_user, member_user, team, db_session):
    response = client.patch(f"/api/admin/users/{member_user.id}", headers=auth_headers(manager_user),
                            json={"name": "Mia M."})
    assert response.status_code == 200
    (entry,) = _audit(db_session, AuditAction.UPDATE)
    assert entry.old_values == {"name": "Mia Member"}
    assert entry.new_values == {"name": "Mia M."}


def test_admin_changes_role_and_deactivates(client, auth_headers, admin_user, member_user, db_session):
    headers = auth_headers(admin_user)
    response = client.patch(f"/api/admin/users/{member_user.id}", headers=headers, json={
        "role": "MANAGER", "is_active": False, "deactivation_reason": "Parental leave",
    })
    assert response.status_code == 200
    data = response.json()
    assert data["role"] == "MANAGER"
    assert data["is_active"] is False
    assert data["last_role_change"] is not None
    assert data["deactivated_at"] is not None

    (entry,) = _audit(db_session, AuditAction.UPDATE)
    assert entry.old_values == {"role": "MEMBER", "is_active": True, "deactivation_reason": None}
    assert entry.new_values == {"role": "MANAGER", "is_active": False, "deactivation_reason": "Parental leave"}

    reactivated = client.patch(f"/api/admin/users/{member_user.id}", headers=headers, json={"is_active": True})
    assert reactivated.json()["is_active"] is True
    assert reactivated.json()["deactivated_at"] is None
    assert reactivated.json()["deactivation_reason"] is None


@pytest.mark.parametrize("payload, message", [
    ({"role": "MEMBER"}, "You cannot change your own role"),
    ({"is_active": False}, "You cannot deactivate your own account"),
])
def test_admin_cannot_act_on_self(client, auth_headers, admin_user, db_session, payload, message):
    response = client.patch(f"/api/admin/users/{admin_user.id}", headers=auth_headers(admin_user), json=payload)
    assert response.status_code == status.HTTP_403_FORBIDDEN
    assert response.json()["errors"][0]["msg"] == message
    db_session.refresh(admin_user)
    assert admin_user.role == UserRole.ADMIN and admin_user.is_active


def test_admin_cannot_delete_self(client, auth_headers, admin_user):
    response = client.delete(f"/api/admin/users/{admin_user.id}", headers=auth_headers(admin_user))
    assert response.status_code == status.HTTP_403_FORBIDDEN


def test_delete_is_soft(client, auth_headers, admin_user, member_user, db_session):
    response = client.delete(f"/api/admin/users/{member_user.id}", headers=auth_headers(admin_user))
    assert response.status_code == 200
    user = db_session.query(User).filter(User.id == member_user.id).one()
    assert user.is_active is False
    assert user.deactivated_by_id == admin_user.id
    assert len(_audit(db_session, AuditAction.DELETE)) == 1


def test_users_of_other_organizations_are_not_found(client, auth_headers, admin_user, other_admin):
    headers = auth_headers(admin_user)
    assert client.get(f"/api/admin/users/{other_admin.id}", headers=headers).status_code == 404
    assert client.patch(f"/api/admin/users/{other_admin.id}", headers=headers,
                        json={"name": "Hacked"}).status_code == 404


def test_manager_outside_target_team_cannot_change_role(client, auth_headers, make_user, org, member_user, team, db_session):
    outsider = make_user(org, UserRole.MANAGER, name="Oli Outsider")
    response = client.patch(f"/api/admin/users/{member_user.id}", headers=auth_headers(outsider),
                            json={"role": "MANAGER"})
    assert response.status_code == status.HTTP_403_FORBIDDEN
    assert response.json()["errors"][0]["msg"] == "You do not have permission to update this user"
    db_session.refresh(member_user)
    assert member_user.role == UserRole.MEMBER

    (entry,) = _audit(db_session, AuditAction.UPDATE, success=False)
    assert entry.user_id == outsider.id
    assert entry.entity_id == str(member_user.id)
