import csv
import io
import pytest
from datetime import datetime, timedelta, timezone
from fastapi import status

from teamspark.models.audit_log import AuditAction, AuditLog
from teamspark.models.user import User
from teamspark.services.audit import CSV_HEADERS, AuditService


def _entry(db_session, org, user=None, action=AuditAction.UPDATE, created_at=None, **kwargs):
    entry = AuditLog(
        organization_id=org.id,
        user_id=user.id if user else None,
        action=action,
        entity_type=kwargs.pop("entity_type", "user"),
        entity_id=kwargs.pop("entity_id", "1"),
        created_at=created_at or datetime.now(timezone.utc),
        **kwargs,
    )
    db_session.add(entry)
    db_session.commit()
    return entry


def test_log_action_records_request_context(db_session, org, admin_user):
    service = AuditService(db_session, org.id, actor=admin_user,
                           request_meta={"ip_address": "10.0.0.1", "user_agent": "pytest"})
    entry = service.log_action(AuditAction.CREATE, "team", 42, new_values={"name": "Core"})
    assert entry.user_id == admin_user.id
    assert entry.entity_id == "42"
    assert entry.ip_address == "10.0.0.1"
    assert entry.success is True


def test_recorder_failure_is_swallowed(db_session, org, admin_user, monkeypatch):
    def broken(*args, **kwargs):
        raise RuntimeError("audit store unavailable")

    monkeypatch.setattr(AuditService, "_build_entry", broken)
    service = AuditService(db_session, org.id, actor=admin_user)
    assert service.log_action(AuditAction.CREATE, "team", 1) is None


def test_audit_failure_does_not_block_mutation(client, auth_headers, admin_user, member_user, db_session, monkeypatch):
    def broken(*args, **kwargs):
        raise RuntimeError("audit store unavailable")

    monkeypatch.setattr(AuditService, "_build_entry", broken)
    response = client.patch(f"/api/admin/users/{member_user.id}", headers=auth_headers(admin_user),
                            json={"name": "Renamed"})
    assert response.status_code == 200
    assert db_session.query(User).filter(User.id == member_user.id).one().name == "Renamed"
    assert db_session.query(AuditLog).count() == 0


def test_list_audit_logs_with_filters(client, auth_headers, admin_user, member_user, org, other_org, db_session):
    _entry(db_session, org, admin_user, AuditAction.CREATE)
    _entry(db_session, org, member_user, AuditAction.UPDATE, success=False, error_message="denied")
    _entry(db_session, other_org, None, AuditAction.DELETE)
    headers = auth_headers(admin_user)

    everything = client.get("/api/admin/audit-logs/", headers=headers).json()
    assert everything["pagination"]["total_count"] == 2

    failed = client.get("/api/admin/audit-logs/?success=false", headers=headers).json()
    assert [log["error_message"] for log in failed["logs"]] == ["denied"]

    created = client.get("/api/admin/audit-logs/?action=CREATE", headers=headers).json()
    assert created["logs"][0]["user"]["email"] == admin_user.email


def test_manager_sees_only_own_actions(client, auth_headers, admin_user, manager_user, org, db_session):
    _entry(db_session, org, admin_user)
    own = _entry(db_session, org, manager_user)
    response = client.get(f"/api/admin/audit-logs/?user_id={admin_user.id}", headers=auth_headers(manager_user))
    assert response.status_code == 200
    assert [log["id"] for log in response.json()["logs"]] == [own.id]


def test_member_cannot_read_audit_logs(client, auth_headers, member_user):
    assert client.get("/api/admin/audit-logs/", headers=auth_headers(member_user)).status_code == 403


def test_audit_stats(client, auth_headers, admin_user, member_user, org, db_session):
    for _ in range(3):
        _entry(db_session, org, admin_user, AuditAction.UPDATE)
    _entry(db_session, org, member_user, AuditAction.CREATE, success=False)

    stats = client.get("/api/admin/audit-logs/stats", headers=auth_headers(admin_user)).json()
    assert stats["total_logs"] == 4
    assert stats["successful_actions"] == 3
    assert stats["failed_actions"] == 1
    assert stats["success_rate"] == 75
    assert stats["action_breakdown"][0] == {"action": "UPDATE", "count": 3}
    assert stats["top_active_users"][0]["user"]["id"] == admin_user.id
    assert stats["top_active_users"][0]["action_count"] == 3


def test_csv_export_escapes_fields(client, auth_headers, admin_user, org, db_session):
    _entry(db_session, org, admin_user, success=False, error_message='He said "no", then left',
           user_agent="Mozilla/5.0 (X11, Linux)")

    response = client.get("/api/admin/audit-logs/export.csv", headers=auth_headers(admin_user))
    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/csv")
    assert "attachment" in response.headers["content-disposition"]
    assert '"He said ""no"", then left"' in response.text
    assert '"Mozilla/5.0 (X11, Linux)"' in response.text

    rows = list(csv.reader(io.StringIO(response.text)))
    assert rows[0] == CSV_HEADERS
    assert rows[1][1] == admin_user.name
    assert rows[1][5] == "Failed"

    export = db_session.query(AuditLog).filter(AuditLog.action == AuditAction.EXPORT).one()
    assert export.user_id == admin_user.id


def test_manager_cannot_export(client, auth_headers, manager_user):
    response = client.get("/api/admin/audit-logs/export.csv", headers=auth_headers(manager_user))
    assert response.status_code == status.HTTP_403_FORBIDDEN


def test_retention_cleanup(client, auth_headers, admin_user, manager_user, org, db_session):
    old = _entry(db_session, org, admin_user, created_at=datetime.now(timezone.utc) - timedelta(days=400))
    recent = _entry(db_session, org, admin_user, created_at=datetime.now(timezone.utc) - timedelta(days=10))
    old_id, recent_id = old.id, recent.id

    assert client.post("/api/admin/audit-logs/cleanup", headers=auth_headers(manager_user),
                       json={"retention_days": 365}).status_code == 403

    response = client.post("/api/admin/audit-logs/cleanup", headers=auth_headers(admin_user),
                           json={"retention_days": 365})
    assert response.status_code == 200
    assert response.json() == {"deleted": 1, "retention_days": 365}
    remaining = {e.id for e in db_session.query(AuditLog).all()}
    assert old_id not in remaining
    assert recent_id in remaining
