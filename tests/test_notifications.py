import pytest

from teamspark.services.notification import NotificationService


@pytest.fixture
def notifications(db_session, member_user, manager_user):
    first = NotificationService.create_notification(db_session, member_user.id, "Review shared", "Your review is ready")
    second = NotificationService.create_notification(db_session, member_user.id, "Kudos", "Thanks!", type="kudos")
    foreign = NotificationService.create_notification(db_session, manager_user.id, "Reminder", "Submit reviews")
    return first, second, foreign


def test_list_own_notifications(client, auth_headers, member_user, notifications):
    response = client.get("/api/notifications/", headers=auth_headers(member_user))
    assert response.status_code == 200
    titles = [n["title"] for n in response.json()]
    assert sorted(titles) == ["Kudos", "Review shared"]


def test_mark_read(client, auth_headers, member_user, notifications):
    first, _, _ = notifications
    response = client.patch(f"/api/notifications/{first.id}/read", headers=auth_headers(member_user))
    assert response.status_code == 200
    assert response.json()["is_read"] is True

    unread = client.get("/api/notifications/?unread_only=true", headers=auth_headers(member_user)).json()
    assert [n["title"] for n in unread] == ["Kudos"]


def test_cannot_mark_someone_elses_notification(client, auth_headers, member_user, notifications):
    _, _, foreign = notifications
    response = client.patch(f"/api/notifications/{foreign.id}/read", headers=auth_headers(member_user))
    assert response.status_code == 404


def test_mark_all_read(client, auth_headers, member_user, notifications, db_session):
    response = client.post("/api/notifications/mark-all-read", headers=auth_headers(member_user))
    assert response.status_code == 200
    assert response.json()["updated"] == 2
    assert NotificationService.list_for_user(db_session, member_user.id, unread_only=True) == []
