import pytest
from fastapi import status

from teamspark.models.audit_log import AuditAction, AuditLog
from teamspark.models.evaluation import (
    Competency, CompetencyCategory, CompetencyRating, CycleStatus, Evaluation,
    EvaluationStatus,
)


@pytest.fixture
def competencies(db_session, org):
    items = [
        Competency(organization_id=org.id, name=name, category=CompetencyCategory.CORE, order=i)
        for i, name in enumerate(["Communication", "Teamwork", "Problem Solving"], start=1)
    ]
    db_session.add_all(items)
    db_session.commit()
    return items


def _url(evaluation, action=""):
    return f"/api/evaluations/{evaluation.id}" + (f"/{action}" if action else "")


def _submit(client, headers, evaluation, rating=4):
    return client.post(_url(evaluation, "submit"), headers=headers, json={"overall_rating": rating})


def test_save_draft_replaces_competency_ratings(client, auth_headers, manager_user, manager_evaluation, competencies, db_session):
    c1, c2, c3 = competencies
    headers = auth_headers(manager_user)

    response = client.patch(_url(manager_evaluation), headers=headers, json={
        "strengths": "Owns incidents end to end",
        "competency_ratings": [
            {"competency_id": c1.id, "rating": 3},
            {"competency_id": c2.id, "rating": 4},
        ],
    })
    assert response.status_code == 200
    assert response.json()["status"] == "DRAFT"

    response = client.patch(_url(manager_evaluation), headers=headers, json={
        "competency_ratings": [{"competency_id": c3.id, "rating": 5, "comments": "Great debugging"}],
    })
    assert response.status_code == 200
    ratings = response.json()["competency_ratings"]
    assert [(r["competency_id"], r["rating"]) for r in ratings] == [(c3.id, 5)]
    assert db_session.query(CompetencyRating).filter(
        CompetencyRating.evaluation_id == manager_evaluation.id
    ).count() == 1


def test_rating_replacement_is_idempotent(client, auth_headers, manager_user, manager_evaluation, competencies, db_session):
    c1, c2, _ = competencies
    headers = auth_headers(manager_user)
    ratings = [
        {"competency_id": c1.id, "rating": 4, "comments": "Clear updates"},
        {"competency_id": c2.id, "rating": 3},
    ]

    def stored():
        return sorted(
            (r.competency_id, r.rating, r.comments)
            for r in db_session.query(CompetencyRating).filter(
                CompetencyRating.evaluation_id == manager_evaluation.id
            )
        )

    assert client.patch(_url(manager_evaluation), headers=headers, json={"competency_ratings": ratings}).status_code == 200
    first = stored()
    assert first == [(c1.id, 4, "Clear updates"), (c2.id, 3, None)]

    assert client.patch(_url(manager_evaluation), headers=headers, json={"competency_ratings": ratings}).status_code == 200
    assert stored() == first

    response = client.post(_url(manager_evaluation, "submit"), headers=headers,
                           json={"overall_rating": 4, "competency_ratings": ratings})
    assert response.status_code == 200
    assert stored() == first


def test_save_draft_rejects_duplicate_or_foreign_competencies(client, auth_headers, manager_user, manager_evaluation, competencies):
    c1 = competencies[0]
    headers = auth_headers(manager_user)
    duplicate = client.patch(_url(manager_evaluation), headers=headers, json={
        "competency_ratings": [{"competency_id": c1.id, "rating": 3}, {"competency_id": c1.id, "rating": 4}],
    })
    assert duplicate.status_code == status.HTTP_400_BAD_REQUEST

    unknown = client.patch(_url(manager_evaluation), headers=headers, json={
        "competency_ratings": [{"competency_id": 999999, "rating": 3}],
    })
    assert unknown.status_code == status.HTTP_400_BAD_REQUEST


def test_rating_out_of_range_is_400(client, auth_headers, manager_user, manager_evaluation):
    response = client.patch(_url(manager_evaluation), headers=auth_headers(manager_user), json={"overall_rating": 6})
    assert response.status_code == status.HTTP_400_BAD_REQUEST


def test_submit_evaluation(client, auth_headers, manager_user, manager_evaluation, db_session):
    response = _submit(client, auth_headers(manager_user), manager_evaluation)
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "SUBMITTED"
    assert data["submitted_at"] is not None
    assert data["overall_rating"] == 4

    entry = db_session.query(AuditLog).filter(AuditLog.action == AuditAction.SUBMIT).one()
    assert entry.entity_type == "evaluation"
    assert entry.entity_id == str(manager_evaluation.id)
    assert entry.old_values["status"] == "DRAFT"
    assert entry.new_values["status"] == "SUBMITTED"


def test_submit_requires_overall_rating(client, auth_headers, manager_user, manager_evaluation):
    response = client.post(_url(manager_evaluation, "submit"), headers=auth_headers(manager_user), json={})
    assert response.status_code == status.HTTP_400_BAD_REQUEST


def test_submit_twice_is_conflict(client, auth_headers, manager_user, manager_evaluation):
    headers = auth_headers(manager_user)
    assert _submit(client, headers, manager_evaluation).status_code == 200
    assert _submit(client, headers, manager_evaluation).status_code == status.HTTP_409_CONFLICT


def test_submit_requires_active_cycle(client, auth_headers, manager_user, manager_evaluation, active_cycle, db_session):
    active_cycle.status = CycleStatus.DRAFT
    db_session.commit()
    response = _submit(client, auth_headers(manager_user), manager_evaluation)
    assert response.status_code == status.HTTP_409_CONFLICT
    db_session.refresh(manager_evaluation)
    assert manager_evaluation.status == EvaluationStatus.DRAFT


def test_only_the_evaluator_may_submit(client, auth_headers, member_user, manager_evaluation):
    response = _submit(client, auth_headers(member_user), manager_evaluation)
    assert response.status_code == status.HTTP_403_FORBIDDEN


def test_review_approve_and_share(client, auth_headers, admin_user, manager_user, member_user, manager_evaluation):
    assert _submit(client, auth_headers(manager_user), manager_evaluation).status_code == 200

    # Not yet released to the evaluatee
    hidden = client.get(_url(manager_evaluation), headers=auth_headers(member_user))
    assert hidden.status_code == status.HTTP_403_FORBIDDEN

    review = client.post(_url(manager_evaluation, "review"), headers=auth_headers(admin_user),
                         json={"approved": True, "manager_comments": "Well argued"})
    assert review.status_code == 200
    assert review.json()["status"] == "REVIEWED"
    assert review.json()["reviewer_id"] == admin_user.id
    assert review.json()["reviewed_at"] is not None

    shared = client.post(_url(manager_evaluation, "share"), headers=auth_headers(admin_user))
    assert shared.status_code == 200
    assert shared.json()["status"] == "SHARED"
    assert shared.json()["is_visible"] is True

    visible = client.get(_url(manager_evaluation), headers=auth_headers(member_user))
    assert visible.status_code == 200


def test_review_reject_returns_to_draft(client, auth_headers, manager_user, manager_evaluation):
    headers = auth_headers(manager_user)
    assert _submit(client, headers, manager_evaluation).status_code == 200

    response = client.post(_url(manager_evaluation, "review"), headers=headers,
                           json={"approved": False, "manager_comments": "Add concrete examples"})
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "DRAFT"
    assert data["reviewer_id"] is None
    assert data["reviewed_at"] is None
    assert data["submitted_at"] is None
    assert data["manager_comments"] == "Add concrete examples"


def test_illegal_transitions_are_conflicts(client, auth_headers, admin_user, manager_evaluation):
    headers = auth_headers(admin_user)
    assert client.post(_url(manager_evaluation, "review"), headers=headers,
                       json={"approved": True}).status_code == status.HTTP_409_CONFLICT
    assert client.post(_url(manager_evaluation, "share"), headers=headers).status_code == status.HTTP_409_CONFLICT


def test_member_cannot_review(client, auth_headers, manager_user, member_user, manager_evaluation):
    assert _submit(client, auth_headers(manager_user), manager_evaluation).status_code == 200
    response = client.post(_url(manager_evaluation, "review"), headers=auth_headers(member_user),
                           json={"approved": True})
    assert response.status_code == status.HTTP_403_FORBIDDEN


def test_other_organization_gets_404(client, auth_headers, other_admin, manager_evaluation):
    headers = auth_headers(other_admin)
    assert client.get(_url(manager_evaluation), headers=headers).status_code == status.HTTP_404_NOT_FOUND
    assert client.post(_url(manager_evaluation, "review"), headers=headers,
                       json={"approved": True}).status_code == status.HTTP_404_NOT_FOUND
    assert client.delete(_url(manager_evaluation), headers=headers).status_code == status.HTTP_404_NOT_FOUND


def test_delete_rules(client, auth_headers, admin_user, manager_user, manager_evaluation, db_session):
    assert client.delete(_url(manager_evaluation), headers=auth_headers(manager_user)).status_code == 403

    assert _submit(client, auth_headers(manager_user), manager_evaluation).status_code == 200
    response = client.delete(_url(manager_evaluation), headers=auth_headers(admin_user))
    assert response.status_code == status.HTTP_400_BAD_REQUEST


def test_admin_deletes_draft(client, auth_headers, admin_user, manager_evaluation, db_session):
    evaluation_id = manager_evaluation.id
    response = client.delete(_url(manager_evaluation), headers=auth_headers(admin_user))
    assert response.status_code == 200
    assert db_session.query(Evaluation).filter(Evaluation.id == evaluation_id).first() is None


def test_create_duplicate_assignment(client, auth_headers, admin_user, manager_evaluation):
    payload = {
        "cycle_id": manager_evaluation.cycle_id,
        "evaluatee_id": manager_evaluation.evaluatee_id,
        "evaluator_id": manager_evaluation.evaluator_id,
        "type": "MANAGER",
    }
    response = client.post("/api/evaluations/", headers=auth_headers(admin_user), json=payload)
    assert response.status_code == status.HTTP_400_BAD_REQUEST

    payload["type"] = "PEER"
    response = client.post("/api/evaluations/", headers=auth_headers(admin_user), json=payload)
    assert response.status_code == status.HTTP_201_CREATED
    assert response.json()["status"] == "DRAFT"


def test_list_filters_by_visibility(client, auth_headers, manager_user, member_user, manager_evaluation):
    assert [e["id"] for e in client.get("/api/evaluations/", headers=auth_headers(manager_user)).json()] == [
        manager_evaluation.id
    ]
    assert client.get("/api/evaluations/", headers=auth_headers(member_user)).json() == []


def test_results_include_only_released_evaluations(
    client, auth_headers, admin_user, manager_user, member_user, manager_evaluation, competencies
):
    c1 = competencies[0]
    response = client.post(_url(manager_evaluation, "submit"), headers=auth_headers(manager_user), json={
        "overall_rating": 4,
        "competency_ratings": [{"competency_id": c1.id, "rating": 5}],
    })
    assert response.status_code == 200

    url = f"/api/evaluations/results?cycle_id={manager_evaluation.cycle_id}&evaluatee_id={member_user.id}"
    before = client.get(url, headers=auth_headers(member_user)).json()
    assert before["evaluation_count"] == 0

    client.post(_url(manager_evaluation, "review"), headers=auth_headers(admin_user), json={"approved": True})
    client.post(_url(manager_evaluation, "share"), headers=auth_headers(admin_user))

    results = client.get(url, headers=auth_headers(member_user)).json()
    assert results["evaluation_count"] == 1
    assert results["overall_average"] == 4.0
    assert results["averages_by_type"] == {"MANAGER": 4.0}
    assert results["competency_results"] == [{
        "competency_id": c1.id,
        "competency_name": "Communication",
        "average_rating": 5.0,
        "rating_count": 1,
    }]
