"""Tests for users, settings, question sets, statistics and audit queue endpoints."""

from tests.conftest import AGENT, AGENT_MANAGER, ANALYST, GREETING_QUESTION, QUESTION_SET_ID
from tests.test_api.conftest import (
    ADMIN_HEADERS,
    AGENT_HEADERS,
    ANALYST_HEADERS,
    QA_MANAGER_HEADERS,
    as_user,
)


class TestUsers:

    def test_me(self, client):
        resp = client.get("/users/me", headers=AGENT_HEADERS)

        assert resp.status_code == 200
        assert resp.json()["role"] == "Agent"
        assert resp.json()["manager_id"] == AGENT_MANAGER

    def test_unknown_user_rejected(self, client):
        resp = client.get("/users", headers=as_user("ghost@example.com"))
        assert resp.status_code == 403

    def test_list_by_role(self, client):
        resp = client.get("/users", params={"role": "QAAnalyst"}, headers=AGENT_HEADERS)

        assert resp.status_code == 200
        assert resp.json()["total"] == 2

    def test_create_and_update(self, client):
        created = client.post(
            "/users",
            json={"email": "New.Agent@example.com", "name": "New Agent", "role": "Agent",
                  "manager_id": AGENT_MANAGER},
            headers=ADMIN_HEADERS,
        )
        assert created.status_code == 201, created.text

        updated = client.patch(
            "/users/new.agent@example.com", json={"role": "QAAnalyst"}, headers=ADMIN_HEADERS,
        )
        assert updated.status_code == 200, updated.text

        listed = client.get("/users", params={"role": "QAAnalyst"}, headers=ADMIN_HEADERS)
        assert "new.agent@example.com" in {u["id"] for u in listed.json()["users"]}

    def test_create_requires_admin(self, client):
        resp = client.post(
            "/users",
            json={"email": "x@example.com", "name": "X", "role": "Agent"},
            headers=QA_MANAGER_HEADERS,
        )
        assert resp.status_code == 403


class TestSettings:

    def test_defaults_seeded_at_startup(self, client):
        resp = client.get("/settings", headers=AGENT_HEADERS)

        values = {s["key"]: s["value"] for s in resp.json()["settings"]}
        assert values["passing_score_percentage"] == "80"
        assert values["dispute_time_limit_days"] == "7"

    def test_admin_updates(self, client):
        resp = client.put(
            "/settings/dispute_time_limit_days", json={"value": 14}, headers=ADMIN_HEADERS,
        )

        assert resp.status_code == 200, resp.text
        listed = client.get("/settings", headers=ADMIN_HEADERS).json()["settings"]
        assert {s["key"]: s["value"] for s in listed}["dispute_time_limit_days"] == "14"

    def test_invalid_value(self, client):
        resp = client.put(
            "/settings/passing_score_percentage", json={"value": "150"}, headers=ADMIN_HEADERS,
        )
        assert resp.status_code == 422

    def test_non_admin_denied(self, client):
        resp = client.put(
            "/settings/passing_score_percentage", json={"value": "85"}, headers=QA_MANAGER_HEADERS,
        )

        assert resp.status_code == 403
        assert resp.json()["detail"] == "Permission denied: Admin role required to change settings"

    def test_protected_delete(self, client):
        resp = client.delete("/settings/passing_score_percentage", headers=ADMIN_HEADERS)
        assert resp.status_code == 409


class TestQuestionSets:

    def test_list_and_detail(self, client):
        listed = client.get("/question-sets")
        assert [s["id"] for s in listed.json()["question_sets"]] == [QUESTION_SET_ID]

        detail = client.get(f"/question-sets/{QUESTION_SET_ID}")
        assert detail.status_code == 200
        assert len(detail.json()["questions"]) == 2

    def test_missing(self, client):
        assert client.get("/question-sets/qset_missing").status_code == 404

    def test_create_with_questions(self, client):
        resp = client.post(
            "/question-sets",
            json={
                "name": "Email Review",
                "interaction_type": "Email",
                "questions": [
                    {"text": "Correct spelling?"},
                    {"text": "Tone", "type": "MultipleChoice", "options": ["Good", "Poor"]},
                ],
            },
            headers=QA_MANAGER_HEADERS,
        )

        assert resp.status_code == 201, resp.text
        set_id = resp.json()["data"]["question_set_id"]
        detail = client.get(f"/question-sets/{set_id}").json()
        assert len(detail["questions"]) == 2

    def test_analyst_cannot_create(self, client):
        resp = client.post(
            "/question-sets",
            json={"name": "X", "interaction_type": "Call"},
            headers=ANALYST_HEADERS,
        )
        assert resp.status_code == 403

    def test_delete_in_use(self, client, evaluation_id):
        resp = client.delete(f"/question-sets/{QUESTION_SET_ID}", headers=QA_MANAGER_HEADERS)

        assert resp.status_code == 409
        assert resp.json()["detail"] == "Cannot delete question set: it is used in 1 evaluation(s)"

    def test_question_update_and_delete(self, client):
        updated = client.patch(
            f"/questions/{GREETING_QUESTION}", json={"help_text": "Name and greeting"},
            headers=QA_MANAGER_HEADERS,
        )
        assert updated.status_code == 200, updated.text

        deleted = client.delete(f"/questions/{GREETING_QUESTION}", headers=QA_MANAGER_HEADERS)
        assert deleted.status_code == 200
        assert deleted.json()["data"]["deactivated"] is False


class TestStatistics:

    def test_dashboard(self, client, evaluation_id):
        resp = client.get("/statistics/dashboard", headers=QA_MANAGER_HEADERS)

        assert resp.status_code == 200
        data = resp.json()["data"]
        assert data["total_evaluations"] == 1
        assert data["average_percentage"] == 70.0
        assert data["pass_rate"] == 0.0

    def test_dashboard_is_scoped(self, client, evaluation_id):
        resp = client.get("/statistics/dashboard", headers=as_user("other.agent@example.com"))
        assert resp.json()["data"]["total_evaluations"] == 0

    def test_trends(self, client, evaluation_id):
        resp = client.get("/statistics/trends", params={"period": "month"}, headers=QA_MANAGER_HEADERS)

        assert resp.status_code == 200
        buckets = resp.json()["data"]["buckets"]
        assert len(buckets) == 1
        assert buckets[0]["evaluations"] == 1

    def test_invalid_period(self, client):
        resp = client.get("/statistics/trends", params={"period": "day"}, headers=QA_MANAGER_HEADERS)
        assert resp.status_code == 422


class TestAuditQueue:

    def test_add_assign_and_list(self, client):
        added = client.post(
            "/audit-queue",
            json={"agent_id": AGENT, "interaction_id": "call-77", "interaction_type": "Call"},
            headers=QA_MANAGER_HEADERS,
        )
        assert added.status_code == 201, added.text
        item_id = added.json()["data"]["item_id"]

        assigned = client.post(
            f"/audit-queue/{item_id}/assign", json={"assignee_id": ANALYST},
            headers=QA_MANAGER_HEADERS,
        )
        assert assigned.status_code == 200, assigned.text

        mine = client.get("/audit-queue", headers=ANALYST_HEADERS).json()
        assert [i["id"] for i in mine["items"]] == [item_id]
        assert mine["items"][0]["status"] == "Assigned"
        assert client.get("/audit-queue", headers=AGENT_HEADERS).json()["total"] == 0

    def test_analyst_cannot_add(self, client):
        resp = client.post(
            "/audit-queue",
            json={"agent_id": AGENT, "interaction_id": "call-1", "interaction_type": "Call"},
            headers=ANALYST_HEADERS,
        )
        assert resp.status_code == 403

    def test_assign_missing(self, client):
        resp = client.post(
            "/audit-queue/queue_missing/assign", json={"assignee_id": ANALYST},
            headers=QA_MANAGER_HEADERS,
        )
        assert resp.status_code == 404
