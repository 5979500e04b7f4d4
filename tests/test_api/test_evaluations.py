"""Tests for evaluation endpoints."""

from tests.test_api.conftest import (
    AGENT_HEADERS,
    AGENT_MANAGER_HEADERS,
    ANALYST_HEADERS,
    QA_MANAGER_HEADERS,
    evaluation_payload,
)


class TestCreateEvaluation:

    def test_created(self, client):
        resp = client.post("/evaluations", json=evaluation_payload(), headers=ANALYST_HEADERS)

        assert resp.status_code == 201
        body = resp.json()
        assert body["success"] is True
        assert body["message"] == "Evaluation created successfully"
        assert body["data"]["score"] == 70
        assert body["data"]["max_possible"] == 100
        assert body["data"]["percentage"] == 70.0
        assert body["latency_ms"] >= 0

    def test_agent_forbidden(self, client):
        resp = client.post("/evaluations", json=evaluation_payload(), headers=AGENT_HEADERS)

        assert resp.status_code == 403
        assert resp.headers["X-Error-Kind"] == "permission_denied"
        assert resp.json()["detail"] == (
            "Permission denied: QA Analyst role required to create evaluations"
        )

    def test_missing_user_header_forbidden(self, client):
        resp = client.post("/evaluations", json=evaluation_payload())
        assert resp.status_code == 403

    def test_score_out_of_range(self, client):
        resp = client.post(
            "/evaluations", json=evaluation_payload(greeting=60), headers=ANALYST_HEADERS,
        )

        assert resp.status_code == 422
        assert resp.headers["X-Error-Kind"] == "validation_error"

    def test_unknown_question_set(self, client):
        resp = client.post(
            "/evaluations",
            json=evaluation_payload(question_set_id="qset_missing"),
            headers=ANALYST_HEADERS,
        )
        assert resp.status_code == 404

    def test_malformed_body(self, client):
        resp = client.post("/evaluations", json={"agent_id": "x"}, headers=ANALYST_HEADERS)
        assert resp.status_code == 422


class TestReadEvaluations:

    def test_list_is_scoped(self, client, evaluation_id):
        as_agent = client.get("/evaluations", headers=AGENT_HEADERS).json()
        as_stranger = client.get(
            "/evaluations", headers={"X-User-Id": "other.agent@example.com"},
        ).json()

        assert as_agent["total"] == 1
        assert as_agent["evaluations"][0]["id"] == evaluation_id
        assert as_agent["evaluations"][0]["percentage"] == 70.0
        assert as_stranger["total"] == 0

    def test_status_filter(self, client, evaluation_id):
        completed = client.get(
            "/evaluations", params={"status": "Completed"}, headers=QA_MANAGER_HEADERS,
        ).json()
        disputed = client.get(
            "/evaluations", params={"status": "Disputed"}, headers=QA_MANAGER_HEADERS,
        ).json()

        assert completed["total"] == 1
        assert disputed["total"] == 0

    def test_invalid_status_filter(self, client):
        resp = client.get("/evaluations", params={"status": "Done"}, headers=QA_MANAGER_HEADERS)
        assert resp.status_code == 422

    def test_detail(self, client, evaluation_id):
        resp = client.get(f"/evaluations/{evaluation_id}", headers=AGENT_MANAGER_HEADERS)

        assert resp.status_code == 200
        body = resp.json()
        assert body["evaluation"]["score"] == 70
        assert len(body["answers"]) == 2
        assert body["disputes"] == []

    def test_detail_outside_scope(self, client, evaluation_id):
        resp = client.get(
            f"/evaluations/{evaluation_id}", headers={"X-User-Id": "analyst2@example.com"},
        )
        assert resp.status_code == 403

    def test_detail_not_found(self, client):
        resp = client.get("/evaluations/eval_missing", headers=QA_MANAGER_HEADERS)
        assert resp.status_code == 404
        assert resp.headers["X-Error-Kind"] == "not_found"


class TestChangeEvaluation:

    def test_update_answers(self, client, evaluation_id):
        resp = client.patch(
            f"/evaluations/{evaluation_id}",
            json={"answers": [{"question_id": "q_resolution", "score": 50}]},
            headers=ANALYST_HEADERS,
        )

        assert resp.status_code == 200
        assert resp.json()["data"]["score"] == 90

    def test_update_while_disputed(self, client, evaluation_id, dispute_id):
        resp = client.patch(
            f"/evaluations/{evaluation_id}",
            json={"comments": "edit"},
            headers=ANALYST_HEADERS,
        )

        assert resp.status_code == 409
        assert resp.headers["X-Error-Kind"] == "invalid_state"

    def test_delete(self, client, evaluation_id, dispute_id):
        resp = client.delete(f"/evaluations/{evaluation_id}", headers=QA_MANAGER_HEADERS)

        assert resp.status_code == 200
        assert resp.json()["data"]["disputes_removed"] == 1
        assert client.get(
            f"/evaluations/{evaluation_id}", headers=QA_MANAGER_HEADERS,
        ).status_code == 404

    def test_delete_forbidden_for_analyst(self, client, evaluation_id):
        resp = client.delete(f"/evaluations/{evaluation_id}", headers=ANALYST_HEADERS)
        assert resp.status_code == 403
