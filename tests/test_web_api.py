from __future__ import annotations

import time

from fastapi.testclient import TestClient

from fakes import FakeNarrative

from lifewheel.infrastructure.config import AssessmentConfig, DatabaseConfig
from lifewheel.web.main import create_application

ADMIN_MOBILE = "09120000000"


def build_app(narrative: FakeNarrative | None = None):
    app = create_application()
    app.state.db_config = DatabaseConfig(sqlite_path=":memory:")
    app.state.assessment_config = AssessmentConfig(
        processing_delay_ms=0, admin_identifiers=[ADMIN_MOBILE]
    )
    app.state.narrative = narrative or FakeNarrative(text="analysis")
    return app


def register(client: TestClient, mobile: str = "09121234567", name: str = "Sara") -> dict:
    response = client.post(
        "/api/users/register",
        json={"name": name, "mobile": mobile, "age": 30, "email": f"{mobile}@example.com"},
    )
    assert response.status_code == 200, response.text
    return response.json()


def wait_for_result(client: TestClient, sid: str) -> dict:
    for _ in range(200):
        state = client.get(f"/api/assessments/{sid}").json()
        result = state["result"]
        if result and not result["narrative_pending"]:
            return state
        time.sleep(0.01)
    raise AssertionError(f"assessment {sid} never settled: {state}")


def complete_assessment(client: TestClient, user_id: str, scores: dict[str, int]) -> dict:
    sid = client.post("/api/assessments", json={"user_id": user_id}).json()["session_id"]
    assert client.post(f"/api/assessments/{sid}/rating").status_code == 200
    for cid, score in scores.items():
        r = client.put(f"/api/assessments/{sid}/scores/{cid}", json={"score": score})
        assert r.status_code == 200, r.text
    assert client.post(f"/api/assessments/{sid}/process").status_code == 202
    return wait_for_result(client, sid)


def test_health_and_categories():
    with TestClient(build_app()) as client:
        health = client.get("/api/health").json()
        assert health["status"] == "ok"
        assert health["environment"] == "testing"
        categories = client.get("/api/categories").json()
        assert [c["id"] for c in categories] == [
            "spirituality",
            "family",
            "personal",
            "social",
            "health",
            "work",
        ]


def test_intro_page_renders_intro_text():
    with TestClient(build_app()) as client:
        page = client.get("/")
        assert page.status_code == 200
        assert "مکتب کمال" in page.text
        assert 'data-category="health"' in page.text


def test_register_and_fetch_user():
    with TestClient(build_app()) as client:
        user = register(client)
        assert user["role"] == "USER"
        assert client.get(f"/api/users/{user['id']}").json()["name"] == "Sara"
        assert client.get("/api/users/nobody").status_code == 404

        bad = client.post(
            "/api/users/register",
            json={"name": "X", "mobile": "123", "age": 5, "email": "bad"},
        )
        assert bad.status_code == 400


def test_full_assessment_flow():
    with TestClient(build_app()) as client:
        user = register(client)
        sid = client.post("/api/assessments", json={"user_id": user["id"]}).json()["session_id"]

        state = client.get(f"/api/assessments/{sid}").json()
        assert state["step"] == "intro"
        assert state["scores"] is None

        state = client.post(f"/api/assessments/{sid}/rating").json()
        assert state["step"] == "rating"
        assert set(state["scores"].values()) == {5}

        state = client.put(f"/api/assessments/{sid}/scores/health", json={"score": 15}).json()
        assert state["scores"]["health"] == 10
        assert state["selected_category"] == "health"

        figure = client.get(f"/api/assessments/{sid}/figure").json()
        assert figure["data"][-1]["r"][4] == 10

        assert client.post(f"/api/assessments/{sid}/process").status_code == 202
        state = wait_for_result(client, sid)
        result = state["result"]
        assert result["narrative"] == "analysis"
        assert result["persisted"] is True
        assert result["status_line"]

        history = client.get(f"/api/users/{user['id']}/history").json()
        assert len(history) == 1
        assert history[0]["id"] == result["entry"]["id"]
        assert history[0]["scores"]["health"] == 10

        report = client.post(f"/api/assessments/{sid}/report", json={"email": "me@example.com"})
        assert report.status_code == 200
        assert report.json()["entry_id"] == result["entry"]["id"]

        state = client.post(f"/api/assessments/{sid}/redo").json()
        assert state["step"] == "rating"
        assert state["scores"]["health"] == 10


def test_invalid_transitions_and_unknown_sessions():
    with TestClient(build_app()) as client:
        user = register(client)
        sid = client.post("/api/assessments", json={"user_id": user["id"]}).json()["session_id"]

        assert client.post(f"/api/assessments/{sid}/redo").status_code == 409
        assert client.post(f"/api/assessments/{sid}/process").status_code == 409
        assert (
            client.put(f"/api/assessments/{sid}/scores/health", json={"score": 3}).status_code
            == 409
        )
        assert (
            client.post(f"/api/assessments/{sid}/report", json={"email": "a@b.co"}).status_code
            == 409
        )

        client.post(f"/api/assessments/{sid}/rating")
        assert (
            client.put(f"/api/assessments/{sid}/scores/career", json={"score": 3}).status_code
            == 404
        )
        assert client.get("/api/assessments/missing").status_code == 404
        assert client.post("/api/assessments", json={"user_id": "ghost"}).status_code == 404

        assert client.delete(f"/api/assessments/{sid}").status_code == 204
        assert client.get(f"/api/assessments/{sid}").status_code == 404


def test_trend_endpoint():
    with TestClient(build_app()) as client:
        user = register(client)
        complete_assessment(client, user["id"], {"health": 10})
        complete_assessment(client, user["id"], {"work": 1})

        trend = client.get(f"/api/users/{user['id']}/trend").json()
        assert trend["window_size"] == 5
        assert len(trend["points"]) == 2
        assert trend["points"][0]["average"] == round(35 / 6, 2)
        assert trend["points"][1]["average"] == round(26 / 6, 2)
        assert trend["figure"]["data"][0]["type"] == "scatter"


def test_settings_require_admin():
    with TestClient(build_app()) as client:
        user = register(client)
        admin = register(client, mobile=ADMIN_MOBILE, name="Boss")
        assert admin["role"] == "ADMIN"

        settings = client.get("/api/settings").json()
        settings["intro_text"] = "خوش آمدید"

        assert client.put("/api/settings", json=settings).status_code == 422
        denied = client.put("/api/settings", json=settings, headers={"X-User-Id": user["id"]})
        assert denied.status_code == 403
        saved = client.put("/api/settings", json=settings, headers={"X-User-Id": admin["id"]})
        assert saved.status_code == 200
        assert client.get("/api/settings").json()["intro_text"] == "خوش آمدید"


def test_admin_statistics_export_and_notifications():
    with TestClient(build_app()) as client:
        user = register(client)
        admin = register(client, mobile=ADMIN_MOBILE, name="Boss")
        complete_assessment(client, user["id"], {"health": 9})
        headers = {"X-User-Id": admin["id"]}

        assert client.get("/api/admin/statistics", headers={"X-User-Id": user["id"]}).status_code == 403

        stats = client.get("/api/admin/statistics", headers=headers).json()
        assert stats["total_users"] == 2
        assert stats["total_entries"] == 1
        assert stats["category_averages"]["health"] == 9.0
        assert stats["category_averages"]["work"] == 5.0

        exported = client.get("/api/admin/export", headers=headers).json()
        assert exported["entry_count"] == 1
        assert exported["entries"][0]["User"] == "Sara"

        xlsx = client.get("/api/admin/export", params={"format": "xlsx"}, headers=headers)
        assert xlsx.status_code == 200
        assert xlsx.content[:2] == b"PK"

        sent = client.post("/api/admin/notifications", json={"channel": "whatsapp"}, headers=headers)
        assert sent.json() == {"channel": "whatsapp", "queued": 2}
        bad = client.post("/api/admin/notifications", json={"channel": "fax"}, headers=headers)
        assert bad.status_code == 400


def test_users_listing_requires_admin():
    with TestClient(build_app()) as client:
        user = register(client)
        assert client.get("/api/users", headers={"X-User-Id": user["id"]}).status_code == 403
        assert client.get("/api/users", headers={"X-User-Id": "ghost"}).status_code == 404
