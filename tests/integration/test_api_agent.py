from __future__ import annotations

from fastapi.testclient import TestClient

from hhpilot.api.app import create_app
from hhpilot.api.deps import get_agent, get_assistant, get_hh
from hhpilot.config import get_settings
from hhpilot.core.supervisor import Supervisor
from hhpilot.db.models import ActivityEvent, DailyStats, SearchTag, Vacancy
from hhpilot.types import SearchTags, TokenGrant


def _client(fake_hh=None, fake_assistant=None) -> tuple[TestClient, Supervisor]:
    app = create_app(run_supervisor=False)
    supervisor = Supervisor(settings=get_settings(), sleep=lambda seconds: None)
    app.dependency_overrides[get_agent] = lambda: supervisor
    if fake_hh is not None:
        app.dependency_overrides[get_hh] = lambda: fake_hh
    if fake_assistant is not None:
        app.dependency_overrides[get_assistant] = lambda: fake_assistant
    return TestClient(app), supervisor


def test_agent_start_stop_status() -> None:
    client, supervisor = _client()

    status = client.get("/api/agent/status")
    assert status.status_code == 200
    assert status.json()["running"] is False
    assert status.json()["authorized"] is False
    assert status.json()["last_search"] is None

    started = client.post("/api/agent/start")
    assert started.json() == {"running": True, "changed": True}
    assert client.post("/api/agent/start").json()["changed"] is False
    assert supervisor.is_running()

    stopped = client.post("/api/agent/stop")
    assert stopped.json() == {"running": False, "changed": True}


def test_settings_roundtrip_and_validation() -> None:
    client, _ = _client()

    defaults = client.get("/api/settings").json()
    assert defaults["auto_tags_enabled"] is True
    assert defaults["min_ai_score"] == 50
    assert defaults["auto_apply_enabled"] is True
    assert defaults["search_interval_minutes"] == 60

    payload = {"search_text": "python", "area_ids": ["1", "2"], "min_ai_score": 70, "search_interval_minutes": 30}
    updated = client.put("/api/settings", json=payload)
    assert updated.status_code == 200
    assert updated.json()["area_ids"] == ["1", "2"]
    assert client.get("/api/settings").json()["min_ai_score"] == 70

    assert client.put("/api/settings", json={"min_ai_score": 101}).status_code == 422
    assert client.put("/api/settings", json={"search_interval_minutes": 0}).status_code == 422


def test_tags_toggle_and_generate(session, fake_assistant, portfolio) -> None:
    fake_assistant.tags = SearchTags(suggested_queries=["python developer", "backend engineer"])
    client, _ = _client(fake_assistant=fake_assistant)

    generated = client.post("/api/tags/generate")
    assert generated.status_code == 200
    assert generated.json()["queries"] == ["python developer", "backend engineer"]

    tags = client.get("/api/tags").json()
    assert [tag["value"] for tag in tags] == ["python developer", "backend engineer"]

    toggled = client.post(f"/api/tags/{tags[0]['id']}/toggle")
    assert toggled.json()["is_active"] is False
    assert client.post("/api/tags/9999/toggle").status_code == 404
    assert session.query(SearchTag).filter_by(is_active=True).count() == 1
    assert session.query(ActivityEvent).filter_by(event_type="ai").count() == 1


def test_generate_tags_requires_portfolio(fake_assistant) -> None:
    client, _ = _client(fake_assistant=fake_assistant)
    assert client.post("/api/tags/generate").status_code == 409


def test_vacancy_views_and_ignore(session) -> None:
    session.add_all(
        [
            Vacancy(remote_vacancy_id="v1", title="One", status="applied", ai_score=80),
            Vacancy(remote_vacancy_id="v2", title="Two", status="skipped", ai_score=20),
        ]
    )
    session.commit()
    client, _ = _client()

    page = client.get("/api/vacancies", params={"status": "skipped"}).json()
    assert page["total"] == 1
    assert page["items"][0]["title"] == "Two"

    vacancy_id = page["items"][0]["id"]
    detail = client.get(f"/api/vacancies/{vacancy_id}").json()
    assert detail["applications"] == []
    assert detail["chats"] == []

    assert client.post(f"/api/vacancies/{vacancy_id}/ignore").json()["status"] == "ignored"
    assert client.get("/api/vacancies/9999").status_code == 404

    stats = client.get("/api/stats").json()
    assert stats["total_vacancies"] == 2
    assert stats["applied"] == 1
    assert stats["avg_ai_score"] == 50.0


def test_activity_and_daily_stats(session) -> None:
    from datetime import date

    session.add(ActivityEvent(event_type="system", description="agent started"))
    session.add(DailyStats(date=date.today(), applications_sent=3))
    session.commit()
    client, _ = _client()

    activity = client.get("/api/activity", params={"limit": 5}).json()
    assert activity[0]["description"] == "agent started"
    daily = client.get("/api/stats/daily", params={"days": 7}).json()
    assert daily[0]["applications_sent"] == 3
    assert client.get("/api/stats").json()["today_applications"] == 3


def test_oauth_callback_stores_token(session, fake_hh) -> None:
    grants: list[str] = []

    def exchange_code(client_id, client_secret, code, redirect_uri):
        grants.append(code)
        return TokenGrant(access_token="a1", refresh_token="r1", expires_in=3600)

    fake_hh.exchange_code = exchange_code
    client, _ = _client(fake_hh=fake_hh)

    response = client.get("/api/auth/hh/callback", params={"code": "abc"})
    assert response.status_code == 200
    assert response.json()["authorized"] is True
    assert grants == ["abc"]
    assert client.get("/api/agent/status").json()["authorized"] is True


def test_health() -> None:
    client, _ = _client()
    assert client.get("/health").json() == {"status": "ok"}
