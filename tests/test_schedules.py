import json
from datetime import datetime, timedelta

import httpx
import pytest

from autopostr.dependencies.clients import get_workflow_client
from autopostr.infrastructure.workflow_client import WorkflowWebhookClient
from autopostr.main import app
from autopostr.models.schedule import Schedule
from autopostr.services.schedule_service import cron_expressions, interval_ms, next_execution, time_between_ms

SCHEDULE = {
    "name": "Morning rotation",
    "interval_value": 2,
    "interval_unit": "hours",
    "time_between_posts": 30,
    "time_between_unit": "seconds",
    "days_of_week": [3, 1, 1],
    "times": ["09:05", "18:30"],
    "timezone": "Europe/Berlin",
}


@pytest.fixture
def webhook():
    calls = []
    state = {"status": 200}

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return httpx.Response(state["status"], json={"received": True})

    app.dependency_overrides[get_workflow_client] = lambda: WorkflowWebhookClient(transport=httpx.MockTransport(handler))
    return calls, state


def test_interval_helpers():
    assert interval_ms(2, "hours") == 7_200_000
    assert interval_ms(15, "minutes") == 900_000
    assert interval_ms(1, "days") == 86_400_000
    assert time_between_ms(30, "seconds") == 30_000
    assert time_between_ms(2, "minutes") == 120_000


def test_cron_expressions():
    assert cron_expressions([1, 3], ["09:05", "18:30"]) == ["5 9 * * 1,3", "30 18 * * 1,3"]
    assert cron_expressions([], ["00:00"]) == ["0 0 * * *"]
    assert cron_expressions([0], []) == []


def test_next_execution_uses_last_run():
    now = datetime(2024, 5, 1, 12, 0)
    schedule = Schedule(user_id=None, name="s", interval_value=30, interval_unit="minutes")
    assert next_execution(schedule, now) == now + timedelta(minutes=30)
    schedule.last_executed_at = datetime(2024, 5, 1, 11, 50)
    assert next_execution(schedule, now) == datetime(2024, 5, 1, 12, 20)


def test_schedule_crud(client):
    r = client.post("/schedules", json=SCHEDULE)
    assert r.status_code == 201
    created = r.json()
    assert created["days_of_week"] == [1, 3]
    assert created["next_execution_at"] is not None
    sid = created["id"]

    assert [s["id"] for s in client.get("/schedules").json()] == [sid]

    r = client.patch(f"/schedules/{sid}", json={"is_active": False, "name": "Evening"})
    assert r.status_code == 200
    assert r.json()["is_active"] is False
    assert r.json()["name"] == "Evening"

    assert client.delete(f"/schedules/{sid}").json() == {"ok": True}
    assert client.get(f"/schedules/{sid}").status_code == 404


@pytest.mark.parametrize("patch", [{"times": ["25:00"]}, {"days_of_week": [7]}, {"interval_value": 0}, {"interval_unit": "weeks"}])
def test_schedule_validation(client, patch):
    r = client.post("/schedules", json={**SCHEDULE, **patch})
    assert r.status_code == 400
    assert "error" in r.json()


def test_feed_and_execution_reporting(client, automation_headers):
    sid = client.post("/schedules", json=SCHEDULE).json()["id"]
    inactive = client.post("/schedules", json={**SCHEDULE, "name": "off", "is_active": False}).json()["id"]

    feed = client.get("/automation/schedules", headers=automation_headers).json()
    assert feed["success"] is True
    assert [s["id"] for s in feed["schedules"]] == [sid]
    entry = feed["schedules"][0]
    assert entry["should_execute"] is True
    assert entry["interval_ms"] == 7_200_000
    assert entry["time_between_posts_ms"] == 30_000
    assert inactive not in [s["id"] for s in feed["schedules"]]

    r = client.post(
        f"/automation/schedules/{sid}/executions",
        json={"status": "completed", "workflow_execution_id": "wf-1"},
        headers=automation_headers,
    )
    assert r.status_code == 200
    assert r.json()["last_executed_at"] is not None

    entry = client.get("/automation/schedules", headers=automation_headers).json()["schedules"][0]
    assert entry["should_execute"] is False
    assert entry["last_executed_at"] is not None

    executions = client.get(f"/schedules/{sid}/executions").json()["executions"]
    assert [e["workflow_execution_id"] for e in executions] == ["wf-1"]


def test_execution_for_unknown_schedule(client, automation_headers):
    r = client.post(
        "/automation/schedules/00000000-0000-0000-0000-000000000000/executions",
        json={},
        headers=automation_headers,
    )
    assert r.status_code == 404


def test_sync_pushes_cron_expressions(client, webhook):
    calls, _ = webhook
    sid = client.post("/schedules", json={**SCHEDULE, "webhook_url": "https://flows.example/hook"}).json()["id"]

    r = client.post(f"/schedules/{sid}/sync")
    assert r.status_code == 200
    assert r.json() == {"ok": True, "synced": True, "cron_expressions": ["5 9 * * 1,3", "30 18 * * 1,3"]}
    sent = json.loads(calls[0].content)
    assert sent["scheduleId"] == sid
    assert sent["timezone"] == "Europe/Berlin"
    assert sent["cronExpressions"] == ["5 9 * * 1,3", "30 18 * * 1,3"]


def test_sync_failure_is_recorded(client, webhook):
    _, state = webhook
    state["status"] = 500
    sid = client.post("/schedules", json={**SCHEDULE, "webhook_url": "https://flows.example/hook"}).json()["id"]

    r = client.post(f"/schedules/{sid}/sync")
    assert r.json()["synced"] is False
    statuses = [e["status"] for e in client.get(f"/schedules/{sid}/executions").json()["executions"]]
    assert statuses == ["sync_failed"]


def test_sync_without_webhook_is_skipped(client, webhook):
    calls, _ = webhook
    sid = client.post("/schedules", json=SCHEDULE).json()["id"]
    assert client.post(f"/schedules/{sid}/sync").json()["synced"] is False
    assert calls == []


async def test_webhook_client_sends_secret_and_tolerates_empty_body():
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(204)

    client = WorkflowWebhookClient(secret="hook-secret", transport=httpx.MockTransport(handler))
    assert await client.post("https://hooks.example.com/sync", json={"scheduleId": "s1"}) is None
    assert seen[0].headers["X-Webhook-Secret"] == "hook-secret"
    assert json.loads(seen[0].content) == {"scheduleId": "s1"}
