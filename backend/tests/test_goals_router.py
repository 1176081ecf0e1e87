from __future__ import annotations

from datetime import date
from uuid import uuid4

import httpx
import pytest
from fastapi.testclient import TestClient

from savings_planner.config import Settings
from savings_planner.main import create_app
from savings_planner.services import goals_service
from savings_planner.services.goal_store import GOALS_KEY
from savings_planner.services.storage import InMemoryKeyValueStore


def _rate_transport(inr: float = 80.0) -> httpx.MockTransport:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            200,
            json={
                "result": "success",
                "time_last_update_utc": "Sun, 01 Mar 2026 00:00:01 +0000",
                "conversion_rates": {"USD": 1, "INR": inr},
            },
        )

    return httpx.MockTransport(handler)


def _settings(**overrides) -> Settings:
    values = {"exchange_rate_api_key": "test-key", "storage_dir": "", "log_level": "WARNING"}
    values.update(overrides)
    return Settings(**values)


@pytest.fixture
def storage():
    return InMemoryKeyValueStore()


@pytest.fixture
def client(monkeypatch, storage):
    monkeypatch.setattr(goals_service, "_today", lambda: date(2026, 3, 1))
    app = create_app(_settings(), storage=storage, transport=_rate_transport())

    with TestClient(app) as test_client:
        # Pin the rate so converted amounts are deterministic.
        test_client.post("/exchange-rate/refresh")
        yield test_client


def _create(client, **overrides):
    body = {"name": "Emergency Fund", "target_amount": "1000.00", "currency": "USD"}
    body.update(overrides)
    return client.post("/goals", json=body)


def test_create_goal_endpoint_success(client, storage) -> None:
    response = _create(client)

    assert response.status_code == 201
    payload = response.json()
    assert payload["name"] == "Emergency Fund"
    assert payload["target_amount"] == "1000.00"
    assert payload["current_amount"] == "0.00"
    assert payload["progress_pct"] == "0.00"
    assert payload["converted_currency"] == "INR"
    assert payload["converted_target_amount"] == "80000.00"
    assert payload["currency_locked"] is False
    assert storage.get(GOALS_KEY) is not None


def test_create_goal_rejects_long_name(client) -> None:
    response = _create(client, name="x" * 51)

    assert response.status_code == 422
    assert response.json()["detail"]["errors"] == {"name": "Goal name must be 50 characters or less"}
    assert client.get("/goals").json() == []


def test_create_goal_rejects_unknown_currency(client) -> None:
    response = _create(client, currency="EUR")

    assert response.status_code == 422
    assert "currency" in response.json()["detail"]["errors"]


def test_contribution_flow_updates_progress(client) -> None:
    goal_id = _create(client).json()["id"]

    response = client.post(
        f"/goals/{goal_id}/contributions",
        json={"amount": "250", "date": "2024-01-01"},
    )

    assert response.status_code == 201
    payload = response.json()
    assert payload["current_amount"] == "250.00"
    assert payload["progress_pct"] == "25.00"
    assert payload["remaining_amount"] == "750.00"
    assert payload["contribution_count"] == 1
    assert payload["currency_locked"] is True

    contributions = client.get(f"/goals/{goal_id}/contributions").json()
    assert [(c["amount"], c["date"]) for c in contributions] == [("250.00", "2024-01-01")]


def test_future_contribution_is_rejected(client) -> None:
    goal_id = _create(client).json()["id"]

    response = client.post(
        f"/goals/{goal_id}/contributions",
        json={"amount": "10", "date": "2026-03-02"},
    )

    assert response.status_code == 422
    assert response.json()["detail"]["errors"] == {"date": "Date cannot be in the future"}
    assert client.get(f"/goals/{goal_id}").json()["current_amount"] == "0.00"


def test_patch_keeps_currency_once_locked(client) -> None:
    goal_id = _create(client).json()["id"]
    client.post(f"/goals/{goal_id}/contributions", json={"amount": "5", "date": "2026-03-01"})

    response = client.patch(
        f"/goals/{goal_id}",
        json={"name": "Rainy Day", "target_amount": "2000", "currency": "INR"},
    )

    assert response.status_code == 200
    payload = response.json()
    assert payload["name"] == "Rainy Day"
    assert payload["target_amount"] == "2000.00"
    assert payload["currency"] == "USD"


def test_patch_changes_currency_while_unlocked(client) -> None:
    goal_id = _create(client).json()["id"]

    response = client.patch(
        f"/goals/{goal_id}",
        json={"name": "Goa Trip", "target_amount": "50000", "currency": "INR"},
    )

    assert response.status_code == 200
    assert response.json()["currency"] == "INR"
    assert response.json()["converted_target_amount"] == "625.00"


def test_missing_goal_returns_404(client) -> None:
    missing = uuid4()

    assert client.get(f"/goals/{missing}").status_code == 404
    assert client.patch(f"/goals/{missing}", json={"name": "X", "target_amount": "1"}).status_code == 404
    assert client.post(
        f"/goals/{missing}/contributions",
        json={"amount": "1", "date": "2026-01-01"},
    ).status_code == 404


def test_delete_is_idempotent_and_scoped(client) -> None:
    keep_id = _create(client, name="Keep").json()["id"]
    drop_id = _create(client, name="Drop").json()["id"]

    assert client.delete(f"/goals/{drop_id}").status_code == 204
    assert client.delete(f"/goals/{drop_id}").status_code == 204

    remaining = client.get("/goals").json()
    assert [g["id"] for g in remaining] == [keep_id]


def test_goals_survive_app_restart(monkeypatch, storage) -> None:
    monkeypatch.setattr(goals_service, "_today", lambda: date(2026, 3, 1))

    with TestClient(create_app(_settings(), storage=storage, transport=_rate_transport())) as first:
        goal_id = _create(first).json()["id"]
        first.post(f"/goals/{goal_id}/contributions", json={"amount": "40", "date": "2026-02-01"})

    with TestClient(create_app(_settings(), storage=storage, transport=_rate_transport())) as second:
        goal = second.get(f"/goals/{goal_id}").json()

    assert goal["current_amount"] == "40.00"
    assert goal["contribution_count"] == 1


def test_contributions_are_listed_newest_date_first(client) -> None:
    goal_id = _create(client).json()["id"]
    client.post(f"/goals/{goal_id}/contributions", json={"amount": "20", "date": "2026-02-01"})
    client.post(f"/goals/{goal_id}/contributions", json={"amount": "10", "date": "2026-01-01"})
    client.post(f"/goals/{goal_id}/contributions", json={"amount": "30", "date": "2026-02-01"})

    listed = client.get(f"/goals/{goal_id}/contributions").json()
    goal = client.get(f"/goals/{goal_id}").json()

    # Same-day entries: the later one first.
    assert [(c["date"], c["amount"]) for c in listed] == [
        ("2026-02-01", "30.00"),
        ("2026-02-01", "20.00"),
        ("2026-01-01", "10.00"),
    ]
    assert [c["amount"] for c in goal["contributions"]] == ["30.00", "20.00", "10.00"]
    assert goal["current_amount"] == "60.00"


def test_goal_response_includes_formatted_amounts(client) -> None:
    goal_id = _create(client, target_amount="1234.5").json()["id"]
    client.post(f"/goals/{goal_id}/contributions", json={"amount": "100", "date": "2026-03-01"})

    payload = client.get(f"/goals/{goal_id}").json()

    assert payload["formatted_target"] == "$1,234.50"
    assert payload["formatted_current"] == "$100.00"
    assert payload["formatted_converted_target"] == "₹98,760.00"
