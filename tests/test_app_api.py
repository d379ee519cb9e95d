"""Tests for the application facade and the FastAPI routes."""
from __future__ import annotations

import json
import sys
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

sys.path.append(str(Path(__file__).resolve().parents[1]))

from evaluation.scenarios import office_catalog, travel_catalog
from lineup_app.app import LineupConciergeApp, read_catalog_file
from lineup_app.config import EngineConfig
from memory.history_store import InMemoryHistoryStore
from server.api import app, get_concierge

OFFICE_INTENT = {
    "weather": ["Cool"],
    "occasion": ["Business Formal"],
    "place": ["Office / Boardroom"],
    "formality": "Business Formal",
}


def _concierge(catalog=None) -> LineupConciergeApp:
    return LineupConciergeApp(
        config=EngineConfig(),
        catalog_rows=office_catalog() if catalog is None else catalog,
        history_store=InMemoryHistoryStore(),
    )


@pytest.fixture
def client():
    concierge = _concierge(office_catalog() + travel_catalog())
    app.dependency_overrides[get_concierge] = lambda: concierge
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


def test_recommend_look_records_history_and_flags_forced_repeats() -> None:
    concierge = _concierge()

    first = concierge.recommend_look(actor_key="user-1", intent=OFFICE_INTENT)
    second = concierge.recommend_look(actor_key="user-1", intent=OFFICE_INTENT)

    assert first["status"] == "ok"
    assert first["item_ids"] == [110, 210, 310, 410]
    assert first["label"] == "engine"
    assert first["diversity_exhausted"] is False
    # only one business formal piece per category, so the repeat is unavoidable
    assert second["signature"] == first["signature"]
    assert second["diversity_exhausted"] is True
    assert second["penalties"]["repeat"] == 12.0
    assert len(concierge.history_store.recent_lineups("user-1", "single")) == 2


def test_recommend_look_diversifies_when_alternatives_exist() -> None:
    concierge = _concierge(travel_catalog())
    intent = {"weather": ["Mild"], "occasion": ["Business Formal"], "place": ["Office / Boardroom"]}

    first = concierge.recommend_look(actor_key="user-4", intent=intent)
    second = concierge.recommend_look(actor_key="user-4", intent=intent)

    assert second["signature"] != first["signature"]
    assert second["diversity_exhausted"] is False


def test_recommend_look_keeps_strict_anchor_on_repeat_requests() -> None:
    rows = [
        {"id": 1, "type": "Parka", "suitableWeather": ["All Season"]},
        {"id": 2, "type": "Shirt", "suitableWeather": ["All Season"]},
        {"id": 3, "type": "Sweater", "suitableWeather": ["All Season"]},
        {"id": 4, "type": "Jeans", "suitableWeather": ["All Season"]},
        {"id": 6, "type": "Boots", "suitableWeather": ["All Season"]},
    ]
    concierge = _concierge(rows)

    first = concierge.recommend_look(actor_key="user-5", intent={}, anchor={"item_id": 2})
    second = concierge.recommend_look(actor_key="user-5", intent={}, anchor={"item_id": 2})

    assert first["item_ids"] == [1, 2, 4, 6]
    assert second["item_ids"] == [1, 2, 4, 6]
    assert second["label"] == "engine"
    assert second["fallback_used"] is False
    assert second["diversity_exhausted"] is True
    assert second["rejected_proposals"] == []


def test_recommend_look_reranks_supplied_proposals() -> None:
    concierge = _concierge()

    response = concierge.recommend_look(
        actor_key="user-2",
        intent=OFFICE_INTENT,
        proposals=[
            {"item_ids": [110, 210, 310, 410], "generator_confidence": 40, "label": "a"},
            {"item_ids": [110, 210, 310, 410, 999], "generator_confidence": 90, "label": "b"},
        ],
        record_history=False,
    )

    assert response["label"] == "b"
    assert response["fallback_used"] is False
    assert concierge.history_store.recent_lineups("user-2", "single") == []


def test_invalid_look_request_needs_review() -> None:
    response = _concierge().recommend_look(actor_key="", intent={"mood": "happy"})

    assert response["status"] == "needs_review"
    assert {tuple(detail["loc"])[0] for detail in response["details"]} == {"actor_key", "intent"}


def test_plan_trip_rejects_unknown_reason() -> None:
    response = _concierge(travel_catalog()).plan_trip(
        actor_key="user-3",
        destination="Lisbon",
        reason="conference",
        start_date="2026-03-02",
        end_date="2026-03-03",
        intent={"weather": ["Mild"]},
    )
    assert response["status"] == "needs_review"


def test_read_catalog_file_accepts_wrapped_items(tmp_path: Path) -> None:
    path = tmp_path / "catalog.json"
    path.write_text(json.dumps({"items": office_catalog()}))
    assert len(read_catalog_file(path)) == len(office_catalog())

    path.write_text(json.dumps({"items": {"id": 1}}))
    with pytest.raises(ValueError):
        read_catalog_file(path)


def test_healthz(client: TestClient) -> None:
    response = client.get("/healthz")
    assert response.status_code == 200
    assert response.json()["catalog_items"] == len(office_catalog()) + len(travel_catalog())


def test_looks_endpoint(client: TestClient) -> None:
    response = client.post("/looks", json={"actor_key": "api-user", "intent": OFFICE_INTENT})
    assert response.status_code == 200
    payload = response.json()
    assert len(payload["item_ids"]) == 4
    assert payload["interpreted_intent"]["formality"] == "business formal"


def test_looks_endpoint_rejects_malformed_body(client: TestClient) -> None:
    response = client.post("/looks", json={"intent": OFFICE_INTENT})
    assert response.status_code == 422


def test_trips_endpoint_plans_every_day(client: TestClient) -> None:
    response = client.post(
        "/trips",
        json={
            "actor_key": "api-user",
            "destination": "Lisbon",
            "reason": "Office",
            "start_date": "2026-03-02",
            "end_date": "2026-03-04",
            "intent": {"weather": ["Mild"], "occasion": ["Business Formal"], "place": ["Office / Boardroom"]},
        },
    )
    assert response.status_code == 200
    payload = response.json()
    assert [day["kind"] for day in payload["days"]] == ["transit", "stay", "transit"]
    assert payload["locks"]["outerwear"] == 120


def test_trips_endpoint_reports_lock_conflict() -> None:
    concierge = _concierge(travel_catalog(include_outerwear=False))
    app.dependency_overrides[get_concierge] = lambda: concierge
    try:
        response = TestClient(app).post(
            "/trips",
            json={
                "actor_key": "api-user",
                "destination": "Lisbon",
                "start_date": "2026-03-02",
                "end_date": "2026-03-03",
                "intent": {"weather": ["Mild"]},
            },
        )
    finally:
        app.dependency_overrides.clear()

    assert response.status_code == 400
    assert response.json()["detail"]["failure"]["kind"] == "lock_conflict"


def test_trips_endpoint_rejects_long_trips(client: TestClient) -> None:
    response = client.post(
        "/trips",
        json={
            "actor_key": "api-user",
            "destination": "Lisbon",
            "start_date": "2026-03-01",
            "end_date": "2026-05-01",
            "intent": {},
        },
    )
    assert response.status_code == 422


def test_feedback_endpoint(client: TestClient) -> None:
    response = client.post(
        "/feedback",
        json={"actor_key": "api-user", "item_ids": [410, 110, 310, 210], "vote": "down", "formality": "Business Formal"},
    )
    assert response.status_code == 200
    assert response.json() == {"status": "ok", "signature": "110-210-310-410", "vote": "down", "mode": "single"}
