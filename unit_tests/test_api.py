# unit_tests/test_api.py
"""
Unit Tests for the CoachCore API
================================
Run with: python -m pytest unit_tests/test_api.py -v
"""

import sys
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

import api.app as app_module
from agents.coach_agent import CoachAgent, FALLBACK_REPLY
from agents.orchestrator import ToolOrchestrator
from conftest import BrokenGenerator, EchoGenerator

FULL_PROFILE = {
    "name": "Alex",
    "age": 30,
    "weight_lbs": 176.37,
    "height_feet": 5,
    "height_inches": 11,
    "sex": "male",
    "activity_level": "moderately_active",
}


@pytest.fixture
def client():
    yield TestClient(app_module.app)
    app_module.app.dependency_overrides.clear()


def _use_generator(generator):
    agent = CoachAgent(generator=generator, orchestrator=ToolOrchestrator())
    app_module.app.dependency_overrides[app_module.get_coach_agent] = lambda: agent


# =============================================================================
# STATELESS ENDPOINTS
# =============================================================================

def test_health(client):
    response = client.get("/api/v1/health")
    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "online"
    assert body["system"] == "CoachCore"


def test_classify(client):
    response = client.post("/api/v1/intent/classify", json={"message": "macros for the massive program"})
    body = response.json()
    assert body["tags"] == ["nutrition_calculation", "program_lookup"]
    assert "massive" in body["matched_keywords"]["program_lookup"]


def test_calculate_expression(client):
    ok = client.post("/api/v1/calculate/expression", json={"expression": "(10 * 80) + 5"}).json()
    assert ok["is_valid"] is True
    assert ok["result"] == 805

    bad = client.post("/api/v1/calculate/expression", json={"expression": "(10 * 80"}).json()
    assert bad["is_valid"] is False
    assert bad["verification"] == "INVALID"


def test_calculate_nutrition(client):
    print("\n" + "="*60)
    print("TEST: Nutrition endpoint")
    print("="*60)

    response = client.post("/api/v1/calculate/nutrition", json={"profile": FULL_PROFILE})
    assert response.status_code == 200
    body = response.json()
    print(f"   status={body['status']} tdee={body['result']['tdee']['tdee']}")

    assert body["status"] == "success"
    assert body["result"]["bmr"]["final_result"] == 1782
    assert body["result"]["tdee"]["tdee"] == 2762
    assert body["profile_warnings"] == []


def test_calculate_nutrition_missing_data(client):
    body = client.post("/api/v1/calculate/nutrition", json={"profile": {"weight_lbs": 200}}).json()
    assert body["status"] == "missing_data"
    assert body["result"]["fields"] == ["age", "height", "sex"]


def test_calculate_nutrition_rejects_impossible_profile(client):
    response = client.post("/api/v1/calculate/nutrition", json={"profile": {**FULL_PROFILE, "age": 5}})
    assert response.status_code == 422
    assert "Age must be between 13 and 120" in response.json()["detail"]


def test_program_day(client):
    body = client.post("/api/v1/program/day", json={"program": "shredded", "day_type": "high"}).json()
    assert body["program"] == "shredded"
    assert body["day"]["macros"]["daily_totals"] == {"protein": 220, "carbs": 855, "fat": 0}

    default = client.post("/api/v1/program/day", json={"day_type": "low"}).json()
    assert default["program"] == "massive"

    assert client.post("/api/v1/program/day", json={"day_type": "rest"}).status_code == 422


def test_program_plateau(client):
    body = client.post("/api/v1/program/plateau", json={"progress": [
        {"week": 1, "weight_change": 0.2},
        {"week": 2, "weight_change": 0.1},
    ]}).json()
    assert body["should_add"] is True


# =============================================================================
# CHAT
# =============================================================================

def test_chat_context(client):
    response = client.post("/api/v1/chat/context", json={
        "message": "what are my macros?",
        "profile": FULL_PROFILE,
        "history": [{"role": "user", "content": "hi"}],
    })
    body = response.json()
    assert body["tags"] == ["nutrition_calculation"]
    assert body["bundle"]["tools_used"] == ["nutrition_calculator"]
    assert "- TDEE: 2762 calories" in body["payload"]["user_payload"]
    assert "user: hi" in body["payload"]["user_payload"]


def test_chat_ask(client):
    _use_generator(EchoGenerator(reply="Eat 2762 calories."))
    response = client.post("/api/v1/chat/ask", json={"message": "how many calories?", "profile": FULL_PROFILE})
    body = response.json()
    assert response.status_code == 200
    assert body["reply"] == "Eat 2762 calories."
    assert body["tools_used"] == ["nutrition_calculator"]
    assert body["degraded"] is False


def test_chat_ask_generation_failure(client):
    _use_generator(BrokenGenerator(RuntimeError("model down")))
    body = client.post("/api/v1/chat/ask", json={"message": "hello"}).json()
    assert body["reply"] == FALLBACK_REPLY
    assert body["degraded"] is True


def test_chat_ask_empty_message(client):
    _use_generator(EchoGenerator())
    body = client.post("/api/v1/chat/ask", json={"message": "   "}).json()
    assert body["reply"] == "Hi! How can I help you today?"


def test_chat_ask_without_api_key(client, monkeypatch):
    monkeypatch.delenv("GOOGLE_API_KEY", raising=False)
    monkeypatch.setattr(app_module, "_COACH_AGENT", None)
    response = client.post("/api/v1/chat/ask", json={"message": "hello"})
    assert response.status_code == 503
    assert "GOOGLE_API_KEY" in response.json()["detail"]


def test_chat_stream(client):
    _use_generator(EchoGenerator(chunks=("Eat ", "more ", "rice.")))
    response = client.post("/api/v1/chat/stream", json={"message": "high day carbs?"})
    assert response.status_code == 200
    assert response.text == "Eat more rice."
