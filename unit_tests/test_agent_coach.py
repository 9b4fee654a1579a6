# unit_tests/test_agent_coach.py
"""
Unit Tests for Coach Agent
==========================
Run with: python -m pytest unit_tests/test_agent_coach.py -v
"""

import asyncio
import sys
from datetime import datetime
from pathlib import Path

import pytest

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from agents.coach_agent import (
    FALLBACK_REPLY,
    CoachAgent,
    GeminiTextGenerator,
    calculate_energy_needs,
    calculate_expression,
    calculate_macro_split,
    convert_measurement,
    create_coach_agent,
    estimate_body_fat_navy,
    get_coach_tools,
    get_program_day,
)
from agents.config import GenerationUnavailableError
from agents.context_assembler import SYSTEM_INSTRUCTION
from agents.orchestrator import ToolOrchestrator
from conftest import BrokenGenerator, EchoGenerator, FakeProductCatalog

NOW = datetime(2025, 3, 3, 9, 5)


async def _collect(stream):
    return [chunk async for chunk in stream]


# =============================================================================
# RESPOND
# =============================================================================

def test_respond_uses_tool_context(full_profile):
    print("\n" + "="*60)
    print("TEST 1: Coach reply")
    print("="*60)

    generator = EchoGenerator()
    agent = CoachAgent(generator=generator)
    reply = asyncio.run(agent.respond("what are my macros?", full_profile, [], NOW))
    print(f"   reply={reply.reply!r} tools={reply.tools_used}")

    assert reply.reply == "Here are your numbers."
    assert not reply.degraded
    assert reply.tools_used == ("nutrition_calculator",)
    assert reply.tags == ("nutrition_calculation",)

    system_instruction, payload = generator.calls[0]
    assert system_instruction == SYSTEM_INSTRUCTION
    assert "- TDEE: 2762 calories" in payload


def test_generation_failure_falls_back(log_records):
    print("\n" + "="*60)
    print("TEST 2: Fallback reply")
    print("="*60)

    agent = CoachAgent(generator=BrokenGenerator(RuntimeError("quota exceeded")))
    reply = asyncio.run(agent.respond("hello", None, [], NOW))

    assert reply.reply == FALLBACK_REPLY
    assert reply.degraded
    events = [r for r in log_records if r["extra"].get("event") == "generation_failed"]
    assert len(events) == 1
    assert events[0]["level"].name == "ERROR"
    print("✅ Fallback reply returned, failure logged")


def test_generation_timeout_falls_back(log_records):
    agent = CoachAgent(generator=BrokenGenerator(asyncio.TimeoutError()))
    reply = asyncio.run(agent.respond("hello", None, [], NOW))
    assert reply.reply == FALLBACK_REPLY
    assert reply.degraded
    events = [r for r in log_records if r["extra"].get("event") == "generation_failed"]
    assert events[0]["level"].name == "WARNING"


def test_no_generator_falls_back():
    reply = asyncio.run(CoachAgent().respond("hello", None, [], NOW))
    assert reply.reply == FALLBACK_REPLY
    assert reply.degraded


def test_tool_failure_does_not_degrade_reply():
    orchestrator = ToolOrchestrator(product_catalog=FakeProductCatalog(error=RuntimeError("down")))
    agent = CoachAgent(generator=EchoGenerator(), orchestrator=orchestrator)
    reply = asyncio.run(agent.respond("do you sell creatine?", None, [], NOW))
    assert not reply.degraded
    assert reply.tools_used == ()
    assert reply.reply == "Here are your numbers."


# =============================================================================
# STREAM
# =============================================================================

def test_stream_yields_chunks():
    agent = CoachAgent(generator=EchoGenerator())
    chunks = asyncio.run(_collect(agent.respond_stream("hi", None, [], NOW)))
    assert chunks == ["Here ", "are ", "numbers."]


def test_stream_failure_before_text_yields_fallback():
    agent = CoachAgent(generator=BrokenGenerator(RuntimeError("boom")))
    chunks = asyncio.run(_collect(agent.respond_stream("hi", None, [], NOW)))
    assert chunks == [FALLBACK_REPLY]


def test_stream_failure_after_text_stops_quietly():
    agent = CoachAgent(generator=BrokenGenerator(RuntimeError("boom"), chunks_before_error=("Partial",)))
    chunks = asyncio.run(_collect(agent.respond_stream("hi", None, [], NOW)))
    assert chunks == ["Partial"]


# =============================================================================
# GEMINI GENERATOR
# =============================================================================

def test_gemini_generator_requires_api_key(monkeypatch):
    monkeypatch.delenv("GOOGLE_API_KEY", raising=False)
    with pytest.raises(GenerationUnavailableError):
        GeminiTextGenerator()


# =============================================================================
# COACH TOOLS
# =============================================================================

def test_calculate_expression_tool():
    ok = calculate_expression("20% of 2500")
    assert ok["status"] == "success"
    assert ok["result"] == 500

    bad = calculate_expression("(1 + ")
    assert bad["status"] == "error"


def test_calculate_energy_needs_tool():
    print("\n" + "="*60)
    print("TEST 3: Energy needs tool")
    print("="*60)

    result = calculate_energy_needs(30, 176.37, 5, 11, "male", "moderate")
    print(f"   BMR {result['bmr']} / TDEE {result['tdee']}")
    assert result["status"] == "success"
    assert result["bmr"] == 1782
    assert result["tdee"] == 2762
    assert result["activity_multiplier"] == 1.55
    assert len(result["steps"]) == 4

    assert calculate_energy_needs(30, 176.37, 5, 11, "unknown")["status"] == "error"


def test_calculate_macro_split_tool():
    result = calculate_macro_split(2000, 176.37)
    assert result["status"] == "success"
    assert result["protein"]["grams"] == 128
    assert calculate_macro_split(0, 176.37)["status"] == "error"


def test_get_program_day_tool():
    result = get_program_day("MASSIVE", "High")
    assert result["status"] == "success"
    assert result["macros"]["daily_totals"] == {"protein": 190, "carbs": 665, "fat": 0}
    assert get_program_day("keto", "high")["status"] == "error"
    assert get_program_day("massive", "rest")["status"] == "error"


def test_body_fat_and_conversion_tools():
    assert estimate_body_fat_navy("male", 180, 85, 38)["status"] == "success"
    assert estimate_body_fat_navy("female", 165, 75, 33)["status"] == "error"
    assert convert_measurement(100, "lbs_to_kg")["result"] == 45.36


def test_adk_agent_wiring():
    tools = get_coach_tools()
    assert len(tools) == 6

    agent = create_coach_agent()
    assert agent.name == "CoachCore"
    assert agent.output_key == "coach_response"
    assert len(agent.tools) == 6
