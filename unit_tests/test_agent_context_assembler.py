# unit_tests/test_agent_context_assembler.py
"""
Unit Tests for Context Assembler
================================
Run with: python -m pytest unit_tests/test_agent_context_assembler.py -v
"""

import asyncio
import sys
from datetime import datetime, timezone
from pathlib import Path
from zoneinfo import ZoneInfo

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from agents.context_assembler import (
    NO_HISTORY,
    NO_KNOWLEDGE,
    NO_PROFILE,
    NO_TOOLS,
    PRODUCTS_UNAVAILABLE,
    SYSTEM_INSTRUCTION,
    assemble_context,
    datetime_context,
    local_now,
    profile_context,
    render_history,
    time_of_day,
)
from agents.intent_classifier import IntentTag
from agents.orchestrator import ToolOrchestrator, ToolResultBundle
from conftest import FakeProductCatalog
from tools.schemas import Profile

EASTERN = ZoneInfo("America/New_York")
MONDAY_MORNING = datetime(2025, 3, 3, 9, 5, tzinfo=EASTERN)


def _bundle(tags, text, profile=None, **collaborators):
    return asyncio.run(ToolOrchestrator(**collaborators).run(tags, text, profile))


# =============================================================================
# TIME
# =============================================================================

def test_datetime_context():
    current, context = datetime_context(MONDAY_MORNING)
    assert current == "Monday, March 3, 2025 at 9:05 AM (EST)"
    assert context == "morning, weekday"


def test_datetime_context_weekend_afternoon():
    current, context = datetime_context(datetime(2025, 3, 8, 15, 30, tzinfo=EASTERN))
    assert current == "Saturday, March 8, 2025 at 3:30 PM (EST)"
    assert context == "afternoon, weekend"


def test_time_of_day_boundaries():
    assert time_of_day(4) == "early morning"
    assert time_of_day(6) == "morning"
    assert time_of_day(12) == "afternoon"
    assert time_of_day(17) == "evening"
    assert time_of_day(21) == "night"
    assert time_of_day(2) == "night"


def test_local_now_converts_aware_times():
    utc_noon = datetime(2025, 7, 1, 16, 0, tzinfo=timezone.utc)
    local = local_now(utc_noon, "America/New_York")
    assert local.hour == 12
    assert local.tzname() == "EDT"

    naive = local_now(datetime(2025, 7, 1, 8, 0), "America/New_York")
    assert naive.hour == 8
    assert naive.tzinfo is not None


# =============================================================================
# PROFILE
# =============================================================================

def test_profile_context(full_profile):
    text = profile_context(full_profile)
    print(f"\n   {text}")
    assert text.startswith("User prefers to be called: Alex; Age: 30 years")
    assert "Height: 5'11\"" in text
    assert "Weight: 176.37 lbs" in text
    assert "Body fat: 15%" in text
    assert "Primary goal: maintain" in text


def test_profile_context_drops_generic_names():
    assert "prefers to be called" not in profile_context(Profile(name="user 2", age=30))
    assert "prefers to be called" not in profile_context(Profile(name="Friend", age=30))


def test_profile_context_empty():
    assert profile_context(None) == NO_PROFILE
    assert profile_context(Profile()) == NO_PROFILE


# =============================================================================
# ASSEMBLY
# =============================================================================

def test_empty_bundle_sections():
    print("\n" + "="*60)
    print("TEST: Empty bundle")
    print("="*60)

    payload = assemble_context("hello", ToolResultBundle(), None, [], MONDAY_MORNING)
    print(payload.user_payload)

    text = payload.user_payload
    assert payload.system_instruction == SYSTEM_INSTRUCTION
    assert NO_PROFILE in text
    assert NO_KNOWLEDGE in text
    assert NO_TOOLS in text
    assert NO_HISTORY in text
    assert "**CURRENT TIME:** Monday, March 3, 2025 at 9:05 AM (EST)" in text
    assert text.endswith("**USER QUESTION:** hello")

    order = ["**USER CONTEXT:**", "**CURRENT TIME:**", "**KNOWLEDGE BASE REFERENCES:**",
             "**TOOL RESULTS:**", "**RECENT CONVERSATION:**", "**USER QUESTION:**"]
    positions = [text.index(marker) for marker in order]
    assert positions == sorted(positions)


def test_nutrition_numbers_copied_verbatim(full_profile):
    bundle = _bundle({IntentTag.NUTRITION_CALCULATION}, "my macros", full_profile)
    text = assemble_context("my macros", bundle, full_profile, [], MONDAY_MORNING).user_payload

    assert "**NUTRITION CALCULATIONS (VERIFIED BY TOOLS):**" in text
    assert "- BMR: 1782 calories (mifflin_st_jeor method)" in text
    assert "- TDEE: 2762 calories" in text
    assert "- Target: 2762 calories (weight maintenance)" in text
    assert "- Protein: 128g (512 cal)" in text
    assert NO_TOOLS not in text


def test_failed_products_do_not_hide_nutrition(full_profile):
    catalog = FakeProductCatalog(error=RuntimeError("down"))
    tags = {IntentTag.NUTRITION_CALCULATION, IntentTag.PRODUCT_LOOKUP}
    bundle = _bundle(tags, "creatine and calories", full_profile, product_catalog=catalog)
    payload = assemble_context("creatine and calories", bundle, full_profile, [], MONDAY_MORNING)

    assert PRODUCTS_UNAVAILABLE in payload.user_payload
    assert "- TDEE: 2762 calories" in payload.user_payload
    assert payload.tools_failed == ("product_catalog",)
    assert payload.tools_used == ("nutrition_calculator",)


def test_product_results_rendered(product_catalog):
    bundle = _bundle({IntentTag.PRODUCT_LOOKUP}, "creatine", product_catalog=product_catalog)
    text = assemble_context("creatine", bundle, None, [], MONDAY_MORNING).user_payload
    assert "- Found relevant products (90.0% confidence)" in text
    assert "**Creatine Monohydrate**" in text


def test_missing_data_notice(weight_only_profile):
    bundle = _bundle({IntentTag.NUTRITION_CALCULATION}, "my calories", weight_only_profile)
    text = assemble_context("my calories", bundle, weight_only_profile, [], MONDAY_MORNING).user_payload
    assert "**MISSING DATA NOTICE (for agent awareness):**" in text
    assert "- Missing: age, height, sex" in text


def test_program_day_with_estimates(weight_only_profile):
    print("\n" + "="*60)
    print("TEST: Program rendering")
    print("="*60)

    bundle = _bundle({IntentTag.PROGRAM_LOOKUP}, "massive program high day", weight_only_profile)
    text = assemble_context("massive program high day", bundle, weight_only_profile,
                            [], MONDAY_MORNING).user_payload
    print(text)

    assert "- Program: MASSIVE" in text
    assert "- Lean Body Mass: 150 lbs" in text
    assert "- Body Fat: 25% (ESTIMATED using BMI method)" in text
    assert "- Height: 5'10\" (ESTIMATED)" in text
    assert "- Daily Totals: 190g protein, 665g carbs, 0g added fat" in text
    assert "- Pre Workout Meal: 30g protein, 105g carbs, 0g added fat" in text
    assert "**DATA ESTIMATION INFO (for agent awareness):**" in text


def test_program_all_days_with_mismatch():
    profile = Profile(weight_lbs=180, height_feet=6, body_fat_percentage=12, goal="build muscle")
    bundle = _bundle({IntentTag.PROGRAM_LOOKUP}, "shredded program", profile)
    text = assemble_context("shredded program", bundle, profile, [], MONDAY_MORNING).user_payload

    assert "- Body Fat: 12% (from profile)" in text
    assert "- Height: 6'0\" (from profile)" in text
    assert "**HIGH DAY (Hardest Training):**" in text
    assert "  - Carbs: 855g" in text
    assert "**PROGRAM OPTIMIZATION NOTICE (for agent awareness):**" in text
    assert "suggest MASSIVE" in text
    assert "DATA ESTIMATION INFO" not in text


def test_calculation_rendered():
    bundle = _bundle({IntentTag.ARITHMETIC}, "what is 2500 * 0.8")
    text = assemble_context("what is 2500 * 0.8", bundle, None, [], MONDAY_MORNING).user_payload
    assert "**CALCULATION RESULT:**\n2500 * 0.8 = 2000" in text


def test_topic_notes():
    bundle = ToolResultBundle(tags=("sensitive_topic",))
    text = assemble_context("steroids?", bundle, None, [], MONDAY_MORNING).user_payload
    assert "**TOPIC NOTES:**" in text
    assert "Do not provide dosing" in text

    plain = assemble_context("hi", ToolResultBundle(), None, [], MONDAY_MORNING).user_payload
    assert "**TOPIC NOTES:**" not in plain


def test_knowledge_rendered(knowledge_retriever):
    bundle = _bundle(set(), "protein on a cut", knowledge_retriever=knowledge_retriever)
    text = assemble_context("protein on a cut", bundle, None, [], MONDAY_MORNING).user_payload
    assert "**Reference 1:**\n**Previous Question:** How much protein on a cut?" in text
    assert NO_KNOWLEDGE not in text


def test_history_is_truncated():
    history = [{"role": "user", "content": f"msg {i}"} for i in range(35)]
    lines = render_history(history, 30).splitlines()
    assert len(lines) == 30
    assert lines[0] == "user: msg 5"
    assert lines[-1] == "user: msg 34"
    assert render_history(history, 0) == ""


def test_assembly_is_deterministic(full_profile):
    bundle = _bundle({IntentTag.NUTRITION_CALCULATION}, "my macros", full_profile)
    first = assemble_context("my macros", bundle, full_profile, [], MONDAY_MORNING)
    second = assemble_context("my macros", bundle, full_profile, [], MONDAY_MORNING)
    assert first == second
