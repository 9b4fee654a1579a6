# agents/context_assembler.py
"""
CoachCore - Context Assembler
==============================
Turns a ToolResultBundle into the text handed to the language model.

Each tool slot renders its own section and an absent slot renders nothing,
so a failed product lookup never hides a nutrition result. All numbers are
copied from the tool results; nothing is recomputed here.
"""

import re
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence, Tuple
from zoneinfo import ZoneInfo

from pydantic import BaseModel, ConfigDict

from agents.config import ORCHESTRATOR_CONFIG
from tools.expression_evaluator import format_number, round_half_up
from tools.nutrition_calculator import ComprehensiveNutrition
from tools.program_calculator import ProgramCalculation
from tools.schemas import MissingData, Profile


# =============================================================================
# CONSTANTS
# =============================================================================

SYSTEM_INSTRUCTION = """You are CoachCore, an experienced strength and nutrition coach.

## HOW TO ANSWER
- Answer the question that was asked, conversationally and directly
- Tool results below were computed by verified calculators: quote their numbers exactly and never recompute them
- When program calculations are present, lay out the meals per day type as a clear table
- If data was estimated, mention it briefly at the end and suggest completing the profile
- When data is missing, point the user to their profile settings instead of asking in chat
- Use knowledge references for principles only; never repeat names or personal details from them
- Use **bold** for key numbers and keep bullet points for real lists
"""

GENERIC_NAMES = frozenset({"user", "client", "person", "member", "guest", "friend", "there"})
GENERIC_NAME_RE = re.compile(r"^\s*(user|client|person|member|guest)\s*\d*\s*$", re.IGNORECASE)

NO_PROFILE = "No user profile available."
NO_KNOWLEDGE = "No specific knowledge found - use your general fitness expertise."
NO_TOOLS = "No tools were executed for this query."
NO_HISTORY = "This is the start of the conversation."
PRODUCTS_UNAVAILABLE = "Product catalog temporarily unavailable"

TOPIC_NOTES = {
    "workout_topic": (
        "Training question: give practical programming advice (exercise selection, "
        "sets, reps, progression) matched to the user's experience."
    ),
    "sensitive_topic": (
        "Performance-enhancing drug question: focus on health risks, legal status and "
        "medical supervision. Do not provide dosing or cycle protocols."
    ),
}

DAY_LABELS = (
    ("low", "LOW DAY (Rest/Light Activity)"),
    ("med", "MEDIUM DAY (Regular Training)"),
    ("high", "HIGH DAY (Hardest Training)"),
)


class GenerationPayload(BaseModel):
    model_config = ConfigDict(frozen=True)

    system_instruction: str
    user_payload: str
    tools_used: Tuple[str, ...] = ()
    tools_failed: Tuple[str, ...] = ()
    tags: Tuple[str, ...] = ()


# =============================================================================
# PROFILE & TIME
# =============================================================================

def _is_generic_name(name: str) -> bool:
    cleaned = name.strip()
    return (
        not cleaned
        or len(cleaned) >= 50
        or cleaned.lower() in GENERIC_NAMES
        or GENERIC_NAME_RE.match(cleaned) is not None
    )


def profile_context(profile: Optional[Profile]) -> str:
    """
    One-line, human-readable profile summary ("; "-joined).

    Generic placeholder names ("user", "friend", "guest 2") are dropped so
    the model never addresses someone by a placeholder.
    """
    if profile is None:
        return NO_PROFILE

    parts: List[str] = []
    if profile.name and not _is_generic_name(profile.name):
        parts.append(f"User prefers to be called: {profile.name.strip()}")
    if profile.age:
        parts.append(f"Age: {format_number(profile.age)} years")
    if profile.height_feet:
        parts.append(
            f"Height: {format_number(profile.height_feet)}'{format_number(profile.height_inches or 0)}\""
        )
    if profile.weight_lbs:
        parts.append(f"Weight: {format_number(profile.weight_lbs)} lbs")
    if profile.body_fat_percentage:
        parts.append(f"Body fat: {format_number(profile.body_fat_percentage)}%")
    if profile.sex:
        parts.append(f"Sex: {profile.sex}")
    if profile.activity_level:
        parts.append(f"Activity level: {profile.activity_level}")
    if profile.goal:
        parts.append(f"Primary goal: {profile.goal}")
    if profile.program:
        parts.append(f"Program: {profile.program.upper()}")
    if profile.target_weight_lbs:
        parts.append(f"Target weight: {format_number(profile.target_weight_lbs)} lbs")
    if profile.timeline_weeks:
        parts.append(f"Timeline: {format_number(profile.timeline_weeks)} weeks")
    if profile.current_diet:
        parts.append(f"Current diet: {profile.current_diet}")
    if profile.dietary_restrictions:
        parts.append(f"Dietary restrictions: {profile.dietary_restrictions}")
    if profile.food_allergies:
        parts.append(f"Food allergies: {profile.food_allergies}")
    if profile.supplement_stack:
        parts.append(f"Current supplements: {profile.supplement_stack}")
    if profile.health_conditions:
        parts.append(f"Health conditions: {profile.health_conditions}")
    if profile.years_training:
        parts.append(f"Training experience: {format_number(profile.years_training)} years")
    if profile.additional_notes:
        parts.append(f"Additional notes: {profile.additional_notes}")

    return "; ".join(parts) if parts else NO_PROFILE


def time_of_day(hour: int) -> str:
    if 4 <= hour < 6:
        return "early morning"
    if 6 <= hour < 12:
        return "morning"
    if 12 <= hour < 17:
        return "afternoon"
    if 17 <= hour < 21:
        return "evening"
    return "night"


def local_now(now: Optional[datetime] = None, timezone: Optional[str] = None) -> datetime:
    """`now` (or the current time) converted to the coaching timezone."""
    zone = ZoneInfo(timezone or ORCHESTRATOR_CONFIG["timezone"])
    if now is None:
        return datetime.now(zone)
    if now.tzinfo is None:
        return now.replace(tzinfo=zone)
    return now.astimezone(zone)


def datetime_context(now: datetime) -> Tuple[str, str]:
    """(current date/time line, time context line) for an aware datetime."""
    hour_12 = now.hour % 12 or 12
    current = (
        f"{now.strftime('%A')}, {now.strftime('%B')} {now.day}, {now.year} at "
        f"{hour_12}:{now.minute:02d} {'AM' if now.hour < 12 else 'PM'} ({now.tzname()})"
    )
    weekend = "weekend" if now.weekday() >= 5 else "weekday"
    return current, f"{time_of_day(now.hour)}, {weekend}"


# =============================================================================
# SECTION RENDERERS
# =============================================================================

def render_knowledge(references: Sequence[Any]) -> str:
    blocks = []
    for index, reference in enumerate(references, start=1):
        question = (reference.metadata or {}).get("question")
        if question:
            blocks.append(
                f"**Reference {index}:**\n**Previous Question:** {question}\n"
                f"**Expert Answer:** {reference.content}"
            )
        else:
            blocks.append(f"**Reference {index}:** {reference.content}")
    return "\n\n".join(blocks)


def render_calculation(slot: Any) -> List[str]:
    if slot.status not in ("ok", "invalid") or slot.data is None:
        return []
    return ["**CALCULATION RESULT:**", slot.data.verification]


def render_nutrition(slot: Any) -> List[str]:
    if slot.status == "missing_data":
        return render_missing_data(slot.data)
    if slot.status != "ok" or not isinstance(slot.data, ComprehensiveNutrition):
        return []

    n = slot.data
    macros = n.macros
    lines = [
        "**NUTRITION CALCULATIONS (VERIFIED BY TOOLS):**",
        f"- BMR: {format_number(n.bmr.final_result)} calories ({n.bmr.formula_id} method)",
        f"- TDEE: {n.tdee.tdee} calories",
        f"- Target: {n.goal_adjustment.target_calories} calories ({n.goal_adjustment.explanation})",
        f"- Protein: {macros.protein.grams}g ({macros.protein.calories} cal)",
        f"- Carbs: {macros.carbs.grams}g ({macros.carbs.calories} cal)",
        f"- Fat: {macros.fat.grams}g ({macros.fat.calories} cal)",
        f"- Total verification: {macros.total_calories_from_macros} calories "
        f"({'ACCURATE' if macros.is_accurate else 'NEEDS ADJUSTMENT'})",
    ]
    lines.extend(f"- Safety note: {warning}" for warning in n.validation.warnings)
    return lines


def render_missing_data(missing: MissingData) -> List[str]:
    return [
        "**MISSING DATA NOTICE (for agent awareness):**",
        f"- {missing.message}",
        f"- Missing: {', '.join(missing.fields)}",
        "- INSTRUCTION: Direct user to profile settings, don't just ask for info in chat",
    ]


def _height_text(inches: float) -> str:
    feet = int(inches // 12)
    return f"{feet}'{format_number(round_half_up(inches - feet * 12, 1))}\""


def render_program(slot: Any) -> List[str]:
    if slot.status == "missing_data":
        return render_missing_data(slot.data)
    if slot.status != "ok" or not isinstance(slot.data, ProgramCalculation):
        return []

    p = slot.data
    lines = [
        "**PROGRAM CALCULATIONS (VERIFIED BY TOOLS):**",
        f"- Program: {p.program.upper()}",
        f"- Lean Body Mass: {format_number(p.lean_body_mass.lean_body_mass)} lbs",
    ]
    if p.body_fat_estimated:
        lines.append(f"- Body Fat: {format_number(p.estimated_body_fat)}% (ESTIMATED using BMI method)")
    else:
        lines.append(f"- Body Fat: {format_number(p.inputs.body_fat_percentage)}% (from profile)")
    source = "ESTIMATED" if p.height_estimated else "from profile"
    lines.append(f"- Height: {_height_text(p.inputs.height_inches)} ({source})")

    if p.program_day is not None:
        totals = p.program_day.macros.daily_totals
        lines.extend([
            f"- Day Type: {p.day_type.upper()} Day",
            f"- Daily Totals: {totals.protein}g protein, {totals.carbs}g carbs, {totals.fat}g added fat",
            f"- Estimated Calories: {totals.calories}",
            "",
            "**MEAL BREAKDOWN:**",
        ])
        lines.extend(
            f"- {m.meal_type}: {m.protein}g protein, {m.carbs}g carbs, {m.fat}g added fat"
            for m in p.program_day.meal_plan
        )
    elif p.all_days:
        lines.append("- Complete Program: All day types calculated")
        for day, label in DAY_LABELS:
            totals = p.all_days[day].macros.daily_totals
            lines.extend([
                "",
                f"**{label}:**",
                f"  - Protein: {totals.protein}g",
                f"  - Carbs: {totals.carbs}g",
                f"  - Added Fat: {totals.fat}g",
                f"  - Calories: ~{totals.calories}",
            ])

    if p.estimation_warnings:
        lines.extend(["", "**DATA ESTIMATION INFO (for agent awareness):**"])
        lines.extend(f"- {warning}" for warning in p.estimation_warnings)
        lines.append("- INSTRUCTION: Mention estimation briefly at the end and suggest completing the profile")

    if p.program_mismatch is not None:
        m = p.program_mismatch
        lines.extend([
            "",
            "**PROGRAM OPTIMIZATION NOTICE (for agent awareness):**",
            f"- User requested {m.requested.upper()} but has a {m.reason}",
            f"- INSTRUCTION: Give the {m.requested.upper()} program as requested, then casually "
            f"suggest {m.suggested.upper()} might suit the goal better",
        ])
    return lines


def render_products(slot: Any) -> List[str]:
    lines = ["**PRODUCT CATALOG SEARCH:**"]
    if slot.status in ("failed", "unavailable"):
        lines.append(f"- {PRODUCTS_UNAVAILABLE}")
        return lines
    if slot.status != "ok" or slot.data is None:
        return []
    result = slot.data
    if result.found:
        lines.append(f"- Found relevant products ({result.confidence * 100:.1f}% confidence)")
        lines.append(f"- Product Info: {result.context}")
    else:
        lines.append(f"- {result.context}")
    return lines


def render_history(history: Sequence[Dict[str, str]], limit: int) -> str:
    recent = list(history)[-limit:] if limit > 0 else []
    return "\n".join(f"{m.get('role', 'user')}: {m.get('content', '')}" for m in recent)


# =============================================================================
# ASSEMBLY
# =============================================================================

def assemble_context(
    text: str,
    bundle: Any,
    profile: Optional[Profile] = None,
    history: Sequence[Dict[str, str]] = (),
    now: Optional[datetime] = None,
) -> GenerationPayload:
    """
    Build the generation payload for one request.

    Args:
        text: The user's message
        bundle: ToolResultBundle from the orchestrator
        profile: Sparse profile, or None
        history: Prior messages as {"role", "content"} dicts, oldest first
        now: Request time; defaults to the current time

    Returns:
        GenerationPayload with the system instruction, the user payload and
        the tools that contributed
    """
    current, time_context = datetime_context(local_now(now))

    tool_sections: List[List[str]] = [
        render_calculation(bundle.slot("calculator")) if bundle.has("calculator") else [],
        render_nutrition(bundle.slot("nutrition_calculator")) if bundle.has("nutrition_calculator") else [],
        render_program(bundle.slot("program_calculator")) if bundle.has("program_calculator") else [],
        render_products(bundle.slot("product_catalog")) if bundle.has("product_catalog") else [],
    ]
    tool_text = "\n\n".join("\n".join(section) for section in tool_sections if section)

    topic_notes = [TOPIC_NOTES[tag] for tag in ("workout_topic", "sensitive_topic") if tag in bundle.tags]
    history_text = render_history(history, ORCHESTRATOR_CONFIG["history_limit"])

    sections = [
        f"**USER CONTEXT:**\n{profile_context(profile)}",
        f"**CURRENT TIME:** {current}\n**TIME CONTEXT:** {time_context}",
        f"**KNOWLEDGE BASE REFERENCES:**\n{render_knowledge(bundle.knowledge) or NO_KNOWLEDGE}",
        f"**TOOL RESULTS:**\n{tool_text or NO_TOOLS}",
    ]
    if topic_notes:
        sections.append("**TOPIC NOTES:**\n" + "\n".join(f"- {note}" for note in topic_notes))
    sections.extend([
        f"**RECENT CONVERSATION:**\n{history_text or NO_HISTORY}",
        f"**USER QUESTION:** {text}",
    ])

    return GenerationPayload(
        system_instruction=SYSTEM_INSTRUCTION,
        user_payload="\n\n".join(sections),
        tools_used=tuple(bundle.tools_used),
        tools_failed=tuple(bundle.tools_failed),
        tags=tuple(bundle.tags),
    )


__all__ = [
    "SYSTEM_INSTRUCTION",
    "GenerationPayload",
    "profile_context",
    "time_of_day",
    "local_now",
    "datetime_context",
    "render_knowledge",
    "render_calculation",
    "render_nutrition",
    "render_program",
    "render_products",
    "render_missing_data",
    "render_history",
    "assemble_context",
]
