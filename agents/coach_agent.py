# agents/coach_agent.py
"""
CoachCore - Coach Agent
========================
The conversational edge of the core:
  1. TextGenerator interface and a Gemini implementation (google-genai)
  2. CoachAgent: classify -> tools -> context -> generation, with a fallback
     reply whenever generation fails
  3. An ADK LlmAgent whose FunctionTools expose the calculators directly
"""

import asyncio
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, AsyncIterator, Dict, List, Optional, Sequence, Tuple

from google import genai
from google.adk.agents import LlmAgent
from google.adk.models.google_llm import Gemini
from google.adk.tools import FunctionTool
from google.genai import types
from pydantic import BaseModel, ConfigDict

from agents.config import GENERATION_CONFIG, GenerationUnavailableError, get_api_key
from agents.context_assembler import SYSTEM_INSTRUCTION
from agents.events import emit
from agents.orchestrator import ToolOrchestrator
from tools.expression_evaluator import evaluate
from tools.nutrition_calculator import (
    calculate_body_fat,
    calculate_bmr,
    calculate_macros,
    calculate_tdee,
    convert_units,
    map_activity_level,
)
from tools.program_calculator import DAY_TYPES, PROGRAMS, generate_program_day
from tools.schemas import CalculationResult, Profile


FALLBACK_REPLY = (
    "I'm here to help! There was a technical issue, but please feel free to ask me "
    "anything about fitness, nutrition, supplements, or calculations."
)


# =============================================================================
# TEXT GENERATION
# =============================================================================

class TextGenerator(ABC):
    @abstractmethod
    async def generate(self, system_instruction: str, payload: str) -> str:
        """The full reply for one payload."""

    @abstractmethod
    def stream(self, system_instruction: str, payload: str) -> AsyncIterator[str]:
        """The reply as text chunks."""


def get_retry_config() -> types.HttpRetryOptions:
    """Standard retry configuration for Gemini calls."""
    return types.HttpRetryOptions(
        attempts=5,
        exp_base=7,
        initial_delay=1,
        http_status_codes=[429, 500, 503, 504],
    )


class GeminiTextGenerator(TextGenerator):
    """
    google-genai backed generator. Every call runs under a timeout; an
    empty response is treated as a failure.

    Raises:
        GenerationUnavailableError: at construction when GOOGLE_API_KEY is unset
    """

    def __init__(
        self,
        model: Optional[str] = None,
        timeout: Optional[float] = None,
        api_key: Optional[str] = None,
    ):
        self.model = model or GENERATION_CONFIG["model"]
        self.timeout = timeout if timeout is not None else GENERATION_CONFIG["timeout"]
        self._client = genai.Client(api_key=api_key or get_api_key())

    def _config(self, system_instruction: str) -> types.GenerateContentConfig:
        return types.GenerateContentConfig(
            system_instruction=system_instruction,
            temperature=GENERATION_CONFIG["temperature"],
            max_output_tokens=GENERATION_CONFIG["max_output_tokens"],
        )

    async def generate(self, system_instruction: str, payload: str) -> str:
        response = await asyncio.wait_for(
            self._client.aio.models.generate_content(
                model=self.model,
                contents=payload,
                config=self._config(system_instruction),
            ),
            self.timeout,
        )
        if not response or not response.text:
            raise GenerationUnavailableError("Model returned an empty response")
        return response.text.strip()

    async def stream(self, system_instruction: str, payload: str) -> AsyncIterator[str]:
        chunks = await asyncio.wait_for(
            self._client.aio.models.generate_content_stream(
                model=self.model,
                contents=payload,
                config=self._config(system_instruction),
            ),
            self.timeout,
        )
        iterator = chunks.__aiter__()
        while True:
            try:
                chunk = await asyncio.wait_for(iterator.__anext__(), self.timeout)
            except StopAsyncIteration:
                return
            if chunk.text:
                yield chunk.text


# =============================================================================
# COACH AGENT
# =============================================================================

class CoachReply(BaseModel):
    model_config = ConfigDict(frozen=True)

    reply: str
    tools_used: Tuple[str, ...] = ()
    tags: Tuple[str, ...] = ()
    degraded: bool = False


class CoachAgent:
    """
    One message in, one reply out.

    Tool failures never reach the user: they degrade the context, not the
    reply. Generation failures are replaced by FALLBACK_REPLY with
    `degraded=True`.
    """

    def __init__(
        self,
        generator: Optional[TextGenerator] = None,
        orchestrator: Optional[ToolOrchestrator] = None,
    ):
        self.generator = generator
        self.orchestrator = orchestrator or ToolOrchestrator()

    async def respond(
        self,
        text: str,
        profile: Optional[Profile] = None,
        history: Sequence[Dict[str, str]] = (),
        now: Optional[datetime] = None,
    ) -> CoachReply:
        payload = await self.orchestrator.prepare_context(text, profile, history, now)

        try:
            if self.generator is None:
                raise GenerationUnavailableError("No text generator configured")
            reply = await self.generator.generate(payload.system_instruction, payload.user_payload)
            degraded = False
        except asyncio.TimeoutError:
            emit("generation_failed", level="WARNING", reason="timeout")
            reply, degraded = FALLBACK_REPLY, True
        except Exception as e:
            emit("generation_failed", level="ERROR", reason=repr(e))
            reply, degraded = FALLBACK_REPLY, True

        return CoachReply(
            reply=reply,
            tools_used=payload.tools_used,
            tags=payload.tags,
            degraded=degraded,
        )

    async def respond_stream(
        self,
        text: str,
        profile: Optional[Profile] = None,
        history: Sequence[Dict[str, str]] = (),
        now: Optional[datetime] = None,
    ) -> AsyncIterator[str]:
        """Yield reply chunks; the fallback reply if generation fails before any text."""
        payload = await self.orchestrator.prepare_context(text, profile, history, now)
        sent_any = False

        try:
            if self.generator is None:
                raise GenerationUnavailableError("No text generator configured")
            async for chunk in self.generator.stream(payload.system_instruction, payload.user_payload):
                sent_any = True
                yield chunk
        except asyncio.TimeoutError:
            emit("generation_failed", level="WARNING", reason="timeout", partial=sent_any)
            if not sent_any:
                yield FALLBACK_REPLY
        except Exception as e:
            emit("generation_failed", level="ERROR", reason=repr(e), partial=sent_any)
            if not sent_any:
                yield FALLBACK_REPLY


# =============================================================================
# COACH TOOLS (ADK FunctionTools)
# =============================================================================

def calculate_expression(expression: str) -> Dict[str, Any]:
    """
    Evaluate an arithmetic expression exactly.

    Args:
        expression: e.g. "(10 * 80) + (6.25 * 180) - (5 * 30) + 5" or "20% of 2500"

    Returns:
        Dictionary with status, result, verification and processing steps
    """
    result = evaluate(expression)
    if not result.is_valid:
        return {"status": "error", "error_message": result.steps[0] if result.steps else "Invalid expression"}
    return {
        "status": "success",
        "expression": result.expression,
        "result": result.result,
        "verification": result.verification,
        "steps": list(result.steps),
    }


def calculate_energy_needs(
    age: float,
    weight_lbs: float,
    height_feet: float,
    height_inches: float,
    sex: str,
    activity_level: str = "moderate"
) -> Dict[str, Any]:
    """
    Calculate BMR (Mifflin-St Jeor) and TDEE from imperial measurements.

    Args:
        age: Age in years
        weight_lbs: Body weight in pounds
        height_feet: Height, feet part
        height_inches: Height, inches part
        sex: "male" or "female"
        activity_level: sedentary, light, moderate, heavy or extreme

    Returns:
        Dictionary with bmr, tdee, multiplier and the audited BMR steps
    """
    sex = (sex or "").strip().lower()
    if sex not in ("male", "female"):
        return {"status": "error", "error_message": "Sex must be 'male' or 'female'"}
    profile = Profile(age=age, weight_lbs=weight_lbs, height_feet=height_feet,
                      height_inches=height_inches, sex=sex)
    bmr = calculate_bmr(profile.age, profile.weight_kg, profile.height_cm, profile.sex)
    if not isinstance(bmr, CalculationResult) or not bmr.is_valid:
        return {"status": "error", "error_message": getattr(bmr, "message", "BMR calculation failed")}

    tdee = calculate_tdee(bmr.final_result, map_activity_level(activity_level))
    return {
        "status": "success",
        "bmr": bmr.final_result,
        "tdee": tdee.tdee,
        "activity_level": tdee.activity_level,
        "activity_multiplier": tdee.activity_multiplier,
        "steps": [s.model_dump() for s in bmr.steps],
        "verification": bmr.verification,
    }


def calculate_macro_split(
    target_calories: float,
    weight_lbs: float,
    protein_per_kg: float = 1.6,
    fat_percentage: float = 25
) -> Dict[str, Any]:
    """
    Split a calorie target into protein, carbs and fat.

    Args:
        target_calories: Daily calorie target
        weight_lbs: Body weight in pounds
        protein_per_kg: Protein grams per kg of bodyweight
        fat_percentage: Percent of calories from fat

    Returns:
        Dictionary with grams, calories and percentage per macro
    """
    weight_kg = Profile(weight_lbs=weight_lbs).weight_kg
    if not weight_kg or target_calories <= 0:
        return {"status": "error", "error_message": "Weight and calories must be positive"}
    macros = calculate_macros(target_calories, protein_per_kg, weight_kg, fat_percentage)
    return {"status": "success", **macros.model_dump()}


def get_program_day(program: str, day_type: str) -> Dict[str, Any]:
    """
    Get the meal table for a MASSIVE or SHREDDED carb-cycling day.

    Args:
        program: "massive" or "shredded"
        day_type: "low", "med" or "high"

    Returns:
        Dictionary with meals, daily totals, instructions and timing notes
    """
    program, day_type = program.strip().lower(), day_type.strip().lower()
    if program not in PROGRAMS:
        return {"status": "error", "error_message": f"Unknown program '{program}'. Use one of {list(PROGRAMS)}"}
    if day_type not in DAY_TYPES:
        return {"status": "error", "error_message": f"Unknown day type '{day_type}'. Use one of {list(DAY_TYPES)}"}
    day = generate_program_day(Profile(program=program), day_type)
    return {"status": "success", **day.model_dump()}


def estimate_body_fat_navy(
    sex: str,
    height_cm: float,
    waist_cm: float,
    neck_cm: float,
    hip_cm: Optional[float] = None
) -> Dict[str, Any]:
    """
    Estimate body fat with the US Navy circumference method.

    Args:
        sex: "male" or "female"
        height_cm: Height in centimeters
        waist_cm: Waist circumference in centimeters
        neck_cm: Neck circumference in centimeters
        hip_cm: Hip circumference in centimeters (required for women)
    """
    result = calculate_body_fat(sex, height_cm, waist_cm, neck_cm, hip_cm)
    if getattr(result, "status", None) == "invalid":
        return {"status": "error", "error_message": result.message}
    return {"status": "success", **result.model_dump()}


def convert_measurement(value: float, conversion: str) -> Dict[str, Any]:
    """
    Convert a measurement between units.

    Args:
        value: The number to convert
        conversion: lbs_to_kg, kg_to_lbs, inches_to_cm or cm_to_inches
    """
    return convert_units(value, conversion)


COACH_TOOL_FUNCTIONS = (
    calculate_expression,
    calculate_energy_needs,
    calculate_macro_split,
    get_program_day,
    estimate_body_fat_navy,
    convert_measurement,
)


def get_coach_tools() -> List[FunctionTool]:
    """Get the calculator tools for the coach agent."""
    return [FunctionTool(func=f) for f in COACH_TOOL_FUNCTIONS]


def create_coach_agent(model: Optional[str] = None) -> LlmAgent:
    """Create the CoachCore ADK agent with the calculators as tools."""
    return LlmAgent(
        name="CoachCore",
        model=Gemini(model=model or GENERATION_CONFIG["model"], retry_options=get_retry_config()),
        description=(
            "Strength and nutrition coach that answers with exact, tool-verified "
            "numbers for macros, energy needs and carb-cycling programs."
        ),
        instruction=SYSTEM_INSTRUCTION + """
## TOOLS
- Use calculate_expression for any arithmetic instead of computing in your head
- Use calculate_energy_needs for BMR/TDEE and calculate_macro_split for macros
- Use get_program_day for MASSIVE or SHREDDED meal tables; the values are fixed
- Use estimate_body_fat_navy and convert_measurement when the user gives measurements
""",
        tools=get_coach_tools(),
        output_key="coach_response",
    )


__all__ = [
    "FALLBACK_REPLY",
    "TextGenerator",
    "GeminiTextGenerator",
    "CoachReply",
    "CoachAgent",
    "calculate_expression",
    "calculate_energy_needs",
    "calculate_macro_split",
    "get_program_day",
    "estimate_body_fat_navy",
    "convert_measurement",
    "get_coach_tools",
    "create_coach_agent",
]
