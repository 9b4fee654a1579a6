"""
CoachCore - FastAPI Backend
"""

import os
import sys
from pathlib import Path
from datetime import datetime
from typing import Optional, Dict, Any, List

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, StreamingResponse
from pydantic import BaseModel, Field
import uvicorn

from agents.coach_agent import CoachAgent, GeminiTextGenerator
from agents.config import CoachCoreError, GenerationUnavailableError, configure_logging
from agents.intent_classifier import classify
from agents.orchestrator import ToolOrchestrator
from tools.expression_evaluator import evaluate
from tools.nutrition_calculator import calculate_comprehensive_nutrition, validate_profile
from tools.program_calculator import ProgressEntry, generate_program_day, should_add_third_high_day
from tools.schemas import DayType, Profile, ProgramName

API_VERSION = "1.0.0"


# =============================================================================
# PYDANTIC MODELS
# =============================================================================
class HistoryMessage(BaseModel):
    role: str = "user"
    content: str = ""


class ClassifyRequest(BaseModel):
    message: str


class ExpressionRequest(BaseModel):
    expression: str


class NutritionRequest(BaseModel):
    profile: Profile


class ProgramDayRequest(BaseModel):
    profile: Optional[Profile] = None
    program: Optional[ProgramName] = None
    day_type: DayType


class PlateauRequest(BaseModel):
    progress: List[ProgressEntry] = []


class ChatRequest(BaseModel):
    message: str
    profile: Optional[Profile] = None
    history: List[HistoryMessage] = []


class ChatResponse(BaseModel):
    reply: str
    tools_used: List[str] = []
    tags: List[str] = []
    degraded: bool = False
    timestamp: str = Field(default_factory=lambda: datetime.now().isoformat())


# =============================================================================
# APP SETUP
# =============================================================================
app = FastAPI(
    title="CoachCore API",
    version=API_VERSION,
    description="Intent classification, tool orchestration and verified nutrition calculations"
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(GenerationUnavailableError)
async def generation_unavailable_handler(request: Request, exc: GenerationUnavailableError):
    return JSONResponse(status_code=503, content={"detail": str(exc)})


@app.exception_handler(CoachCoreError)
async def coachcore_error_handler(request: Request, exc: CoachCoreError):
    return JSONResponse(status_code=500, content={"detail": str(exc)})


# =============================================================================
# DEPENDENCIES
# =============================================================================
_ORCHESTRATOR: Optional[ToolOrchestrator] = None
_COACH_AGENT: Optional[CoachAgent] = None


def get_orchestrator() -> ToolOrchestrator:
    global _ORCHESTRATOR
    if _ORCHESTRATOR is None:
        _ORCHESTRATOR = ToolOrchestrator()
    return _ORCHESTRATOR


def get_coach_agent(orchestrator: ToolOrchestrator = Depends(get_orchestrator)) -> CoachAgent:
    """Coach agent backed by Gemini; GenerationUnavailableError (503) without an API key."""
    global _COACH_AGENT
    if _COACH_AGENT is None:
        _COACH_AGENT = CoachAgent(generator=GeminiTextGenerator(), orchestrator=orchestrator)
    return _COACH_AGENT


def _history(messages: List[HistoryMessage]) -> List[Dict[str, str]]:
    return [m.model_dump() for m in messages]


# =============================================================================
# ENDPOINTS
# =============================================================================

# -----------------------------------------------------------------------------
# Health
# -----------------------------------------------------------------------------
@app.get("/api/v1/health")
async def api_health():
    """Health check endpoint."""
    return {
        "status": "online",
        "system": "CoachCore",
        "version": API_VERSION,
        "generation_configured": bool(os.getenv("GOOGLE_API_KEY")),
        "timestamp": datetime.now().isoformat()
    }


# -----------------------------------------------------------------------------
# Intent & Calculations
# -----------------------------------------------------------------------------
@app.post("/api/v1/intent/classify")
async def classify_intent(request: ClassifyRequest):
    """Tags for a message and the keywords that produced them."""
    classification = classify(request.message)
    return {
        "tags": sorted(tag.value for tag in classification.tags),
        "matched_keywords": classification.matched_keywords,
    }


@app.post("/api/v1/calculate/expression")
async def calculate_expression(request: ExpressionRequest):
    """Evaluate an arithmetic expression; invalid input comes back with is_valid=false."""
    return evaluate(request.expression).model_dump(mode="json")


@app.post("/api/v1/calculate/nutrition")
async def calculate_nutrition(request: NutritionRequest):
    """BMR, TDEE, goal target and macros for a profile."""
    validation = validate_profile(request.profile)
    if not validation.is_valid:
        raise HTTPException(status_code=422, detail=list(validation.errors))

    result = calculate_comprehensive_nutrition(request.profile)
    return {
        "status": result.status,
        "result": result.model_dump(mode="json"),
        "profile_warnings": list(validation.warnings),
    }


# -----------------------------------------------------------------------------
# Programs
# -----------------------------------------------------------------------------
@app.post("/api/v1/program/day")
async def program_day(request: ProgramDayRequest):
    """The fixed meal table, instructions and timing for one program day."""
    profile = request.profile or Profile()
    program = request.program or profile.program or "massive"
    day = generate_program_day(profile.model_copy(update={"program": program}), request.day_type)
    return {
        "status": "success",
        "program": program,
        "day_type": request.day_type,
        "day": day.model_dump(mode="json"),
    }


@app.post("/api/v1/program/plateau")
async def program_plateau(request: PlateauRequest):
    """Whether to add a third high day, from weekly weight changes."""
    return should_add_third_high_day(request.progress).model_dump(mode="json")


# -----------------------------------------------------------------------------
# Chat
# -----------------------------------------------------------------------------
@app.post("/api/v1/chat/context")
async def chat_context(
    request: ChatRequest,
    orchestrator: ToolOrchestrator = Depends(get_orchestrator)
):
    """Everything the model would see for a message, without calling the model."""
    prepared = await orchestrator.prepare(
        request.message, request.profile, _history(request.history)
    )
    return {
        "tags": sorted(tag.value for tag in prepared.classification.tags),
        "matched_keywords": prepared.classification.matched_keywords,
        "bundle": prepared.bundle.model_dump(mode="json"),
        "payload": prepared.payload.model_dump(mode="json"),
    }


@app.post("/api/v1/chat/ask", response_model=ChatResponse)
async def chat_ask(request: ChatRequest, agent: CoachAgent = Depends(get_coach_agent)):
    """Chat with the coach."""
    message = request.message.strip()
    if not message:
        return ChatResponse(reply="Hi! How can I help you today?")

    reply = await agent.respond(message, request.profile, _history(request.history))
    return ChatResponse(
        reply=reply.reply,
        tools_used=list(reply.tools_used),
        tags=list(reply.tags),
        degraded=reply.degraded,
    )


@app.post("/api/v1/chat/stream")
async def chat_stream(request: ChatRequest, agent: CoachAgent = Depends(get_coach_agent)):
    """Chat with the coach, streamed as plain text."""
    chunks = agent.respond_stream(request.message.strip(), request.profile, _history(request.history))
    return StreamingResponse(chunks, media_type="text/plain")


# =============================================================================
# MAIN
# =============================================================================
if __name__ == "__main__":
    configure_logging()
    uvicorn.run(app, host="0.0.0.0", port=int(os.getenv("PORT", "8000")))
