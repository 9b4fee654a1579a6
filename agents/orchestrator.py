# agents/orchestrator.py
"""
CoachCore - Tool Orchestrator
==============================
Runs the tools a message's tags call for, concurrently, and gathers what
each produced into one ToolResultBundle.

Tag -> tool:
    arithmetic              -> calculator
    nutrition_calculation   -> nutrition_calculator
    program_lookup          -> program_calculator
    product_lookup          -> product_catalog (external)

Knowledge retrieval runs alongside on every request when a retriever is
configured. Every tool is isolated: an exception or a timeout in one is
recorded in its own slot and never touches the others.
"""

import asyncio
from datetime import datetime
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional, Sequence, Tuple

from pydantic import BaseModel, ConfigDict

from agents.config import ORCHESTRATOR_CONFIG
from agents.context_assembler import GenerationPayload, assemble_context
from agents.events import emit
from agents.intent_classifier import Classification, IntentTag, classify
from tools.expression_evaluator import evaluate, extract_expression
from tools.lookups import KnowledgeReference, KnowledgeRetriever, ProductCatalog
from tools.nutrition_calculator import calculate_comprehensive_nutrition
from tools.program_calculator import ProgramCalculation, calculate_program
from tools.schemas import InvalidInput, MissingData, Profile


# =============================================================================
# CONFIGURATION
# =============================================================================

TOOL_FOR_TAG = {
    IntentTag.ARITHMETIC: "calculator",
    IntentTag.NUTRITION_CALCULATION: "nutrition_calculator",
    IntentTag.PROGRAM_LOOKUP: "program_calculator",
    IntentTag.PRODUCT_LOOKUP: "product_catalog",
}

SLOT_STATUSES = ("ok", "invalid", "missing_data", "skipped", "failed", "unavailable")

FAILED_STATUSES = ("failed", "unavailable")


# =============================================================================
# RESULT TYPES
# =============================================================================

class ToolSlot(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    present: bool = False
    status: Optional[str] = None
    data: Any = None
    error: Optional[str] = None


class ToolResultBundle(BaseModel):
    """Everything the tools produced for one request."""
    model_config = ConfigDict(frozen=True)

    tags: Tuple[str, ...] = ()
    slots: Dict[str, ToolSlot] = {}
    tools_used: Tuple[str, ...] = ()
    tools_failed: Tuple[str, ...] = ()
    knowledge: Tuple[KnowledgeReference, ...] = ()

    def slot(self, name: str) -> ToolSlot:
        """The named slot; tools that never ran come back as an absent slot."""
        return self.slots.get(name) or ToolSlot(name=name)

    def has(self, name: str, *statuses: str) -> bool:
        s = self.slot(name)
        return s.present and (not statuses or s.status in statuses)


# =============================================================================
# ORCHESTRATOR
# =============================================================================

class ToolOrchestrator:
    """
    Fan-out/fan-in over the tools for one request.

    Holds only collaborators (product catalog, knowledge retriever) and
    timeouts; no per-request state survives a call to `run`.
    """

    def __init__(
        self,
        product_catalog: Optional[ProductCatalog] = None,
        knowledge_retriever: Optional[KnowledgeRetriever] = None,
        lookup_timeout: Optional[float] = None,
    ):
        self.product_catalog = product_catalog
        self.knowledge_retriever = knowledge_retriever
        self.lookup_timeout = (
            lookup_timeout if lookup_timeout is not None else ORCHESTRATOR_CONFIG["lookup_timeout"]
        )

    # -------------------------------------------------------------------------
    # Individual tools
    # -------------------------------------------------------------------------

    async def _run_calculator(self, text: str, profile: Profile) -> ToolSlot:
        expression = extract_expression(text)
        if expression is None:
            return ToolSlot(name="calculator", present=True, status="skipped",
                            error="No arithmetic expression found in the message")
        result = await asyncio.to_thread(evaluate, expression)
        return ToolSlot(
            name="calculator",
            present=True,
            status="ok" if result.is_valid else "invalid",
            data=result,
        )

    async def _run_nutrition(self, text: str, profile: Profile) -> ToolSlot:
        result = await asyncio.to_thread(calculate_comprehensive_nutrition, profile)
        return ToolSlot(name="nutrition_calculator", present=True,
                        status=_status_of(result), data=result)

    async def _run_program(self, text: str, profile: Profile) -> ToolSlot:
        result = await asyncio.to_thread(calculate_program, text, profile)
        if isinstance(result, ProgramCalculation) and result.estimation_warnings:
            emit(
                "estimation_applied",
                tool="program_calculator",
                body_fat_estimated=result.body_fat_estimated,
                height_estimated=result.height_estimated,
            )
        return ToolSlot(name="program_calculator", present=True,
                        status=_status_of(result), data=result)

    async def _run_products(self, text: str, profile: Profile) -> ToolSlot:
        if self.product_catalog is None:
            return ToolSlot(name="product_catalog", present=True, status="unavailable",
                            error="Product catalog is not configured")
        result = await asyncio.wait_for(self.product_catalog.search(text), self.lookup_timeout)
        return ToolSlot(name="product_catalog", present=True, status="ok", data=result)

    def _runners(self) -> Dict[str, Callable[[str, Profile], Awaitable[ToolSlot]]]:
        return {
            "calculator": self._run_calculator,
            "nutrition_calculator": self._run_nutrition,
            "program_calculator": self._run_program,
            "product_catalog": self._run_products,
        }

    async def _guarded(
        self,
        name: str,
        runner: Callable[[str, Profile], Awaitable[ToolSlot]],
        text: str,
        profile: Profile,
        completed: List[str],
    ) -> ToolSlot:
        emit("tool_started", level="DEBUG", tool=name)
        try:
            slot = await runner(text, profile)
        except asyncio.TimeoutError:
            emit("tool_unavailable", level="WARNING", tool=name, timeout=self.lookup_timeout)
            return ToolSlot(name=name, present=True, status="unavailable",
                            error=f"{name} timed out after {self.lookup_timeout}s")
        except Exception as e:
            emit("tool_failed", level="ERROR", tool=name, error=repr(e))
            return ToolSlot(name=name, present=True, status="failed", error=str(e) or repr(e))

        if slot.status == "skipped":
            emit("tool_skipped", tool=name, reason=slot.error)
        elif slot.status in FAILED_STATUSES:
            emit("tool_unavailable", level="WARNING", tool=name, reason=slot.error)
        else:
            completed.append(name)
            emit("tool_completed", tool=name, status=slot.status)
        return slot

    async def _retrieve_knowledge(self, text: str) -> List[KnowledgeReference]:
        if self.knowledge_retriever is None:
            return []
        try:
            references = await asyncio.wait_for(
                self.knowledge_retriever.search(text), self.lookup_timeout
            )
        except asyncio.TimeoutError:
            emit("knowledge_unavailable", level="WARNING", reason="timeout")
            return []
        except Exception as e:
            emit("knowledge_unavailable", level="WARNING", reason=repr(e))
            return []
        return list(references)

    # -------------------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------------------

    async def run(
        self,
        tags: Iterable[IntentTag],
        text: str,
        profile: Optional[Profile] = None,
    ) -> ToolResultBundle:
        """
        Run every tool whose tag is present, plus knowledge retrieval.

        Args:
            tags: Tags from the classifier; tools without a tag never run
            text: The user's message
            profile: Sparse profile (an empty one when None)

        Returns:
            ToolResultBundle. `tools_used` is in completion order.
        """
        profile = profile or Profile()
        tag_set = frozenset(tags)
        runners = self._runners()
        names = [TOOL_FOR_TAG[tag] for tag in TOOL_FOR_TAG if tag in tag_set]
        completed: List[str] = []

        emit("tags_detected", tags=sorted(t.value for t in tag_set), tools=names)

        slots, knowledge = await asyncio.gather(
            asyncio.gather(*(
                self._guarded(name, runners[name], text, profile, completed) for name in names
            )),
            self._retrieve_knowledge(text),
        )

        by_name = {slot.name: slot for slot in slots}
        return ToolResultBundle(
            tags=tuple(sorted(t.value for t in tag_set)),
            slots=by_name,
            tools_used=tuple(completed),
            tools_failed=tuple(n for n in names if by_name[n].status in FAILED_STATUSES),
            knowledge=tuple(knowledge),
        )

    async def prepare(
        self,
        text: str,
        profile: Optional[Profile] = None,
        history: Sequence[Dict[str, str]] = (),
        now: Optional[datetime] = None,
    ) -> "PreparedRequest":
        """classify -> run -> assemble, keeping every intermediate result."""
        classification = classify(text)
        bundle = await self.run(classification.tags, text, profile)
        payload = assemble_context(text, bundle, profile, history, now)
        return PreparedRequest(classification=classification, bundle=bundle, payload=payload)

    async def prepare_context(
        self,
        text: str,
        profile: Optional[Profile] = None,
        history: Sequence[Dict[str, str]] = (),
        now: Optional[datetime] = None,
    ) -> GenerationPayload:
        """The generation payload for one message."""
        prepared = await self.prepare(text, profile, history, now)
        return prepared.payload


class PreparedRequest(BaseModel):
    model_config = ConfigDict(frozen=True)

    classification: Classification
    bundle: ToolResultBundle
    payload: GenerationPayload


def _status_of(result: Any) -> str:
    if isinstance(result, MissingData):
        return "missing_data"
    if isinstance(result, InvalidInput):
        return "invalid"
    if getattr(result, "is_valid", True) is False:
        return "invalid"
    return "ok"


__all__ = [
    "TOOL_FOR_TAG",
    "SLOT_STATUSES",
    "ToolSlot",
    "ToolResultBundle",
    "ToolOrchestrator",
    "PreparedRequest",
]
