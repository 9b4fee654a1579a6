import asyncio
import sys
from pathlib import Path

import pytest
from loguru import logger

# Add root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from agents.coach_agent import TextGenerator
from tools.lookups import (
    KnowledgeReference,
    KnowledgeRetriever,
    ProductCatalog,
    ProductLookupResult,
)
from tools.schemas import Profile


class FakeProductCatalog(ProductCatalog):
    """Canned catalog; optionally raises or hangs to exercise isolation."""
    def __init__(self, result=None, error=None, delay=0.0):
        self.result = result or ProductLookupResult(
            context="**Creatine Monohydrate**\nMicronized creatine", confidence=0.9, found=True
        )
        self.error = error
        self.delay = delay
        self.queries = []

    async def search(self, query):
        self.queries.append(query)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error:
            raise self.error
        return self.result


class FakeKnowledgeRetriever(KnowledgeRetriever):
    def __init__(self, references=None, error=None):
        self.references = references if references is not None else [
            KnowledgeReference(
                content="Keep protein high during a cut.",
                metadata={"question": "How much protein on a cut?"},
            )
        ]
        self.error = error

    async def search(self, query):
        if self.error:
            raise self.error
        return list(self.references)


@pytest.fixture
def full_profile():
    """30 y/o male, 176.37 lbs (80 kg), 5'11" (180.34 cm), moderately active."""
    return Profile(
        name="Alex",
        age=30,
        weight_lbs=176.37,
        height_feet=5,
        height_inches=11,
        sex="male",
        activity_level="moderately_active",
        goal="maintain",
        body_fat_percentage=15,
    )


@pytest.fixture
def weight_only_profile():
    return Profile(weight_lbs=200)


@pytest.fixture
def product_catalog():
    return FakeProductCatalog()


@pytest.fixture
def knowledge_retriever():
    return FakeKnowledgeRetriever()


@pytest.fixture
def log_records():
    """Collect loguru records emitted during a test."""
    records = []
    handler_id = logger.add(lambda message: records.append(message.record), level="DEBUG")
    yield records
    logger.remove(handler_id)


class EchoGenerator(TextGenerator):
    """Replies with a fixed text and remembers what it was sent."""
    def __init__(self, reply="Here are your numbers.", chunks=("Here ", "are ", "numbers.")):
        self.reply = reply
        self.chunks = chunks
        self.calls = []

    async def generate(self, system_instruction, payload):
        self.calls.append((system_instruction, payload))
        return self.reply

    async def stream(self, system_instruction, payload):
        self.calls.append((system_instruction, payload))
        for chunk in self.chunks:
            yield chunk


class BrokenGenerator(TextGenerator):
    def __init__(self, error, chunks_before_error=()):
        self.error = error
        self.chunks_before_error = chunks_before_error

    async def generate(self, system_instruction, payload):
        raise self.error

    async def stream(self, system_instruction, payload):
        for chunk in self.chunks_before_error:
            yield chunk
        raise self.error
