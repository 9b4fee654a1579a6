# tools/lookups.py
"""
CoachCore - External Lookups
=============================
The two collaborators the orchestrator calls over the network in
production: knowledge retrieval (past expert answers) and the product
catalog. Only the interfaces live here, plus in-memory implementations
that score by keyword overlap. Real backends subclass the interfaces.
"""

import re
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Sequence, Tuple

from pydantic import BaseModel, ConfigDict, Field


WORD_RE = re.compile(r"[a-z0-9]+")

STOPWORDS = frozenset({
    "the", "and", "for", "you", "your", "are", "what", "which", "with", "have",
    "does", "can", "should", "how", "any", "about", "that", "this", "from",
    "sell", "need", "want", "good", "best", "get",
})

NO_PRODUCTS_CONTEXT = "No specific products found - provide general guidance."

# Relevance weights per field hit
RELEVANCE_WEIGHTS = {"name": 10, "description": 5, "tags": 3, "key_benefits": 2}
CONFIDENT_SCORE = 20


# =============================================================================
# VALUE TYPES
# =============================================================================

class KnowledgeReference(BaseModel):
    """A past question/answer pair; `metadata` carries question and answer."""
    model_config = ConfigDict(frozen=True)

    content: str
    metadata: Dict[str, Any] = Field(default_factory=dict)


class Product(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    category: str = ""
    description: str = ""
    tags: Tuple[str, ...] = ()
    key_benefits: Tuple[str, ...] = ()
    available_on: Tuple[str, ...] = ()
    url: str = ""


class ProductLookupResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    context: str
    confidence: float = 0.0
    found: bool = False
    products: Tuple[Product, ...] = ()


# =============================================================================
# INTERFACES
# =============================================================================

class KnowledgeRetriever(ABC):
    @abstractmethod
    async def search(self, query: str) -> List[KnowledgeReference]:
        """References relevant to `query`, best first."""


class ProductCatalog(ABC):
    @abstractmethod
    async def search(self, query: str) -> ProductLookupResult:
        """Products relevant to `query`, pre-rendered as prompt context."""


# =============================================================================
# IN-MEMORY IMPLEMENTATIONS
# =============================================================================

def query_terms(text: str) -> List[str]:
    """Lowercased words of 3+ letters, minus filler words, in order."""
    seen: List[str] = []
    for word in WORD_RE.findall((text or "").lower()):
        if len(word) >= 3 and word not in STOPWORDS and word not in seen:
            seen.append(word)
    return seen


def score_product(terms: Sequence[str], product: Product) -> int:
    """Keyword relevance: name 10, description 5, each tag 3, each benefit 2."""
    name = product.name.lower()
    description = product.description.lower()
    tags = [t.lower() for t in product.tags]
    benefits = [b.lower() for b in product.key_benefits]

    score = 0
    for term in terms:
        if term in name:
            score += RELEVANCE_WEIGHTS["name"]
        if term in description:
            score += RELEVANCE_WEIGHTS["description"]
        score += RELEVANCE_WEIGHTS["tags"] * sum(1 for t in tags if term in t or t in term)
        score += RELEVANCE_WEIGHTS["key_benefits"] * sum(1 for b in benefits if term in b)
    return score


def format_product(product: Product) -> str:
    lines = [f"**{product.name}**", product.description]
    if product.key_benefits:
        lines.append("**Key Benefits:**")
        lines.extend(f"- {benefit}" for benefit in product.key_benefits)
    if product.available_on:
        lines.append(f"**Available on:** {', '.join(product.available_on)}")
    if product.url:
        lines.append(f"**More info:** {product.url}")
    return "\n".join(line for line in lines if line)


class InMemoryProductCatalog(ProductCatalog):
    """Keyword-scored search over a fixed list of products."""

    def __init__(self, products: Sequence[Product], limit: int = 5):
        self._products = tuple(products)
        self._limit = limit

    async def search(self, query: str) -> ProductLookupResult:
        terms = query_terms(query)
        scored = [(score_product(terms, p), p) for p in self._products]
        ranked = [p for score, p in sorted(scored, key=lambda pair: -pair[0]) if score > 0]
        matches = tuple(ranked[:self._limit])

        if not matches:
            return ProductLookupResult(context=NO_PRODUCTS_CONTEXT)

        top_score = max(score for score, _ in scored)
        return ProductLookupResult(
            context="\n\n".join(format_product(p) for p in matches),
            confidence=round(min(1.0, top_score / CONFIDENT_SCORE), 2),
            found=True,
            products=matches,
        )


class StaticKnowledgeRetriever(KnowledgeRetriever):
    """Term-overlap search over a fixed list of references."""

    def __init__(self, references: Sequence[KnowledgeReference], limit: int = 3):
        self._references = tuple(references)
        self._limit = limit

    async def search(self, query: str) -> List[KnowledgeReference]:
        terms = set(query_terms(query))
        if not terms:
            return []
        scored = []
        for index, reference in enumerate(self._references):
            overlap = len(terms & set(query_terms(reference.content)))
            if overlap:
                scored.append((-overlap, index, reference))
        return [reference for _, _, reference in sorted(scored)[:self._limit]]


__all__ = [
    "KnowledgeReference",
    "Product",
    "ProductLookupResult",
    "KnowledgeRetriever",
    "ProductCatalog",
    "InMemoryProductCatalog",
    "StaticKnowledgeRetriever",
    "NO_PRODUCTS_CONTEXT",
    "query_terms",
    "score_product",
    "format_product",
]
