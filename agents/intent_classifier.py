# agents/intent_classifier.py
"""
CoachCore - Intent Classifier
==============================
Maps free text to the set of capabilities that apply to it. Every tag is
tested independently, so one message can carry several tags ("what are my
macros for the massive program" is both a nutrition calculation and a
program lookup) or none at all.

Rules are data: each tag has keywords (whole-word matches), phrases
(substring matches) and regex patterns. Adding a capability means adding a
row to TAG_RULES, not a branch.
"""

import re
from enum import Enum
from types import MappingProxyType
from typing import Dict, FrozenSet, List, Mapping, Tuple

from pydantic import BaseModel, ConfigDict


class IntentTag(str, Enum):
    ARITHMETIC = "arithmetic"
    NUTRITION_CALCULATION = "nutrition_calculation"
    PROGRAM_LOOKUP = "program_lookup"
    PRODUCT_LOOKUP = "product_lookup"
    WORKOUT_TOPIC = "workout_topic"
    SENSITIVE_TOPIC = "sensitive_topic"


class TagRule(BaseModel):
    model_config = ConfigDict(frozen=True)

    keywords: Tuple[str, ...] = ()
    phrases: Tuple[str, ...] = ()
    patterns: Tuple[str, ...] = ()


class Classification(BaseModel):
    model_config = ConfigDict(frozen=True)

    tags: FrozenSet[IntentTag] = frozenset()
    matched_keywords: Dict[str, Tuple[str, ...]] = {}

    def has(self, tag: IntentTag) -> bool:
        return tag in self.tags


# =============================================================================
# RULE TABLE
# =============================================================================
# Short ambiguous words ("test", "ped", "row", "have", "add", "weight") are
# left out: on word boundaries they still fire on ordinary sentences.

TAG_RULES: Mapping[IntentTag, TagRule] = MappingProxyType({
    IntentTag.ARITHMETIC: TagRule(
        keywords=(
            "calculate", "compute", "plus", "minus", "times", "multiply",
            "multiplied", "divide", "divided", "equals",
        ),
        patterns=(
            r"\d+(?:\.\d+)?\s*[+\-*/×÷]\s*\(?\s*\d+",
            r"\)\s*[+\-*/×÷]\s*\(",
            r"\d+(?:\.\d+)?\s*%",
        ),
    ),
    IntentTag.NUTRITION_CALCULATION: TagRule(
        keywords=(
            "calculate", "formula", "lbm", "macro", "macros", "calorie", "calories",
            "tdee", "bmr", "protein", "carb", "carbs", "carbohydrate", "carbohydrates",
            "fat", "fats", "deficit", "surplus", "recomp",
        ),
        phrases=(
            "lean body mass", "body fat", "body composition", "fat percentage",
            "muscle mass", "metabolic rate", "daily calories", "target calories",
            "caloric intake", "caloric needs", "nutrition plan", "diet plan", "meal plan",
            "cutting calories", "bulking calories", "maintenance calories",
            "how many calories", "how much protein", "what should my macros",
            "calculate my", "figure out my", "determine my", "daily intake",
            "nutritional needs", "caloric requirements", "macro breakdown",
            "macro split", "macro distribution",
        ),
        patterns=(r"\b(my|what)\s+(macros?|calories?|protein|carbs?|fat)\b",),
    ),
    IntentTag.PROGRAM_LOOKUP: TagRule(
        keywords=("massive", "shredded"),
        phrases=(
            "carb cycling", "carb cycle", "cycling carbs", "high day", "low day",
            "med day", "medium day", "moderate day", "high carb day", "low carb day",
            "massive program", "shredded program", "carb cycling protocol",
            "program structure", "program details", "program overview",
            "nutrition program",
        ),
    ),
    IntentTag.PRODUCT_LOOKUP: TagRule(
        keywords=(
            "supplement", "supplements", "product", "products", "stack", "stacks",
            "catalog", "catalogue", "creatine", "preworkout", "whey", "casein",
            "bcaa", "bcaas", "eaa", "eaas", "thermogenic", "recommend",
            "recommendation",
        ),
        phrases=(
            "pre workout", "pre-workout", "protein powder", "fat burner",
            "liver support", "kidney support", "what products", "what supplements",
            "do you have", "do you sell", "do you offer", "do you carry",
            "in your catalog", "supplement recommendation", "product recommendation",
            "what should i take", "what do you recommend",
        ),
    ),
    IntentTag.WORKOUT_TOPIC: TagRule(
        keywords=(
            "workout", "workouts", "training", "exercise", "exercises", "routine",
            "lift", "lifting", "weightlifting", "powerlifting", "bodybuilding",
            "squat", "squats", "deadlift", "deadlifts", "bench", "curl", "curls",
            "hypertrophy", "strength", "endurance", "sets", "reps",
        ),
        phrases=(
            "workout plan", "training plan", "exercise routine", "training routine",
            "workout program", "training program", "exercise program",
            "upper body", "lower body", "push day", "pull day", "leg day",
            "full body", "how to train", "training advice", "workout advice",
        ),
    ),
    IntentTag.SENSITIVE_TOPIC: TagRule(
        keywords=(
            "peds", "steroid", "steroids", "testosterone", "trt", "hormone",
            "hormones", "pct", "anavar", "dbol", "dianabol", "winstrol", "tren",
            "trenbolone", "deca", "nandrolone", "equipoise", "masteron", "primo",
            "primobolan", "hgh", "igf", "peptide", "peptides", "sarm", "sarms",
            "prohormone", "prohormones", "ergogenic",
        ),
        phrases=(
            "post cycle", "growth hormone", "steroid cycle", "first cycle",
            "beginner cycle", "advanced cycle", "testosterone cycle",
            "performance enhancing", "performance enhancement", "what peds",
            "which steroids", "cycle planning", "pct protocol",
            "hormone optimization", "trt protocol",
        ),
    ),
})


def _compile(rule: TagRule) -> Tuple[List[Tuple[str, "re.Pattern[str]"]], List[Tuple[str, "re.Pattern[str]"]]]:
    words = [(k, re.compile(rf"\b{re.escape(k)}\b")) for k in rule.keywords]
    patterns = [(p, re.compile(p, re.IGNORECASE)) for p in rule.patterns]
    return words, patterns


_COMPILED = MappingProxyType({tag: _compile(rule) for tag, rule in TAG_RULES.items()})


# =============================================================================
# CLASSIFICATION
# =============================================================================

def match_rule(tag: IntentTag, text: str) -> Tuple[str, ...]:
    """Every keyword, phrase or pattern of `tag` that fires on `text`."""
    lowered = (text or "").lower()
    words, patterns = _COMPILED[tag]
    hits = [keyword for keyword, regex in words if regex.search(lowered)]
    hits.extend(phrase for phrase in TAG_RULES[tag].phrases if phrase in lowered)
    hits.extend(source for source, regex in patterns if regex.search(text or ""))
    return tuple(hits)


def classify(text: str) -> Classification:
    """
    Tag a message.

    Args:
        text: Raw user message

    Returns:
        Classification with the set of tags and, per tag, what matched.
        Empty text yields no tags.
    """
    matched: Dict[str, Tuple[str, ...]] = {}
    for tag in TAG_RULES:
        hits = match_rule(tag, text)
        if hits:
            matched[tag.value] = hits

    return Classification(
        tags=frozenset(IntentTag(value) for value in matched),
        matched_keywords=matched,
    )


__all__ = [
    "IntentTag",
    "TagRule",
    "Classification",
    "TAG_RULES",
    "match_rule",
    "classify",
]
