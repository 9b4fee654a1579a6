# unit_tests/test_agent_intent_classifier.py
"""
Unit Tests for Intent Classifier
================================
Run with: python -m pytest unit_tests/test_agent_intent_classifier.py -v
Or simply: python unit_tests/test_agent_intent_classifier.py
"""

import sys
from pathlib import Path

import pytest

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from agents.intent_classifier import TAG_RULES, IntentTag, TagRule, classify, match_rule


def test_multiple_tags():
    """Test 1: One message can carry several tags."""
    print("\n" + "="*60)
    print("TEST 1: Multi-tag classification")
    print("="*60)

    result = classify("What are my macros for the massive program?")
    print(f"   tags: {sorted(t.value for t in result.tags)}")
    print(f"   matched: {result.matched_keywords}")

    assert result.tags == {IntentTag.NUTRITION_CALCULATION, IntentTag.PROGRAM_LOOKUP}
    assert "macros" in result.matched_keywords["nutrition_calculation"]
    assert "massive" in result.matched_keywords["program_lookup"]
    print("✅ nutrition_calculation + program_lookup")


def test_arithmetic_patterns():
    print("\n" + "="*60)
    print("TEST 2: Arithmetic detection")
    print("="*60)

    for text in ("what's 2500 * 0.8", "(10 * 80) + (6.25 * 180)", "20% of 2000", "7 ÷ 2"):
        result = classify(text)
        print(f"   {text!r}: {sorted(t.value for t in result.tags)}")
        assert result.has(IntentTag.ARITHMETIC), text


def test_arithmetic_keywords():
    assert classify("what is 12 times 4").has(IntentTag.ARITHMETIC)
    assert classify("calculate my calories").has(IntentTag.ARITHMETIC)


def test_nothing_matches():
    result = classify("hello there, how was your weekend?")
    assert result.tags == frozenset()
    assert result.matched_keywords == {}

    assert classify("").tags == frozenset()
    assert classify(None).tags == frozenset()


def test_product_lookup():
    result = classify("Do you sell creatine?")
    assert result.tags == {IntentTag.PRODUCT_LOOKUP}
    hits = result.matched_keywords["product_lookup"]
    assert "creatine" in hits
    assert "do you sell" in hits


def test_workout_topic():
    result = classify("Can you give me a leg day routine with squats?")
    assert result.has(IntentTag.WORKOUT_TOPIC)
    assert not result.has(IntentTag.NUTRITION_CALCULATION)


def test_sensitive_topic():
    result = classify("What should my first steroid cycle look like?")
    assert result.has(IntentTag.SENSITIVE_TOPIC)
    assert "steroid" in result.matched_keywords["sensitive_topic"]


def test_keywords_match_whole_words_only():
    print("\n" + "="*60)
    print("TEST 3: Word boundaries")
    print("="*60)

    # "fat" inside "fatigue", "deca" inside "decades", "stack" inside "haystack"
    result = classify("I've felt fatigue for decades, like a needle in a haystack")
    print(f"   tags: {sorted(t.value for t in result.tags)}")
    assert result.tags == frozenset()


def test_bare_program_word_is_not_a_program_lookup():
    assert not classify("tell me about your program").has(IntentTag.PROGRAM_LOOKUP)
    assert classify("how does carb cycling work").has(IntentTag.PROGRAM_LOOKUP)
    assert classify("what do I eat on a high day").has(IntentTag.PROGRAM_LOOKUP)


def test_case_insensitive():
    assert classify("SHREDDED").has(IntentTag.PROGRAM_LOOKUP)
    assert classify("How Much Protein do I need").has(IntentTag.NUTRITION_CALCULATION)


def test_match_rule_reports_each_source():
    hits = match_rule(IntentTag.NUTRITION_CALCULATION, "how much protein for my macros")
    assert "protein" in hits
    assert "how much protein" in hits
    assert any(h.startswith(r"\b(my|what)") for h in hits)


def test_classification_is_deterministic():
    text = "calculate my TDEE and recommend a protein powder"
    assert classify(text) == classify(text)
    assert classify(text).tags == {
        IntentTag.ARITHMETIC,
        IntentTag.NUTRITION_CALCULATION,
        IntentTag.PRODUCT_LOOKUP,
    }


def test_rule_table_is_read_only():
    with pytest.raises(TypeError):
        TAG_RULES[IntentTag.ARITHMETIC] = TagRule(keywords=("banana",))
    with pytest.raises(TypeError):
        del TAG_RULES[IntentTag.SENSITIVE_TOPIC]
    assert not classify("banana").tags


def run_all_tests():
    """Run all tests and report results."""
    print("\n" + "🏷️"*30)
    print("   INTENT CLASSIFIER - UNIT TESTS")
    print("🏷️"*30)

    tests = [
        ("Multiple Tags", test_multiple_tags),
        ("Arithmetic Patterns", test_arithmetic_patterns),
        ("Arithmetic Keywords", test_arithmetic_keywords),
        ("No Match", test_nothing_matches),
        ("Product Lookup", test_product_lookup),
        ("Workout Topic", test_workout_topic),
        ("Sensitive Topic", test_sensitive_topic),
        ("Word Boundaries", test_keywords_match_whole_words_only),
        ("Bare Program Word", test_bare_program_word_is_not_a_program_lookup),
        ("Case Insensitive", test_case_insensitive),
        ("Match Sources", test_match_rule_reports_each_source),
        ("Deterministic", test_classification_is_deterministic),
        ("Read-only Rules", test_rule_table_is_read_only),
    ]

    results = []
    for name, test_func in tests:
        try:
            test_func()
            results.append((name, True))
        except AssertionError as e:
            print(f"\n❌ TEST FAILED: {name}")
            print(f"   Error: {e}")
            results.append((name, False))

    print("\n" + "="*60)
    print("SUMMARY")
    print("="*60)

    passed = sum(1 for _, p in results if p)
    for name, p in results:
        print(f"   {'✅ PASS' if p else '❌ FAIL'}: {name}")
    print(f"\nTotal: {passed}/{len(results)} tests passed")

    return passed == len(results)


if __name__ == "__main__":
    success = run_all_tests()
    sys.exit(0 if success else 1)
