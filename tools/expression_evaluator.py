# tools/expression_evaluator.py
"""
CoachCore - Expression Evaluator
=================================
The single place where raw arithmetic happens.

Expressions are sanitized down to digits, `+ - * / ( )`, decimal points and
whitespace, then walked as a Python AST that only knows numeric constants and
the four basic operators. Nothing else is ever executed.

Every formula elsewhere in the project (BMR, TDEE, macro steps) is written as
an ordered list of named expressions and run through `step_by_step`, so each
intermediate value can be shown to the user or audited.
"""

import ast
import math
import operator
import re
from typing import List, Optional, Sequence, Tuple

from pydantic import BaseModel, ConfigDict, Field


# =============================================================================
# CONSTANTS
# =============================================================================

PERCENT_OF_RE = re.compile(r"(\d+(?:\.\d+)?)%\s*of\s*(\d+(?:\.\d+)?)", re.IGNORECASE)
PERCENT_RE = re.compile(r"(\d+(?:\.\d+)?)%")
DISALLOWED_CHARS_RE = re.compile(r"[^0-9+\-*/().\s]")
WHITESPACE_RE = re.compile(r"\s+")
LEADING_ZEROS_RE = re.compile(r"(?<![\d.])0+(?=\d)")

# Free-text extraction
EXPRESSION_CANDIDATE_RE = re.compile(r"[\d(][\d\s.+\-*/×÷()%]*[\d)%]")
OPERATOR_BETWEEN_RE = re.compile(r"[\d)%]\s*[+\-*/×÷]\s*[\d(]")

BINARY_OPERATORS = {
    ast.Add: operator.add,
    ast.Sub: operator.sub,
    ast.Mult: operator.mul,
    ast.Div: operator.truediv,
}

UNARY_OPERATORS = {
    ast.UAdd: operator.pos,
    ast.USub: operator.neg,
}

CALORIE_OPERATIONS = {
    "add": ("+", "+"),
    "subtract": ("-", "-"),
    "multiply": ("*", "×"),
    "divide": ("/", "÷"),
}

STEP_EPSILON = 0.01


# =============================================================================
# RESULT TYPES
# =============================================================================

class ExpressionResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    expression: str
    result: float = 0.0
    steps: Tuple[str, ...] = ()
    verification: str = "INVALID"
    is_valid: bool = False


class StepSpec(BaseModel):
    """One named step of a formula."""
    model_config = ConfigDict(frozen=True)

    description: str
    expression: str
    expected_result: Optional[float] = None


class StepResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    step: int
    description: str
    expression: str
    result: float
    verification: str
    is_valid: bool
    is_correct: bool = True


class StepByStepResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    total_steps: int
    results: Tuple[StepResult, ...] = ()
    final_result: float = 0.0
    all_steps_valid: bool = True


class CalorieArithmetic(BaseModel):
    model_config = ConfigDict(frozen=True)

    inputs: Tuple[float, ...] = Field(default_factory=tuple)
    operation: str
    result: float = 0.0
    verification: str = "Invalid operation"
    is_valid: bool = False


# =============================================================================
# NUMBER HELPERS
# =============================================================================

def round_half_up(value: float, digits: int = 0) -> float:
    """Round halves towards positive infinity (0.5 -> 1, -0.5 -> 0)."""
    factor = 10 ** digits
    scaled = value * factor
    if not math.isfinite(scaled):
        return value
    return math.floor(scaled + 0.5) / factor


def format_number(value: float) -> str:
    """Render 80.0 as '80' and 80.5 as '80.5'."""
    if isinstance(value, float):
        if value.is_integer():
            return str(int(value))
        text = repr(value)
        if "e" in text:
            text = f"{value:.12f}".rstrip("0").rstrip(".")
        return text
    return str(value)


def _invalid(expression: str, message: str, verification: str = "INVALID") -> ExpressionResult:
    return ExpressionResult(
        expression=expression,
        result=0.0,
        steps=(message,),
        verification=verification,
        is_valid=False,
    )


# =============================================================================
# PREPROCESSING
# =============================================================================

def preprocess_expression(expression: str) -> str:
    """Rewrite percentages and unicode operators into plain arithmetic."""
    processed = PERCENT_OF_RE.sub(r"(\1/100) * \2", expression)
    processed = PERCENT_RE.sub(r"(\1/100)", processed)
    return processed.replace("×", "*").replace("÷", "/")


def sanitize_expression(processed: str) -> str:
    """Drop every character that is not part of basic arithmetic."""
    cleaned = DISALLOWED_CHARS_RE.sub("", processed)
    return WHITESPACE_RE.sub(" ", cleaned).strip()


def _parentheses_balanced(expression: str) -> bool:
    return expression.count("(") == expression.count(")")


# =============================================================================
# RESTRICTED EVALUATION
# =============================================================================

def _eval_node(node: ast.AST) -> float:
    if isinstance(node, ast.Expression):
        return _eval_node(node.body)
    if isinstance(node, ast.Constant) and type(node.value) in (int, float):
        return float(node.value)
    if isinstance(node, ast.BinOp) and type(node.op) in BINARY_OPERATORS:
        return BINARY_OPERATORS[type(node.op)](_eval_node(node.left), _eval_node(node.right))
    if isinstance(node, ast.UnaryOp) and type(node.op) in UNARY_OPERATORS:
        return UNARY_OPERATORS[type(node.op)](_eval_node(node.operand))
    raise ValueError(f"Unsupported expression element: {type(node).__name__}")


def _compute(clean_expression: str) -> float:
    # Python rejects "08" as a literal; arithmetic input means 8
    normalized = LEADING_ZEROS_RE.sub("", clean_expression)
    tree = ast.parse(normalized, mode="eval")
    return _eval_node(tree)


# =============================================================================
# PUBLIC API
# =============================================================================

def evaluate(expression: str) -> ExpressionResult:
    """
    Evaluate an arithmetic expression safely.

    Supports `+ - * /`, parentheses, decimals, `X% of Y`, bare `X%` and the
    `×` / `÷` glyphs. Invalid input never raises: it comes back with
    `is_valid=False`.

    Args:
        expression: Raw expression, possibly with surrounding words

    Returns:
        ExpressionResult with the cleaned expression, the result rounded to
        two decimals, the processing steps and a verification line
    """
    expression = expression or ""
    processed = preprocess_expression(expression)
    clean = sanitize_expression(processed)

    if not clean:
        return _invalid(expression, "Invalid expression: empty or contains invalid characters")

    if not _parentheses_balanced(clean):
        return _invalid(expression, "Invalid expression: unbalanced parentheses")

    try:
        raw = _compute(clean)
    except (SyntaxError, ValueError, ZeroDivisionError, OverflowError, RecursionError) as e:
        return _invalid(expression, f"Error: {e}", verification="CALCULATION_ERROR")

    if not math.isfinite(raw):
        return _invalid(expression, "Invalid result: not a finite number")

    rounded = round_half_up(raw, 2)

    return ExpressionResult(
        expression=clean,
        result=rounded,
        steps=(
            f"Original: {expression}",
            f"Processed: {processed}",
            f"Cleaned: {clean}",
            f"Calculated: {format_number(raw)}",
            f"Rounded: {format_number(rounded)}",
        ),
        verification=f"{clean} = {format_number(rounded)}",
        is_valid=True,
    )


def step_by_step(steps: Sequence[StepSpec]) -> StepByStepResult:
    """
    Run a formula as an ordered list of named expressions.

    Each step is evaluated independently. When a step carries an
    `expected_result`, it is marked correct only if the evaluated value lands
    within 0.01 of it. The final result is the last step's value.
    """
    results: List[StepResult] = []
    all_valid = True

    for index, spec in enumerate(steps, start=1):
        calculation = evaluate(spec.expression)
        if spec.expected_result is not None:
            is_correct = abs(calculation.result - spec.expected_result) < STEP_EPSILON
        else:
            is_correct = True
        if not calculation.is_valid:
            all_valid = False

        results.append(StepResult(
            step=index,
            description=spec.description,
            expression=spec.expression,
            result=calculation.result,
            verification=calculation.verification,
            is_valid=calculation.is_valid,
            is_correct=is_correct,
        ))

    return StepByStepResult(
        total_steps=len(results),
        results=tuple(results),
        final_result=results[-1].result if results else 0.0,
        all_steps_valid=all_valid,
    )


def calculate_calories(values: Sequence[float], operation: str) -> CalorieArithmetic:
    """
    Add, subtract, multiply or divide a list of calorie values.

    The arithmetic goes through `evaluate`, so a division by zero yields an
    invalid result rather than an exception.
    """
    values = tuple(float(v) for v in values)
    if operation not in CALORIE_OPERATIONS:
        return CalorieArithmetic(inputs=values, operation=operation)

    symbol, glyph = CALORIE_OPERATIONS[operation]
    verification_terms = f" {glyph} ".join(format_number(v) for v in values)

    if not values:
        identity = {"add": 0.0, "multiply": 1.0}.get(operation)
        if identity is None:
            return CalorieArithmetic(inputs=values, operation=operation,
                                     verification="No values supplied")
        return CalorieArithmetic(inputs=values, operation=operation, result=identity,
                                 verification=f"= {format_number(identity)}", is_valid=True)

    terms = [f"({format_number(v)})" if v < 0 else format_number(v) for v in values]
    outcome = evaluate(f" {symbol} ".join(terms))
    if not outcome.is_valid:
        return CalorieArithmetic(inputs=values, operation=operation,
                                 verification=outcome.verification)

    return CalorieArithmetic(
        inputs=values,
        operation=operation,
        result=outcome.result,
        verification=f"{verification_terms} = {format_number(outcome.result)}",
        is_valid=True,
    )


def extract_expression(text: str) -> Optional[str]:
    """
    Pull the most complete arithmetic expression out of free text.

    `"what is (10 * 102.06) + (6.25 * 177.8)?"` yields
    `"(10 * 102.06) + (6.25 * 177.8)"`. Returns None when the text holds no
    operator between two numbers.
    """
    if not text:
        return None

    percent_of = PERCENT_OF_RE.search(text)
    if percent_of:
        return percent_of.group(0)

    candidates = []
    for match in EXPRESSION_CANDIDATE_RE.findall(text):
        candidate = match.strip()
        # Sentence punctuation can leave a dangling closer
        while candidate.endswith(")") and candidate.count(")") > candidate.count("("):
            candidate = candidate[:-1].rstrip()
        while candidate.startswith("(") and candidate.count("(") > candidate.count(")"):
            candidate = candidate[1:].lstrip()
        if OPERATOR_BETWEEN_RE.search(candidate):
            candidates.append(candidate)

    if not candidates:
        return None
    return max(candidates, key=len)


__all__ = [
    "ExpressionResult",
    "StepSpec",
    "StepResult",
    "StepByStepResult",
    "CalorieArithmetic",
    "round_half_up",
    "format_number",
    "preprocess_expression",
    "sanitize_expression",
    "evaluate",
    "step_by_step",
    "calculate_calories",
    "extract_expression",
]
