# tools/nutrition_calculator.py
"""
CoachCore - Nutrition Calculator
=================================
Stateless nutrition formulas built on the expression evaluator:
  1. BMR (Mifflin-St Jeor or Harris-Benedict) as named, auditable steps
  2. TDEE from a five-level activity table
  3. Goal adjustments (fixed kcal offsets or goal multipliers)
  4. Macro split with a recomputed calorie total
  5. Body fat (US Navy), lean mass, water intake and unit conversion
  6. Safety validation of a recommendation

Every function accepts plain numbers or a sparse Profile and returns a typed
result. Nothing here raises for bad user input: invalid input comes back as
InvalidInput, absent required fields as MissingData.
"""

import math
from types import MappingProxyType
from typing import Any, Dict, List, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict

from tools.expression_evaluator import (
    StepSpec,
    evaluate,
    format_number,
    round_half_up,
    step_by_step,
)
from tools.schemas import (
    CM_TO_INCHES,
    INCHES_TO_CM,
    KG_TO_LBS,
    LBS_TO_KG,
    CalculationResult,
    CalculationStep,
    InvalidInput,
    MacroAmount,
    MacroDistribution,
    MissingData,
    Profile,
    ProfileValidation,
    missing_fields,
)


# =============================================================================
# CONSTANTS & TABLES
# =============================================================================

ACTIVITY_MULTIPLIERS = MappingProxyType({
    "sedentary": 1.2,
    "light": 1.375,
    "moderate": 1.55,
    "heavy": 1.725,
    "extreme": 1.9,
})

ACTIVITY_LEVEL_ALIASES = MappingProxyType({
    "sedentary": "sedentary",
    "lightly_active": "light",
    "moderately_active": "moderate",
    "very_active": "heavy",
    "extremely_active": "extreme",
    "light": "light",
    "moderate": "moderate",
    "heavy": "heavy",
    "extreme": "extreme",
})

WATER_ACTIVITY_MULTIPLIERS = MappingProxyType({
    "sedentary": 1.0,
    "light": 1.1,
    "moderate": 1.2,
    "heavy": 1.3,
    "extreme": 1.4,
})

# kcal/day offsets; roughly 0.5 / 1 / 1.5 lbs per week
CALORIE_ADJUSTMENTS = MappingProxyType({
    "lose": MappingProxyType({"slow": -250, "moderate": -500, "aggressive": -750}),
    "maintain": MappingProxyType({"slow": 0, "moderate": 0, "aggressive": 0}),
    "gain": MappingProxyType({"slow": 250, "moderate": 500, "aggressive": 750}),
})

ADJUSTMENT_TIMEFRAMES = MappingProxyType({
    "slow": "0.5 lbs/week",
    "moderate": "1 lb/week",
    "aggressive": "1.5 lbs/week",
})

GOAL_MULTIPLIERS = MappingProxyType({
    "lose_weight": (0.8, "weight loss (20% deficit)"),
    "maintain_weight": (1.0, "weight maintenance"),
    "gain_weight": (1.2, "weight gain (20% surplus)"),
    "muscle_gain": (1.15, "muscle gain (15% surplus)"),
    "fat_loss": (0.85, "fat loss (15% deficit)"),
    "lose": (0.8, "weight loss (20% deficit)"),
    "maintain": (1.0, "weight maintenance"),
    "gain": (1.2, "weight gain (20% surplus)"),
})

GOAL_ALIASES = MappingProxyType({
    "weight_loss": "lose_weight",
    "lose_fat": "fat_loss",
    "cut": "lose",
    "cutting": "lose",
    "maintenance": "maintain",
    "build_muscle": "muscle_gain",
    "bulk": "gain",
    "bulking": "gain",
})

MACRO_CALORIES = MappingProxyType({"protein": 4, "carbs": 4, "fat": 9})

BODY_FAT_CATEGORIES = MappingProxyType({
    "male": ((6, "Essential fat"), (14, "Athletes"), (18, "Fitness"), (25, "Average")),
    "female": ((10, "Essential fat"), (17, "Athletes"), (25, "Fitness"), (32, "Average")),
})

NUTRITION_DEFAULTS = MappingProxyType({
    "age": 30,
    "weight_kg": 70,
    "height_cm": 170,
    "sex": "male",
    "activity_level": "moderate",
    "goal": "maintain",
    "protein_per_kg": 1.6,
    "fat_percentage": 25,
    "macro_tolerance_kcal": 10,
    "min_bmr_fraction": 0.8,
    "min_protein_per_kg": 0.8,
    "min_fat_percentage": 20,
    "water_ml_per_kg": 35,
    "cup_ml": 237,
})

BMR_METHODS = ("mifflin_st_jeor", "harris_benedict")

PROFILE_LIMITS = MappingProxyType({
    "age": (13, 120),
    "height_feet": (3, 8),
    "height_inches": (0, 11),
    "weight_lbs": (50, 1000),
    "body_fat_percentage": (3, 50),
    "max_weight_change_fraction": 0.4,
    "max_timeline_weeks": 104,
})


# =============================================================================
# RESULT TYPES
# =============================================================================

class TDEEResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    tdee: int
    bmr: float
    activity_level: str
    activity_multiplier: float
    calculation: CalculationResult


class GoalAdjustment(BaseModel):
    model_config = ConfigDict(frozen=True)

    goal: str
    tdee: float
    multiplier: float
    target_calories: int
    explanation: str


class CalorieAdjustment(BaseModel):
    model_config = ConfigDict(frozen=True)

    goal: str
    target_calories: int
    adjustment: int
    rate: str
    timeframe: str


class BodyFatResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    body_fat_percentage: float
    method: str = "US Navy"
    category: str


class LeanMassResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    lean_body_mass: float
    fat_mass: float
    lean_percentage: float


class WaterIntake(BaseModel):
    model_config = ConfigDict(frozen=True)

    base_water: float
    total_water: float
    cups: int


class SafetyValidation(BaseModel):
    model_config = ConfigDict(frozen=True)

    is_safe: bool
    warnings: Tuple[str, ...] = ()


class ComprehensiveNutrition(BaseModel):
    model_config = ConfigDict(frozen=True)

    status: str = "success"
    inputs: Dict[str, Any]
    bmr: CalculationResult
    tdee: TDEEResult
    goal_adjustment: GoalAdjustment
    macros: MacroDistribution
    validation: SafetyValidation


class _CalculationFailed(ArithmeticError):
    pass


def _calc(expression: str) -> float:
    outcome = evaluate(expression)
    if not outcome.is_valid:
        raise _CalculationFailed(f"{expression}: {outcome.steps[0] if outcome.steps else 'invalid'}")
    return outcome.result


def _whole(value: float) -> int:
    return int(round_half_up(value))


# =============================================================================
# NORMALIZATION
# =============================================================================

def _slug(value: Optional[str]) -> str:
    return (value or "").strip().lower().replace("-", "_").replace(" ", "_")


def map_activity_level(activity_level: Optional[str]) -> str:
    """Map profile wording (e.g. `very_active`) onto the five table levels; default moderate."""
    return ACTIVITY_LEVEL_ALIASES.get(_slug(activity_level), NUTRITION_DEFAULTS["activity_level"])


def normalize_goal(goal: Optional[str]) -> str:
    slug = _slug(goal)
    slug = GOAL_ALIASES.get(slug, slug)
    return slug if slug in GOAL_MULTIPLIERS else NUTRITION_DEFAULTS["goal"]


# =============================================================================
# TOOL 1: BMR
# =============================================================================

def _bmr_steps(age: float, weight: float, height: float, sex: str, method: str) -> List[StepSpec]:
    a, w, h = format_number(age), format_number(weight), format_number(height)

    if method == "mifflin_st_jeor":
        tail = "+ 5" if sex == "male" else "- 161"
        return [
            StepSpec(description=f"Weight component: 10 × {w} kg", expression=f"10 * {w}"),
            StepSpec(description=f"Height component: 6.25 × {h} cm", expression=f"6.25 * {h}"),
            StepSpec(description=f"Age component: 5 × {a} years", expression=f"5 * {a}"),
            StepSpec(
                description=f"BMR = (10 × {w}) + (6.25 × {h}) - (5 × {a}) {tail}",
                expression=f"(10 * {w}) + (6.25 * {h}) - (5 * {a}) {tail}",
            ),
        ]

    if sex == "male":
        base, wk, hk, ak = "88.362", "13.397", "4.799", "5.677"
    else:
        base, wk, hk, ak = "447.593", "9.247", "3.098", "4.330"
    return [
        StepSpec(description=f"Weight component: {wk} × {w} kg", expression=f"{wk} * {w}"),
        StepSpec(description=f"Height component: {hk} × {h} cm", expression=f"{hk} * {h}"),
        StepSpec(description=f"Age component: {ak} × {a} years", expression=f"{ak} * {a}"),
        StepSpec(
            description=f"BMR = {base} + ({wk} × {w}) + ({hk} × {h}) - ({ak} × {a})",
            expression=f"{base} + ({wk} * {w}) + ({hk} * {h}) - ({ak} * {a})",
        ),
    ]


def calculate_bmr(
    age: Optional[float],
    weight_kg: Optional[float],
    height_cm: Optional[float],
    sex: Optional[str],
    method: str = "mifflin_st_jeor"
) -> Union[CalculationResult, MissingData, InvalidInput]:
    """
    Calculate Basal Metabolic Rate as four named steps.

    Args:
        age: Age in years
        weight_kg: Body weight in kilograms
        height_cm: Height in centimeters
        sex: "male" or "female"
        method: "mifflin_st_jeor" (default) or "harris_benedict"

    Returns:
        CalculationResult whose final_result is the BMR in kcal/day (whole
        number), MissingData when an input is absent, InvalidInput otherwise

    Example:
        >>> calculate_bmr(30, 80, 180, "male").final_result
        1780.0
    """
    absent = missing_fields({"age": age, "weight": weight_kg, "height": height_cm, "sex": sex})
    if absent:
        return MissingData(
            fields=tuple(absent),
            message="Need age, weight, height, and sex for a BMR calculation",
        )

    sex = sex.strip().lower()
    if sex not in ("male", "female"):
        return InvalidInput(message="Sex must be 'male' or 'female'")
    if method not in BMR_METHODS:
        return InvalidInput(message=f"Unknown BMR method '{method}'. Use one of {list(BMR_METHODS)}")
    if age <= 0 or weight_kg <= 0 or height_cm <= 0:
        return InvalidInput(message="Age, weight, and height must be positive")

    calculation = step_by_step(_bmr_steps(age, weight_kg, height_cm, sex, method))
    steps = tuple(
        CalculationStep(
            step=r.step,
            description=r.description,
            expression=r.expression,
            result=r.result,
            verification=r.verification,
            is_correct=r.is_correct,
        )
        for r in calculation.results
    )
    inputs = {"age": age, "weight_kg": weight_kg, "height_cm": height_cm, "sex": sex}

    if not calculation.all_steps_valid:
        return CalculationResult(
            status="invalid", formula_id=method, inputs=inputs, steps=steps,
            final_result=None, is_valid=False, verification="INVALID",
        )

    bmr = float(_whole(calculation.final_result))
    return CalculationResult(
        formula_id=method,
        inputs=inputs,
        steps=steps,
        final_result=bmr,
        is_valid=True,
        verification=(
            f"{method.upper()} BMR calculation completed with {calculation.total_steps} steps, "
            f"final result: {format_number(bmr)} calories/day"
        ),
    )


# =============================================================================
# TOOL 2: TDEE
# =============================================================================

def calculate_tdee(bmr: float, activity_level: Optional[str]) -> TDEEResult:
    """
    Total Daily Energy Expenditure = BMR × activity multiplier.

    Unknown activity levels use the sedentary multiplier (1.2).
    """
    level = (activity_level or "").strip().lower()
    multiplier = ACTIVITY_MULTIPLIERS.get(level, ACTIVITY_MULTIPLIERS["sedentary"])

    spec = StepSpec(
        description=f"TDEE = BMR ({format_number(bmr)}) × activity multiplier ({multiplier})",
        expression=f"{format_number(bmr)} * {multiplier}",
    )
    calculation = step_by_step([spec])
    step = calculation.results[0]
    tdee = _whole(step.result)

    return TDEEResult(
        tdee=tdee,
        bmr=bmr,
        activity_level=activity_level or "",
        activity_multiplier=multiplier,
        calculation=CalculationResult(
            status="success" if step.is_valid else "invalid",
            formula_id="tdee_activity_multiplier",
            inputs={"bmr": bmr, "activity_level": activity_level, "multiplier": multiplier},
            steps=(CalculationStep(
                step=1,
                description=step.description,
                expression=step.expression,
                result=step.result,
                verification=step.verification,
            ),),
            final_result=float(tdee) if step.is_valid else None,
            is_valid=step.is_valid,
            verification=f"{step.verification} -> {tdee} calories/day",
        ),
    )


# =============================================================================
# TOOL 3: GOAL ADJUSTMENTS
# =============================================================================

def calculate_calorie_adjustment(
    tdee: float,
    goal: str = "maintain",
    rate: str = "moderate"
) -> CalorieAdjustment:
    """
    Apply a fixed deficit or surplus to TDEE.

    Args:
        tdee: Maintenance calories
        goal: "lose", "maintain" or "gain" (unknown -> maintain)
        rate: "slow", "moderate" or "aggressive" (unknown -> moderate)
    """
    goal_key = goal if goal in CALORIE_ADJUSTMENTS else "maintain"
    rate_key = rate if rate in ADJUSTMENT_TIMEFRAMES else "moderate"
    adjustment = CALORIE_ADJUSTMENTS[goal_key][rate_key]

    target = _calc(f"{format_number(tdee)} + ({adjustment})")
    return CalorieAdjustment(
        goal=goal_key,
        target_calories=_whole(target),
        adjustment=adjustment,
        rate=rate_key,
        timeframe=ADJUSTMENT_TIMEFRAMES[rate_key],
    )


def adjust_calories_for_goal(tdee: float, goal: Optional[str]) -> GoalAdjustment:
    """Scale TDEE by the goal multiplier table; unrecognized goals maintain."""
    goal_key = normalize_goal(goal)
    multiplier, description = GOAL_MULTIPLIERS[goal_key]
    target = _calc(f"{format_number(tdee)} * {multiplier}")

    return GoalAdjustment(
        goal=goal_key,
        tdee=tdee,
        multiplier=multiplier,
        target_calories=_whole(target),
        explanation=description,
    )


# =============================================================================
# TOOL 4: MACRO SPLIT
# =============================================================================

def calculate_macros(
    target_calories: float,
    protein_per_kg: float,
    body_weight_kg: float,
    fat_percentage: float = 25
) -> MacroDistribution:
    """
    Split a calorie target into protein, fat and carbs.

    Protein is set per kg of bodyweight, fat as a share of calories, and carbs
    fill the remainder. The calorie total is then recomputed from the rounded
    grams, so `is_accurate` reports whether the split really lands within
    10 kcal of the target.

    Args:
        target_calories: Daily calorie target
        protein_per_kg: Protein grams per kg bodyweight (e.g. 1.6)
        body_weight_kg: Bodyweight in kilograms
        fat_percentage: Percent of calories from fat (default 25)

    Returns:
        MacroDistribution with grams, calories and percentage per macro
    """
    cal = format_number(target_calories)

    protein_g = _whole(_calc(f"{format_number(protein_per_kg)} * {format_number(body_weight_kg)}"))
    protein_kcal = _whole(_calc(f"{protein_g} * {MACRO_CALORIES['protein']}"))

    fat_kcal = _whole(_calc(f"{cal} * ({format_number(fat_percentage)} / 100)"))
    fat_g = _whole(_calc(f"{fat_kcal} / {MACRO_CALORIES['fat']}"))

    carb_kcal = _calc(f"{cal} - {protein_kcal} - {fat_kcal}")
    carb_g = _whole(_calc(f"{format_number(carb_kcal)} / {MACRO_CALORIES['carbs']}"))

    grams = {"protein": protein_g, "carbs": carb_g, "fat": fat_g}
    calories = {name: g * MACRO_CALORIES[name] for name, g in grams.items()}
    total = int(_calc(" + ".join(f"({g} * {MACRO_CALORIES[name]})" for name, g in grams.items())))

    def _amount(name: str) -> MacroAmount:
        if target_calories <= 0:
            percentage = 0
        else:
            percentage = _whole(_calc(f"{calories[name]} / {cal} * 100"))
        return MacroAmount(grams=grams[name], calories=calories[name], percentage=percentage)

    return MacroDistribution(
        calories=target_calories,
        protein=_amount("protein"),
        carbs=_amount("carbs"),
        fat=_amount("fat"),
        total_calories_from_macros=total,
        is_accurate=abs(total - target_calories) <= NUTRITION_DEFAULTS["macro_tolerance_kcal"],
    )


# =============================================================================
# TOOL 5: BODY COMPOSITION
# =============================================================================

def _body_fat_category(sex: str, body_fat: float) -> str:
    for threshold, label in BODY_FAT_CATEGORIES[sex]:
        if body_fat < threshold:
            return label
    return "Obese"


def calculate_body_fat(
    sex: str,
    height_cm: float,
    waist_cm: float,
    neck_cm: float,
    hip_cm: Optional[float] = None
) -> Union[BodyFatResult, InvalidInput]:
    """
    Estimate body fat with the US Navy circumference method.

    Women need a hip measurement. Measurements that make the logarithms
    undefined (waist not larger than neck, non-positive height) are invalid.
    """
    sex = (sex or "").strip().lower()
    if sex not in BODY_FAT_CATEGORIES:
        return InvalidInput(message="Sex must be 'male' or 'female'")

    if sex == "male":
        girth = waist_cm - neck_cm
        expression = "495 / (1.0324 - 0.19077 * {girth} + 0.15456 * {height}) - 450"
    else:
        if not hip_cm:
            return InvalidInput(message="Hip measurement required for female body fat calculation")
        girth = waist_cm + hip_cm - neck_cm
        expression = "495 / (1.29579 - 0.35004 * {girth} + 0.221 * {height}) - 450"

    if girth <= 0 or height_cm <= 0:
        return InvalidInput(message="Circumference measurements must produce a positive girth and height")

    try:
        body_fat = _calc(expression.format(
            girth=f"{math.log10(girth):.12f}",
            height=f"{math.log10(height_cm):.12f}",
        ))
    except _CalculationFailed as e:
        return InvalidInput(message=f"Body fat calculation failed: {e}")

    return BodyFatResult(
        body_fat_percentage=round_half_up(body_fat, 1),
        category=_body_fat_category(sex, body_fat),
    )


def calculate_lean_body_mass(weight: float, body_fat_percentage: float) -> LeanMassResult:
    """Split bodyweight into fat mass and lean mass (same unit as `weight`)."""
    w, bf = format_number(weight), format_number(body_fat_percentage)
    fat_mass = _calc(f"{w} * ({bf} / 100)")
    lean_mass = _calc(f"{w} - {format_number(fat_mass)}")
    lean_pct = _calc(f"100 - {bf}")

    return LeanMassResult(
        lean_body_mass=round_half_up(lean_mass, 1),
        fat_mass=round_half_up(fat_mass, 1),
        lean_percentage=round_half_up(lean_pct, 1),
    )


def calculate_water_intake(weight_kg: float, activity_level: Optional[str] = None) -> WaterIntake:
    """Daily water: 35 ml per kg, scaled by activity, reported in liters and 8 oz cups."""
    level = (activity_level or "").strip().lower()
    multiplier = WATER_ACTIVITY_MULTIPLIERS.get(level, 1.0)

    base_liters = _calc(f"{format_number(weight_kg)} * {NUTRITION_DEFAULTS['water_ml_per_kg']} / 1000")
    total_liters = _calc(f"{format_number(base_liters)} * {multiplier}")
    cups = _calc(f"{format_number(total_liters)} * 1000 / {NUTRITION_DEFAULTS['cup_ml']}")

    return WaterIntake(
        base_water=round_half_up(base_liters, 1),
        total_water=round_half_up(total_liters, 1),
        cups=_whole(cups),
    )


# =============================================================================
# TOOL 6: UNIT CONVERSION
# =============================================================================

def lbs_to_kg(pounds: float) -> float:
    return _calc(f"{format_number(pounds)} * {LBS_TO_KG}")


def kg_to_lbs(kg: float) -> float:
    return _calc(f"{format_number(kg)} * {KG_TO_LBS}")


def inches_to_cm(inches: float) -> float:
    return _calc(f"{format_number(inches)} * {INCHES_TO_CM}")


def cm_to_inches(cm: float) -> float:
    return _calc(f"{format_number(cm)} * {CM_TO_INCHES}")


def feet_and_inches_to_cm(feet: float, inches: float) -> float:
    return _calc(f"(({format_number(feet)} * 12) + {format_number(inches)}) * {INCHES_TO_CM}")


UNIT_CONVERSIONS = MappingProxyType({
    "lbs_to_kg": lbs_to_kg,
    "kg_to_lbs": kg_to_lbs,
    "inches_to_cm": inches_to_cm,
    "cm_to_inches": cm_to_inches,
})


def convert_units(value: float, conversion: str) -> Dict[str, Any]:
    """
    Convert a single value; `conversion` is one of lbs_to_kg, kg_to_lbs,
    inches_to_cm, cm_to_inches. Results are rounded to two decimals.
    """
    converter = UNIT_CONVERSIONS.get(conversion)
    if converter is None:
        return {
            "status": "error",
            "error_message": f"Unknown conversion '{conversion}'. Use one of {list(UNIT_CONVERSIONS)}",
        }
    return {"status": "success", "input": value, "conversion": conversion, "result": converter(value)}


# =============================================================================
# TOOL 7: SAFETY VALIDATION
# =============================================================================

def _profile_metrics(profile: Profile) -> Dict[str, Any]:
    """Metric inputs from a profile with documented defaults for gaps."""
    return {
        "age": profile.age or NUTRITION_DEFAULTS["age"],
        "weight_kg": profile.weight_kg or NUTRITION_DEFAULTS["weight_kg"],
        "height_cm": profile.height_cm or NUTRITION_DEFAULTS["height_cm"],
        "sex": profile.sex or NUTRITION_DEFAULTS["sex"],
    }


def validate_recommendation(
    profile: Profile,
    target_calories: float,
    macros: MacroDistribution
) -> SafetyValidation:
    """
    Flag, never block, risky recommendations: calories under 80% of BMR,
    protein under 0.8 g/kg, or fat under 20% of calories.
    """
    metrics = _profile_metrics(profile)
    warnings: List[str] = []

    bmr = calculate_bmr(metrics["age"], metrics["weight_kg"], metrics["height_cm"], metrics["sex"])
    if isinstance(bmr, CalculationResult) and bmr.is_valid:
        floor = _calc(f"{format_number(bmr.final_result)} * {NUTRITION_DEFAULTS['min_bmr_fraction']}")
        if target_calories < floor:
            warnings.append(
                "Target calories are very low - consider increasing to avoid metabolic slowdown"
            )

    min_protein = _calc(
        f"{format_number(metrics['weight_kg'])} * {NUTRITION_DEFAULTS['min_protein_per_kg']}"
    )
    if macros.protein.grams < min_protein:
        warnings.append(
            f"Protein intake may be too low - consider at least {_whole(min_protein)}g"
        )

    if macros.fat.percentage < NUTRITION_DEFAULTS["min_fat_percentage"]:
        warnings.append(
            "Fat percentage may be too low for hormonal health - consider at least 20%"
        )

    return SafetyValidation(is_safe=not warnings, warnings=tuple(warnings))


def validate_profile(profile: Profile) -> ProfileValidation:
    """Range-check a profile: hard errors for impossible values, warnings for unusual ones."""
    errors: List[str] = []
    warnings: List[str] = []
    limits = PROFILE_LIMITS

    def _outside(value: Optional[float], bounds: Tuple[float, float]) -> bool:
        return value is not None and not (bounds[0] <= value <= bounds[1])

    if _outside(profile.age, limits["age"]):
        errors.append("Age must be between 13 and 120")
    if _outside(profile.height_feet, limits["height_feet"]):
        errors.append("Height (feet) must be between 3 and 8")
    if _outside(profile.height_inches, limits["height_inches"]):
        errors.append("Height (inches) must be between 0 and 11")
    if _outside(profile.weight_lbs, limits["weight_lbs"]):
        errors.append("Weight must be between 50 and 1000 lbs")

    if _outside(profile.body_fat_percentage, limits["body_fat_percentage"]):
        warnings.append("Body fat percentage seems unusual (typical range: 3-50%)")
    if profile.weight_lbs and profile.target_weight_lbs:
        change = abs(profile.target_weight_lbs - profile.weight_lbs) / profile.weight_lbs
        if change > limits["max_weight_change_fraction"]:
            warnings.append("Target weight represents a significant change - consider intermediate goals")
    if profile.timeline_weeks and profile.timeline_weeks > limits["max_timeline_weeks"]:
        warnings.append("Timeline is quite long - consider shorter-term milestones")

    return ProfileValidation(is_valid=not errors, errors=tuple(errors), warnings=tuple(warnings))


# =============================================================================
# TOOL 8: COMPREHENSIVE NUTRITION
# =============================================================================

def calculate_comprehensive_nutrition(profile: Profile) -> Union[ComprehensiveNutrition, MissingData, InvalidInput]:
    """
    Full pipeline from a profile: BMR -> TDEE -> goal target -> macros ->
    safety validation.

    Requires age, weight, height and sex. Activity level defaults to
    moderate and goal to maintain. Protein is 1.6 g/kg and fat 25% of calories.
    """
    available = {
        "has_age": bool(profile.age),
        "has_weight": bool(profile.weight_lbs),
        "has_height": bool(profile.total_height_inches),
        "has_sex": bool(profile.sex),
    }
    absent = missing_fields({
        "age": profile.age,
        "weight_lbs": profile.weight_lbs,
        "height": profile.total_height_inches,
        "sex": profile.sex,
    })
    if absent:
        return MissingData(
            fields=tuple(absent),
            message="Need age, weight, height, and sex for BMR/TDEE calculations",
            available=available,
        )

    weight_kg = profile.weight_kg
    height_cm = profile.height_cm
    bmr = calculate_bmr(profile.age, weight_kg, height_cm, profile.sex)
    if not isinstance(bmr, CalculationResult):
        return bmr
    if not bmr.is_valid:
        return InvalidInput(message="BMR calculation failed for the supplied profile")

    activity_level = map_activity_level(profile.activity_level)
    tdee = calculate_tdee(bmr.final_result, activity_level)
    goal_adjustment = adjust_calories_for_goal(tdee.tdee, profile.goal)
    macros = calculate_macros(
        goal_adjustment.target_calories,
        NUTRITION_DEFAULTS["protein_per_kg"],
        weight_kg,
        NUTRITION_DEFAULTS["fat_percentage"],
    )
    validation = validate_recommendation(profile, goal_adjustment.target_calories, macros)

    return ComprehensiveNutrition(
        inputs={
            "age": profile.age,
            "weight_kg": weight_kg,
            "height_cm": height_cm,
            "sex": profile.sex,
            "activity_level": activity_level,
            "goal": goal_adjustment.goal,
        },
        bmr=bmr,
        tdee=tdee,
        goal_adjustment=goal_adjustment,
        macros=macros,
        validation=validation,
    )


# =============================================================================
# EXPORTS
# =============================================================================
__all__ = [
    "ACTIVITY_MULTIPLIERS",
    "CALORIE_ADJUSTMENTS",
    "GOAL_MULTIPLIERS",
    "MACRO_CALORIES",
    "NUTRITION_DEFAULTS",
    "TDEEResult",
    "GoalAdjustment",
    "CalorieAdjustment",
    "BodyFatResult",
    "LeanMassResult",
    "WaterIntake",
    "SafetyValidation",
    "ComprehensiveNutrition",
    "map_activity_level",
    "normalize_goal",
    "calculate_bmr",
    "calculate_tdee",
    "calculate_calorie_adjustment",
    "adjust_calories_for_goal",
    "calculate_macros",
    "calculate_body_fat",
    "calculate_lean_body_mass",
    "calculate_water_intake",
    "lbs_to_kg",
    "kg_to_lbs",
    "inches_to_cm",
    "cm_to_inches",
    "feet_and_inches_to_cm",
    "convert_units",
    "validate_recommendation",
    "validate_profile",
    "calculate_comprehensive_nutrition",
]
