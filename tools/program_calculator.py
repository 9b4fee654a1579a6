# tools/program_calculator.py
"""
CoachCore - Program Calculator
===============================
Table-driven carb-cycling protocols for the two named regimens:
  - MASSIVE: muscle building, two high days a week
  - SHREDDED: fat loss, one high day a week

Each (regimen, day type) pair is a hand-authored meal table with published
daily totals. The tables are constants and do not scale with the user: the
profile only drives the lean-mass report, the estimation warnings and the
choice of regimen.

Also here: weekly cycles, approved foods, food portion sizing, the plateau
rule for adding a third high day, body-fat/height estimation and
goal/regimen mismatch detection.
"""

from types import MappingProxyType
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, computed_field

from tools.expression_evaluator import evaluate, format_number, round_half_up
from tools.schemas import (
    INCHES_TO_CM,
    LBS_TO_KG,
    DayType,
    InvalidInput,
    MissingData,
    Profile,
    ProgramName,
)


# =============================================================================
# RESULT TYPES
# =============================================================================

class MealEntry(BaseModel):
    """One meal row. `fat` is added fat only."""
    model_config = ConfigDict(frozen=True)

    meal_number: int
    meal_type: str
    protein: int
    carbs: int
    fat: int
    timing: Optional[str] = None
    training_meal: bool = False


class DailyTotals(BaseModel):
    model_config = ConfigDict(frozen=True)

    protein: int
    carbs: int
    fat: int

    @property
    def calories(self) -> int:
        return self.protein * 4 + self.carbs * 4 + self.fat * 9


class ProgramMacros(BaseModel):
    model_config = ConfigDict(frozen=True)

    program: ProgramName
    day: DayType
    meals: Tuple[MealEntry, ...]
    daily_totals: DailyTotals
    notes: Tuple[str, ...] = ()

    @computed_field
    @property
    def estimated_calories(self) -> int:
        return self.daily_totals.calories

    @computed_field
    @property
    def meal_totals(self) -> DailyTotals:
        """Sum of the meal rows; can differ from the published daily totals."""
        return DailyTotals(
            protein=sum(m.protein for m in self.meals),
            carbs=sum(m.carbs for m in self.meals),
            fat=sum(m.fat for m in self.meals),
        )


class DaySchedule(BaseModel):
    model_config = ConfigDict(frozen=True)

    day: DayType
    training_day: bool
    training_type: Optional[str] = None


class ProgramCycle(BaseModel):
    model_config = ConfigDict(frozen=True)

    program: ProgramName
    cycle_pattern: Tuple[str, ...] = ("Low Day", "Med Day", "High Day")
    days: Tuple[Tuple[str, DaySchedule], ...] = Field(exclude=True)

    @computed_field
    @property
    def week_structure(self) -> Dict[str, DaySchedule]:
        """Weekday -> schedule, built fresh on every access."""
        return dict(self.days)


class ProgramDay(BaseModel):
    model_config = ConfigDict(frozen=True)

    macros: ProgramMacros
    meal_plan: Tuple[MealEntry, ...]
    instructions: Tuple[str, ...]
    timing: Tuple[str, ...]


class LeanBodyMass(BaseModel):
    model_config = ConfigDict(frozen=True)

    weight: float
    body_fat_percentage: float
    fat_mass: float
    lean_body_mass: float
    explanation: str


class ProgramInputs(BaseModel):
    """Weight, height and body fat after estimation, with what was estimated."""
    model_config = ConfigDict(frozen=True)

    name: str = "User"
    weight_lbs: float
    height_inches: float
    body_fat_percentage: float
    program: ProgramName = "massive"
    body_fat_estimated: bool = False
    height_estimated: bool = False
    bmi: Optional[float] = None
    estimation_warnings: Tuple[str, ...] = ()


class ProgramIntent(BaseModel):
    model_config = ConfigDict(frozen=True)

    explicit_program: Optional[ProgramName] = None
    implied_goal: Optional[str] = None
    confidence: float = 0.0


class ProgramMismatch(BaseModel):
    model_config = ConfigDict(frozen=True)

    requested: ProgramName
    suggested: ProgramName
    reason: str


class ProgramCalculation(BaseModel):
    model_config = ConfigDict(frozen=True)

    status: str = "success"
    program: ProgramName
    day_type: Optional[DayType] = None
    lean_body_mass: LeanBodyMass
    program_cycle: ProgramCycle
    program_day: Optional[ProgramDay] = None
    all_days: Optional[Dict[str, ProgramDay]] = None
    inputs: ProgramInputs
    body_fat_estimated: bool = False
    height_estimated: bool = False
    estimated_body_fat: Optional[float] = None
    estimated_height: Optional[float] = None
    estimation_warnings: Tuple[str, ...] = ()
    program_mismatch: Optional[ProgramMismatch] = None
    intent: ProgramIntent


class FoodNormalization(BaseModel):
    """Grams of food per gram of the target macro, plus incidental macros per gram of food."""
    model_config = ConfigDict(frozen=True)

    category: str
    food: str
    grams_per_macro_gram: float
    incidental: Tuple[Tuple[str, float], ...] = Field((), exclude=True)

    @computed_field
    @property
    def additional_macros(self) -> Dict[str, float]:
        return dict(self.incidental)


class FoodPortion(BaseModel):
    model_config = ConfigDict(frozen=True)

    food: str
    grams: int
    additional_macros: Dict[str, float]


class FoodPortions(BaseModel):
    model_config = ConfigDict(frozen=True)

    protein: Optional[FoodPortion] = None
    carbs: Optional[FoodPortion] = None
    fat: Optional[FoodPortion] = None


class ProgressEntry(BaseModel):
    model_config = ConfigDict(frozen=True)

    week: int
    weight_change: float


class PlateauCheck(BaseModel):
    model_config = ConfigDict(frozen=True)

    should_add: bool
    reason: str
    weeks_stuck: int = 0


# =============================================================================
# PROGRAM TABLES
# =============================================================================
PRE_WORKOUT_TIMING = "1-1.5 hours before training"
INTRA_WORKOUT_TIMING = "During workout"
POST_WORKOUT_TIMING = "Within 1 hour of finishing workout"


def _meals(rows: Sequence[Tuple[str, int, int, int, Optional[str]]]) -> Tuple[MealEntry, ...]:
    return tuple(
        MealEntry(
            meal_number=number,
            meal_type=meal_type,
            protein=protein,
            carbs=carbs,
            fat=fat,
            timing=timing,
            training_meal=timing is not None,
        )
        for number, (meal_type, protein, carbs, fat, timing) in enumerate(rows, start=1)
    )


def _rest_day(first_three: Tuple[int, int, int], last_three: Tuple[int, int, int]):
    return [(f"Meal {n}", *first_three, None) for n in (1, 2, 3)] + \
           [(f"Meal {n}", *last_three, None) for n in (4, 5, 6)]


def _training_day(pre, intra, post, regular: Sequence[Tuple[int, int, int]]):
    rows = [
        ("Pre Workout Meal", *pre, PRE_WORKOUT_TIMING),
        ("Intra Workout Shake", *intra, INTRA_WORKOUT_TIMING),
        ("Post Workout Meal", *post, POST_WORKOUT_TIMING),
    ]
    rows.extend((f"Meal {n}", *macros, None) for n, macros in enumerate(regular, start=1))
    return rows


def _table(program, day, rows, totals: Tuple[int, int, int], notes: Sequence[str]) -> ProgramMacros:
    protein, carbs, fat = totals
    return ProgramMacros(
        program=program,
        day=day,
        meals=_meals(rows),
        daily_totals=DailyTotals(protein=protein, carbs=carbs, fat=fat),
        notes=tuple(notes),
    )


# Published totals are authoritative. massive/med meals add up to 370 g carbs
# against the published 400 g; both are exposed (daily_totals vs meal_totals).
PROGRAM_TABLES = MappingProxyType({
    ("massive", "low"): _table(
        "massive", "low",
        _rest_day((45, 40, 8), (45, 35, 12)),
        (270, 225, 60),
        [
            "Non-training day macros",
            "Added fat only - protein and carb sources provide additional fat",
            "Space meals 2.5-3 hours apart",
        ],
    ),
    ("massive", "med"): _table(
        "massive", "med",
        _training_day((45, 55, 0), (10, 20, 0), (45, 85, 0),
                      [(45, 60, 7), (45, 60, 7), (45, 45, 11), (45, 45, 11)]),
        (280, 400, 36),
        [
            "Training day - moderate intensity",
            "Pre/Intra/Post workout meals are timed specifically",
            "Intra workout shake supplies protein and fast carbs during training",
            "Higher carbs to fuel training",
        ],
    ),
    ("massive", "high"): _table(
        "massive", "high",
        _training_day((30, 105, 0), (10, 35, 0), (30, 105, 0), [(30, 105, 0)] * 4),
        (190, 665, 0),
        [
            "High training day - two heaviest training days per week",
            "Zero added fat - all fat comes from protein sources",
            '50% of carbs can come from "sugary" sources',
            "A sugary source is <5g fat per serving (fruit, juice, bagels, etc.)",
            "Meal 6 on high days can be a cheat meal if desired",
        ],
    ),
    ("shredded", "low"): _table(
        "shredded", "low",
        _rest_day((60, 30, 5), (60, 15, 10)),
        (360, 135, 45),
        [
            "Non-training day macros for fat loss",
            "Added fat only - protein and carb sources provide additional fat",
            "Any meals with less than 25g carbs can use vegetable sources",
            "Space meals 2.5-3 hours apart",
        ],
    ),
    ("shredded", "med"): _table(
        "shredded", "med",
        _training_day((45, 70, 0), (10, 25, 0), (45, 70, 0), [(45, 25, 5)] * 4),
        (280, 265, 20),
        [
            "Training day - any training day that isn't the HIGH DAY",
            "Pre/Intra/Post workout meals are timed specifically",
            "Intra workout shake supplies protein and fast carbs during training",
            "Lower carbs than MASSIVE for fat loss focus",
        ],
    ),
    ("shredded", "high"): _table(
        "shredded", "high",
        _training_day((35, 135, 0), (10, 45, 0), (35, 135, 0), [(35, 135, 0)] * 4),
        (220, 855, 0),
        [
            "High training day - ONE training day per week",
            "Zero added fat - all fat comes from protein sources",
            '50% of carbs can come from "sugary" sources',
            "A sugary source is <5g fat per serving (fruit, juice, bagels, etc.)",
            "Much higher carb load than MASSIVE for glycogen supercompensation",
        ],
    ),
})

PROGRAM_CYCLES = MappingProxyType({
    "massive": ProgramCycle(
        program="massive",
        days=(
            ("Monday", DaySchedule(day="low", training_day=False)),
            ("Tuesday", DaySchedule(day="med", training_day=True, training_type="moderate")),
            ("Wednesday", DaySchedule(day="high", training_day=True, training_type="heavy")),
            ("Thursday", DaySchedule(day="low", training_day=False)),
            ("Friday", DaySchedule(day="med", training_day=True, training_type="moderate")),
            ("Saturday", DaySchedule(day="high", training_day=True, training_type="heavy")),
            ("Sunday", DaySchedule(day="low", training_day=False)),
        ),
    ),
    "shredded": ProgramCycle(
        program="shredded",
        days=(
            ("Monday", DaySchedule(day="low", training_day=False)),
            ("Tuesday", DaySchedule(day="low", training_day=True)),
            ("Wednesday", DaySchedule(day="low", training_day=False)),
            ("Thursday", DaySchedule(day="med", training_day=True)),
            ("Friday", DaySchedule(day="low", training_day=False)),
            ("Saturday", DaySchedule(day="high", training_day=True, training_type="heaviest")),
            ("Sunday", DaySchedule(day="low", training_day=False)),
        ),
    ),
})

DAY_TYPES: Tuple[str, ...] = ("low", "med", "high")
PROGRAMS: Tuple[str, ...] = ("massive", "shredded")


# =============================================================================
# APPROVED FOODS & NORMALIZATIONS
# =============================================================================

APPROVED_FOODS = MappingProxyType({
    "protein": MappingProxyType({
        "use_freely": (
            "Chicken breast", "Chicken tenderloin", "Ground chicken", "Turkey breast",
            "96/4% lean ground beef", "98/2% skinny beef", "99/1% extra lean ground turkey",
            "Egg whites (6 whites to every 1 whole egg)", "Tilapia", "Halibut", "Cod",
            "Any other white fish",
        ),
        "use_sparingly": (
            "93/7% lean ground beef", "93/7% lean ground turkey", "Salmon",
            "Bison (many brands are 90/10% which is NOT lean enough)", "Whey protein",
            "Other protein powders", "Flank steak", "Round steak (top, bottom, eye of, etc)",
        ),
    }),
    "carbohydrates": MappingProxyType({
        "use_freely": (
            "White rice (all forms)", "Brown rice", "Cream of rice", "Cream of wheat",
            "Potatoes (all kinds)", "Yams/sweet potatoes", "Oats", "Grits",
            "Ezekiel bread", "Ezekiel cereal",
        ),
        "use_sparingly": (
            "Whole wheat bread", "Pasta", "Corn meal", "Bagels", "English muffins",
        ),
        "high_day_sugary": (
            "Fruit juice", "Fruit (any kind)", "Bread", "Skittles", "Twizzlers",
            "Pie filling", "Jelly/jam", "Any zero fat candy",
        ),
    }),
    "vegetables": MappingProxyType({
        "use_freely": (
            "Broccoli", "Cauliflower", "Asparagus", "Cucumbers", "Pickles",
            "Iceberg lettuce", "Spinach", "Lettuce", "Zucchini", "Onions", "Peppers",
            "Mushrooms", "Celery",
        ),
        "use_sparingly": ("Green beans", "Peas", "Corn", "String beans", "Carrots"),
    }),
    "fats": MappingProxyType({
        "use_freely": (
            "Guacamole", "Avocado", "Almonds", "Cashews", "Walnuts", "Macadamia nuts",
            "Natural peanut butter", "Almond butter", "Macadamia nut oil", "Olive oil",
            "Sesame oil", "Borage oil", "Evening primrose oil", "Fish oil", "Flax oil",
            "Omega 3 complex", "MCT oil", "Coconut oil",
        ),
        "avoid_as_much_as_possible": ("Butter", "Margarine", "Lard", "Vegetable oil"),
    }),
    "drinks": MappingProxyType({
        "unlimited": (
            "Coffee (black)", "Tea", "Diet soda", "Zero calorie energy drinks",
            "Crystal Light", "Flavored water (zero calorie)",
        ),
    }),
    "condiments": MappingProxyType({
        "unlimited": (
            "Mustard", "Sugar free ketchup", "Season salt", "Sea salt",
            "Any salt based spice", "Cajun (or similar) seasonings", "Walden Farms products",
        ),
    }),
})

FOOD_NORMALIZATIONS: Tuple[FoodNormalization, ...] = (
    FoodNormalization(category="protein", food="Chicken breast", grams_per_macro_gram=4.3, incidental=(("fat", 0.03),)),
    FoodNormalization(category="protein", food="Ground chicken", grams_per_macro_gram=4.2, incidental=(("fat", 0.04),)),
    FoodNormalization(category="protein", food="Turkey breast", grams_per_macro_gram=4.1, incidental=(("fat", 0.02),)),
    FoodNormalization(category="protein", food="96/4% Ground Beef", grams_per_macro_gram=4.3, incidental=(("fat", 0.04),)),
    FoodNormalization(category="protein", food="Egg whites", grams_per_macro_gram=9.1, incidental=(("fat", 0.002),)),
    FoodNormalization(category="protein", food="Tilapia", grams_per_macro_gram=4.9, incidental=(("fat", 0.02),)),
    FoodNormalization(category="protein", food="Cod", grams_per_macro_gram=5.6, incidental=(("fat", 0.01),)),
    FoodNormalization(category="carbs", food="White rice (cooked)", grams_per_macro_gram=4.0, incidental=(("protein", 0.09),)),
    FoodNormalization(category="carbs", food="Brown rice (cooked)", grams_per_macro_gram=4.4, incidental=(("protein", 0.11), ("fat", 0.02))),
    FoodNormalization(category="carbs", food="Sweet potatoes", grams_per_macro_gram=5.0, incidental=(("protein", 0.09),)),
    FoodNormalization(category="carbs", food="Oats (dry)", grams_per_macro_gram=1.5, incidental=(("protein", 0.25), ("fat", 0.1))),
    FoodNormalization(category="carbs", food="Ezekiel bread", grams_per_macro_gram=2.1, incidental=(("protein", 0.33),)),
    FoodNormalization(category="fat", food="Almonds", grams_per_macro_gram=2.0, incidental=(("protein", 0.4), ("carbs", 0.4))),
    FoodNormalization(category="fat", food="Natural peanut butter", grams_per_macro_gram=2.0, incidental=(("protein", 0.5), ("carbs", 0.3))),
    FoodNormalization(category="fat", food="Avocado", grams_per_macro_gram=6.7, incidental=(("carbs", 0.6),)),
    FoodNormalization(category="fat", food="Olive oil", grams_per_macro_gram=1.0),
    FoodNormalization(category="fat", food="MCT oil", grams_per_macro_gram=1.0),
)


# =============================================================================
# ESTIMATION & INTENT CONFIGURATION
# =============================================================================
PROGRAM_CONFIG = MappingProxyType({
    "default_height_inches": 70,
    "default_age": 30,
    "default_sex": "male",
    "body_fat_clamp": MappingProxyType({"male": (8, 35), "female": (12, 45)}),
    "body_fat_offset": MappingProxyType({"male": -16.2, "female": -5.4}),
    "high_variance_body_fat": 25,
    "plateau_threshold_lbs": 0.5,
})

PROGRAM_PATTERNS = MappingProxyType({
    "massive": MappingProxyType({
        "exact": ("massive program", "massive nutrition", "massive spreadsheet"),
        "strong": ("massive", "mass building", "muscle building"),
        "weak": ("bulking", "gaining", "get big"),
    }),
    "shredded": MappingProxyType({
        "exact": ("shredded program", "shredded nutrition", "shredded spreadsheet"),
        "strong": ("shredded", "cutting program", "fat loss program"),
        "weak": ("cutting", "shred", "get lean", "ripped"),
    }),
})

PATTERN_CONFIDENCE = MappingProxyType({"exact": 0.95, "strong": 0.8, "weak": 0.6})

IMPLIED_GOAL_PATTERNS = MappingProxyType({
    "fat_loss": ("lose weight", "fat loss", "cutting", "get lean", "shred", "ripped"),
    "muscle_building": ("build muscle", "gain mass", "bulking", "get big", "mass gain"),
    "recomp": ("recomp", "body recomposition", "lean gains", "maintain weight"),
})

GOAL_DIRECTION_PATTERNS = MappingProxyType({
    "weight_loss": (
        "lose", "loss", "cut", "cutting", "shred", "shredding", "lean", "leaning",
        "fat loss", "burn fat", "get lean", "get ripped", "lose weight", "slim down",
    ),
    "muscle_building": (
        "gain", "build", "mass", "bulk", "bulking", "grow", "muscle", "muscle gain",
        "mass gain", "get big", "get huge", "add size", "put on weight",
    ),
})

DAY_TYPE_PHRASES = (
    ("low", ("low day",)),
    ("med", ("med day", "medium day")),
    ("high", ("high day",)),
)


# =============================================================================
# TOOL 1: LEAN BODY MASS
# =============================================================================

def lean_body_mass(weight_lbs: float, body_fat_percentage: float) -> LeanBodyMass:
    """
    Lean body mass in pounds: total weight minus fat mass.

    Example:
        >>> lean_body_mass(200, 15).explanation
        'LBM = Total Weight (200 lbs) - Fat Mass (30 lbs) = 170 lbs'
    """
    w, bf = format_number(weight_lbs), format_number(body_fat_percentage)
    fat_mass = round_half_up(evaluate(f"{w} * ({bf} / 100)").result, 1)
    lean = round_half_up(evaluate(f"{w} - {format_number(fat_mass)}").result, 1)

    return LeanBodyMass(
        weight=weight_lbs,
        body_fat_percentage=body_fat_percentage,
        fat_mass=fat_mass,
        lean_body_mass=lean,
        explanation=(
            f"LBM = Total Weight ({w} lbs) - Fat Mass ({format_number(fat_mass)} lbs) "
            f"= {format_number(lean)} lbs"
        ),
    )


# =============================================================================
# TOOL 2: CYCLES & DAY TABLES
# =============================================================================

def program_cycle(program: str) -> ProgramCycle:
    """Weekly low/med/high layout for a regimen (unknown names fall back to massive)."""
    return PROGRAM_CYCLES.get(program, PROGRAM_CYCLES["massive"])


def program_macros(program: str, day_type: str) -> Union[ProgramMacros, InvalidInput]:
    """The fixed meal table for one regimen/day pair; unknown day types are InvalidInput."""
    if day_type not in DAY_TYPES:
        return InvalidInput(message=f"Invalid day type '{day_type}'. Use one of {list(DAY_TYPES)}")
    key = (program if program in PROGRAMS else "massive", day_type)
    return PROGRAM_TABLES[key]


def _day_instructions(program: str, day_type: str, macros: ProgramMacros) -> List[str]:
    totals = macros.daily_totals
    lines = [
        f"{program.upper()} Program - {day_type.upper()} DAY",
        f"Total: {totals.protein}g protein, {totals.carbs}g carbs, {totals.fat}g added fat",
        f"Estimated calories: {totals.calories}",
        "IMPORTANT NOTES:",
        '- Fat shown is "ADDED FAT" only',
        "- Protein and carb sources provide additional fat naturally",
        '- Use "USE FREELY" foods from approved list whenever possible',
        "- Space regular meals 2.5-3 hours apart",
    ]
    if program == "shredded" and day_type == "low":
        lines.append("- Any meals with less than 25g carbs can use vegetable sources")
    if day_type == "high":
        lines.append('- 50% of carbs can come from "sugary" sources (<5g fat per serving)')
        if program == "massive":
            lines.append("- Meal 6 can be a cheat meal if desired")
        else:
            lines.append("- ONE high day per week only")
    return lines


def _day_timing(program: str, day_type: str) -> List[str]:
    if day_type == "low":
        return [
            "NON-TRAINING DAY:",
            "- Space meals evenly throughout the day",
            "- 2.5-3 hours between meals optimal",
        ]
    lines = [
        "TRAINING DAY TIMING:",
        "- Pre Workout: 1-1.5 hours before training",
        "- Intra Workout: Sip throughout workout",
        "- Post Workout: Within 1 hour of finishing workout",
        "- Move other meals around training as needed",
    ]
    if program == "shredded":
        lines.append("- Can train fasted if desired")
    return lines


def generate_program_day(profile: Union[Profile, ProgramInputs, None], day_type: str) -> Union[ProgramDay, InvalidInput]:
    """
    Build one complete program day: meal table, instructions and timing.

    The regimen comes from `profile.program` (massive when unset). The gram
    values never depend on weight, height or body fat.

    Args:
        profile: Profile or estimated ProgramInputs; only `program` is read
        day_type: "low", "med" or "high"
    """
    program = (getattr(profile, "program", None) or "massive")
    macros = program_macros(program, day_type)
    if isinstance(macros, InvalidInput):
        return macros
    return ProgramDay(
        macros=macros,
        meal_plan=macros.meals,
        instructions=tuple(_day_instructions(macros.program, day_type, macros)),
        timing=tuple(_day_timing(macros.program, day_type)),
    )


def approved_foods() -> MappingProxyType:
    return APPROVED_FOODS


def food_normalizations() -> Tuple[FoodNormalization, ...]:
    return FOOD_NORMALIZATIONS


# =============================================================================
# TOOL 3: FOOD PORTIONS
# =============================================================================

def _find_food(category: str, name: str) -> Optional[FoodNormalization]:
    wanted = (name or "").strip().lower()
    if not wanted:
        return None
    for item in FOOD_NORMALIZATIONS:
        if item.category == category and wanted in item.food.lower():
            return item
    return None


def calculate_food_portions(
    target_macros: Dict[str, float],
    selected_foods: Dict[str, str]
) -> FoodPortions:
    """
    Convert macro targets into grams of specific foods.

    Args:
        target_macros: {"protein": g, "carbs": g, "fat": g}
        selected_foods: {"protein": "chicken", "carbs": "white rice", "fat": "almonds"}
            Names are matched by case-insensitive containment.

    Returns:
        FoodPortions with grams per chosen food and the incidental macros that
        food brings along. Unknown foods leave their slot empty.
    """
    portions: Dict[str, FoodPortion] = {}

    for category in ("protein", "carbs", "fat"):
        food = _find_food(category, selected_foods.get(category, ""))
        if food is None:
            continue
        target = format_number(float(target_macros.get(category, 0)))
        grams_needed = evaluate(f"{target} * {food.grams_per_macro_gram}").result
        extras = {
            macro: evaluate(
                f"{food.additional_macros.get(macro, 0)} * {format_number(grams_needed)}"
            ).result
            for macro in ("protein", "carbs", "fat")
            if macro != category
        }
        portions[category] = FoodPortion(
            food=food.food,
            grams=int(round_half_up(grams_needed)),
            additional_macros=extras,
        )

    return FoodPortions(**portions)


# =============================================================================
# TOOL 4: PLATEAU RULE
# =============================================================================

def should_add_third_high_day(progress: Sequence[Union[ProgressEntry, Dict[str, Any]]]) -> PlateauCheck:
    """
    Sticking-point rule: when the last two weekly weight changes add up to
    less than 0.5 lb in either direction, add a third high day until progress
    resumes. History is passed in; nothing is stored.
    """
    entries = [p if isinstance(p, ProgressEntry) else ProgressEntry(**p) for p in progress]
    if len(entries) < 2:
        return PlateauCheck(should_add=False, reason="Not enough data to assess progress")

    last_two = entries[-2:]
    total = evaluate(" + ".join(
        f"({format_number(float(e.weight_change))})" for e in last_two
    )).result

    if abs(total) < PROGRAM_CONFIG["plateau_threshold_lbs"]:
        return PlateauCheck(
            should_add=True,
            reason="Progress has stalled for 2+ consecutive weeks. Add third high day until progress resumes.",
            weeks_stuck=2,
        )
    return PlateauCheck(should_add=False, reason="Progress is continuing as expected")


# =============================================================================
# TOOL 5: ESTIMATION
# =============================================================================

def estimate_body_fat(weight_lbs: float, height_inches: float, sex: str, age: float) -> Tuple[int, float]:
    """
    BMI-based body fat estimate: 1.2 * BMI + 0.23 * age - 16.2 (men) or
    - 5.4 (women), clamped per sex and rounded. Returns (body fat, BMI).
    """
    sex = sex if sex in PROGRAM_CONFIG["body_fat_offset"] else PROGRAM_CONFIG["default_sex"]
    weight_kg = f"({format_number(weight_lbs)} * {LBS_TO_KG})"
    height_m = f"({format_number(height_inches)} * {INCHES_TO_CM} / 100)"
    bmi = evaluate(f"{weight_kg} / ({height_m} * {height_m})").result

    offset = PROGRAM_CONFIG["body_fat_offset"][sex]
    raw = evaluate(f"1.2 * {format_number(bmi)} + 0.23 * {format_number(age)} + ({offset})").result
    low, high = PROGRAM_CONFIG["body_fat_clamp"][sex]
    clamped = max(low, min(high, raw))
    return int(round_half_up(clamped)), bmi


def prepare_program_profile(
    profile: Profile,
    program: str = "massive"
) -> Union[ProgramInputs, MissingData]:
    """
    Resolve weight, height and body fat for the program tools, estimating
    what is missing. Weight is the only hard requirement.

    Every estimate adds a human-readable warning; a supplied body fat
    percentage is never flagged as estimated.
    """
    if not profile.weight_lbs:
        return MissingData(
            fields=("weight_lbs",),
            message="Need at least your current weight to generate program calculations",
        )

    warnings: List[str] = []
    height = profile.total_height_inches
    height_estimated = False
    if not height:
        height = PROGRAM_CONFIG["default_height_inches"]
        height_estimated = True
        warnings.append("Height estimated at 5'10\" (update profile for accuracy)")

    body_fat = profile.body_fat_percentage
    body_fat_estimated = False
    bmi = None
    if not body_fat:
        body_fat, bmi = estimate_body_fat(
            profile.weight_lbs,
            height,
            profile.sex or PROGRAM_CONFIG["default_sex"],
            profile.age or PROGRAM_CONFIG["default_age"],
        )
        body_fat_estimated = True
        warnings.append(
            f"Body fat estimated at {body_fat}% based on BMI ({bmi:.1f}) and demographics"
        )
        if body_fat > PROGRAM_CONFIG["high_variance_body_fat"]:
            warnings.append(
                "Higher body fat estimates have more variance - DEXA scan recommended for cutting phases"
            )

    return ProgramInputs(
        name=profile.name or "User",
        weight_lbs=profile.weight_lbs,
        height_inches=height,
        body_fat_percentage=body_fat,
        program=program if program in PROGRAMS else "massive",
        body_fat_estimated=body_fat_estimated,
        height_estimated=height_estimated,
        bmi=bmi,
        estimation_warnings=tuple(warnings),
    )


# =============================================================================
# TOOL 6: PROGRAM INTENT, SELECTION & MISMATCH
# =============================================================================

def detect_program_request(text: str) -> ProgramIntent:
    """
    Find an explicitly requested regimen in free text.

    Exact phrases (e.g. "shredded program") score 0.95, strong terms 0.8 and
    weak terms ("bulking", "ripped") 0.6. Exact and strong matches stop the
    search; a weak match can still be overridden by the other regimen.
    """
    lowered = (text or "").lower()
    explicit: Optional[str] = None
    confidence = 0.0

    for program, tiers in PROGRAM_PATTERNS.items():
        if any(p in lowered for p in tiers["exact"]):
            explicit, confidence = program, PATTERN_CONFIDENCE["exact"]
            break
        if any(p in lowered for p in tiers["strong"]):
            explicit, confidence = program, PATTERN_CONFIDENCE["strong"]
            break
        if any(p in lowered for p in tiers["weak"]) and confidence < PATTERN_CONFIDENCE["weak"]:
            explicit, confidence = program, PATTERN_CONFIDENCE["weak"]

    implied_goal = None
    for goal, patterns in IMPLIED_GOAL_PATTERNS.items():
        if any(p in lowered for p in patterns):
            implied_goal = goal
            break

    return ProgramIntent(explicit_program=explicit, implied_goal=implied_goal, confidence=confidence)


def _goal_points_to(goal: str, direction: str) -> bool:
    lowered = goal.lower()
    return any(p in lowered for p in GOAL_DIRECTION_PATTERNS[direction])


def select_program(intent: ProgramIntent, profile: Profile) -> str:
    """Explicit request, then the profile's program, then the goal wording, then massive."""
    if intent.explicit_program:
        return intent.explicit_program
    if profile.program:
        return profile.program
    goal = (profile.goal or "").lower()
    if any(term in goal for term in ("lose", "cut", "shred")):
        return "shredded"
    return "massive"


def detect_program_mismatch(requested: Optional[str], goal: Optional[str]) -> Optional[ProgramMismatch]:
    """
    Flag an explicit regimen request that works against the stated goal.
    The requested regimen is still served in full; this only adds a
    suggestion. Only the direction opposing the request is checked, so
    "lose fat and build muscle" still flags a MASSIVE request.
    """
    if not requested or not goal:
        return None

    if requested == "massive" and _goal_points_to(goal, "weight_loss"):
        return ProgramMismatch(requested="massive", suggested="shredded", reason="weight loss goal")
    if requested == "shredded" and _goal_points_to(goal, "muscle_building"):
        return ProgramMismatch(requested="shredded", suggested="massive", reason="muscle building goal")
    return None


def detect_day_type(text: str) -> Optional[str]:
    lowered = (text or "").lower()
    found = None
    for day_type, phrases in DAY_TYPE_PHRASES:
        if any(p in lowered for p in phrases):
            found = day_type
    return found


# =============================================================================
# TOOL 7: FULL PROGRAM CALCULATION
# =============================================================================

def calculate_program(text: str, profile: Profile) -> Union[ProgramCalculation, MissingData]:
    """
    Everything the program tool contributes for one request.

    Picks the regimen, estimates missing inputs, reports lean body mass and
    the weekly cycle, and returns either the requested day or all three day
    types. An explicit request that contradicts the profile goal is honored
    and flagged with a suggested alternative.
    """
    intent = detect_program_request(text)
    program = select_program(intent, profile)

    inputs = prepare_program_profile(profile, program)
    if isinstance(inputs, MissingData):
        return inputs

    day_type = detect_day_type(text)
    if day_type:
        program_day = generate_program_day(inputs, day_type)
        all_days = None
    else:
        program_day = None
        all_days = {d: generate_program_day(inputs, d) for d in DAY_TYPES}

    mismatch = detect_program_mismatch(intent.explicit_program, profile.goal)

    return ProgramCalculation(
        program=program,
        day_type=day_type,
        lean_body_mass=lean_body_mass(inputs.weight_lbs, inputs.body_fat_percentage),
        program_cycle=program_cycle(program),
        program_day=program_day,
        all_days=all_days,
        inputs=inputs,
        body_fat_estimated=inputs.body_fat_estimated,
        height_estimated=inputs.height_estimated,
        estimated_body_fat=inputs.body_fat_percentage if inputs.body_fat_estimated else None,
        estimated_height=inputs.height_inches if inputs.height_estimated else None,
        estimation_warnings=inputs.estimation_warnings,
        program_mismatch=mismatch,
        intent=intent,
    )


# =============================================================================
# EXPORTS
# =============================================================================
__all__ = [
    "MealEntry",
    "DailyTotals",
    "ProgramMacros",
    "ProgramCycle",
    "ProgramDay",
    "LeanBodyMass",
    "ProgramInputs",
    "ProgramIntent",
    "ProgramMismatch",
    "ProgramCalculation",
    "FoodNormalization",
    "FoodPortions",
    "ProgressEntry",
    "PlateauCheck",
    "PROGRAM_TABLES",
    "PROGRAM_CYCLES",
    "APPROVED_FOODS",
    "FOOD_NORMALIZATIONS",
    "DAY_TYPES",
    "lean_body_mass",
    "program_cycle",
    "program_macros",
    "generate_program_day",
    "approved_foods",
    "food_normalizations",
    "calculate_food_portions",
    "should_add_third_high_day",
    "estimate_body_fat",
    "prepare_program_profile",
    "detect_program_request",
    "select_program",
    "detect_program_mismatch",
    "detect_day_type",
    "calculate_program",
]
