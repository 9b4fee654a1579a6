# tools/schemas.py
"""
CoachCore - Shared Value Types
===============================
Immutable records passed between the calculators, the orchestrator and the
context assembler. Nothing here is mutated after construction.
"""

from typing import Any, Dict, List, Literal, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator

from tools.expression_evaluator import round_half_up


# =============================================================================
# UNIT FACTORS
# =============================================================================
LBS_TO_KG = 0.453592
KG_TO_LBS = 2.20462
INCHES_TO_CM = 2.54
CM_TO_INCHES = 0.393701

Sex = Literal["male", "female"]
ProgramName = Literal["massive", "shredded"]
DayType = Literal["low", "med", "high"]


# =============================================================================
# PROFILE
# =============================================================================

class Profile(BaseModel):
    """
    Sparse user attributes. Every field is optional; an absent field either
    triggers estimation or a MissingData result, depending on the tool.
    Weight is in pounds and height in feet + inches, as users enter them.
    """
    model_config = ConfigDict(frozen=True, extra="ignore")

    name: Optional[str] = None
    age: Optional[float] = None
    weight_lbs: Optional[float] = None
    height_feet: Optional[float] = None
    height_inches: Optional[float] = None
    sex: Optional[Sex] = None
    body_fat_percentage: Optional[float] = None
    activity_level: Optional[str] = None
    years_training: Optional[float] = None
    goal: Optional[str] = None
    program: Optional[ProgramName] = None
    current_diet: Optional[str] = None
    dietary_restrictions: Optional[str] = None
    food_allergies: Optional[str] = None
    supplement_stack: Optional[str] = None
    target_weight_lbs: Optional[float] = None
    timeline_weeks: Optional[float] = None
    health_conditions: Optional[str] = None
    additional_notes: Optional[str] = None

    @field_validator("sex", "program", mode="before")
    @classmethod
    def _lowercase(cls, value: Any) -> Any:
        if isinstance(value, str):
            value = value.strip().lower()
            return value or None
        return value

    @property
    def weight_kg(self) -> Optional[float]:
        if not self.weight_lbs:
            return None
        return round_half_up(self.weight_lbs * LBS_TO_KG, 2)

    @property
    def total_height_inches(self) -> Optional[float]:
        total = (self.height_feet or 0) * 12 + (self.height_inches or 0)
        return total or None

    @property
    def height_cm(self) -> Optional[float]:
        inches = self.total_height_inches
        if inches is None:
            return None
        return round_half_up(inches * INCHES_TO_CM, 2)


class ProfileValidation(BaseModel):
    model_config = ConfigDict(frozen=True)

    is_valid: bool
    errors: Tuple[str, ...] = ()
    warnings: Tuple[str, ...] = ()


# =============================================================================
# CALCULATION RECORDS
# =============================================================================

class CalculationStep(BaseModel):
    model_config = ConfigDict(frozen=True)

    step: int
    description: str
    expression: str
    result: float
    verification: str
    is_correct: bool = True


class CalculationResult(BaseModel):
    """
    One audited computation. `final_result` is None whenever `is_valid` is
    False; consumers must treat such a result as absent.
    """
    model_config = ConfigDict(frozen=True)

    status: Literal["success", "invalid"] = "success"
    formula_id: str
    inputs: Dict[str, Any] = Field(default_factory=dict)
    steps: Tuple[CalculationStep, ...] = ()
    final_result: Optional[float] = None
    is_valid: bool = True
    verification: str = ""


class MissingData(BaseModel):
    """Required inputs are absent; the caller should ask for them."""
    model_config = ConfigDict(frozen=True)

    status: Literal["missing_data"] = "missing_data"
    fields: Tuple[str, ...]
    message: str
    available: Dict[str, bool] = Field(default_factory=dict)


class InvalidInput(BaseModel):
    model_config = ConfigDict(frozen=True)

    status: Literal["invalid"] = "invalid"
    message: str
    is_valid: bool = False


class MacroAmount(BaseModel):
    model_config = ConfigDict(frozen=True)

    grams: int
    calories: int
    percentage: int


class MacroDistribution(BaseModel):
    """
    Macro split for a calorie target. `total_calories_from_macros` is always
    recomputed from grams (4/4/9 kcal per gram).
    """
    model_config = ConfigDict(frozen=True)

    calories: float
    protein: MacroAmount
    carbs: MacroAmount
    fat: MacroAmount
    total_calories_from_macros: int
    is_accurate: bool


def missing_fields(values: Dict[str, Any]) -> List[str]:
    """Names of the entries in `values` that are empty (None or zero)."""
    return [name for name, value in values.items() if not value]


__all__ = [
    "LBS_TO_KG",
    "KG_TO_LBS",
    "INCHES_TO_CM",
    "CM_TO_INCHES",
    "Sex",
    "ProgramName",
    "DayType",
    "Profile",
    "ProfileValidation",
    "CalculationStep",
    "CalculationResult",
    "MissingData",
    "InvalidInput",
    "MacroAmount",
    "MacroDistribution",
    "missing_fields",
]
