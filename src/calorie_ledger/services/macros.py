"""Macronutrient consistency checks and input reclassification.

Calories are estimated from macros with the Atwater factors
(protein 4 kcal/g, carbohydrates 4 kcal/g, fat 9 kcal/g). A mismatch of
more than 5% against the declared calories produces an advisory warning;
it never blocks a write.
"""

import math
from collections.abc import Mapping

from calorie_ledger.domain.meals import InputMethod, Meal, MealWarning

PROTEIN_KCAL_PER_G = 4
CARBS_KCAL_PER_G = 4
FATS_KCAL_PER_G = 9
CONSISTENCY_TOLERANCE = 0.05

RECLASSIFY_FIELDS = ("description", "calories", "protein", "carbs", "fats")


def calculate_macro_calories(
    protein: float | None, carbs: float | None, fats: float | None
) -> int:
    """Return calories implied by the macros, treating missing values as 0."""
    return _round_half_up(_macro_calories(protein, carbs, fats))


def consistency_warning(
    calories: int,
    protein: float | None,
    carbs: float | None,
    fats: float | None,
) -> MealWarning | None:
    """Warn when declared calories disagree with the macros by more than 5%.

    Only checked when all three macros are present. A zero-calorie entry
    warns whenever its macros imply any calories at all.
    """
    if protein is None or carbs is None or fats is None:
        return None
    calculated = _macro_calories(protein, carbs, fats)
    difference = abs(calories - calculated)
    if calories == 0:
        exceeded = difference > 0
    else:
        exceeded = difference / calories > CONSISTENCY_TOLERANCE
    if not exceeded:
        return None
    return MealWarning(
        field="macronutrients",
        message=(
            "The calculated calories from macronutrients "
            f"({_round_half_up(calculated)} kcal) differs by more than 5% "
            f"from the provided calories ({calories} kcal). "
            "Please verify your input."
        ),
    )


def should_reclassify(current: Meal, patch: Mapping[str, object]) -> bool:
    """Return True when an AI meal's nutritional fields are being changed.

    Category or timestamp edits alone never count. A null to value
    transition (or the reverse) does.
    """
    if current.input_method != InputMethod.AI:
        return False
    return any(
        name in patch and patch[name] != getattr(current, name)
        for name in RECLASSIFY_FIELDS
    )


def _macro_calories(
    protein: float | None, carbs: float | None, fats: float | None
) -> float:
    return (
        PROTEIN_KCAL_PER_G * (protein or 0)
        + CARBS_KCAL_PER_G * (carbs or 0)
        + FATS_KCAL_PER_G * (fats or 0)
    )


def _round_half_up(value: float) -> int:
    return math.floor(value + 0.5)
