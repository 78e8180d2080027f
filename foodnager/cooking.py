"""Deduction planning for cooking a recipe from the fridge."""

import logging
from dataclasses import dataclass
from typing import Any

from .errors import InsufficientIngredientsError, ValidationError
from .models import AvailableItem, RequiredIngredient
from .units import DEFAULT_CONVERSIONS, ConversionTable

logger = logging.getLogger(__name__)


@dataclass
class Deduction:
    """Amount to take out of one fridge row, in that row's unit."""

    item: AvailableItem
    quantity: float

    @property
    def remaining(self) -> float:
        return max(0.0, self.item.quantity - self.quantity)

    def to_dict(self) -> dict[str, Any]:
        return {
            "product_id": self.item.product_id,
            "product_name": self.item.product.name,
            "quantity": self.quantity,
            "unit": self.item.unit.label,
            "remaining": self.remaining,
        }


def _convertible(
    ingredient: RequiredIngredient, item: AvailableItem, table: ConversionTable
) -> bool:
    return ingredient.unit.id == item.unit.id or table.can_convert(ingredient.unit, item.unit)


def _required_in_row_unit(
    ingredient: RequiredIngredient,
    item: AvailableItem,
    table: ConversionTable,
    manual_quantities: dict[int, float],
) -> float:
    if ingredient.unit.id == item.unit.id:
        return ingredient.quantity

    converted = table.convert(ingredient.quantity, ingredient.unit, item.unit)
    if converted is not None:
        return converted

    if ingredient.product_id not in manual_quantities:
        raise ValidationError(
            f"Cannot convert {ingredient.unit.label} to {item.unit.label} for "
            f"{ingredient.product.name}; a manual quantity is required",
            {"product_id": ingredient.product_id},
        )
    manual = manual_quantities[ingredient.product_id]
    if manual < 0:
        raise ValidationError(f"Manual quantity for {ingredient.product.name} must not be negative")
    return manual


def plan_deductions(
    required: list[RequiredIngredient],
    available: list[AvailableItem],
    manual_quantities: dict[int, float] | None = None,
    table: ConversionTable | None = None,
) -> list[Deduction]:
    """
    Work out how much to take from each fridge row to cook a recipe.

    Rows of the same product are drained in order until the requirement is
    met, rows whose unit converts from the recipe unit ahead of the rest.
    Only when those leave a shortfall does an unconvertible row come into
    play, taking the caller's manual quantity for that product in the row's
    unit.

    Args:
        required: Recipe ingredients
        available: Fridge rows
        manual_quantities: Product id -> amount, for unconvertible pairs
        table: Conversion table (defaults to DEFAULT_CONVERSIONS)

    Returns:
        Deductions, one per touched fridge row

    Raises:
        ValidationError: A manual quantity is needed but was not supplied
        InsufficientIngredientsError: The fridge cannot cover the recipe
    """
    table = table or DEFAULT_CONVERSIONS
    manual_quantities = manual_quantities or {}
    deductions: list[Deduction] = []
    missing: list[dict[str, Any]] = []

    for ingredient in required:
        rows = [item for item in available if item.product_id == ingredient.product_id]
        # Convertible rows first; stable sort keeps fridge order within each group
        rows.sort(key=lambda item: not _convertible(ingredient, item, table))
        if not rows:
            missing.append(
                {
                    "product_id": ingredient.product_id,
                    "product_name": ingredient.product.name,
                    "required": ingredient.quantity,
                    "available": 0.0,
                    "unit": ingredient.unit.label,
                }
            )
            continue

        # Fraction of the requirement still to cover, unit independent
        outstanding = 1.0
        planned: list[Deduction] = []
        for item in rows:
            if outstanding <= 1e-9:
                break
            needed = _required_in_row_unit(ingredient, item, table, manual_quantities)
            if needed <= 0:
                outstanding = 0.0
                break
            take = min(item.quantity, needed * outstanding)
            if take > 0:
                planned.append(Deduction(item=item, quantity=take))
            outstanding -= take / needed

        if outstanding > 1e-9:
            missing.append(
                {
                    "product_id": ingredient.product_id,
                    "product_name": ingredient.product.name,
                    "required": ingredient.quantity,
                    "available": ingredient.quantity * (1.0 - outstanding),
                    "unit": ingredient.unit.label,
                }
            )
        else:
            deductions.extend(planned)

    if missing:
        names = ", ".join(m["product_name"] for m in missing)
        raise InsufficientIngredientsError(
            f"Not enough in the fridge for: {names}", {"missing": missing}
        )

    logger.debug("Planned %d deductions for %d ingredients", len(deductions), len(required))
    return deductions
