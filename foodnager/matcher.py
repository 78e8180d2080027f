"""Recipe ingredient to fridge availability matching and coverage scoring."""

from collections import defaultdict

from .models import (
    VERDICT_RANK,
    AvailableItem,
    IngredientAvailability,
    MatchResult,
    Quantity,
    RequiredIngredient,
)
from .units import ConversionTable, reconcile


def _candidate_key(candidate: IngredientAvailability, unit_id: int) -> tuple[int, float, int]:
    # Highest verdict, then most available, then lowest unit id
    return (VERDICT_RANK[candidate.verdict], candidate.available_quantity, -unit_id)


def check_ingredient(
    ingredient: RequiredIngredient,
    available: list[AvailableItem],
    table: ConversionTable | None = None,
) -> IngredientAvailability:
    """
    Availability verdict for a single required ingredient.

    Every fridge row of the same product is reconciled independently and the
    best verdict is kept (full > partial > unknown > none).

    Args:
        ingredient: The ingredient a recipe calls for
        available: Fridge rows (any product; filtered here by product id)
        table: Optional conversion table

    Returns:
        IngredientAvailability for the ingredient
    """
    required = Quantity(ingredient.quantity, ingredient.unit)
    best: IngredientAvailability | None = None
    best_key: tuple[int, float, int] | None = None

    for item in available:
        if item.product_id != ingredient.product_id:
            continue

        outcome = reconcile(required, Quantity(item.quantity, item.unit), table)
        if outcome.status == "unknown":
            candidate = IngredientAvailability(
                product_id=ingredient.product_id,
                product_name=ingredient.product.name,
                verdict="unknown",
                required_quantity=ingredient.quantity,
                available_quantity=item.quantity,
                unit=ingredient.unit.label,
                available_unit=item.unit.label,
            )
        else:
            converted = outcome.converted_available or 0.0
            verdict = outcome.status
            if verdict == "partial" and converted <= 0:
                verdict = "none"
            candidate = IngredientAvailability(
                product_id=ingredient.product_id,
                product_name=ingredient.product.name,
                verdict=verdict,
                required_quantity=ingredient.quantity,
                available_quantity=max(0.0, converted),
                unit=ingredient.unit.label,
            )

        key = _candidate_key(candidate, item.unit.id)
        if best_key is None or key > best_key:
            best = candidate
            best_key = key

    if best is None:
        return IngredientAvailability(
            product_id=ingredient.product_id,
            product_name=ingredient.product.name,
            verdict="none",
            required_quantity=ingredient.quantity,
            available_quantity=0.0,
            unit=ingredient.unit.label,
        )
    return best


def score(
    required: list[RequiredIngredient],
    available: list[AvailableItem],
    table: ConversionTable | None = None,
) -> MatchResult:
    """
    Score how well the fridge covers a recipe's ingredient list.

    The score is a coverage ratio: ingredients with a ``full`` or ``partial``
    verdict over the total. Quantity shortfalls do not lower it. A recipe
    with no ingredients scores 1.0 (vacuously coverable).

    Ingredients with ``full``/``partial`` verdicts, and ``unknown`` ones with
    something in the fridge, go to ``available``; the rest go to ``missing``.
    """
    if not required:
        return MatchResult(score=1.0)

    available_list: list[IngredientAvailability] = []
    missing_list: list[IngredientAvailability] = []
    covered = 0

    for ingredient in required:
        verdict = check_ingredient(ingredient, available, table)
        if verdict.verdict in ("full", "partial"):
            covered += 1
            available_list.append(verdict)
        elif verdict.verdict == "unknown" and verdict.available_quantity > 0:
            available_list.append(verdict)
        else:
            missing_list.append(verdict)

    ratio = covered / len(required)
    return MatchResult(
        score=max(0.0, min(1.0, ratio)),
        available=available_list,
        missing=missing_list,
    )


def is_good_match(result: MatchResult, threshold: float = 0.7) -> bool:
    """Check whether a match result reaches the good-match threshold."""
    return result.score >= threshold


def aggregate_available(items: list[AvailableItem]) -> list[AvailableItem]:
    """
    Sum fridge rows sharing both product and unit.

    Rows in different units stay separate; the scorer handles those.
    """
    totals: dict[tuple[int, int], float] = defaultdict(float)
    first: dict[tuple[int, int], AvailableItem] = {}

    for item in items:
        key = (item.product_id, item.unit.id)
        totals[key] += item.quantity
        first.setdefault(key, item)

    return [
        AvailableItem(product=first[key].product, quantity=totals[key], unit=first[key].unit)
        for key in first
    ]
