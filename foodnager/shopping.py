"""Shopping lists for recipes the fridge does not fully cover."""

from dataclasses import dataclass, field
from typing import Any

from .models import MatchResult, Recipe


@dataclass
class ShoppingListItem:
    """One product to buy."""

    product_id: int
    product_name: str
    quantity: float
    unit: str
    needs_check: bool = False  # units not comparable; check the fridge by hand

    def __str__(self) -> str:
        qty = self.quantity
        qty_str = str(int(qty)) if qty == int(qty) else f"{qty:.2f}".rstrip("0").rstrip(".")
        suffix = " (check fridge)" if self.needs_check else ""
        return f"{qty_str} {self.unit} {self.product_name}{suffix}"

    def to_dict(self) -> dict[str, Any]:
        return {
            "product_id": self.product_id,
            "product_name": self.product_name,
            "quantity": self.quantity,
            "unit": self.unit,
            "needs_check": self.needs_check,
        }


@dataclass
class ShoppingList:
    recipe_title: str
    items: list[ShoppingListItem] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.items

    def to_dict(self) -> dict[str, Any]:
        return {
            "recipe_title": self.recipe_title,
            "items": [item.to_dict() for item in self.items],
        }


def build_shopping_list(recipe: Recipe, match: MatchResult) -> ShoppingList:
    """
    List what to buy to cook ``recipe`` given its match result.

    Missing ingredients are bought in full, partially covered ones only for
    the shortfall. Ingredients whose units could not be compared are listed
    at the full quantity and flagged for a manual check.
    """
    items: list[ShoppingListItem] = []

    for availability in match.ingredients:
        if availability.verdict == "full":
            continue

        if availability.verdict == "partial":
            quantity = availability.missing_quantity or 0.0
            if quantity <= 0:
                continue
        else:
            quantity = availability.required_quantity

        items.append(
            ShoppingListItem(
                product_id=availability.product_id,
                product_name=availability.product_name,
                quantity=quantity,
                unit=availability.unit,
                needs_check=availability.verdict == "unknown",
            )
        )

    return ShoppingList(recipe_title=recipe.title, items=items)
