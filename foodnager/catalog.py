"""JSON-file catalog of units, products, recipes and fridge contents."""

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from .errors import NotFoundError, ValidationError
from .models import AvailableItem, Product, Recipe, RequiredIngredient, Unit
from .products import InMemoryProductStore
from .sources import InMemoryRecipeStore
from .units import InMemoryUnitStore

logger = logging.getLogger(__name__)


@dataclass
class Catalog:
    """In-memory stores loaded from (and saved back to) one JSON document."""

    product_store: InMemoryProductStore = field(default_factory=InMemoryProductStore)
    unit_store: InMemoryUnitStore = field(default_factory=InMemoryUnitStore)
    recipe_store: InMemoryRecipeStore = field(default_factory=InMemoryRecipeStore)
    fridge: dict[str, list[AvailableItem]] = field(default_factory=dict)

    def fridge_for(self, owner_id: str) -> list[AvailableItem]:
        return list(self.fridge.get(owner_id, []))

    def get_recipe(self, owner_id: str, recipe_id: int | str) -> Recipe:
        """
        Raises:
            NotFoundError: If the owner has no such recipe
        """
        recipe = self.recipe_store.get(owner_id, recipe_id)
        if recipe is None:
            raise NotFoundError(f"Recipe {recipe_id} not found for {owner_id}")
        return recipe

    def to_dict(self) -> dict[str, Any]:
        return {
            "units": [unit.to_dict() for unit in self.unit_store.units],
            "products": [product.to_dict() for product in self.product_store.products],
            "recipes": [_recipe_to_dict(recipe) for recipe in self.recipe_store.recipes],
            "fridge": {
                owner: [
                    {
                        "product_id": item.product_id,
                        "quantity": item.quantity,
                        "unit_id": item.unit.id,
                    }
                    for item in items
                ]
                for owner, items in self.fridge.items()
            },
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Catalog":
        """
        Build a catalog, checking that every reference points at a known row.

        Raises:
            ValidationError: On malformed documents or dangling references
        """
        try:
            units = [Unit.from_dict(u) for u in data.get("units", [])]
            products = [Product.from_dict(p) for p in data.get("products", [])]
        except (KeyError, TypeError) as e:
            raise ValidationError(f"Malformed catalog entry: {e}") from e

        unit_store = InMemoryUnitStore(units)
        product_store = InMemoryProductStore(products)

        def lookup(row: dict[str, Any]) -> tuple[Product, Unit, float]:
            try:
                product = product_store.get(row["product_id"])
                unit = unit_store.get(row["unit_id"])
                quantity = float(row["quantity"])
            except (KeyError, TypeError, ValueError) as e:
                raise ValidationError(f"Malformed catalog row {row!r}: {e}") from e
            if product is None:
                raise ValidationError(f"Unknown product id {row['product_id']}")
            if unit is None:
                raise ValidationError(f"Unknown unit id {row['unit_id']}")
            return product, unit, quantity

        recipes = []
        for entry in data.get("recipes", []):
            ingredients = []
            for row in entry.get("ingredients", []):
                product, unit, quantity = lookup(row)
                ingredients.append(RequiredIngredient(product=product, quantity=quantity, unit=unit))
            recipes.append(
                Recipe(
                    title=entry.get("title", "Untitled"),
                    ingredients=ingredients,
                    id=entry.get("id"),
                    owner_id=entry.get("owner_id"),
                    description=entry.get("description"),
                    instructions=entry.get("instructions", ""),
                    cooking_time=entry.get("cooking_time"),
                    difficulty=entry.get("difficulty"),
                    tags=list(entry.get("tags", [])),
                )
            )

        fridge: dict[str, list[AvailableItem]] = {}
        for owner, rows in data.get("fridge", {}).items():
            items = []
            for row in rows:
                product, unit, quantity = lookup(row)
                items.append(AvailableItem(product=product, quantity=quantity, unit=unit))
            fridge[owner] = items

        return cls(
            product_store=product_store,
            unit_store=unit_store,
            recipe_store=InMemoryRecipeStore(recipes),
            fridge=fridge,
        )


def _recipe_to_dict(recipe: Recipe) -> dict[str, Any]:
    return {
        "id": recipe.id,
        "owner_id": recipe.owner_id,
        "title": recipe.title,
        "description": recipe.description,
        "instructions": recipe.instructions,
        "cooking_time": recipe.cooking_time,
        "difficulty": recipe.difficulty,
        "tags": list(recipe.tags),
        "ingredients": [
            {
                "product_id": ing.product_id,
                "quantity": ing.quantity,
                "unit_id": ing.unit.id,
            }
            for ing in recipe.ingredients
        ],
    }


def load_catalog(catalog_file: Path) -> Catalog:
    """
    Load a catalog from disk. A missing file yields an empty catalog.

    Raises:
        ValidationError: If the file is not valid catalog JSON
    """
    if not catalog_file.exists():
        logger.debug("Catalog file %s does not exist, starting empty", catalog_file)
        return Catalog()

    try:
        with open(catalog_file) as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        raise ValidationError(f"Catalog file {catalog_file} is not valid JSON: {e}") from e

    if not isinstance(data, dict):
        raise ValidationError(f"Catalog file {catalog_file} must contain a JSON object")
    return Catalog.from_dict(data)


def save_catalog(catalog: Catalog, catalog_file: Path) -> None:
    """Write a catalog to disk, creating parent directories."""
    catalog_file.parent.mkdir(parents=True, exist_ok=True)
    with open(catalog_file, "w") as f:
        json.dump(catalog.to_dict(), f, indent=2)
