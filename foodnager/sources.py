"""Recipe sources: the owner's recipe store, external API and AI generation."""

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Protocol

import httpx
from bs4 import BeautifulSoup

from .config import EXTERNAL_API_URL, get_external_api_key, get_external_api_timeout
from .errors import ExternalSourceError
from .models import (
    Difficulty,
    ExternalIngredient,
    ExternalRecipe,
    GeneratedRecipe,
    Product,
    Recipe,
    RecipeOrigin,
    RequiredIngredient,
)
from .preferences import SearchPreferences, filter_by_preferences
from .products import ProductResolver
from .units import UnitStore, resolve_unit

logger = logging.getLogger(__name__)


class RecipeStore(Protocol):
    """Persistence collaborator for the owner's saved recipes."""

    def list_owned(self, owner_id: str) -> list[Recipe]: ...


class ExternalRecipeSource(Protocol):
    """Third-party recipe search by ingredient names.

    Implementations raise ExternalSourceError when the service cannot be reached.
    """

    def search_by_ingredient_names(
        self, names: list[str], preferences: SearchPreferences | None = None
    ) -> list[ExternalRecipe]: ...


class GenerativeSource(Protocol):
    """AI recipe generation from the products in the fridge.

    Implementations raise GenerationError when the model call fails or its
    output cannot be parsed.
    """

    def is_configured(self) -> bool: ...

    def generate(
        self, products: list[Product], preferences: SearchPreferences | None = None
    ) -> list[GeneratedRecipe]: ...


class InMemoryRecipeStore:
    """Recipe store holding recipes in memory, keyed by owner."""

    def __init__(self, recipes: list[Recipe] | None = None):
        self._recipes: list[Recipe] = list(recipes or [])

    @property
    def recipes(self) -> list[Recipe]:
        return list(self._recipes)

    def add(self, recipe: Recipe) -> Recipe:
        if recipe.id is None:
            recipe.id = max((r.id for r in self._recipes if isinstance(r.id, int)), default=0) + 1
        self._recipes.append(recipe)
        return recipe

    def get(self, owner_id: str, recipe_id: int | str) -> Recipe | None:
        for recipe in self._recipes:
            if recipe.owner_id == owner_id and str(recipe.id) == str(recipe_id):
                return recipe
        return None

    def list_owned(self, owner_id: str) -> list[Recipe]:
        return [r for r in self._recipes if r.owner_id == owner_id]


# =============================================================================
# Free-text recipe resolution
# =============================================================================


class RecipeResolver:
    """Turn free-text recipes into recipes referencing canonical products."""

    def __init__(
        self,
        product_resolver: ProductResolver,
        unit_store: UnitStore,
        *,
        workers: int = 1,
    ):
        self.product_resolver = product_resolver
        self.unit_store = unit_store
        self.workers = max(1, workers)

    def resolve_ingredient(self, ingredient: ExternalIngredient, owner_id: str) -> RequiredIngredient:
        product = self.product_resolver.resolve(ingredient.name, owner_id)
        unit = resolve_unit(self.unit_store, ingredient.unit)
        return RequiredIngredient(product=product, quantity=ingredient.quantity, unit=unit)

    def resolve(
        self,
        external: ExternalRecipe,
        owner_id: str,
        origin: RecipeOrigin = "api",
    ) -> Recipe:
        ingredients = []
        for ing in external.ingredients:
            if not ing.name.strip():
                logger.warning("Skipping unnamed ingredient in recipe '%s'", external.title)
                continue
            ingredients.append(self.resolve_ingredient(ing, owner_id))
        metadata: dict[str, Any] = {}
        if external.id is not None:
            metadata["external_id"] = external.id
        if external.image_url:
            metadata["image_url"] = external.image_url
        if external.source_url:
            metadata["source_url"] = external.source_url

        return Recipe(
            title=external.title,
            ingredients=ingredients,
            id=external.id,
            owner_id=owner_id,
            description=external.description,
            instructions=external.instructions,
            cooking_time=external.cooking_time,
            difficulty=external.difficulty,
            tags=list(external.tags),
            source=origin,
            metadata=metadata,
        )

    def _resolve_or_skip(
        self, external: ExternalRecipe, owner_id: str, origin: RecipeOrigin
    ) -> Recipe | None:
        try:
            return self.resolve(external, owner_id, origin)
        except Exception:
            logger.warning("Skipping recipe '%s': resolution failed", external.title, exc_info=True)
            return None

    def resolve_many(
        self,
        externals: list[ExternalRecipe],
        owner_id: str,
        origin: RecipeOrigin = "api",
    ) -> list[Recipe]:
        """
        Resolve several recipes, dropping any whose resolution fails.

        Recipes are independent, so with more than one worker they are
        resolved concurrently. Output order follows input order.
        """
        if self.workers == 1 or len(externals) <= 1:
            resolved = [self._resolve_or_skip(e, owner_id, origin) for e in externals]
        else:
            with ThreadPoolExecutor(max_workers=self.workers) as executor:
                resolved = list(
                    executor.map(lambda e: self._resolve_or_skip(e, owner_id, origin), externals)
                )
        return [recipe for recipe in resolved if recipe is not None]


# =============================================================================
# Spoonacular
# =============================================================================

def html_to_text(html: str) -> str:
    """Flatten an HTML snippet to text, keeping paragraph and list breaks."""
    soup = BeautifulSoup(html, "html.parser")
    for br in soup.find_all("br"):
        br.replace_with("\n")
    for block in soup.find_all(["p", "li", "div"]):
        block.append("\n")

    # Collapses runs of spaces, including non-breaking ones from &nbsp;
    lines = (" ".join(line.split()) for line in soup.get_text().splitlines())
    return "\n".join(line for line in lines if line)


def infer_difficulty(ingredient_count: int, cooking_time: int | None) -> Difficulty:
    """Guess difficulty from ingredient count and total time."""
    if ingredient_count <= 5:
        score = 1
    elif ingredient_count <= 10:
        score = 2
    else:
        score = 3

    if cooking_time:
        if cooking_time <= 30:
            score += 1
        elif cooking_time <= 60:
            score += 2
        else:
            score += 3

    if score <= 3:
        return "easy"
    if score <= 5:
        return "medium"
    return "hard"


class SpoonacularSource:
    """External recipe source backed by the Spoonacular API."""

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        timeout: float | None = None,
        max_recipes: int = 5,
        client: httpx.Client | None = None,
    ):
        self.api_key = api_key if api_key is not None else get_external_api_key()
        self.base_url = (base_url or EXTERNAL_API_URL).rstrip("/")
        self.max_recipes = max_recipes
        # A caller-supplied client stays open; the caller owns it
        self._owns_client = client is None
        self.client = client or httpx.Client(
            timeout=timeout if timeout is not None else get_external_api_timeout(),
            headers={"Accept": "application/json"},
        )

    def __enter__(self) -> "SpoonacularSource":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def close(self) -> None:
        """Close the underlying HTTP client if this source created it."""
        if self._owns_client:
            self.client.close()

    def is_configured(self) -> bool:
        return bool(self.api_key)

    def search_by_ingredient_names(
        self, names: list[str], preferences: SearchPreferences | None = None
    ) -> list[ExternalRecipe]:
        """
        Find recipes using the given ingredient names.

        Returns an empty list when no names are given or no API key is set.

        Raises:
            ExternalSourceError: If the search request fails
        """
        if not names:
            return []
        if not self.api_key:
            logger.warning("External recipe API key not configured, skipping search")
            return []

        summaries = self._find_by_ingredients(names)
        recipes = []
        for summary in summaries:
            recipe_id = summary.get("id")
            if recipe_id is None:
                continue
            recipe = self.get_recipe(recipe_id)
            if recipe is not None:
                recipes.append(recipe)

        logger.info("External API returned %d recipes for %d ingredients", len(recipes), len(names))
        return filter_by_preferences(recipes, preferences, strict=False)

    def _find_by_ingredients(self, names: list[str]) -> list[dict[str, Any]]:
        params = {
            "apiKey": self.api_key,
            "ingredients": ",".join(names),
            "number": str(self.max_recipes),
            "ranking": "1",
            "ignorePantry": "true",
        }
        try:
            response = self.client.get(f"{self.base_url}/recipes/findByIngredients", params=params)
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPError as e:
            raise ExternalSourceError(f"External API search failed: {e}") from e
        except ValueError as e:
            raise ExternalSourceError(f"External API returned invalid JSON: {e}") from e

        return data if isinstance(data, list) else []

    def get_recipe(self, recipe_id: int) -> ExternalRecipe | None:
        """Fetch and parse recipe details. Returns None if the fetch fails."""
        try:
            response = self.client.get(
                f"{self.base_url}/recipes/{recipe_id}/information",
                params={"apiKey": self.api_key},
            )
            response.raise_for_status()
            data = response.json()
        except (httpx.HTTPError, ValueError):
            logger.warning("Failed to fetch external recipe %s", recipe_id, exc_info=True)
            return None

        return parse_spoonacular_recipe(data)


def _parse_ingredient(data: dict[str, Any]) -> ExternalIngredient:
    name = data.get("nameClean") or data.get("name") or data.get("originalName") or "unknown"
    amount = data.get("amount")
    quantity = float(amount) if isinstance(amount, int | float) and amount > 0 else 1.0
    metric = (data.get("measures") or {}).get("metric") or {}
    unit = metric.get("unitShort") or data.get("unit") or "piece"
    return ExternalIngredient(name=name, quantity=quantity, unit=unit)


def _parse_instructions(data: dict[str, Any]) -> str:
    sections = data.get("analyzedInstructions") or []
    if sections:
        return "\n\n".join(
            "\n".join(f"{step['number']}. {step['step']}" for step in section.get("steps", []))
            for section in sections
        )
    if data.get("instructions"):
        return html_to_text(data["instructions"])
    return ""


def parse_spoonacular_recipe(data: dict[str, Any]) -> ExternalRecipe:
    """Convert a Spoonacular recipe information payload."""
    ingredients = [_parse_ingredient(ing) for ing in data.get("extendedIngredients") or []]

    tags: list[str] = []
    for key in ("diets", "cuisines", "dishTypes"):
        tags.extend(data.get(key) or [])
    for flag, tag in (
        ("vegetarian", "vegetarian"),
        ("vegan", "vegan"),
        ("glutenFree", "gluten-free"),
        ("dairyFree", "dairy-free"),
    ):
        if data.get(flag):
            tags.append(tag)

    summary = data.get("summary")
    description = html_to_text(summary)[:500] if summary else None
    cooking_time = data.get("readyInMinutes")

    return ExternalRecipe(
        title=data.get("title", "Untitled"),
        ingredients=ingredients,
        id=str(data["id"]) if data.get("id") is not None else None,
        description=description,
        instructions=_parse_instructions(data),
        cooking_time=cooking_time,
        difficulty=infer_difficulty(len(ingredients), cooking_time),
        tags=list(dict.fromkeys(t.lower() for t in tags)),
        image_url=data.get("image"),
        source_url=data.get("sourceUrl"),
    )
