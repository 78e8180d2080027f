"""Data model shared by the resolver, scorer and orchestrator."""

from dataclasses import dataclass, field
from typing import Any, Literal

Verdict = Literal["full", "partial", "unknown", "none"]
TierName = Literal["user_recipes", "external_api", "ai_generated"]
Difficulty = Literal["easy", "medium", "hard"]
RecipeOrigin = Literal["user", "api", "ai"]

# Best verdict first
VERDICT_RANK: dict[str, int] = {"full": 3, "partial": 2, "unknown": 1, "none": 0}


@dataclass(frozen=True)
class Product:
    """A canonical product record."""

    id: int
    name: str
    owner_id: str | None = None  # None for global products

    @property
    def is_global(self) -> bool:
        return self.owner_id is None

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "name": self.name, "owner_id": self.owner_id}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Product":
        return cls(id=data["id"], name=data["name"], owner_id=data.get("owner_id"))


@dataclass(frozen=True)
class Unit:
    """A unit of measure."""

    id: int
    name: str
    abbreviation: str

    @property
    def label(self) -> str:
        return self.abbreviation or self.name

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "name": self.name, "abbreviation": self.abbreviation}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Unit":
        return cls(id=data["id"], name=data["name"], abbreviation=data.get("abbreviation", ""))


@dataclass(frozen=True)
class Quantity:
    """An amount expressed in a unit."""

    amount: float
    unit: Unit


@dataclass
class AvailableItem:
    """One fridge row: what the user currently owns."""

    product: Product
    quantity: float
    unit: Unit

    @property
    def product_id(self) -> int:
        return self.product.id


@dataclass
class RequiredIngredient:
    """An ingredient of a recipe, resolved to a canonical product."""

    product: Product
    quantity: float
    unit: Unit

    @property
    def product_id(self) -> int:
        return self.product.id

    def __str__(self) -> str:
        qty = self.quantity
        qty_str = str(int(qty)) if qty == int(qty) else f"{qty:.2f}".rstrip("0").rstrip(".")
        return f"{qty_str} {self.unit.label} {self.product.name}"


@dataclass
class ExternalIngredient:
    """A free-text ingredient from an external or generated recipe."""

    name: str
    quantity: float
    unit: str


@dataclass
class Recipe:
    """A recipe whose ingredients reference canonical products."""

    title: str
    ingredients: list[RequiredIngredient] = field(default_factory=list)
    id: int | str | None = None
    owner_id: str | None = None
    description: str | None = None
    instructions: str = ""
    cooking_time: int | None = None
    difficulty: Difficulty | None = None
    tags: list[str] = field(default_factory=list)
    source: RecipeOrigin = "user"
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass
class ExternalRecipe:
    """A recipe from an external API or AI generation, ingredients as free text."""

    title: str
    ingredients: list[ExternalIngredient] = field(default_factory=list)
    id: str | None = None
    description: str | None = None
    instructions: str = ""
    cooking_time: int | None = None
    difficulty: Difficulty | None = None
    tags: list[str] = field(default_factory=list)
    image_url: str | None = None
    source_url: str | None = None


# Generated recipes share the free-text shape of external ones
GeneratedRecipe = ExternalRecipe


@dataclass
class IngredientAvailability:
    """Per-ingredient availability verdict.

    For ``unknown`` verdicts ``available_quantity`` is expressed in the fridge
    unit named by ``available_unit``; otherwise it is in the required unit.
    """

    product_id: int
    product_name: str
    verdict: Verdict
    required_quantity: float
    available_quantity: float
    unit: str
    available_unit: str | None = None

    @property
    def missing_quantity(self) -> float | None:
        """Shortfall in the required unit, or None when it cannot be computed."""
        if self.verdict == "unknown":
            return None
        return max(0.0, self.required_quantity - self.available_quantity)

    def to_dict(self) -> dict[str, Any]:
        return {
            "product_id": self.product_id,
            "product_name": self.product_name,
            "verdict": self.verdict,
            "required_quantity": self.required_quantity,
            "available_quantity": self.available_quantity,
            "missing_quantity": self.missing_quantity,
            "unit": self.unit,
            "available_unit": self.available_unit,
        }


@dataclass
class MatchResult:
    """Scorer output for one recipe."""

    score: float
    available: list[IngredientAvailability] = field(default_factory=list)
    missing: list[IngredientAvailability] = field(default_factory=list)

    @property
    def ingredients(self) -> list[IngredientAvailability]:
        return self.available + self.missing

    @property
    def needs_manual_quantity(self) -> list[IngredientAvailability]:
        return [item for item in self.ingredients if item.verdict == "unknown"]

    def to_dict(self) -> dict[str, Any]:
        return {
            "score": self.score,
            "available": [item.to_dict() for item in self.available],
            "missing": [item.to_dict() for item in self.missing],
        }


@dataclass
class SearchResult:
    """A scored recipe together with the tier that produced it."""

    recipe: Recipe
    match: MatchResult
    source: TierName
    elapsed_ms: float = 0.0

    @property
    def score(self) -> float:
        return self.match.score


@dataclass
class SearchResponse:
    """Discovery output: results plus provenance of the answering tier."""

    results: list[SearchResult]
    source: TierName
    duration_ms: float
    tiers_attempted: list[TierName] = field(default_factory=list)

    @property
    def total_results(self) -> int:
        return len(self.results)

    def __iter__(self):
        return iter(self.results)

    def __len__(self) -> int:
        return len(self.results)

    def __getitem__(self, index: int) -> SearchResult:
        return self.results[index]
