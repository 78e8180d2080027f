"""Foodnager - recipe discovery from what is in your fridge."""

__version__ = "1.0.0"

from .discovery import RecipeDiscovery, discover, select_available_items
from .errors import (
    ConflictError,
    ExternalSourceError,
    FoodnagerError,
    GenerationError,
    InsufficientIngredientsError,
    NotFoundError,
    ValidationError,
)
from .matcher import score
from .models import (
    AvailableItem,
    ExternalIngredient,
    ExternalRecipe,
    MatchResult,
    Product,
    Quantity,
    Recipe,
    RequiredIngredient,
    SearchResponse,
    SearchResult,
    Unit,
)
from .preferences import SearchPreferences
from .products import ProductResolver
from .units import ConversionTable, reconcile

__all__ = [
    "__version__",
    "AvailableItem",
    "ConflictError",
    "ConversionTable",
    "ExternalIngredient",
    "ExternalRecipe",
    "ExternalSourceError",
    "FoodnagerError",
    "GenerationError",
    "InsufficientIngredientsError",
    "MatchResult",
    "NotFoundError",
    "Product",
    "ProductResolver",
    "Quantity",
    "Recipe",
    "RecipeDiscovery",
    "RequiredIngredient",
    "SearchPreferences",
    "SearchResponse",
    "SearchResult",
    "Unit",
    "ValidationError",
    "discover",
    "reconcile",
    "score",
    "select_available_items",
]
