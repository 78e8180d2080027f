"""Recipe discovery: tiered search across recipe sources with fallback.

Tiers are tried in a fixed order:

1. user_recipes - the owner's saved recipes, scored against the fridge
2. external_api - third-party recipe search, entered only when tier 1 has
   no good match
3. ai_generated - generation from the fridge contents, entered only when
   tier 2 yields nothing and a generator is configured

Each tier produces a tagged outcome (ok, empty or unavailable). Collaborator
failures become ``unavailable`` outcomes, so the cascade is a decision over
outcomes rather than nested exception handling. When no later tier answers,
tier 1 results are returned even below the good-match threshold.
"""

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Literal

from .config import MAX_RESULTS, MIN_RESULTS, EngineSettings
from .errors import ExternalSourceError, GenerationError, NotFoundError, ValidationError
from .matcher import score
from .models import AvailableItem, Product, Recipe, SearchResponse, SearchResult, TierName
from .preferences import SearchPreferences, filter_by_preferences
from .products import ProductResolver, ProductStore
from .sources import ExternalRecipeSource, GenerativeSource, RecipeResolver, RecipeStore
from .units import ConversionTable, UnitStore

logger = logging.getLogger(__name__)

TIERS: tuple[TierName, ...] = ("user_recipes", "external_api", "ai_generated")

SOURCE_ALIASES: dict[str, TierName | None] = {
    "user_recipes": "user_recipes",
    "user": "user_recipes",
    "external_api": "external_api",
    "api": "external_api",
    "ai_generated": "ai_generated",
    "ai": "ai_generated",
    "all": None,
}

OutcomeStatus = Literal["ok", "empty", "unavailable"]


@dataclass(frozen=True)
class TierOutcome:
    """Tagged result of running one tier."""

    tier: TierName
    status: OutcomeStatus
    results: list[SearchResult] = field(default_factory=list)
    reason: str | None = None

    @classmethod
    def ok(cls, tier: TierName, results: list[SearchResult]) -> "TierOutcome":
        return cls(tier=tier, status="ok", results=results)

    @classmethod
    def empty(cls, tier: TierName) -> "TierOutcome":
        return cls(tier=tier, status="empty")

    @classmethod
    def unavailable(cls, tier: TierName, reason: str) -> "TierOutcome":
        return cls(tier=tier, status="unavailable", reason=reason)

    def has_good_match(self, threshold: float) -> bool:
        return any(result.score >= threshold for result in self.results)


def normalize_source(requested_source: str | None) -> TierName | None:
    """
    Map a requested source (or alias) to a tier name; None means cascade.

    Raises:
        ValidationError: If the source is not recognized
    """
    if requested_source is None:
        return None
    key = requested_source.lower().strip()
    if key not in SOURCE_ALIASES:
        raise ValidationError(
            f"Unknown source '{requested_source}'. "
            f"Choose from: {', '.join(sorted(SOURCE_ALIASES))}"
        )
    return SOURCE_ALIASES[key]


def select_available_items(
    fridge: list[AvailableItem],
    product_ids: list[int],
) -> list[AvailableItem]:
    """
    Restrict fridge rows to explicitly pinned products.

    Raises:
        ValidationError: If no product ids are given
        NotFoundError: If any pinned product is not in the fridge
    """
    if not product_ids:
        raise ValidationError("product_ids must not be empty when pinning products")

    wanted = set(product_ids)
    selected = [item for item in fridge if item.product_id in wanted]
    found = {item.product_id for item in selected}
    missing = [pid for pid in product_ids if pid not in found]
    if missing:
        raise NotFoundError(
            f"Products not found in fridge: {', '.join(str(pid) for pid in missing)}",
            {"missing_product_ids": missing},
        )
    return selected


def _sort_results(results: list[SearchResult]) -> list[SearchResult]:
    return sorted(
        results,
        key=lambda r: (-r.score, r.recipe.title.lower(), str(r.recipe.id)),
    )


def _unique_products(available: list[AvailableItem]) -> list[Product]:
    seen: dict[int, Product] = {}
    for item in available:
        seen.setdefault(item.product_id, item.product)
    return list(seen.values())


class RecipeDiscovery:
    """Orchestrates recipe discovery across the three tiers."""

    def __init__(
        self,
        recipe_store: RecipeStore,
        product_store: ProductStore,
        unit_store: UnitStore,
        *,
        external_source: ExternalRecipeSource | None = None,
        generative_source: GenerativeSource | None = None,
        settings: EngineSettings | None = None,
        conversions: ConversionTable | None = None,
        good_match_threshold: float | None = None,
    ):
        self.settings = settings or EngineSettings()
        self.recipe_store = recipe_store
        self.external_source = external_source
        self.generative_source = generative_source
        self.conversions = conversions
        self.good_match_threshold = (
            good_match_threshold
            if good_match_threshold is not None
            else self.settings.good_match_threshold
        )
        self.product_resolver = ProductResolver(product_store, settings=self.settings)
        self.recipe_resolver = RecipeResolver(
            self.product_resolver, unit_store, workers=self.settings.resolve_workers
        )

    # -------------------------------------------------------------------------
    # Public entry points
    # -------------------------------------------------------------------------

    def discover(
        self,
        owner_id: str,
        available: list[AvailableItem],
        preferences: SearchPreferences | dict[str, Any] | None = None,
        requested_source: str | None = None,
        *,
        max_results: int | None = None,
        product_ids: list[int] | None = None,
    ) -> SearchResponse:
        """
        Find recipes for what the owner has in the fridge.

        Args:
            owner_id: Owner whose recipes and products are visible
            available: Fridge rows to cook from
            preferences: SearchPreferences or a mapping to parse
            requested_source: Pin a single tier (no cascading); None or "all" cascades
            max_results: Cap on results per tier (1-50)
            product_ids: Restrict the fridge to these products

        Returns:
            SearchResponse with results and the tier that produced them

        Raises:
            ValidationError: Malformed input or an empty fridge
            NotFoundError: Pinned products missing from the fridge
        """
        start = time.perf_counter()

        if product_ids is not None:
            available = select_available_items(available, product_ids)
        if not available:
            raise ValidationError("No products available in fridge")

        if not isinstance(preferences, SearchPreferences):
            preferences = SearchPreferences.from_dict(preferences)
        pinned = normalize_source(requested_source)
        limit = self._validate_max_results(max_results)

        if pinned is not None:
            outcome = self._run_tier(pinned, owner_id, available, preferences, limit)
            return self._respond(outcome.tier, outcome.results, start, [pinned])

        attempted: list[TierName] = []

        user = self._run_tier("user_recipes", owner_id, available, preferences, limit)
        attempted.append(user.tier)
        if user.has_good_match(self.good_match_threshold):
            return self._respond(user.tier, user.results, start, attempted)

        for tier in ("external_api", "ai_generated"):
            outcome = self._run_tier(tier, owner_id, available, preferences, limit)
            attempted.append(tier)
            if outcome.status == "ok":
                return self._respond(tier, outcome.results, start, attempted)

        logger.info("No later tier answered; falling back to %d user recipes", len(user.results))
        return self._respond("user_recipes", user.results, start, attempted)

    def score_recipe(self, recipe: Recipe, available: list[AvailableItem]) -> SearchResult:
        """Score a single recipe against the fridge ("can I cook this now")."""
        start = time.perf_counter()
        match = score(recipe.ingredients, available, self.conversions)
        elapsed = (time.perf_counter() - start) * 1000
        return SearchResult(recipe=recipe, match=match, source="user_recipes", elapsed_ms=elapsed)

    # -------------------------------------------------------------------------
    # Tiers
    # -------------------------------------------------------------------------

    def _run_tier(
        self,
        tier: TierName,
        owner_id: str,
        available: list[AvailableItem],
        preferences: SearchPreferences,
        limit: int,
    ) -> TierOutcome:
        runners = {
            "user_recipes": self.search_user_recipes,
            "external_api": self.search_external,
            "ai_generated": self.generate,
        }
        logger.debug("Entering tier %s", tier)
        try:
            outcome = runners[tier](owner_id, available, preferences, limit)
        except (ExternalSourceError, GenerationError) as e:
            logger.warning("Tier %s unavailable: %s", tier, e.message)
            outcome = TierOutcome.unavailable(tier, e.message)
        except Exception as e:
            logger.warning("Tier %s failed, treating as no results: %s", tier, e, exc_info=True)
            outcome = TierOutcome.unavailable(tier, str(e))
        logger.debug("Tier %s finished: %s (%d results)", tier, outcome.status, len(outcome.results))
        return outcome

    def search_user_recipes(
        self,
        owner_id: str,
        available: list[AvailableItem],
        preferences: SearchPreferences,
        limit: int,
    ) -> TierOutcome:
        """Tier 1: score the owner's saved recipes, strict preference filtering."""
        recipes = filter_by_preferences(
            self.recipe_store.list_owned(owner_id), preferences, strict=True
        )
        results = self._score_all(recipes, available, "user_recipes", limit)
        return TierOutcome.ok("user_recipes", results) if results else TierOutcome.empty("user_recipes")

    def search_external(
        self,
        owner_id: str,
        available: list[AvailableItem],
        preferences: SearchPreferences,
        limit: int,
    ) -> TierOutcome:
        """Tier 2: search the external source by ingredient names."""
        if self.external_source is None:
            return TierOutcome.unavailable("external_api", "not configured")

        names = [product.name for product in _unique_products(available)]
        externals = self.external_source.search_by_ingredient_names(names, preferences)
        externals = externals[: self.settings.external_recipe_limit]
        if not externals:
            return TierOutcome.empty("external_api")

        recipes = self.recipe_resolver.resolve_many(externals, owner_id, origin="api")
        recipes = filter_by_preferences(recipes, preferences, strict=False)
        results = self._score_all(recipes, available, "external_api", limit)
        return TierOutcome.ok("external_api", results) if results else TierOutcome.empty("external_api")

    def generate(
        self,
        owner_id: str,
        available: list[AvailableItem],
        preferences: SearchPreferences,
        limit: int,
    ) -> TierOutcome:
        """Tier 3: generate recipes from the fridge contents."""
        source = self.generative_source
        if source is None or not source.is_configured():
            return TierOutcome.unavailable("ai_generated", "not configured")

        generated = source.generate(_unique_products(available), preferences)
        if not generated:
            return TierOutcome.empty("ai_generated")

        recipes = self.recipe_resolver.resolve_many(generated, owner_id, origin="ai")
        recipes = filter_by_preferences(recipes, preferences, strict=False)
        results = self._score_all(recipes, available, "ai_generated", limit)
        return TierOutcome.ok("ai_generated", results) if results else TierOutcome.empty("ai_generated")

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    def _score_all(
        self,
        recipes: list[Recipe],
        available: list[AvailableItem],
        tier: TierName,
        limit: int,
    ) -> list[SearchResult]:
        results = [
            SearchResult(
                recipe=recipe,
                match=score(recipe.ingredients, available, self.conversions),
                source=tier,
            )
            for recipe in recipes
        ]
        return _sort_results(results)[:limit]

    def _validate_max_results(self, max_results: int | None) -> int:
        if max_results is None:
            return self.settings.default_max_results
        if isinstance(max_results, bool) or not isinstance(max_results, int):
            raise ValidationError("max_results must be an integer")
        if not MIN_RESULTS <= max_results <= MAX_RESULTS:
            raise ValidationError(f"max_results must be between {MIN_RESULTS} and {MAX_RESULTS}")
        return max_results

    def _respond(
        self,
        tier: TierName,
        results: list[SearchResult],
        start: float,
        attempted: list[TierName],
    ) -> SearchResponse:
        duration_ms = (time.perf_counter() - start) * 1000
        for result in results:
            result.source = tier
            result.elapsed_ms = duration_ms
        logger.info(
            "Discovery answered by %s with %d results in %.1f ms",
            tier,
            len(results),
            duration_ms,
        )
        return SearchResponse(
            results=results,
            source=tier,
            duration_ms=duration_ms,
            tiers_attempted=attempted,
        )


def discover(
    owner_id: str,
    available: list[AvailableItem],
    preferences: SearchPreferences | dict[str, Any] | None,
    *,
    recipe_store: RecipeStore,
    product_store: ProductStore,
    unit_store: UnitStore,
    requested_source: str | None = None,
    external_source: ExternalRecipeSource | None = None,
    generative_source: GenerativeSource | None = None,
    settings: EngineSettings | None = None,
    max_results: int | None = None,
) -> SearchResponse:
    """Run a one-off discovery without keeping an orchestrator around."""
    engine = RecipeDiscovery(
        recipe_store,
        product_store,
        unit_store,
        external_source=external_source,
        generative_source=generative_source,
        settings=settings,
    )
    return engine.discover(
        owner_id, available, preferences, requested_source, max_results=max_results
    )
