"""Tests for recipe sources and free-text recipe resolution."""

import httpx
import pytest

from foodnager.errors import ExternalSourceError
from foodnager.models import ExternalIngredient, ExternalRecipe, Recipe
from foodnager.preferences import SearchPreferences
from foodnager.products import ProductResolver
from foodnager.sources import (
    InMemoryRecipeStore,
    RecipeResolver,
    SpoonacularSource,
    html_to_text,
    infer_difficulty,
    parse_spoonacular_recipe,
)
from foodnager.units import DEFAULT_CONVERSIONS

BASE_URL = "https://api.spoonacular.test"
OWNER = "alice"


@pytest.fixture
def spoonacular():
    return SpoonacularSource(api_key="test-key", base_url=BASE_URL, timeout=1.0)


@pytest.fixture
def recipe_info():
    """Spoonacular recipe information payload."""
    return {
        "id": 716429,
        "title": "Pasta with Garlic",
        "readyInMinutes": 25,
        "image": "https://img.spoonacular.test/716429.jpg",
        "sourceUrl": "https://example.com/pasta",
        "summary": "<p>A <b>quick</b> pasta.</p>",
        "vegetarian": True,
        "diets": ["lacto ovo vegetarian"],
        "dishTypes": ["main course"],
        "extendedIngredients": [
            {
                "nameClean": "pasta",
                "name": "spaghetti",
                "amount": 200,
                "unit": "grams",
                "measures": {"metric": {"amount": 200, "unitShort": "g"}},
            },
            {"name": "garlic", "amount": 3, "unit": "cloves"},
            {"originalName": "salt to taste", "amount": 0},
        ],
        "analyzedInstructions": [
            {
                "steps": [
                    {"number": 1, "step": "Boil the pasta."},
                    {"number": 2, "step": "Fry the garlic."},
                ]
            }
        ],
    }


class TestParseSpoonacularRecipe:
    """Tests for parse_spoonacular_recipe."""

    def test_basic_fields(self, recipe_info):
        recipe = parse_spoonacular_recipe(recipe_info)

        assert recipe.id == "716429"
        assert recipe.title == "Pasta with Garlic"
        assert recipe.cooking_time == 25
        assert recipe.description == "A quick pasta."
        assert recipe.image_url.endswith("716429.jpg")
        assert recipe.source_url == "https://example.com/pasta"

    def test_ingredients(self, recipe_info):
        ingredients = parse_spoonacular_recipe(recipe_info).ingredients

        assert ingredients[0] == ExternalIngredient(name="pasta", quantity=200.0, unit="g")
        assert ingredients[1] == ExternalIngredient(name="garlic", quantity=3.0, unit="cloves")
        # Zero amount and no unit fall back to one piece
        assert ingredients[2] == ExternalIngredient(name="salt to taste", quantity=1.0, unit="piece")

    def test_plural_short_units_convert(self, recipe_info):
        recipe_info["extendedIngredients"] = [
            {"name": "olive oil", "amount": 2, "measures": {"metric": {"unitShort": "Tbsps"}}},
            {"name": "salt", "amount": 1.5, "measures": {"metric": {"unitShort": "tsps"}}},
        ]
        oil, salt = parse_spoonacular_recipe(recipe_info).ingredients

        assert DEFAULT_CONVERSIONS.convert(oil.quantity, oil.unit, "ml") == 30
        assert DEFAULT_CONVERSIONS.convert(salt.quantity, salt.unit, "ml") == 7.5

    def test_instructions_from_steps(self, recipe_info):
        instructions = parse_spoonacular_recipe(recipe_info).instructions
        assert instructions == "1. Boil the pasta.\n2. Fry the garlic."

    def test_instructions_from_html(self, recipe_info):
        del recipe_info["analyzedInstructions"]
        recipe_info["instructions"] = "<ol><li>Boil.</li><li>Serve.</li></ol>"
        assert parse_spoonacular_recipe(recipe_info).instructions == "Boil.\nServe."

    def test_tags(self, recipe_info):
        tags = parse_spoonacular_recipe(recipe_info).tags
        assert tags == ["lacto ovo vegetarian", "main course", "vegetarian"]

    def test_difficulty_inferred(self, recipe_info):
        assert parse_spoonacular_recipe(recipe_info).difficulty == "easy"


class TestHelpers:
    def test_html_to_text(self):
        assert html_to_text("<p>One</p><p>Two <br/>Three</p>") == "One\nTwo\nThree"

    def test_html_to_text_decodes_entities(self):
        html = "<p>Salt &amp; pepper, 5&nbsp;min</p><b>Bold</b>text"
        assert html_to_text(html) == "Salt & pepper, 5 min\nBoldtext"

    @pytest.mark.parametrize(
        "count,time,expected",
        [
            (3, 20, "easy"),
            (8, 45, "medium"),
            (12, 90, "hard"),
            (4, None, "easy"),
        ],
    )
    def test_infer_difficulty(self, count, time, expected):
        assert infer_difficulty(count, time) == expected


class TestSpoonacularSource:
    """Tests for the Spoonacular HTTP client."""

    def test_search_fetches_details(self, mock_httpx, spoonacular, recipe_info):
        search = mock_httpx.get(f"{BASE_URL}/recipes/findByIngredients").respond(
            json=[{"id": 716429, "title": "Pasta with Garlic"}]
        )
        mock_httpx.get(f"{BASE_URL}/recipes/716429/information").respond(json=recipe_info)

        recipes = spoonacular.search_by_ingredient_names(["pasta", "garlic"])

        assert [r.title for r in recipes] == ["Pasta with Garlic"]
        params = search.calls.last.request.url.params
        assert params["ingredients"] == "pasta,garlic"
        assert params["apiKey"] == "test-key"

    def test_no_names_no_request(self, mock_httpx, spoonacular):
        route = mock_httpx.get(f"{BASE_URL}/recipes/findByIngredients")
        assert spoonacular.search_by_ingredient_names([]) == []
        assert not route.called

    def test_missing_key_returns_nothing(self, mock_httpx):
        source = SpoonacularSource(api_key="", base_url=BASE_URL)
        route = mock_httpx.get(f"{BASE_URL}/recipes/findByIngredients")

        assert not source.is_configured()
        assert source.search_by_ingredient_names(["pasta"]) == []
        assert not route.called

    def test_search_http_error_raises(self, mock_httpx, spoonacular):
        mock_httpx.get(f"{BASE_URL}/recipes/findByIngredients").respond(status_code=402)

        with pytest.raises(ExternalSourceError):
            spoonacular.search_by_ingredient_names(["pasta"])

    def test_search_network_error_raises(self, mock_httpx, spoonacular):
        mock_httpx.get(f"{BASE_URL}/recipes/findByIngredients").mock(
            side_effect=httpx.ConnectTimeout("timeout")
        )

        with pytest.raises(ExternalSourceError):
            spoonacular.search_by_ingredient_names(["pasta"])

    def test_close_releases_own_client(self):
        source = SpoonacularSource(api_key="test-key", base_url=BASE_URL)
        source.close()
        assert source.client.is_closed

    def test_close_leaves_caller_client_open(self):
        with httpx.Client() as client:
            source = SpoonacularSource(api_key="test-key", base_url=BASE_URL, client=client)
            source.close()
            assert not client.is_closed

    def test_context_manager_closes_client(self):
        with SpoonacularSource(api_key="test-key", base_url=BASE_URL) as source:
            assert not source.client.is_closed
        assert source.client.is_closed

    def test_failed_detail_is_skipped(self, mock_httpx, spoonacular, recipe_info):
        mock_httpx.get(f"{BASE_URL}/recipes/findByIngredients").respond(
            json=[{"id": 1}, {"id": 716429}]
        )
        mock_httpx.get(f"{BASE_URL}/recipes/1/information").respond(status_code=500)
        mock_httpx.get(f"{BASE_URL}/recipes/716429/information").respond(json=recipe_info)

        recipes = spoonacular.search_by_ingredient_names(["pasta"])
        assert [r.id for r in recipes] == ["716429"]

    def test_preferences_filter_leniently(self, mock_httpx, spoonacular, recipe_info):
        mock_httpx.get(f"{BASE_URL}/recipes/findByIngredients").respond(json=[{"id": 716429}])
        mock_httpx.get(f"{BASE_URL}/recipes/716429/information").respond(json=recipe_info)

        quick = SearchPreferences(max_cooking_time=10)
        assert spoonacular.search_by_ingredient_names(["pasta"], quick) == []

        vegetarian = SearchPreferences(dietary_restrictions=["vegetarian"])
        assert len(spoonacular.search_by_ingredient_names(["pasta"], vegetarian)) == 1


class TestRecipeResolver:
    """Tests for resolving free-text recipes onto canonical products."""

    @pytest.fixture
    def resolver(self, product_store, unit_store):
        return RecipeResolver(ProductResolver(product_store), unit_store)

    @pytest.fixture
    def external(self):
        return ExternalRecipe(
            id="42",
            title="Omelette",
            ingredients=[
                ExternalIngredient(name="Eggs", quantity=3, unit="pcs"),
                ExternalIngredient(name="chives", quantity=1, unit="bunch"),
            ],
            image_url="https://img.test/42.jpg",
        )

    def test_resolve(self, resolver, external, products, units):
        recipe = resolver.resolve(external, OWNER)

        assert recipe.owner_id == OWNER
        assert recipe.source == "api"
        assert recipe.metadata == {"external_id": "42", "image_url": "https://img.test/42.jpg"}
        assert recipe.ingredients[0].product == products["egg"]
        assert recipe.ingredients[0].unit == units["piece"]

    def test_unknown_names_and_units_created(self, resolver, external, product_store, unit_store):
        recipe = resolver.resolve(external, OWNER, origin="ai")

        chives = recipe.ingredients[1]
        assert chives.product.name == "Chive"
        assert chives.product.owner_id == OWNER
        assert chives.unit.name == "bunch"
        assert recipe.source == "ai"

    def test_unnamed_ingredient_skipped(self, resolver, external, products):
        external.ingredients.append(ExternalIngredient(name="  ", quantity=1, unit="g"))

        recipe = resolver.resolve(external, OWNER)

        assert [i.product.name for i in recipe.ingredients] == ["Egg", "Chive"]
        assert products["tomato"] not in [i.product for i in recipe.ingredients]

    def test_resolve_many_keeps_order_with_workers(self, product_store, unit_store, external):
        resolver = RecipeResolver(ProductResolver(product_store), unit_store, workers=4)
        externals = [
            ExternalRecipe(title=f"Recipe {i}", ingredients=external.ingredients) for i in range(5)
        ]
        recipes = resolver.resolve_many(externals, OWNER)

        assert [r.title for r in recipes] == [f"Recipe {i}" for i in range(5)]
        chive_ids = {r.ingredients[1].product.id for r in recipes}
        assert len(chive_ids) == 1


class TestInMemoryRecipeStore:
    def test_add_assigns_id(self):
        store = InMemoryRecipeStore([Recipe(title="A", id=4, owner_id=OWNER)])
        added = store.add(Recipe(title="B", owner_id=OWNER))
        assert added.id == 5

    def test_list_owned_and_get(self, recipe_store):
        assert {r.title for r in recipe_store.list_owned(OWNER)} == {"Tomato salad", "Pancakes"}
        assert recipe_store.list_owned("bob") == []
        assert recipe_store.get(OWNER, "2").title == "Pancakes"
        assert recipe_store.get("bob", 2) is None
