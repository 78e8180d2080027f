"""Shared fixtures for foodnager tests."""

import pytest
import respx

from foodnager.models import AvailableItem, Product, Recipe, RequiredIngredient, Unit
from foodnager.products import InMemoryProductStore
from foodnager.sources import InMemoryRecipeStore
from foodnager.units import InMemoryUnitStore

OWNER = "alice"


@pytest.fixture
def mock_httpx():
    """Activate respx mock for HTTP requests."""
    with respx.mock(assert_all_called=False) as respx_mock:
        yield respx_mock


@pytest.fixture
def units():
    """Standard units keyed by abbreviation."""
    return {
        "g": Unit(id=1, name="gram", abbreviation="g"),
        "kg": Unit(id=2, name="kilogram", abbreviation="kg"),
        "ml": Unit(id=3, name="milliliter", abbreviation="ml"),
        "l": Unit(id=4, name="liter", abbreviation="l"),
        "piece": Unit(id=5, name="piece", abbreviation="pcs"),
        "cup": Unit(id=6, name="cup", abbreviation="cup"),
    }


@pytest.fixture
def products():
    """Global products keyed by name."""
    return {
        "tomato": Product(id=1, name="Tomato"),
        "milk": Product(id=2, name="Milk"),
        "egg": Product(id=3, name="Egg"),
        "flour": Product(id=4, name="Flour"),
        "olive oil": Product(id=5, name="Olive oil"),
    }


@pytest.fixture
def unit_store(units):
    return InMemoryUnitStore(list(units.values()))


@pytest.fixture
def product_store(products):
    return InMemoryProductStore(list(products.values()))


@pytest.fixture
def fridge(products, units):
    """A fridge with tomatoes, milk and eggs."""
    return [
        AvailableItem(product=products["tomato"], quantity=3, unit=units["piece"]),
        AvailableItem(product=products["milk"], quantity=1, unit=units["l"]),
        AvailableItem(product=products["egg"], quantity=6, unit=units["piece"]),
    ]


@pytest.fixture
def tomato_salad(products, units):
    """Recipe fully covered by the fridge."""
    return Recipe(
        id=1,
        owner_id=OWNER,
        title="Tomato salad",
        ingredients=[
            RequiredIngredient(product=products["tomato"], quantity=2, unit=units["piece"]),
        ],
        cooking_time=10,
        difficulty="easy",
        tags=["vegetarian"],
    )


@pytest.fixture
def pancakes(products, units):
    """Recipe with one of three ingredients in the fridge."""
    return Recipe(
        id=2,
        owner_id=OWNER,
        title="Pancakes",
        ingredients=[
            RequiredIngredient(product=products["flour"], quantity=200, unit=units["g"]),
            RequiredIngredient(product=products["milk"], quantity=500, unit=units["ml"]),
            RequiredIngredient(product=products["olive oil"], quantity=1, unit=units["cup"]),
        ],
        cooking_time=25,
        difficulty="easy",
    )


@pytest.fixture
def recipe_store(tomato_salad, pancakes):
    return InMemoryRecipeStore([tomato_salad, pancakes])
