"""CLI entry point for Foodnager."""

import logging
from pathlib import Path

import click

from . import __version__
from .catalog import Catalog, load_catalog, save_catalog
from .config import CATALOG_FILE, MAX_RESULTS, MIN_RESULTS, get_external_api_key, load_settings
from .cooking import plan_deductions
from .discovery import SOURCE_ALIASES, RecipeDiscovery
from .errors import FoodnagerError
from .models import AvailableItem, IngredientAvailability, SearchResult
from .products import ProductResolver
from .shopping import build_shopping_list
from .sources import SpoonacularSource
from .units import DEFAULT_CONVERSIONS


def _format_qty(qty: float) -> str:
    return str(int(qty)) if qty == int(qty) else f"{qty:.2f}".rstrip("0").rstrip(".")


def _catalog(ctx: click.Context) -> Catalog:
    return ctx.obj["catalog"]


def _save(ctx: click.Context) -> None:
    save_catalog(ctx.obj["catalog"], ctx.obj["catalog_file"])


def display_availability(item: IngredientAvailability) -> None:
    required = f"{_format_qty(item.required_quantity)} {item.unit}"
    if item.verdict == "unknown":
        have = f"{_format_qty(item.available_quantity)} {item.available_unit}"
        click.echo(f"    ? {item.product_name}: need {required}, have {have} (check manually)")
    elif item.verdict == "none":
        click.echo(f"    ✗ {item.product_name}: need {required}")
    else:
        mark = "✓" if item.verdict == "full" else "~"
        have = f"{_format_qty(item.available_quantity)} {item.unit}"
        click.echo(f"    {mark} {item.product_name}: need {required}, have {have}")


def display_result(index: int, result: SearchResult, details: bool = False) -> None:
    recipe = result.recipe
    click.echo(f"{index}. {recipe.title} [{result.score:.0%}]")
    extras = []
    if recipe.cooking_time:
        extras.append(f"{recipe.cooking_time} min")
    if recipe.difficulty:
        extras.append(recipe.difficulty)
    if recipe.id is not None:
        extras.append(f"id {recipe.id}")
    if extras:
        click.echo(f"   {' · '.join(extras)}")
    if details:
        for item in result.match.ingredients:
            display_availability(item)


# ============================================================================
# Main CLI Group
# ============================================================================


@click.group()
@click.version_option(version=__version__, prog_name="foodnager")
@click.option(
    "--catalog",
    "catalog_file",
    type=click.Path(dir_okay=False, path_type=Path),
    default=CATALOG_FILE,
    show_default=True,
    help="Catalog JSON file with units, products, recipes and fridge",
)
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
@click.pass_context
def cli(ctx: click.Context, catalog_file: Path, verbose: bool):
    """Foodnager recipe discovery.

    Find recipes you can cook with what is in your fridge, falling back from
    your own recipes to an external recipe API.
    """
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    ctx.ensure_object(dict)
    ctx.obj["catalog_file"] = catalog_file
    try:
        ctx.obj["catalog"] = load_catalog(catalog_file)
    except FoodnagerError as e:
        click.echo(f"✗ {e.message}", err=True)
        raise SystemExit(1) from None


# ============================================================================
# Discovery Commands
# ============================================================================


@cli.command()
@click.argument("owner")
@click.option(
    "--source",
    "-s",
    type=click.Choice(sorted(SOURCE_ALIASES), case_sensitive=False),
    default="all",
    help="Search only one tier instead of cascading",
)
@click.option(
    "--max-results",
    "-n",
    type=click.IntRange(MIN_RESULTS, MAX_RESULTS),
    default=None,
    help="Maximum results to show",
)
@click.option("--max-time", type=int, help="Maximum cooking time in minutes")
@click.option(
    "--difficulty",
    type=click.Choice(["easy", "medium", "hard"]),
    help="Required difficulty",
)
@click.option("--diet", multiple=True, help="Dietary tag every recipe must carry (repeatable)")
@click.option("--product", "-p", "product_ids", type=int, multiple=True, help="Only use these product ids")
@click.option("--details", "-d", is_flag=True, help="Show per-ingredient availability")
@click.pass_context
def discover(
    ctx: click.Context,
    owner: str,
    source: str,
    max_results: int | None,
    max_time: int | None,
    difficulty: str | None,
    diet: tuple[str, ...],
    product_ids: tuple[int, ...],
    details: bool,
):
    """Find recipes for OWNER's fridge.

    Examples:

    \b
        foodnager discover alice
        foodnager discover alice --source api --max-results 5
        foodnager discover alice --max-time 30 --diet vegetarian
    """
    catalog = _catalog(ctx)
    external = SpoonacularSource() if get_external_api_key() else None
    engine = RecipeDiscovery(
        catalog.recipe_store,
        catalog.product_store,
        catalog.unit_store,
        external_source=external,
        settings=load_settings(),
    )
    preferences = {
        "max_cooking_time": max_time,
        "difficulty": difficulty,
        "dietary_restrictions": list(diet),
    }

    try:
        response = engine.discover(
            owner,
            catalog.fridge_for(owner),
            preferences,
            source,
            max_results=max_results,
            product_ids=list(product_ids) if product_ids else None,
        )
    except FoodnagerError as e:
        click.echo(f"✗ {e.message}", err=True)
        raise SystemExit(1) from None
    finally:
        if external is not None:
            external.close()

    # Products and units created while resolving external recipes
    _save(ctx)

    click.echo(
        f"Source: {response.source} "
        f"({response.total_results} results, {response.duration_ms:.0f} ms)"
    )
    if not response.results:
        click.echo("No recipes found.")
        return

    click.echo()
    for i, result in enumerate(response, 1):
        display_result(i, result, details)


@cli.command()
@click.argument("owner")
@click.argument("recipe_id")
@click.pass_context
def score(ctx: click.Context, owner: str, recipe_id: str):
    """Score one of OWNER's recipes against the fridge."""
    catalog = _catalog(ctx)
    engine = RecipeDiscovery(catalog.recipe_store, catalog.product_store, catalog.unit_store)

    try:
        recipe = catalog.get_recipe(owner, recipe_id)
    except FoodnagerError as e:
        click.echo(f"✗ {e.message}", err=True)
        raise SystemExit(1) from None

    result = engine.score_recipe(recipe, catalog.fridge_for(owner))
    display_result(1, result, details=True)


@cli.command("shopping-list")
@click.argument("owner")
@click.argument("recipe_id")
@click.pass_context
def shopping_list(ctx: click.Context, owner: str, recipe_id: str):
    """List what OWNER must buy to cook a recipe."""
    catalog = _catalog(ctx)
    engine = RecipeDiscovery(catalog.recipe_store, catalog.product_store, catalog.unit_store)

    try:
        recipe = catalog.get_recipe(owner, recipe_id)
    except FoodnagerError as e:
        click.echo(f"✗ {e.message}", err=True)
        raise SystemExit(1) from None

    result = engine.score_recipe(recipe, catalog.fridge_for(owner))
    shopping = build_shopping_list(recipe, result.match)
    if shopping.is_empty:
        click.echo(f"✓ Everything for {recipe.title} is in the fridge.")
        return

    click.echo(f"Shopping list for {recipe.title}:")
    for item in shopping.items:
        click.echo(f"  • {item}")


def _parse_manual(ctx, param, values: tuple[str, ...]) -> dict[int, float]:
    manual: dict[int, float] = {}
    for value in values:
        product_id, sep, quantity = value.partition("=")
        try:
            if not sep:
                raise ValueError
            manual[int(product_id)] = float(quantity)
        except ValueError:
            raise click.BadParameter(f"expected PRODUCT_ID=QUANTITY, got '{value}'") from None
    return manual


@cli.command()
@click.argument("owner")
@click.argument("recipe_id")
@click.option(
    "--manual",
    "-m",
    multiple=True,
    callback=_parse_manual,
    help="PRODUCT_ID=QUANTITY in the fridge unit, for units that cannot be converted",
)
@click.option("--dry-run", is_flag=True, help="Show deductions without changing the fridge")
@click.pass_context
def cook(
    ctx: click.Context,
    owner: str,
    recipe_id: str,
    manual: dict[int, float],
    dry_run: bool,
):
    """Cook a recipe, taking its ingredients out of OWNER's fridge."""
    catalog = _catalog(ctx)
    fridge = catalog.fridge_for(owner)

    try:
        recipe = catalog.get_recipe(owner, recipe_id)
        deductions = plan_deductions(recipe.ingredients, fridge, manual)
    except FoodnagerError as e:
        click.echo(f"✗ {e.message}", err=True)
        for missing in e.details.get("missing", []):
            click.echo(
                f"    {missing['product_name']}: need {_format_qty(missing['required'])} "
                f"{missing['unit']}, have {_format_qty(missing['available'])}",
                err=True,
            )
        raise SystemExit(1) from None

    for deduction in deductions:
        click.echo(
            f"  - {_format_qty(deduction.quantity)} {deduction.item.unit.label} "
            f"{deduction.item.product.name} "
            f"({_format_qty(deduction.remaining)} left)"
        )

    if dry_run:
        click.echo("\n(Dry run - fridge not changed)")
        return

    taken = {id(d.item): d.quantity for d in deductions}
    updated = []
    for item in fridge:
        remaining = item.quantity - taken.get(id(item), 0.0)
        if remaining > 1e-9:
            updated.append(AvailableItem(product=item.product, quantity=remaining, unit=item.unit))
    catalog.fridge[owner] = updated
    _save(ctx)
    click.echo(f"\n✓ Cooked {recipe.title}")


# ============================================================================
# Catalog Utilities
# ============================================================================


@cli.command()
@click.argument("owner")
@click.argument("names", nargs=-1, required=True)
@click.pass_context
def resolve(ctx: click.Context, owner: str, names: tuple[str, ...]):
    """Resolve ingredient NAMES to OWNER's canonical products."""
    catalog = _catalog(ctx)
    resolver = ProductResolver(catalog.product_store, settings=load_settings())

    for name in names:
        try:
            product = resolver.resolve(name, owner)
        except FoodnagerError as e:
            click.echo(f"✗ {e.message}", err=True)
            raise SystemExit(1) from None
        scope = "global" if product.is_global else "private"
        click.echo(f"{name} → {product.name} (id {product.id}, {scope})")

    _save(ctx)


@cli.command()
@click.argument("amount", type=float)
@click.argument("from_unit")
@click.argument("to_unit")
def convert(amount: float, from_unit: str, to_unit: str):
    """Convert AMOUNT from one unit to another."""
    converted = DEFAULT_CONVERSIONS.convert(amount, from_unit, to_unit)
    if converted is None:
        click.echo(f"✗ Cannot convert {from_unit} to {to_unit}", err=True)
        raise SystemExit(1)
    click.echo(f"{_format_qty(amount)} {from_unit} = {_format_qty(round(converted, 4))} {to_unit}")


if __name__ == "__main__":
    cli()
