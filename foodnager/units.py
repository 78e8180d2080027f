"""Unit compatibility: conversion tables and availability reconciliation."""

import logging
import threading
from dataclasses import dataclass
from typing import Literal, Protocol

from .errors import ConflictError
from .models import Quantity, Unit

logger = logging.getLogger(__name__)

Dimension = Literal["mass", "volume", "count", "length", "unknown"]
ReconcileStatus = Literal["full", "partial", "unknown"]

# Unit conversions to base units (g for mass, ml for volume, cm for length).
# Count units only convert between aliases of the same thing.
UNIT_INFO: dict[str, tuple[float, str, Dimension]] = {
    # Mass -> grams
    "mg": (0.001, "g", "mass"),
    "milligram": (0.001, "g", "mass"),
    "g": (1.0, "g", "mass"),
    "gram": (1.0, "g", "mass"),
    "grams": (1.0, "g", "mass"),
    "kg": (1000.0, "g", "mass"),
    "kilogram": (1000.0, "g", "mass"),
    "oz": (28.3495, "g", "mass"),
    "ounce": (28.3495, "g", "mass"),
    "lb": (453.592, "g", "mass"),
    "pound": (453.592, "g", "mass"),
    # Volume -> milliliters
    "ml": (1.0, "ml", "volume"),
    "milliliter": (1.0, "ml", "volume"),
    "cl": (10.0, "ml", "volume"),
    "dl": (100.0, "ml", "volume"),
    "l": (1000.0, "ml", "volume"),
    "liter": (1000.0, "ml", "volume"),
    "litre": (1000.0, "ml", "volume"),
    "cup": (240.0, "ml", "volume"),
    "cups": (240.0, "ml", "volume"),
    "tbsp": (15.0, "ml", "volume"),
    "tablespoon": (15.0, "ml", "volume"),
    "tablespoons": (15.0, "ml", "volume"),
    "tbsps": (15.0, "ml", "volume"),
    "tbs": (15.0, "ml", "volume"),
    "tsp": (5.0, "ml", "volume"),
    "teaspoon": (5.0, "ml", "volume"),
    "teaspoons": (5.0, "ml", "volume"),
    "tsps": (5.0, "ml", "volume"),
    "fl oz": (29.5735, "ml", "volume"),
    "fl. oz": (29.5735, "ml", "volume"),
    # Length -> centimeters
    "mm": (0.1, "cm", "length"),
    "cm": (1.0, "cm", "length"),
    "m": (100.0, "cm", "length"),
    # Count
    "piece": (1.0, "piece", "count"),
    "pieces": (1.0, "piece", "count"),
    "pcs": (1.0, "piece", "count"),
    "pc": (1.0, "piece", "count"),
    "szt": (1.0, "piece", "count"),
    "sztuka": (1.0, "piece", "count"),
    "pack": (1.0, "pack", "count"),
    "package": (1.0, "pack", "count"),
    "opak": (1.0, "pack", "count"),
    "clove": (1.0, "clove", "count"),
    "cloves": (1.0, "clove", "count"),
    "bunch": (1.0, "bunch", "count"),
}


def _unit_keys(unit: Unit | str) -> list[str]:
    """Lookup keys for a unit: abbreviation first, then name."""
    if isinstance(unit, str):
        return [unit.lower().strip()]
    keys = []
    for value in (unit.abbreviation, unit.name):
        key = (value or "").lower().strip()
        if key and key not in keys:
            keys.append(key)
    return keys


def _build_factors(
    unit_info: dict[str, tuple[float, str, Dimension]],
) -> dict[tuple[str, str], float]:
    factors: dict[tuple[str, str], float] = {}
    for from_key, (from_mult, from_base, _) in unit_info.items():
        for to_key, (to_mult, to_base, _) in unit_info.items():
            if from_base == to_base:
                factors[(from_key, to_key)] = from_mult / to_mult
    return factors


class ConversionTable:
    """Static lookup of ``(from_unit, to_unit) -> factor``.

    Absence of an entry means the pair is not convertible.
    """

    def __init__(self, factors: dict[tuple[str, str], float] | None = None):
        self._factors = dict(factors) if factors is not None else _build_factors(UNIT_INFO)

    def with_factors(self, extra: dict[tuple[str, str], float]) -> "ConversionTable":
        """Return a copy with extra pairs (and their inverses) added."""
        factors = dict(self._factors)
        for (from_unit, to_unit), factor in extra.items():
            from_key = from_unit.lower().strip()
            to_key = to_unit.lower().strip()
            factors[(from_key, to_key)] = factor
            if factor:
                factors[(to_key, from_key)] = 1.0 / factor
        return ConversionTable(factors)

    def factor(self, from_unit: Unit | str, to_unit: Unit | str) -> float | None:
        """Multiplier turning an amount in ``from_unit`` into ``to_unit``."""
        for from_key in _unit_keys(from_unit):
            for to_key in _unit_keys(to_unit):
                if from_key == to_key:
                    return 1.0
                factor = self._factors.get((from_key, to_key))
                if factor is not None:
                    return factor
        return None

    def convert(self, amount: float, from_unit: Unit | str, to_unit: Unit | str) -> float | None:
        factor = self.factor(from_unit, to_unit)
        if factor is None:
            return None
        return amount * factor

    def can_convert(self, from_unit: Unit | str, to_unit: Unit | str) -> bool:
        return self.factor(from_unit, to_unit) is not None


DEFAULT_CONVERSIONS = ConversionTable()


def get_dimension(unit: Unit | str | None) -> Dimension:
    """Get the physical dimension of a unit."""
    if unit is None:
        return "unknown"
    for key in _unit_keys(unit):
        if key in UNIT_INFO:
            return UNIT_INFO[key][2]
    return "unknown"


@dataclass(frozen=True)
class Reconciliation:
    """Outcome of comparing a required quantity with an available one."""

    status: ReconcileStatus
    converted_available: float | None = None


def reconcile(
    required: Quantity,
    available: Quantity,
    table: ConversionTable | None = None,
) -> Reconciliation:
    """
    Decide whether ``available`` covers ``required``.

    Same unit (by id) compares directly. Otherwise the available amount is
    converted into the required unit through the conversion table. Pairs with
    no table entry are ``unknown``: the caller has to supply a manual quantity.

    Args:
        required: Quantity a recipe calls for
        available: Quantity present in the fridge
        table: Conversion table (defaults to DEFAULT_CONVERSIONS)

    Returns:
        Reconciliation with status and the available amount in the required unit
    """
    if required.unit.id == available.unit.id:
        converted = available.amount
    else:
        converted = (table or DEFAULT_CONVERSIONS).convert(
            available.amount, available.unit, required.unit
        )
        if converted is None:
            return Reconciliation(status="unknown")

    status: ReconcileStatus = "full" if converted >= required.amount else "partial"
    return Reconciliation(status=status, converted_available=converted)


# =============================================================================
# Unit store
# =============================================================================


class UnitStore(Protocol):
    """Lookup collaborator for units."""

    def find_by_name(self, name: str) -> Unit | None: ...

    def create(self, name: str, abbreviation: str) -> Unit: ...


class InMemoryUnitStore:
    """Unit store with a uniqueness constraint on lowercased name."""

    def __init__(self, units: list[Unit] | None = None):
        self._units: dict[int, Unit] = {unit.id: unit for unit in units or []}
        self._next_id = max(self._units, default=0) + 1
        self._lock = threading.Lock()

    @property
    def units(self) -> list[Unit]:
        with self._lock:
            return sorted(self._units.values(), key=lambda u: u.id)

    def get(self, unit_id: int) -> Unit | None:
        with self._lock:
            return self._units.get(unit_id)

    def find_by_name(self, name: str) -> Unit | None:
        key = name.lower().strip()
        with self._lock:
            matches = [u for u in self._units.values() if key in _unit_keys(u)]
        return min(matches, key=lambda u: u.id) if matches else None

    def create(self, name: str, abbreviation: str) -> Unit:
        with self._lock:
            key = name.lower().strip()
            if any(u.name.lower() == key for u in self._units.values()):
                raise ConflictError(f"Unit already exists: {name}")
            unit = Unit(id=self._next_id, name=key, abbreviation=abbreviation)
            self._units[unit.id] = unit
            self._next_id += 1
            return unit


def generate_abbreviation(unit_name: str) -> str:
    """Generate a short abbreviation for a newly seen unit name."""
    name = unit_name.lower().strip()
    if name in UNIT_INFO and len(name) <= 4:
        return name
    return name[:4] if len(name) > 4 else name


def resolve_unit(store: UnitStore, unit_name: str) -> Unit:
    """
    Find a unit by name or abbreviation, creating it if missing.

    A uniqueness conflict on insert means another request created the same
    unit first; the winner is fetched and returned.
    """
    name = (unit_name or "").lower().strip() or "piece"

    existing = store.find_by_name(name)
    if existing is not None:
        return existing

    try:
        unit = store.create(name, generate_abbreviation(name))
        logger.info("Created unit '%s' (id=%s)", unit.name, unit.id)
        return unit
    except ConflictError:
        logger.debug("Unit '%s' created concurrently, re-fetching", name)
        winner = store.find_by_name(name)
        if winner is None:
            raise
        return winner
