"""Search preferences: parsing, validation and recipe filtering."""

from dataclasses import dataclass, field
from typing import Any

from .errors import ValidationError
from .models import Difficulty, ExternalRecipe, Recipe

DIFFICULTIES: tuple[str, ...] = ("easy", "medium", "hard")


@dataclass(frozen=True)
class SearchPreferences:
    """Optional constraints a caller places on discovered recipes."""

    max_cooking_time: int | None = None
    difficulty: Difficulty | None = None
    dietary_restrictions: list[str] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return (
            self.max_cooking_time is None
            and self.difficulty is None
            and not self.dietary_restrictions
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "max_cooking_time": self.max_cooking_time,
            "difficulty": self.difficulty,
            "dietary_restrictions": list(self.dietary_restrictions),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> "SearchPreferences":
        """
        Parse and validate preferences from a mapping.

        Raises:
            ValidationError: If any field is malformed
        """
        if data is None:
            return cls()
        if not isinstance(data, dict):
            raise ValidationError("Preferences must be a mapping")

        unknown = set(data) - {"max_cooking_time", "difficulty", "dietary_restrictions"}
        if unknown:
            raise ValidationError(
                f"Unknown preference fields: {', '.join(sorted(unknown))}",
                {"fields": sorted(unknown)},
            )

        max_time = data.get("max_cooking_time")
        if max_time is not None:
            if isinstance(max_time, bool) or not isinstance(max_time, int) or max_time <= 0:
                raise ValidationError("max_cooking_time must be a positive integer")

        difficulty = data.get("difficulty")
        if difficulty is not None and difficulty not in DIFFICULTIES:
            raise ValidationError(f"difficulty must be one of: {', '.join(DIFFICULTIES)}")

        restrictions = data.get("dietary_restrictions") or []
        if not isinstance(restrictions, list) or not all(
            isinstance(r, str) for r in restrictions
        ):
            raise ValidationError("dietary_restrictions must be a list of strings")

        return cls(
            max_cooking_time=max_time,
            difficulty=difficulty,
            dietary_restrictions=[r.strip() for r in restrictions if r.strip()],
        )


def recipe_matches_preferences(
    recipe: Recipe | ExternalRecipe,
    preferences: SearchPreferences | None,
    *,
    strict: bool = True,
) -> bool:
    """
    Check a recipe against preferences.

    In strict mode a recipe missing the field a preference constrains is
    excluded; otherwise it is kept. Dietary restrictions must all appear
    among the recipe tags (case-insensitive).
    """
    if preferences is None:
        return True

    if preferences.max_cooking_time is not None:
        if recipe.cooking_time is None:
            if strict:
                return False
        elif recipe.cooking_time > preferences.max_cooking_time:
            return False

    if preferences.difficulty is not None:
        if recipe.difficulty is None:
            if strict:
                return False
        elif recipe.difficulty != preferences.difficulty:
            return False

    if preferences.dietary_restrictions:
        tag_names = {tag.lower() for tag in recipe.tags}
        if not all(r.lower() in tag_names for r in preferences.dietary_restrictions):
            return False

    return True


def filter_by_preferences(
    recipes: list,
    preferences: SearchPreferences | None,
    *,
    strict: bool = True,
) -> list:
    """Keep recipes matching preferences, preserving order."""
    if preferences is None or preferences.is_empty:
        return list(recipes)
    return [r for r in recipes if recipe_matches_preferences(r, preferences, strict=strict)]
