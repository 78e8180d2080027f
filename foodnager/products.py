"""Product resolution: map free-text ingredient names onto canonical products."""

import logging
import threading
from typing import Protocol

from rapidfuzz import fuzz, process

from .config import EngineSettings
from .errors import ConflictError, ValidationError
from .models import Product

logger = logging.getLogger(__name__)

# Similarity given when one normalized name contains the other
SUBSTRING_SIMILARITY = 0.9


class ProductStore(Protocol):
    """Persistence collaborator for products."""

    def find_visible(self, owner_id: str, name_filter: str | None = None) -> list[Product]:
        """Global products plus the owner's private ones.

        ``name_filter`` narrows to names containing it, case-insensitively.
        """
        ...

    def create(self, owner_id: str, name: str) -> Product:
        """Insert a private product. Raises ConflictError on a duplicate name."""
        ...


def normalize_name(name: str) -> str:
    """
    Normalize a product name for comparisons.

    Lowercases, trims and strips a trailing "s" from names longer than three
    characters (naive singularization).
    """
    normalized = name.lower().strip()
    if len(normalized) > 3 and normalized.endswith("s"):
        normalized = normalized[:-1]
    return normalized


def display_name(normalized: str) -> str:
    """Capitalize the first character of a normalized name."""
    return normalized[:1].upper() + normalized[1:]


def calculate_similarity(name_a: str, name_b: str) -> float:
    """
    Similarity between two normalized names, in [0, 1].

    Substring containment scores 0.9; otherwise the word-set overlap
    ``|A & B| / min(|A|, |B|)``. A blank name is similar to nothing.
    """
    if not name_a.strip() or not name_b.strip():
        return 0.0
    if name_a in name_b or name_b in name_a:
        return SUBSTRING_SIMILARITY

    words_a = set(name_a.split())
    words_b = set(name_b.split())
    min_size = min(len(words_a), len(words_b))
    if min_size == 0:
        return 0.0

    return len(words_a & words_b) / min_size


class ProductResolver:
    """Resolve ingredient names to products, creating them when needed.

    Resolution order: exact match on the normalized name, fuzzy match over a
    bounded candidate set, then creation of a private product for the owner.
    """

    def __init__(
        self,
        store: ProductStore,
        *,
        fuzzy_threshold: float | None = None,
        max_candidates: int | None = None,
        settings: EngineSettings | None = None,
    ):
        settings = settings or EngineSettings()
        self.store = store
        self.fuzzy_threshold = (
            fuzzy_threshold if fuzzy_threshold is not None else settings.fuzzy_match_threshold
        )
        self.max_candidates = (
            max_candidates if max_candidates is not None else settings.max_fuzzy_candidates
        )

    def resolve(self, name: str, owner_id: str) -> Product:
        """
        Return the canonical product for ``name`` as seen by ``owner_id``.

        Raises:
            ValidationError: If the name is blank
        """
        normalized = normalize_name(name)
        if not normalized:
            raise ValidationError("Product name must not be blank")

        exact = self.find_exact(normalized, owner_id)
        if exact is not None:
            return exact

        fuzzy_match = self.find_fuzzy(normalized, owner_id)
        if fuzzy_match is not None:
            logger.debug("Fuzzy matched '%s' to '%s'", name, fuzzy_match.name)
            return fuzzy_match

        return self.create(normalized, owner_id)

    def find_exact(self, normalized: str, owner_id: str) -> Product | None:
        """Visible product whose normalized name equals ``normalized``."""
        candidates = self.store.find_visible(owner_id, name_filter=normalized)
        matches = [p for p in candidates if normalize_name(p.name) == normalized]
        if not matches:
            return None
        return min(matches, key=lambda p: p.id)

    def candidates(self, normalized: str, owner_id: str) -> list[Product]:
        """Bounded candidate set, most similar names first."""
        visible = sorted(self.store.find_visible(owner_id), key=lambda p: p.id)
        if len(visible) <= self.max_candidates:
            return visible

        choices = [normalize_name(p.name) for p in visible]
        ranked = process.extract(
            normalized,
            choices,
            scorer=fuzz.token_set_ratio,
            limit=self.max_candidates,
        )
        return [visible[index] for _choice, _score, index in ranked]

    def find_fuzzy(self, normalized: str, owner_id: str) -> Product | None:
        """
        Best candidate scoring at least the fuzzy threshold.

        Ties resolve to the lowest product id so that identical catalog
        state always yields the same product.
        """
        best: Product | None = None
        best_score = 0.0

        for product in self.candidates(normalized, owner_id):
            score = calculate_similarity(normalized, normalize_name(product.name))
            if score < self.fuzzy_threshold:
                continue
            if best is None or score > best_score or (score == best_score and product.id < best.id):
                best = product
                best_score = score

        return best

    def create(self, normalized: str, owner_id: str) -> Product:
        """
        Create a private product, or return the row a concurrent request won with.

        The insert is optimistic: a uniqueness conflict is resolved by fetching
        the existing row instead of surfacing an error.
        """
        try:
            product = self.store.create(owner_id, display_name(normalized))
            logger.info("Created product '%s' (id=%s) for %s", product.name, product.id, owner_id)
            return product
        except ConflictError:
            logger.debug("Product '%s' created concurrently, re-fetching", normalized)
            winner = self.find_exact(normalized, owner_id)
            if winner is None:
                raise
            return winner


class InMemoryProductStore:
    """Product store enforcing uniqueness of ``(owner, lower(name))``."""

    def __init__(self, products: list[Product] | None = None):
        self._products: dict[int, Product] = {p.id: p for p in products or []}
        self._next_id = max(self._products, default=0) + 1
        self._lock = threading.Lock()

    @property
    def products(self) -> list[Product]:
        with self._lock:
            return sorted(self._products.values(), key=lambda p: p.id)

    def get(self, product_id: int) -> Product | None:
        with self._lock:
            return self._products.get(product_id)

    def find_visible(self, owner_id: str, name_filter: str | None = None) -> list[Product]:
        with self._lock:
            visible = [
                p for p in self._products.values() if p.owner_id is None or p.owner_id == owner_id
            ]
        if name_filter:
            needle = name_filter.lower().strip()
            visible = [p for p in visible if needle in p.name.lower()]
        return sorted(visible, key=lambda p: p.id)

    def create(self, owner_id: str, name: str) -> Product:
        with self._lock:
            key = name.lower().strip()
            for existing in self._products.values():
                if existing.owner_id == owner_id and existing.name.lower() == key:
                    raise ConflictError(f"Product already exists: {name}")
            product = Product(id=self._next_id, name=name, owner_id=owner_id)
            self._products[product.id] = product
            self._next_id += 1
            return product
