"""Exceptions raised by the discovery engine."""

from typing import Any


class FoodnagerError(Exception):
    """Base exception for engine errors."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ValidationError(FoodnagerError):
    """Raised for malformed input, reported before any tier runs."""

    pass


class NotFoundError(FoodnagerError):
    """Raised when explicitly requested products or recipes do not exist."""

    pass


class ConflictError(FoodnagerError):
    """Raised by a store when an insert violates a uniqueness constraint."""

    pass


class InsufficientIngredientsError(FoodnagerError):
    """Raised when the fridge cannot cover a recipe that is being cooked."""

    pass


class ExternalSourceError(FoodnagerError):
    """Raised by external recipe sources on transport or API failures."""

    pass


class GenerationError(FoodnagerError):
    """Raised by generative recipe sources when generation fails."""

    pass
