"""Persistence contract shared by the storage backends."""

from __future__ import annotations

import dataclasses
from contextlib import AbstractContextManager
from typing import Any, Protocol, TypeVar

from .errors import ValidationError
from .models import ENTITY_MODELS, _utc_now

T = TypeVar("T")

# Fields that are set once at creation and never rewritten by update()
IMMUTABLE_FIELDS = frozenset({"id", "created_at"})


class EntityStore(Protocol):
    """Uniform create/read/update/delete contract over the entity models.

    Each model class is an independent collection. Records go in and come
    out as model dataclasses; implementations decide how they are laid out
    on disk. Two implementations ship with aquaflow (JsonEntityStore and
    SqlEntityStore) and the services must not depend on which one is active.
    """

    def create(self, record: T) -> T:
        """Persist a new record.

        Raises:
            DuplicateRecordError: If the id or a unique field already exists.
        """
        ...

    def get(self, model: type[T], record_id: str) -> T | None:
        """Return the record with the given id, or None."""
        ...

    def list(self, model: type[T], **filters: Any) -> list[T]:
        """Return all records whose fields equal the given filter values."""
        ...

    def update(self, model: type[T], record_id: str, changes: dict[str, Any]) -> T:
        """Apply a partial update and return the stored record.

        Raises:
            NotFoundError: If no record has that id.
            ValidationError: If changes name an unknown or immutable field.
            DuplicateRecordError: If the update collides with a unique field.
        """
        ...

    def delete(self, model: type[T], record_id: str) -> None:
        """Remove a record.

        Raises:
            NotFoundError: If no record has that id.
        """
        ...

    def transaction(self) -> AbstractContextManager[None]:
        """Group several writes so they are applied together or not at all."""
        ...


def check_model(model: type) -> None:
    """Reject classes that are not persisted entities."""
    if model not in ENTITY_MODELS:
        raise TypeError(f"{model.__name__} is not a stored entity")


def apply_changes(record: T, changes: dict[str, Any]) -> T:
    """Return a copy of record with changes applied, validating field names."""
    names = {f.name for f in dataclasses.fields(record)}
    for key in changes:
        if key not in names:
            raise ValidationError(key, f"unknown field for {type(record).__name__}")
        if key in IMMUTABLE_FIELDS:
            raise ValidationError(key, "field cannot be changed")
    updated = dataclasses.replace(record, **changes)
    if hasattr(updated, "updated_at"):
        updated.updated_at = _utc_now()
    return updated


def check_filters(model: type, filters: dict[str, Any]) -> None:
    """Reject filters on fields the model does not have."""
    names = {f.name for f in dataclasses.fields(model)}
    for key in filters:
        if key not in names:
            raise ValidationError(key, f"unknown field for {model.__name__}")


def matches(record: Any, filters: dict[str, Any]) -> bool:
    """Equality match of record attributes against filters."""
    return all(getattr(record, key) == value for key, value in filters.items())


def model_label(model: type) -> str:
    """Human-facing entity name used in NotFound messages."""
    return {
        "ServiceArea": "Service area",
        "InventoryItem": "Inventory item",
    }.get(model.__name__, model.__name__)
