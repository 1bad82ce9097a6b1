"""
Entity <-> dict conversion shared by the document, SQL and REST backends.

Entities are plain classes: dataclasses, pydantic models, SQLAlchemy mapped
classes or any class whose constructor accepts its properties as keyword
arguments.
"""

import dataclasses
import functools
from collections.abc import Mapping
from typing import Any, TypeVar

from pydantic import BaseModel, TypeAdapter
from pydantic_core import to_jsonable_python

from ..query.introspection import entity_columns, public_properties

T = TypeVar("T")


@functools.lru_cache(maxsize=None)
def _adapter(entity_class: type) -> TypeAdapter:
    return TypeAdapter(entity_class)


def entity_to_dict(entity: Any, columns_only: bool = False) -> dict[str, Any]:
    """
    Convert an entity to a dictionary for storage.

    Args:
        entity: Entity instance
        columns_only: Keep only scalar properties (the persisted columns)

    Returns:
        Property name to value. Nested dataclasses and models are converted
        to dictionaries unless ``columns_only`` is set.
    """
    entity_class = type(entity)
    if columns_only:
        return {name: getattr(entity, name, None) for name in entity_columns(entity_class)}
    if isinstance(entity, BaseModel):
        return entity.model_dump()
    if dataclasses.is_dataclass(entity):
        return dataclasses.asdict(entity)
    return {name: getattr(entity, name, None) for name in public_properties(entity_class)}


def entity_from_dict(entity_class: type[T], data: Mapping[str, Any] | None) -> T | None:
    """
    Create an entity from a dictionary (e.g. a database row or a JSON body).

    Keys are matched to properties case-insensitively; unknown keys are
    dropped. Dataclasses and pydantic models are validated so nested
    dictionaries and ISO date strings are converted to their declared types.
    """
    if data is None:
        return None

    properties = public_properties(entity_class)
    by_lower = {name.lower(): name for name in properties}
    filtered: dict[str, Any] = {}
    for key, value in data.items():
        name = by_lower.get(str(key).lower())
        if name is not None:
            filtered[name] = value

    if isinstance(entity_class, type) and issubclass(entity_class, BaseModel):
        return entity_class.model_validate(filtered)
    if dataclasses.is_dataclass(entity_class):
        return _adapter(entity_class).validate_python(filtered)
    return entity_class(**filtered)


def entity_to_json(entity: Any) -> Any:
    """JSON compatible representation of an entity or a list of entities."""
    if isinstance(entity, (list, tuple)):
        return [entity_to_json(item) for item in entity]
    return to_jsonable_python(entity_to_dict(entity))


def populate_entity(entity: T, data: Mapping[str, Any] | None) -> T:
    """
    Copy values from ``data`` onto an existing entity, in place.

    Keys are matched to properties case-insensitively; unknown keys are
    ignored. Dataclasses and pydantic models are revalidated so nested values
    keep their declared types.
    """
    if not data:
        return entity

    entity_class = type(entity)
    by_lower = {name.lower(): name for name in public_properties(entity_class)}
    updates = {
        by_lower[str(key).lower()]: value
        for key, value in data.items()
        if str(key).lower() in by_lower
    }

    if isinstance(entity, BaseModel) or dataclasses.is_dataclass(entity):
        fresh = entity_from_dict(entity_class, {**entity_to_dict(entity), **updates})
        updates = {name: getattr(fresh, name) for name in updates}

    for name, value in updates.items():
        setattr(entity, name, value)
    return entity
