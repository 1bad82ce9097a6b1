"""
Entity introspection.

Resolves the public properties of an entity class and their types so that
property names and paths can be validated without touching a backend.

Supported entity shapes, in lookup order:
- SQLAlchemy mapped classes (mapper column attributes and relationships)
- pydantic models (model_fields)
- dataclasses (fields, with resolved type hints)
- any other class (annotations plus ``property`` objects with a return annotation)
"""

import dataclasses
import enum
import functools
import inspect
import logging
import types
import typing
import uuid
from collections.abc import Mapping
from datetime import date, datetime, time, timedelta
from decimal import Decimal
from typing import Annotated, Any, ClassVar, Literal, Union, get_args, get_origin

from pydantic import BaseModel
from sqlalchemy import inspect as sa_inspect
from sqlalchemy.orm import ColumnProperty, RelationshipProperty

logger = logging.getLogger(__name__)

SCALAR_TYPES: tuple[type, ...] = (
    bool,
    int,
    float,
    Decimal,
    str,
    bytes,
    datetime,
    date,
    time,
    timedelta,
    uuid.UUID,
)


def _unwrap_optional(annotation: Any) -> Any:
    """Strip Optional[...] and Annotated[...] wrappers."""
    while True:
        origin = get_origin(annotation)
        if origin is Annotated:
            annotation = get_args(annotation)[0]
            continue
        if origin is Union or origin is types.UnionType:
            args = [a for a in get_args(annotation) if a is not type(None)]
            if len(args) == 1:
                annotation = args[0]
                continue
        return annotation


def element_type(annotation: Any) -> Any:
    """
    Type to descend into when walking a property path.

    Optional and Annotated wrappers are removed, ``tuple[X, ...]`` yields
    ``X`` and any generic with exactly one type argument (``list[X]``,
    ``set[X]``, ``Mapped[X]``, ...) yields that argument, repeatedly.
    Everything else is returned unchanged.
    """
    annotation = _unwrap_optional(annotation)
    while True:
        origin = get_origin(annotation)
        if origin is None or origin is Literal:
            return annotation
        args = get_args(annotation)
        if origin is tuple and len(args) == 2 and args[1] is Ellipsis:
            annotation = _unwrap_optional(args[0])
            continue
        if len(args) == 1:
            annotation = _unwrap_optional(args[0])
            continue
        return annotation


def is_column_type(annotation: Any) -> bool:
    """True for scalar (value) types: numbers, strings, dates, UUIDs and enums."""
    annotation = _unwrap_optional(annotation)
    if get_origin(annotation) is not None or not isinstance(annotation, type):
        return False
    return issubclass(annotation, enum.Enum) or issubclass(annotation, SCALAR_TYPES)


def _mapped_properties(mapper: Any) -> dict[str, Any]:
    properties: dict[str, Any] = {}
    for prop in mapper.attrs:
        if isinstance(prop, ColumnProperty):
            try:
                properties[prop.key] = prop.columns[0].type.python_type
            except NotImplementedError:
                properties[prop.key] = Any
        elif isinstance(prop, RelationshipProperty):
            target = prop.mapper.class_
            properties[prop.key] = list[target] if prop.uselist else target
    return properties


def _annotated_properties(entity_class: type) -> dict[str, Any]:
    hints = typing.get_type_hints(entity_class, include_extras=True)
    properties = {
        name: hint for name, hint in hints.items() if get_origin(hint) is not ClassVar
    }
    for name, member in inspect.getmembers(entity_class, lambda m: isinstance(m, property)):
        if name not in properties and member.fget is not None:
            properties[name] = typing.get_type_hints(member.fget).get("return", Any)
    return properties


@functools.lru_cache(maxsize=None)
def public_properties(entity_class: Any) -> Mapping[str, Any]:
    """
    Public instance properties of an entity class, in declaration order.

    Args:
        entity_class: Entity class (anything that is not a class has no properties)

    Returns:
        Read-only mapping of property name to type annotation
    """
    if get_origin(entity_class) is not None or not isinstance(entity_class, type):
        return types.MappingProxyType({})

    mapper = sa_inspect(entity_class, raiseerr=False)
    if mapper is not None:
        properties = _mapped_properties(mapper)
    elif issubclass(entity_class, BaseModel):
        properties = {
            name: field.annotation for name, field in entity_class.model_fields.items()
        }
    elif dataclasses.is_dataclass(entity_class):
        hints = typing.get_type_hints(entity_class, include_extras=True)
        properties = {
            f.name: hints.get(f.name, f.type) for f in dataclasses.fields(entity_class)
        }
    else:
        properties = _annotated_properties(entity_class)

    return types.MappingProxyType(
        {name: tp for name, tp in properties.items() if not name.startswith("_")}
    )


def find_property(entity_class: Any, name: str) -> tuple[str, Any] | None:
    """
    Look up a public property case-insensitively.

    Returns:
        (declared name, type annotation) or None when there is no such property
    """
    properties = public_properties(entity_class)
    if name in properties:
        return name, properties[name]
    wanted = name.lower()
    for declared, annotation in properties.items():
        if declared.lower() == wanted:
            return declared, annotation
    return None


@functools.lru_cache(maxsize=None)
def entity_columns(entity_class: type) -> tuple[str, ...]:
    """Names of the properties holding scalar values (the persisted columns)."""
    return tuple(
        name
        for name, annotation in public_properties(entity_class).items()
        if is_column_type(annotation)
    )


@functools.lru_cache(maxsize=None)
def find_id_property(entity_class: type) -> str | None:
    """
    Discover the id property by convention.

    A column named "{ClassName}Id" wins over one named "Id". Names are
    compared case-insensitively with underscores removed, so ``category_id``
    matches class ``Category``.

    Returns:
        The declared property name, or None when neither exists
    """
    columns = entity_columns(entity_class)

    def normalized(name: str) -> str:
        return name.replace("_", "").lower()

    for candidate in (f"{entity_class.__name__}id".lower(), "id"):
        for column in columns:
            if normalized(column) == candidate:
                return column

    logger.debug(f"No id property found on {entity_class.__name__}")
    return None
