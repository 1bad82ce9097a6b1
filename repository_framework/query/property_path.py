"""
Property name and property path validation.

A property path is a dotted chain such as ``products.parts``. Each segment is
looked up case-insensitively on the current type; the walk then descends into
the property's element type (see ``introspection.element_type``). On success
the path is returned with the declared casing of every segment.

The ``check_*`` functions report failure through their return value and hand
back the input unchanged. The ``validate_*`` functions raise instead and are
used by the fluent builders.
"""

import logging
from typing import Any

from ..constants import PROPERTY_PATH_SEPARATOR
from ..exceptions import InvalidPropertyError, NullArgumentError
from .introspection import element_type, find_property, is_column_type

logger = logging.getLogger(__name__)


def _entity_name(entity_class: Any) -> str:
    return getattr(entity_class, "__name__", repr(entity_class))


def check_property_name(entity_class: Any, name: str) -> tuple[bool, str]:
    """
    Check that ``name`` is a public property of ``entity_class``.

    Returns:
        (True, declared name) on success, (False, name) otherwise
    """
    found = find_property(entity_class, name)
    if found is None:
        return False, name
    return True, found[0]


def check_property_path(entity_class: Any, path: str) -> tuple[bool, str]:
    """
    Check a dotted property path against the entity's type graph.

    Returns:
        (True, canonically cased path) on success, (False, path) otherwise
    """
    validated: list[str] = []
    current: Any = entity_class
    for segment in path.split(PROPERTY_PATH_SEPARATOR):
        found = find_property(current, segment)
        if found is None:
            return False, path
        declared, annotation = found
        validated.append(declared)
        current = element_type(annotation)

    return True, PROPERTY_PATH_SEPARATOR.join(validated)


def validate_property_name(entity_class: Any, name: str | None) -> str:
    """
    Validate a property name and return its declared casing.

    Raises:
        NullArgumentError: If name is None
        InvalidPropertyError: If name is not a public property of the entity
    """
    if name is None:
        raise NullArgumentError("name")

    ok, validated = check_property_name(entity_class, name)
    if not ok:
        raise InvalidPropertyError(
            f"'{name}' is not a public property of '{_entity_name(entity_class)}'.",
            property_path=name,
            entity_name=_entity_name(entity_class),
        )
    return validated


def validate_property_path(entity_class: Any, path: str | None) -> str:
    """
    Validate a property path and return it canonically cased.

    Raises:
        NullArgumentError: If path is None
        InvalidPropertyError: If any segment does not resolve
    """
    if path is None:
        raise NullArgumentError("path")

    ok, validated = check_property_path(entity_class, path)
    if not ok:
        raise InvalidPropertyError(
            f"'{path}' is not a valid property path of '{_entity_name(entity_class)}'.",
            property_path=path,
            entity_name=_entity_name(entity_class),
        )
    return validated


def validate_sort_property(entity_class: Any, name: str | None) -> str:
    """
    Validate a property that values can be ordered by.

    Collections and related entities are rejected; mapped columns whose
    Python type SQLAlchemy cannot report are accepted.

    Raises:
        NullArgumentError: If name is None
        InvalidPropertyError: If name is not a public scalar property
    """
    validated = validate_property_name(entity_class, name)
    annotation = find_property(entity_class, validated)[1]
    if annotation is not Any and not is_column_type(annotation):
        raise InvalidPropertyError(
            f"'{validated}' of '{_entity_name(entity_class)}' is not a sortable column.",
            property_path=validated,
            entity_name=_entity_name(entity_class),
        )
    return validated
