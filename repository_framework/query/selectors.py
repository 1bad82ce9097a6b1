"""
Typed property selectors.

Instead of spelling property names as strings, callers may pass a lambda:

    constraints.sort_by(lambda product: product.name)
    constraints.include(lambda category: category.products.parts)

The lambda is called once with a recording proxy. Every attribute access is
checked against the entity's type graph as it happens, so a typo fails at the
call site with the entity name in the message.
"""

from collections.abc import Callable
from typing import Any

from ..constants import PROPERTY_PATH_SEPARATOR
from ..exceptions import InvalidPropertyError, NullArgumentError
from .introspection import element_type, find_property

Selector = Callable[[Any], Any]


class _PathRecorder:
    """Proxy that records attribute accesses as property path segments."""

    __slots__ = ("_root", "_current", "_segments")

    def __init__(self, root: Any):
        self._root = root
        self._current = root
        self._segments: list[str] = []

    def __getattr__(self, name: str) -> "_PathRecorder":
        found = find_property(self._current, name)
        if found is None:
            attempted = PROPERTY_PATH_SEPARATOR.join([*self._segments, name])
            root_name = getattr(self._root, "__name__", repr(self._root))
            raise InvalidPropertyError(
                f"'{attempted}' is not a valid property path of '{root_name}'.",
                property_path=attempted,
                entity_name=root_name,
            )
        declared, annotation = found
        self._segments.append(declared)
        self._current = element_type(annotation)
        return self


def property_path_of(entity_class: Any, selector: Selector | None) -> str:
    """
    Evaluate a selector and return the canonically cased property path.

    Raises:
        NullArgumentError: If selector is None
        InvalidPropertyError: If the selector touches an unknown property or
            does not return an attribute chain
    """
    if selector is None:
        raise NullArgumentError("selector")

    recorder = _PathRecorder(entity_class)
    result = selector(recorder)
    segments = object.__getattribute__(recorder, "_segments")
    if result is not recorder or not segments:
        raise InvalidPropertyError(
            "Selector must return a property of its argument, e.g. lambda e: e.name",
            entity_name=getattr(entity_class, "__name__", None),
        )
    return PROPERTY_PATH_SEPARATOR.join(segments)


def property_name_of(entity_class: Any, selector: Selector | None) -> str:
    """
    Evaluate a selector that must name a single, direct property.

    Raises:
        InvalidPropertyError: If the selector returns a nested path
    """
    path = property_path_of(entity_class, selector)
    if PROPERTY_PATH_SEPARATOR in path:
        raise InvalidPropertyError(
            f"'{path}' is a property path; a direct property of "
            f"'{getattr(entity_class, '__name__', entity_class)}' is required.",
            property_path=path,
            entity_name=getattr(entity_class, "__name__", None),
        )
    return path
