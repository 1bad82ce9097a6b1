"""
Query constraint composition.

Sorting, paging and eager loading are described by an immutable
``QueryConstraints`` value that every repository's ``find`` accepts.
"""

from .constraints import (QueryConstraints, SortOrder, apply_constraints,
                          page_items, paginate, sort_items)
from .introspection import (entity_columns, find_id_property, find_property,
                            public_properties)
from .parameters import (BoundStatement, bind_parameters, check_parameters,
                         find_placeholders)
from .property_path import (check_property_name, check_property_path,
                            validate_property_name, validate_property_path,
                            validate_sort_property)
from .query_validator import QueryValidator
from .result import QueryResult, start_index, total_pages
from .selectors import Selector, property_name_of, property_path_of

__all__ = [
    # Constraints
    "QueryConstraints",
    "SortOrder",
    "apply_constraints",
    "sort_items",
    "page_items",
    "paginate",
    # Results
    "QueryResult",
    "total_pages",
    "start_index",
    # Property paths
    "check_property_name",
    "check_property_path",
    "validate_property_name",
    "validate_property_path",
    "validate_sort_property",
    "Selector",
    "property_name_of",
    "property_path_of",
    "public_properties",
    "find_property",
    "entity_columns",
    "find_id_property",
    # Parameters
    "BoundStatement",
    "find_placeholders",
    "check_parameters",
    "bind_parameters",
    # MongoDB
    "QueryValidator",
]
