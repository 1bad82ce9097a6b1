"""
Query validation for MongoDB filters.

Raw filters reach the MongoDB backend as dicts or JSON strings, so they are
not checked by the SQL parameter gate. This module screens them instead:

- Blocks server-side JavaScript operators ($where, $eval, $function, $accumulator)
- Limits nesting depth
- Limits regex length and complexity
- Limits the number of sort fields
"""

import logging
import re
from typing import Any

from ..constants import (DANGEROUS_OPERATORS, MAX_QUERY_DEPTH,
                         MAX_REGEX_COMPLEXITY, MAX_REGEX_LENGTH,
                         MAX_SORT_FIELDS)
from ..exceptions import QueryValidationError

logger = logging.getLogger(__name__)


class QueryValidator:
    """Validates MongoDB filters and sort specifications."""

    def __init__(
        self,
        max_depth: int = MAX_QUERY_DEPTH,
        max_regex_length: int = MAX_REGEX_LENGTH,
        max_regex_complexity: int = MAX_REGEX_COMPLEXITY,
        max_sort_fields: int = MAX_SORT_FIELDS,
        dangerous_operators: set[str] | None = None,
    ):
        """
        Initialize the query validator.

        Args:
            max_depth: Maximum nesting depth for filters
            max_regex_length: Maximum length for regex patterns
            max_regex_complexity: Maximum complexity score for regex patterns
            max_sort_fields: Maximum number of fields in a sort
            dangerous_operators: Extra operators to block, added to the defaults
        """
        self.max_depth = max_depth
        self.max_regex_length = max_regex_length
        self.max_regex_complexity = max_regex_complexity
        self.max_sort_fields = max_sort_fields
        self.dangerous_operators = set(DANGEROUS_OPERATORS) | set(dangerous_operators or ())

    def validate_filter(self, filter: dict[str, Any] | None, path: str = "") -> None:
        """
        Validate a MongoDB query filter.

        Raises:
            QueryValidationError: If the filter contains a blocked operator or exceeds limits
        """
        if not filter:
            return

        if not isinstance(filter, dict):
            raise QueryValidationError(
                f"Query filter must be a dictionary, got {type(filter).__name__}",
                query_type="filter",
                path=path,
            )

        self._check_node(filter, path, depth=0)

    def validate_regex(self, pattern: str, path: str = "") -> None:
        """
        Validate a regex pattern.

        Raises:
            QueryValidationError: If the pattern is too long, too complex or invalid
        """
        if not isinstance(pattern, str):
            return

        if len(pattern) > self.max_regex_length:
            raise QueryValidationError(
                f"Regex pattern exceeds maximum length: "
                f"{len(pattern)} > {self.max_regex_length}",
                query_type="regex",
                path=path,
                context={"length": len(pattern), "max_length": self.max_regex_length},
            )

        complexity = self._calculate_regex_complexity(pattern)
        if complexity > self.max_regex_complexity:
            raise QueryValidationError(
                f"Regex pattern exceeds maximum complexity: "
                f"{complexity} > {self.max_regex_complexity}",
                query_type="regex",
                path=path,
                context={"complexity": complexity, "max_complexity": self.max_regex_complexity},
            )

        try:
            re.compile(pattern)
        except re.error as e:
            raise QueryValidationError(
                f"Invalid regex pattern: {e}",
                query_type="regex",
                path=path,
            ) from e

    def validate_sort(self, sort: Any | None) -> None:
        """
        Validate a sort specification (list of pairs, dict or single pair).

        Raises:
            QueryValidationError: If the sort has too many fields
        """
        if not sort:
            return

        fields = self._extract_sort_fields(sort)
        if len(fields) > self.max_sort_fields:
            raise QueryValidationError(
                f"Sort specification exceeds maximum fields: "
                f"{len(fields)} > {self.max_sort_fields}",
                query_type="sort",
                context={"fields": len(fields), "max_fields": self.max_sort_fields},
            )

    def _check_node(self, query: dict[str, Any], path: str, depth: int) -> None:
        if depth > self.max_depth:
            raise QueryValidationError(
                f"Query exceeds maximum nesting depth: {depth} > {self.max_depth}",
                query_type="filter",
                path=path,
                context={"depth": depth, "max_depth": self.max_depth},
            )

        for key, value in query.items():
            current_path = f"{path}.{key}" if path else key

            if key in self.dangerous_operators:
                logger.warning(
                    f"Security: Dangerous operator '{key}' detected in query "
                    f"at path '{current_path}'"
                )
                raise QueryValidationError(
                    f"Dangerous operator '{key}' is not allowed. Found at path: {current_path}",
                    query_type="filter",
                    operator=key,
                    path=current_path,
                )

            if key == "$regex" and isinstance(value, str):
                self.validate_regex(value, current_path)
            elif isinstance(value, dict):
                self._check_node(value, current_path, depth + 1)
            elif isinstance(value, list):
                for idx, item in enumerate(value):
                    if isinstance(item, dict):
                        self._check_node(item, f"{current_path}[{idx}]", depth + 1)

    @staticmethod
    def _calculate_regex_complexity(pattern: str) -> int:
        """Heuristic score: quantifiers, alternations, nested groups and lookarounds."""
        complexity = len(re.findall(r"[*+?{]", pattern))
        complexity += len(re.findall(r"\|", pattern))
        complexity += len(re.findall(r"\([^)]*\([^)]*\)", pattern))
        complexity += len(re.findall(r"\(\?[=!<>]", pattern))
        return complexity

    @staticmethod
    def _extract_sort_fields(sort: Any) -> list[str]:
        if isinstance(sort, list):
            return [field for field, _ in sort if isinstance(field, str)]
        if isinstance(sort, dict):
            return list(sort.keys())
        if isinstance(sort, tuple) and len(sort) == 2:
            return [sort[0]] if isinstance(sort[0], str) else []
        return []
