"""
Named parameter checking for raw SQL and filter strings.

Placeholders are found with a configurable pattern (``@(\\w+)`` by default).
Every referenced name must have a supplied value; the check runs before the
statement is handed to a backend, so a missing value never reaches the
database. Supplied values that are not referenced are ignored.
"""

import logging
import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from ..constants import DEFAULT_PARAMETER_PATTERN, PARAMETER_NAME_PATTERN
from ..exceptions import MissingParameterError, NullArgumentError

logger = logging.getLogger(__name__)

_NAME_RE = re.compile(PARAMETER_NAME_PATTERN)


@dataclass(frozen=True)
class BoundStatement:
    """
    A statement ready for SQLAlchemy ``text()``.

    Attributes:
        sql: Statement with placeholders rewritten to ``:name``
        parameters: Supplied values for the referenced names only
        names: Referenced names in order of first appearance
    """

    sql: str
    parameters: dict[str, Any] = field(default_factory=dict)
    names: tuple[str, ...] = ()


def _compile(pattern: str | re.Pattern | None) -> re.Pattern:
    if pattern is None:
        pattern = DEFAULT_PARAMETER_PATTERN
    if isinstance(pattern, re.Pattern):
        return pattern
    return re.compile(pattern)


def _bare_name(match: re.Match) -> str:
    if match.re.groups:
        return match.group(1)
    # No capture group: strip the prefix (@, :, $ ...) from the whole match
    found = _NAME_RE.search(match.group(0))
    return found.group(1) if found else match.group(0)


def find_placeholders(sql: str, pattern: str | re.Pattern | None = None) -> list[str]:
    """
    List the bare parameter names referenced by ``sql``, without duplicates.

    Args:
        sql: Statement or filter string
        pattern: Placeholder pattern; defaults to ``@(\\w+)``
    """
    if sql is None:
        raise NullArgumentError("sql")

    names: list[str] = []
    for match in _compile(pattern).finditer(sql):
        name = _bare_name(match)
        if name not in names:
            names.append(name)
    return names


def check_parameters(
    sql: str,
    parameters: Mapping[str, Any] | None,
    pattern: str | re.Pattern | None = None,
) -> list[str]:
    """
    Verify every placeholder in ``sql`` has a value in ``parameters``.

    Returns:
        The referenced names

    Raises:
        MissingParameterError: For the first placeholder without a value
    """
    parameters = parameters or {}
    names = find_placeholders(sql, pattern)
    for name in names:
        if name not in parameters:
            logger.debug(f"Parameter '{name}' missing for statement: {sql}")
            raise MissingParameterError(name, placeholders=names)
    return names


def bind_parameters(
    sql: str,
    parameters: Mapping[str, Any] | None = None,
    pattern: str | re.Pattern | None = None,
) -> BoundStatement:
    """
    Check parameters and rewrite placeholders to SQLAlchemy bind syntax.

    Args:
        sql: Statement using placeholders matched by ``pattern``
        parameters: Values keyed by bare name; None means no values
        pattern: Placeholder pattern; defaults to ``@(\\w+)``

    Raises:
        MissingParameterError: If a placeholder has no value
    """
    parameters = parameters or {}
    compiled = _compile(pattern)
    names = check_parameters(sql, parameters, compiled)
    rewritten = compiled.sub(lambda m: f":{_bare_name(m)}", sql)
    return BoundStatement(
        sql=rewritten,
        parameters={name: parameters[name] for name in names},
        names=tuple(names),
    )
