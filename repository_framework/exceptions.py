"""
Custom exceptions for REPOSITORY_FRAMEWORK.

Argument errors subclass ValueError and capability errors subclass
NotImplementedError so callers can catch either the framework type or the
builtin they would expect from a plain Python API.
"""

from typing import Any, Dict, List, Optional


class RepositoryError(RuntimeError):
    """
    Base exception for repository framework errors.

    Attributes:
        message: Error message
        context: Optional dictionary with additional context (entity,
                 backend, property, etc.)
    """

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None) -> None:
        """
        Initialize the exception.

        Args:
            message: Error message
            context: Optional dictionary with additional context information
        """
        super().__init__(message)
        self.message = message
        self.context = context or {}

    def __str__(self) -> str:
        """Return formatted error message with context if available."""
        if self.context:
            context_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
            return f"{self.message} (context: {context_str})"
        return self.message


class NullArgumentError(RepositoryError, ValueError):
    """
    Raised when a required argument is None.

    Attributes:
        argument: Name of the missing argument
    """

    def __init__(self, argument: str, context: Optional[Dict[str, Any]] = None) -> None:
        context = context or {}
        context["argument"] = argument
        super().__init__(f"Argument '{argument}' cannot be None", context=context)
        self.argument = argument


class InvalidPropertyError(RepositoryError, ValueError):
    """
    Raised when a property name or property path does not resolve on an entity.

    Raised at the fluent builder call (sort_by, include), never deferred
    until the query runs.

    Attributes:
        property_path: The invalid name or path, as supplied
        entity_name: Name of the entity class it was checked against
    """

    def __init__(
        self,
        message: str,
        property_path: Optional[str] = None,
        entity_name: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        context = context or {}
        if property_path is not None:
            context["property_path"] = property_path
        if entity_name:
            context["entity"] = entity_name
        super().__init__(message, context=context)
        self.property_path = property_path
        self.entity_name = entity_name


class MissingParameterError(RepositoryError, ValueError):
    """
    Raised when a placeholder in a raw query has no supplied value.

    Raised before the statement is sent to the backend.

    Attributes:
        parameter: Bare name of the missing parameter
        placeholders: All parameter names referenced by the statement
    """

    def __init__(
        self,
        parameter: str,
        placeholders: Optional[List[str]] = None,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        context = context or {}
        context["parameter"] = parameter
        super().__init__(
            f'Value must be specified for parameter "{parameter}"', context=context
        )
        self.parameter = parameter
        self.placeholders = placeholders or []


class PagingRangeError(RepositoryError, ValueError):
    """
    Raised when a page number or page size is outside its accepted range.

    Attributes:
        argument: "page_number" or "page_size"
        value: The rejected value
    """

    def __init__(
        self,
        message: str,
        argument: str,
        value: int,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        context = context or {}
        context["argument"] = argument
        context["value"] = value
        super().__init__(message, context=context)
        self.argument = argument
        self.value = value


class CapabilityNotSupportedError(RepositoryError, NotImplementedError):
    """
    Raised when a repository is asked for a capability its backend lacks.

    Attributes:
        capability: Name of the requested capability (sortable, pageable, ...)
        backend: Repository class name
    """

    def __init__(
        self,
        capability: str,
        backend: str,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        context = context or {}
        context["capability"] = capability
        context["backend"] = backend
        super().__init__(
            f"{backend} does not implement the '{capability}' capability", context=context
        )
        self.capability = capability
        self.backend = backend


class QueryValidationError(RepositoryError, ValueError):
    """
    Raised when a MongoDB filter or sort specification is rejected.

    Attributes:
        query_type: "filter", "sort" or "regex"
        operator: Offending operator (if any)
        path: JSON path of the offending element (if any)
    """

    def __init__(
        self,
        message: str,
        query_type: Optional[str] = None,
        operator: Optional[str] = None,
        path: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        context = context or {}
        if query_type:
            context["query_type"] = query_type
        if operator:
            context["operator"] = operator
        if path:
            context["path"] = path
        super().__init__(message, context=context)
        self.query_type = query_type
        self.operator = operator
        self.path = path


class ConfigurationError(RepositoryError):
    """
    Raised when configuration is invalid or missing.

    Attributes:
        config_key: Configuration key that caused the error (if available)
        config_value: Configuration value that caused the error (if available)
    """

    def __init__(
        self,
        message: str,
        config_key: Optional[str] = None,
        config_value: Optional[Any] = None,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        context = context or {}
        if config_key:
            context["config_key"] = config_key
        if config_value is not None:
            context["config_value"] = config_value
        super().__init__(message, context=context)
        self.config_key = config_key
        self.config_value = config_value


class ApiError(RepositoryError):
    """
    Raised by the REST backend for non-2xx responses and transport failures.

    A status code of 0 means no response was received.

    Attributes:
        status_code: HTTP status code (0 when the request never completed)
        method: HTTP method
        base_path: Base URL of the API
        path: Request path
        filter: Filter or id sent with the request (if any)
        entity: Entity sent with the request (if any)
        error_content: Response body or transport error message
    """

    def __init__(
        self,
        status_code: int,
        message: str,
        method: Optional[str] = None,
        base_path: Optional[str] = None,
        path: Optional[str] = None,
        filter: Optional[Any] = None,
        entity: Optional[Any] = None,
        error_content: Optional[Any] = None,
    ) -> None:
        context: Dict[str, Any] = {"status_code": status_code}
        if method:
            context["method"] = method
        if path:
            context["path"] = path
        super().__init__(message, context=context)
        self.status_code = status_code
        self.method = method
        self.base_path = base_path
        self.path = path
        self.filter = filter
        self.entity = entity
        self.error_content = error_content
