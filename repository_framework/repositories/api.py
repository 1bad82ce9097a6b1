"""
REST API repository.

Maps repository operations onto HTTP calls against a resource path:

    create      POST   /posts
    create_many POST   /posts          (JSON array body)
    update      PUT    /posts/{id}
    delete      DELETE /posts/{id}
    get_by_id   GET    /posts/{id}
    find        GET    /posts?userId=1

The resource path may contain ``{name}`` placeholders, for example
``/users/{userId}/posts``. They are filled from the entity, from repository
parameters (``set_parameter``) or from the ``find`` filter, in that order.
"""

import enum
import logging
import re
from collections.abc import Iterable, Mapping
from datetime import date, datetime
from typing import Any, TypeVar
from urllib.parse import quote

import httpx
from pydantic import BaseModel, Field, field_validator

from ..constants import (DEFAULT_API_TIMEOUT, DEFAULT_DATETIME_FORMAT,
                         PATH_PARAMETER_PATTERN)
from ..exceptions import ApiError
from ..observability import timed_operation
from ..query.constraints import QueryConstraints
from ..query.result import QueryResult
from ..query.selectors import Selector
from .base import Capability, ParameterizedMixin, Repository
from .mapping import entity_from_dict, entity_to_dict, entity_to_json, populate_entity

logger = logging.getLogger(__name__)

T = TypeVar("T")

_FORMAT_PLACEHOLDER = "{format}"


class AuthenticationType(str, enum.Enum):
    ANONYMOUS = "anonymous"
    API_KEY = "api_key"
    BASIC = "basic"
    OAUTH2 = "oauth2"
    JWT = "jwt"


class ApiConfiguration(BaseModel):
    """
    Connection settings for an ``ApiRepository``.

    ``api_key`` and ``api_key_prefix`` are keyed by header name; with
    ``API_KEY`` authentication the ``api_key`` entry is sent as
    ``api_key: <prefix> <key>``.
    """

    base_url: str = Field(..., description="Base URL of the API")
    authentication_type: AuthenticationType = AuthenticationType.ANONYMOUS
    username: str | None = None
    password: str | None = None
    api_key: dict[str, str] = Field(default_factory=dict)
    api_key_prefix: dict[str, str] = Field(default_factory=dict)
    access_token: str | None = None
    datetime_format: str = Field(
        DEFAULT_DATETIME_FORMAT,
        description="strftime format for datetime parameters, or 'iso8601'",
    )
    timeout: float = DEFAULT_API_TIMEOUT
    default_headers: dict[str, str] = Field(default_factory=dict)

    @field_validator("datetime_format", mode="before")
    @classmethod
    def _blank_format_is_default(cls, value: Any) -> Any:
        return value or DEFAULT_DATETIME_FORMAT

    def api_key_with_prefix(self, identifier: str) -> str:
        key = self.api_key.get(identifier, "")
        prefix = self.api_key_prefix.get(identifier)
        return f"{prefix} {key}" if prefix else key


def _first_character_to_lower(value: str) -> str:
    return value[:1].lower() + value[1:]


class ApiRepository(ParameterizedMixin, Repository[T]):
    """
    Repository over a RESTful resource.

    Example:
        config = ApiConfiguration(base_url="https://jsonplaceholder.typicode.com")
        posts = ApiRepository(config, Post)
        post = await posts.get_by_id(1)

        comments = ApiRepository(config, Comment, "/posts/{postId}/comments")
        comments.set_parameter("postId", 1)
        result = await comments.find()
    """

    capabilities = frozenset({Capability.PARAMETERIZED})

    def __init__(
        self,
        configuration: ApiConfiguration,
        entity_class: type[T],
        entity_path: str | None = None,
        id_property: str | Selector | None = None,
        client: httpx.AsyncClient | None = None,
    ):
        """
        Initialize the repository.

        Args:
            configuration: Connection settings
            entity_class: Entity class; responses are converted to it
            entity_path: Resource path relative to the base URL; defaults to
                ``/{entity}s`` with the first character lowered
            id_property: Id property; defaults to convention
            client: HTTP client to use instead of one built from the configuration
        """
        super().__init__(entity_class, id_property)
        self.configuration = configuration
        self.entity_path = entity_path or f"/{_first_character_to_lower(self.entity_name)}s"
        self.path_parameters = [
            name
            for name in re.findall(PATH_PARAMETER_PATTERN, self.entity_path)
            if name and name != "format"
        ]
        self._owns_client = client is None
        if client is None:
            client = httpx.AsyncClient(
                base_url=configuration.base_url,
                timeout=configuration.timeout,
            )
        self._client = client

    @property
    def base_path(self) -> str:
        return self.configuration.base_url

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> "ApiRepository[T]":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    # ------------------------------------------------------------------
    # Request building
    # ------------------------------------------------------------------

    def parameter_to_string(self, value: Any) -> str | None:
        """Render a path or query parameter value."""
        if value is None:
            return None
        if isinstance(value, datetime):
            if self.configuration.datetime_format == DEFAULT_DATETIME_FORMAT:
                return value.isoformat()
            return value.strftime(self.configuration.datetime_format)
        if isinstance(value, date):
            return value.isoformat()
        if isinstance(value, enum.Enum):
            return str(value.value)
        if isinstance(value, (list, tuple)):
            return ",".join(str(item) for item in value)
        return str(value)

    def _headers(self) -> dict[str, str]:
        config = self.configuration
        headers = dict(config.default_headers)
        if config.authentication_type is AuthenticationType.API_KEY:
            headers["api_key"] = config.api_key_with_prefix("api_key")
        elif config.authentication_type in (AuthenticationType.OAUTH2, AuthenticationType.JWT):
            if config.access_token:
                headers["Authorization"] = f"Bearer {config.access_token}"
        return headers

    def _request_options(self) -> dict[str, Any]:
        options: dict[str, Any] = {"headers": self._headers()}
        config = self.configuration
        if config.authentication_type is AuthenticationType.BASIC:
            options["auth"] = httpx.BasicAuth(config.username or "", config.password or "")
        return options

    def _resolve_path(
        self,
        path: str,
        method: str,
        operation: str,
        sources: Iterable[Mapping[str, Any]],
        filter: Any = None,
        entity: Any = None,
    ) -> tuple[str, set[str]]:
        """
        Fill ``{name}`` placeholders.

        Returns:
            The path and the (lower cased) names of the source keys consumed

        Raises:
            ApiError: 400 if a placeholder has no value
        """
        lowered = []
        for source in sources:
            lowered.append({str(k).lower(): v for k, v in source.items()})

        used: set[str] = set()
        for name in self.path_parameters:
            key = name.lower()
            value = None
            for source in lowered:
                if source.get(key) is not None:
                    value = source[key]
                    break
            text = self.parameter_to_string(value)
            if text is None:
                raise ApiError(
                    400,
                    f"Path parameter {name} cannot be null when calling "
                    f"{type(self).__name__}<{self.entity_name}>.{operation}()",
                    method,
                    self.base_path,
                    path,
                    filter,
                    entity,
                )
            path = path.replace(f"{{{name}}}", quote(text, safe=""))
            used.add(key)
        return path.replace(_FORMAT_PLACEHOLDER, "json"), used

    def _missing(self, argument: str, method: str, operation: str) -> ApiError:
        return ApiError(
            400,
            f"Missing required parameter {argument} when calling "
            f"{type(self).__name__}<{self.entity_name}>.{operation}()",
            method,
            self.base_path,
            self.entity_path,
        )

    def _id_or_none(self, entity: T) -> Any:
        if self._id_property is None:
            return None
        return getattr(entity, self._id_property, None)

    def _item_path(self, path: str, id: Any) -> str:
        if id is None:
            return path
        return f"{path}/{quote(str(id), safe='')}"

    async def _send(
        self,
        method: str,
        path: str,
        operation: str,
        params: Mapping[str, str] | None = None,
        json: Any = None,
        filter: Any = None,
        entity: Any = None,
        allow_not_found: bool = False,
    ) -> httpx.Response | None:
        """
        Send a request and check the response status.

        Returns:
            The response, or None for a 404 when ``allow_not_found`` is set

        Raises:
            ApiError: For non-2xx responses (status 0 when no response arrived)
        """
        where = f"{type(self).__name__}<{self.entity_name}>.{operation}"
        logger.debug(f"{method} {path}")
        try:
            response = await self._client.request(
                method, path, params=params, json=json, **self._request_options()
            )
        except httpx.TransportError as e:
            raise ApiError(
                0,
                f"Error calling {where}: {e}",
                method,
                self.base_path,
                path,
                filter,
                entity,
                str(e),
            ) from e

        if allow_not_found and response.status_code == 404:
            return None
        if not response.is_success:
            raise ApiError(
                response.status_code,
                f"Error calling {where}: {response.text}",
                method,
                self.base_path,
                path,
                filter,
                entity,
                response.text,
            )
        return response

    @staticmethod
    def _body(response: httpx.Response) -> Any:
        if not response.content or not response.content.strip():
            return None
        return response.json()

    # ------------------------------------------------------------------
    # Repository interface
    # ------------------------------------------------------------------

    @timed_operation("repository.create")
    async def create(self, entity: T) -> T:
        """POST the entity; the response body is copied back onto it."""
        if entity is None:
            raise self._missing("entity", "POST", "create")
        path, _ = self._resolve_path(
            self.entity_path,
            "POST",
            "create",
            [entity_to_dict(entity), self._parameters],
            entity=entity,
        )
        response = await self._send(
            "POST", path, "create", json=entity_to_json(entity), entity=entity
        )
        body = self._body(response)
        if isinstance(body, Mapping):
            populate_entity(entity, body)
        return entity

    @timed_operation("repository.create_many")
    async def create_many(self, entities: Iterable[T]) -> list[T]:
        """POST all entities as one JSON array."""
        if entities is None:
            raise self._missing("entities", "POST", "create_many")
        entities = list(entities)
        path, _ = self._resolve_path(
            self.entity_path, "POST", "create_many", [self._parameters], entity=entities
        )
        response = await self._send(
            "POST", path, "create_many", json=entity_to_json(entities), entity=entities
        )
        body = self._body(response)
        if isinstance(body, list) and len(body) == len(entities):
            for entity, data in zip(entities, body, strict=True):
                if isinstance(data, Mapping):
                    populate_entity(entity, data)
        return entities

    @timed_operation("repository.update")
    async def update(self, entity: T) -> T:
        """PUT the entity to its item path; the response body is copied back onto it."""
        if entity is None:
            raise self._missing("entity", "PUT", "update")
        path, _ = self._resolve_path(
            self._item_path(self.entity_path, self._id_or_none(entity)),
            "PUT",
            "update",
            [entity_to_dict(entity), self._parameters],
            entity=entity,
        )
        response = await self._send(
            "PUT", path, "update", json=entity_to_json(entity), entity=entity
        )
        body = self._body(response)
        if isinstance(body, Mapping):
            populate_entity(entity, body)
        return entity

    @timed_operation("repository.delete")
    async def delete(self, entity: T) -> None:
        if entity is None:
            raise self._missing("entity", "DELETE", "delete")
        path, _ = self._resolve_path(
            self._item_path(self.entity_path, self._id_or_none(entity)),
            "DELETE",
            "delete",
            [entity_to_dict(entity), self._parameters],
            entity=entity,
        )
        await self._send("DELETE", path, "delete", entity=entity)

    @timed_operation("repository.get_by_id")
    async def get_by_id(self, id: Any) -> T | None:
        """GET the item path; None when the API answers 404."""
        if id is None:
            raise self._missing("id", "GET", "get_by_id")
        path, _ = self._resolve_path(
            self._item_path(self.entity_path, id),
            "GET",
            "get_by_id",
            [self._parameters],
            filter=id,
        )
        response = await self._send("GET", path, "get_by_id", filter=id, allow_not_found=True)
        if response is None:
            return None
        return entity_from_dict(self._entity_class, self._body(response))

    @timed_operation("repository.find")
    async def find(
        self,
        filter: Mapping[str, Any] | Any = None,
        constraints: QueryConstraints[T] | None = None,
    ) -> QueryResult[T]:
        """
        GET the resource path.

        Args:
            filter: Mapping, dataclass or model; fields naming a path
                placeholder fill it, the other non-None fields become query
                parameters (first character lowered)
            constraints: Must not sort, page or include
        """
        self._check_constraints(constraints)
        fields: dict[str, Any] = {}
        if filter is not None:
            fields = dict(filter) if isinstance(filter, Mapping) else entity_to_dict(filter)

        path, used = self._resolve_path(
            self.entity_path, "GET", "find", [self._parameters, fields], filter=filter
        )
        params = {}
        for name, value in fields.items():
            text = self.parameter_to_string(value)
            if text is not None and name.lower() not in used:
                params[_first_character_to_lower(name)] = text

        response = await self._send("GET", path, "find", params=params, filter=filter)
        body = self._body(response) or []
        if isinstance(body, Mapping):
            body = [body]
        items = [entity_from_dict(self._entity_class, data) for data in body]
        return QueryResult.of(items, constraints=constraints)
