"""
Configuration management for REPOSITORY_FRAMEWORK.

Repositories can always be constructed with explicit arguments; this module
gathers the settings that are commonly supplied through the environment.
"""

import os
import re
from typing import TypeVar

from .constants import (DEFAULT_PAGE_NUMBER, DEFAULT_PAGE_SIZE,
                        DEFAULT_PARAMETER_PATTERN, MAX_PAGE_SIZE)
from .exceptions import ConfigurationError
from .query.constraints import QueryConstraints

T = TypeVar("T")


class RepositoryConfig:
    """
    Repository framework configuration.

    Explicit arguments win over environment variables.

    Example:
        # Using environment variables
        config = RepositoryConfig()
        config.validate()

        # Or using direct parameters
        config = RepositoryConfig(mongo_uri="mongodb://localhost:27017", db_name="shop")

        # SQL repositories take their placeholder pattern from the config
        categories = SqlRepository(engine, Category, config=config)
        result = await categories.find(constraints=config.constraints(Category))
    """

    def __init__(
        self,
        default_page_size: int | None = None,
        parameter_pattern: str | None = None,
        mongo_uri: str | None = None,
        db_name: str | None = None,
        sql_database_url: str | None = None,
        s3_bucket: str | None = None,
        aws_region: str | None = None,
        azure_account_url: str | None = None,
        azure_container: str | None = None,
        api_base_url: str | None = None,
    ):
        """
        Initialize configuration.

        Args:
            default_page_size: Page size used by callers that do not pick one
                (defaults to 0 = no paging, or REPOSITORY_DEFAULT_PAGE_SIZE)
            parameter_pattern: Placeholder regex for raw SQL
                (defaults to @(\\w+), or REPOSITORY_PARAMETER_PATTERN)
            mongo_uri: MongoDB connection URI (defaults to MONGO_URI env var)
            db_name: MongoDB database name (defaults to DB_NAME env var)
            sql_database_url: SQLAlchemy async URL (defaults to SQL_DATABASE_URL)
            s3_bucket: S3 bucket name (defaults to S3_BUCKET)
            aws_region: AWS region (defaults to AWS_REGION)
            azure_account_url: Blob account URL (defaults to AZURE_STORAGE_ACCOUNT_URL)
            azure_container: Blob container (defaults to AZURE_STORAGE_CONTAINER)
            api_base_url: REST API base URL (defaults to API_BASE_URL)
        """
        if default_page_size is None:
            default_page_size = int(
                os.getenv("REPOSITORY_DEFAULT_PAGE_SIZE", str(DEFAULT_PAGE_SIZE))
            )
        self.default_page_size = default_page_size
        self.parameter_pattern = parameter_pattern or os.getenv(
            "REPOSITORY_PARAMETER_PATTERN", DEFAULT_PARAMETER_PATTERN
        )
        self.mongo_uri = mongo_uri or os.getenv("MONGO_URI", "")
        self.db_name = db_name or os.getenv("DB_NAME", "")
        self.sql_database_url = sql_database_url or os.getenv("SQL_DATABASE_URL", "")
        self.s3_bucket = s3_bucket or os.getenv("S3_BUCKET", "")
        self.aws_region = aws_region or os.getenv("AWS_REGION", "")
        self.azure_account_url = azure_account_url or os.getenv("AZURE_STORAGE_ACCOUNT_URL", "")
        self.azure_container = azure_container or os.getenv("AZURE_STORAGE_CONTAINER", "")
        self.api_base_url = api_base_url or os.getenv("API_BASE_URL", "")

    def validate(self) -> None:
        """
        Validate configuration values.

        Only the generic settings are mandatory; backend settings are checked
        when they are set.

        Raises:
            ConfigurationError: If a configuration value is invalid
        """
        if self.default_page_size < 0 or self.default_page_size > MAX_PAGE_SIZE:
            raise ConfigurationError(
                f"default_page_size must be between 0 and {MAX_PAGE_SIZE}, "
                f"got {self.default_page_size}",
                config_key="default_page_size",
                config_value=self.default_page_size,
            )

        try:
            compiled = re.compile(self.parameter_pattern)
        except re.error as e:
            raise ConfigurationError(
                f"parameter_pattern is not a valid regex: {e}",
                config_key="parameter_pattern",
                config_value=self.parameter_pattern,
            ) from e

        if compiled.groups < 1:
            raise ConfigurationError(
                "parameter_pattern must capture the parameter name in a group",
                config_key="parameter_pattern",
                config_value=self.parameter_pattern,
            )

        if self.mongo_uri and not self.db_name:
            raise ConfigurationError(
                "db_name is required when mongo_uri is set "
                "(set DB_NAME environment variable or pass directly)",
                config_key="db_name",
            )

        if self.azure_account_url and not self.azure_container:
            raise ConfigurationError(
                "azure_container is required when azure_account_url is set "
                "(set AZURE_STORAGE_CONTAINER environment variable or pass directly)",
                config_key="azure_container",
            )

        if self.api_base_url and not self.api_base_url.startswith(("http://", "https://")):
            raise ConfigurationError(
                f"api_base_url must be an http(s) URL, got {self.api_base_url}",
                config_key="api_base_url",
                config_value=self.api_base_url,
            )

    def constraints(self, entity_class: type[T]) -> QueryConstraints[T]:
        """First page of ``entity_class`` at the configured default page size."""
        return QueryConstraints(entity_class).page(DEFAULT_PAGE_NUMBER, self.default_page_size)
