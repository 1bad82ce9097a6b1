"""
REPOSITORY_FRAMEWORK - Generic Repository Pattern

One small async CRUD and query interface over relational databases,
MongoDB, blob stores and REST APIs, with sorting, paging and eager loading
described by immutable query constraints.
"""

# Configuration
from .config import RepositoryConfig
# Errors
from .exceptions import (ApiError, CapabilityNotSupportedError,
                         ConfigurationError, InvalidPropertyError,
                         MissingParameterError, NullArgumentError,
                         PagingRangeError, QueryValidationError,
                         RepositoryError)
# Query composition
from .query import (QueryConstraints, QueryResult, SortOrder,
                    validate_property_path)
# Repositories
from .repositories import (Capability, InMemoryRepository, MongoRepository,
                           Repository, SQLAlchemyRepository, SqlRepository,
                           SyncRepository, UnitOfWork, require_capability)

__version__ = "0.1.0"

__all__ = [
    # Core
    "Repository",
    "Capability",
    "require_capability",
    "QueryConstraints",
    "QueryResult",
    "SortOrder",
    "validate_property_path",
    # Backends
    "InMemoryRepository",
    "SQLAlchemyRepository",
    "SqlRepository",
    "MongoRepository",
    "SyncRepository",
    "UnitOfWork",
    # Config
    "RepositoryConfig",
    # Errors
    "RepositoryError",
    "NullArgumentError",
    "InvalidPropertyError",
    "MissingParameterError",
    "PagingRangeError",
    "CapabilityNotSupportedError",
    "QueryValidationError",
    "ConfigurationError",
    "ApiError",
]
