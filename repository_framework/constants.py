"""
Constants for REPOSITORY_FRAMEWORK.

This module contains all shared constants used across the codebase to avoid
magic numbers and improve maintainability.
"""

from typing import Final

# ============================================================================
# PAGING CONSTANTS
# ============================================================================

DEFAULT_PAGE_NUMBER: Final[int] = 1
"""Default page number (one based)."""

DEFAULT_PAGE_SIZE: Final[int] = 0
"""Default page size. Zero means no paging: all matching items are returned."""

MIN_PAGE_NUMBER: Final[int] = 1
"""Smallest accepted page number."""

MAX_PAGE_NUMBER: Final[int] = 1000
"""Largest accepted page number."""

MAX_PAGE_SIZE: Final[int] = 1000
"""Largest accepted page size."""

# ============================================================================
# PROPERTY PATH CONSTANTS
# ============================================================================

PROPERTY_PATH_SEPARATOR: Final[str] = "."
"""Separator between the segments of a property path (e.g. products.parts)."""

INCLUDE_LIST_SEPARATOR: Final[str] = ","
"""Separator between property paths passed to include() as a single string."""

# ============================================================================
# SQL CONSTANTS
# ============================================================================

DEFAULT_PARAMETER_PATTERN: Final[str] = r"@(\w+)"
"""Default regex matching named placeholders in raw SQL statements."""

PARAMETER_NAME_PATTERN: Final[str] = r"(\w+)"
"""Regex extracting the bare identifier from a matched placeholder."""

DEFAULT_LIMIT_OFFSET_PATTERN: Final[str] = "LIMIT {PageSize} OFFSET ({PageNumber} - 1) * {PageSize}"
"""Default paging clause. Must contain the {PageNumber} and {PageSize} placeholders."""

DEFAULT_PROCEDURE_CALL_TEMPLATE: Final[str] = "EXEC {procedure} {arguments}"
"""Default statement used to call a stored procedure."""

# ============================================================================
# MONGODB CONSTANTS
# ============================================================================

MONGO_ID_FIELD: Final[str] = "_id"
"""Document field holding the primary key."""

DEFAULT_COLLECTION_SUFFIX: Final[str] = "Collection"
"""Suffix appended to the entity class name to form the default collection name."""

MAX_QUERY_DEPTH: Final[int] = 10
"""Maximum nesting depth for query filters."""

MAX_REGEX_LENGTH: Final[int] = 1000
"""Maximum length for regex patterns in filters."""

MAX_REGEX_COMPLEXITY: Final[int] = 50
"""Maximum complexity score for regex patterns (ReDoS guard)."""

MAX_SORT_FIELDS: Final[int] = 10
"""Maximum number of fields in a sort specification."""

DANGEROUS_OPERATORS: Final[tuple[str, ...]] = (
    "$where",  # JavaScript execution
    "$eval",  # JavaScript evaluation (deprecated but still dangerous)
    "$function",  # JavaScript functions in aggregation
    "$accumulator",  # Custom JavaScript accumulators
)
"""MongoDB operators rejected in filters passed to MongoRepository."""

# ============================================================================
# BLOB STORAGE CONSTANTS
# ============================================================================

UNKNOWN_BLOB_SIZE: Final[int] = -1
"""Size reported for blobs whose size has not been fetched yet."""

S3_DELETE_BATCH_SIZE: Final[int] = 1000
"""Maximum number of keys accepted by a single S3 DeleteObjects request."""

AZURE_DELETE_BATCH_SIZE: Final[int] = 256
"""Maximum number of sub-requests in a single Azure Blob batch request."""

S3_URL_TEMPLATE: Final[str] = "https://{bucket}.s3.{region}.amazonaws.com/{key}"
"""Public URL of an S3 object."""

S3_NOT_FOUND_CODES: Final[tuple[str, ...]] = ("404", "NoSuchKey", "NotFound")
"""Client error codes that mean the object does not exist."""

# ============================================================================
# REST API CONSTANTS
# ============================================================================

PATH_PARAMETER_PATTERN: Final[str] = r"\{(\w*)\}"
"""Regex matching {name} placeholders in an entity path."""

DEFAULT_DATETIME_FORMAT: Final[str] = "iso8601"
"""Datetime format used for path and query parameters."""

DEFAULT_API_TIMEOUT: Final[float] = 30.0
"""Default HTTP timeout (seconds) for the REST backend."""

# ============================================================================
# OBSERVABILITY CONSTANTS
# ============================================================================

DEFAULT_MAX_METRICS: Final[int] = 10000
"""Maximum number of metric series kept before LRU eviction."""
