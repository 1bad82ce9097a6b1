"""
Unit tests for custom exceptions.

Tests exception hierarchy and error messages.
"""

import pytest

from repository_framework.exceptions import (ApiError,
                                             CapabilityNotSupportedError,
                                             ConfigurationError,
                                             InvalidPropertyError,
                                             MissingParameterError,
                                             NullArgumentError,
                                             PagingRangeError,
                                             QueryValidationError,
                                             RepositoryError)


@pytest.mark.unit
class TestExceptionHierarchy:
    """Test exception inheritance hierarchy."""

    def test_repository_error_is_runtime_error(self):
        assert isinstance(RepositoryError("test error"), RuntimeError)

    @pytest.mark.parametrize(
        "error",
        [
            NullArgumentError("entity"),
            InvalidPropertyError("bad", "Nmae", "Category"),
            MissingParameterError("Id"),
            PagingRangeError("bad", "page_size", -1),
            QueryValidationError("bad"),
        ],
    )
    def test_argument_errors_are_value_errors(self, error):
        assert isinstance(error, RepositoryError)
        assert isinstance(error, ValueError)

    def test_capability_error_is_not_implemented_error(self):
        error = CapabilityNotSupportedError("sortable", "StoredProcedureRepository")
        assert isinstance(error, RepositoryError)
        assert isinstance(error, NotImplementedError)

    def test_configuration_and_api_errors(self):
        assert isinstance(ConfigurationError("bad"), RepositoryError)
        assert isinstance(ApiError(500, "bad"), RepositoryError)


@pytest.mark.unit
class TestExceptionMessages:
    """Test exception message formatting."""

    def test_repository_error_message(self):
        error = RepositoryError("Something went wrong")
        assert str(error) == "Something went wrong"
        assert error.message == "Something went wrong"
        assert error.context == {}

    def test_repository_error_with_context(self):
        error = RepositoryError("Something went wrong", context={"entity": "Category"})
        assert str(error) == "Something went wrong (context: entity=Category)"

    def test_null_argument(self):
        error = NullArgumentError("entity")
        assert error.argument == "entity"
        assert "Argument 'entity' cannot be None" in str(error)

    def test_invalid_property(self):
        error = InvalidPropertyError("Unknown property", "Nmae", "Category")
        assert error.property_path == "Nmae"
        assert error.entity_name == "Category"
        assert "property_path=Nmae" in str(error)

    def test_missing_parameter(self):
        error = MissingParameterError("Id", ["Id", "Name"])
        assert error.message == 'Value must be specified for parameter "Id"'
        assert error.placeholders == ["Id", "Name"]

    def test_paging_range(self):
        error = PagingRangeError("page_size out of range", "page_size", 5000)
        assert (error.argument, error.value) == ("page_size", 5000)
        assert "value=5000" in str(error)

    def test_capability(self):
        error = CapabilityNotSupportedError("pageable", "S3BlobRepository")
        assert error.message == "S3BlobRepository does not implement the 'pageable' capability"
        assert (error.capability, error.backend) == ("pageable", "S3BlobRepository")

    def test_query_validation(self):
        error = QueryValidationError("Dangerous operator", "filter", "$where", "a.$where")
        assert (error.query_type, error.operator, error.path) == ("filter", "$where", "a.$where")
        assert "operator=$where" in str(error)

    def test_configuration(self):
        error = ConfigurationError("bad page size", config_key="default_page_size", config_value=0)
        assert error.config_key == "default_page_size"
        assert error.config_value == 0
        assert "config_value=0" in str(error)

    def test_api_error(self):
        error = ApiError(404, "Not found", "GET", "https://api", "/posts/1", error_content="{}")
        assert error.status_code == 404
        assert error.base_path == "https://api"
        assert error.error_content == "{}"
        assert "method=GET" in str(error)
