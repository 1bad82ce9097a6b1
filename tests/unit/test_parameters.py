"""
Unit tests for named parameter checking in raw SQL.
"""

import pytest

from repository_framework.exceptions import (MissingParameterError,
                                             NullArgumentError)
from repository_framework.query import (bind_parameters, check_parameters,
                                        find_placeholders)


@pytest.mark.unit
class TestFindPlaceholders:
    """Test placeholder discovery."""

    def test_default_pattern(self):
        sql = "SELECT * FROM Category WHERE Id > @Id AND Name <> @Name"
        assert find_placeholders(sql) == ["Id", "Name"]

    def test_repeated_names_listed_once(self):
        assert find_placeholders("WHERE a = @x OR b = @x") == ["x"]

    def test_custom_pattern_with_group(self):
        assert find_placeholders("WHERE id > :id", r":(\w+)") == ["id"]

    def test_custom_pattern_without_group(self):
        assert find_placeholders("WHERE id > $id", r"\$\w+") == ["id"]

    def test_no_placeholders(self):
        assert find_placeholders("SELECT 1") == []

    def test_none_sql(self):
        with pytest.raises(NullArgumentError):
            find_placeholders(None)


@pytest.mark.unit
class TestCheckParameters:
    """Test the missing parameter gate."""

    def test_missing_parameter_raises(self):
        with pytest.raises(MissingParameterError) as exc_info:
            check_parameters("WHERE Id > @Id", {})
        assert exc_info.value.parameter == "Id"
        assert 'parameter "Id"' in str(exc_info.value)

    def test_none_parameters_means_none_supplied(self):
        with pytest.raises(MissingParameterError):
            check_parameters("WHERE Id > @Id", None)

    def test_extra_parameters_are_ignored(self):
        assert check_parameters("WHERE Id > @Id", {"Id": 1, "Unused": 2}) == ["Id"]

    def test_names_are_case_sensitive(self):
        with pytest.raises(MissingParameterError):
            check_parameters("WHERE Id > @Id", {"id": 1})


@pytest.mark.unit
class TestBindParameters:
    """Test rewriting to SQLAlchemy bind syntax."""

    def test_rewrites_placeholders(self):
        bound = bind_parameters("SELECT * FROM Category WHERE Id > @Id", {"Id": 50, "x": 1})
        assert bound.sql == "SELECT * FROM Category WHERE Id > :Id"
        assert bound.parameters == {"Id": 50}
        assert bound.names == ("Id",)

    def test_missing_parameter_raises_before_rewrite(self):
        with pytest.raises(MissingParameterError):
            bind_parameters("WHERE Id > @Id AND Name = @Name", {"Id": 1})

    def test_statement_without_placeholders(self):
        bound = bind_parameters("SELECT * FROM Category")
        assert bound.sql == "SELECT * FROM Category"
        assert bound.parameters == {}
