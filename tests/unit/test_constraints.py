"""
Unit tests for QueryConstraints, QueryResult and in-memory constraint application.
"""

from dataclasses import dataclass, field
from typing import Optional

import pytest

from repository_framework.exceptions import (InvalidPropertyError,
                                             NullArgumentError,
                                             PagingRangeError)
from repository_framework.query import (QueryConstraints, QueryResult,
                                        SortOrder, apply_constraints,
                                        paginate, sort_items, start_index,
                                        total_pages)


@dataclass
class Part:
    id: Optional[int] = None
    name: str = ""


@dataclass
class Product:
    id: Optional[int] = None
    name: str = ""
    parts: list[Part] = field(default_factory=list)


@dataclass
class Category:
    id: Optional[int] = None
    name: Optional[str] = ""
    products: list[Product] = field(default_factory=list)


@dataclass
class Holder:
    id: Optional[int] = None
    category: Optional[Category] = None


def categories(count: int) -> list[Category]:
    return [Category(id=i, name=f"Category {i:03d}") for i in range(1, count + 1)]


@pytest.mark.unit
class TestPagingMath:
    """Test total pages and start index."""

    @pytest.mark.parametrize(
        "total,size,expected",
        [
            (100, 40, 3),
            (100, 50, 3),  # evenly divisible totals report a trailing page
            (0, 10, 1),
            (5, 0, 1),
            (39, 40, 1),
        ],
    )
    def test_total_pages(self, total, size, expected):
        assert total_pages(total, size) == expected

    @pytest.mark.parametrize(
        "number,size,expected",
        [(1, 40, 1), (2, 40, 41), (3, 40, 81), (1, 0, 1), (2, 0, 1)],
    )
    def test_start_index(self, number, size, expected):
        assert start_index(number, size) == expected

    def test_result_exposes_paging_values(self):
        constraints = QueryConstraints(Category).page(2, 40)
        result = QueryResult.of(categories(40), 100, constraints)
        assert result.total_items == 100
        assert result.total_pages == 3
        assert result.start_index == 41
        assert len(result) == 40
        assert [c.id for c in result][:2] == [1, 2]

    def test_result_defaults_to_item_count(self):
        result = QueryResult.of(categories(3))
        assert result.total_count == 3
        assert result.page_size == 0
        assert result.total_pages == 1


@pytest.mark.unit
class TestQueryConstraints:
    """Test the fluent, immutable builder."""

    def test_defaults(self):
        constraints = QueryConstraints(Category)
        assert constraints.page_number == 1
        assert constraints.page_size == 0
        assert not constraints.is_paged
        assert not constraints.is_sorted
        assert constraints.sort_order is SortOrder.UNSPECIFIED
        assert constraints.includes == ()

    def test_builders_return_new_instances(self):
        base = QueryConstraints(Category)
        paged = base.page(2, 40)
        assert base.page_size == 0
        assert (paged.page_number, paged.page_size) == (2, 40)

    def test_sort_by_name_is_canonicalized(self):
        constraints = QueryConstraints(Category).sort_by("NAME")
        assert constraints.sort_property_name == "name"
        assert constraints.sort_order is SortOrder.ASCENDING

    def test_sort_by_selector(self):
        constraints = QueryConstraints(Category).sort_by_descending(lambda c: c.id)
        assert constraints.sort_property_name == "id"
        assert constraints.sort_order is SortOrder.DESCENDING

    def test_sort_by_unknown_property_fails_immediately(self):
        with pytest.raises(InvalidPropertyError):
            QueryConstraints(Category).sort_by("Nmae")

    def test_sort_by_none(self):
        with pytest.raises(NullArgumentError):
            QueryConstraints(Category).sort_by(None)

    @pytest.mark.parametrize("prop", ["products", "PRODUCTS", lambda c: c.products])
    def test_sort_by_collection_fails_immediately(self, prop):
        with pytest.raises(InvalidPropertyError) as exc_info:
            QueryConstraints(Category).sort_by(prop)
        assert exc_info.value.property_path == "products"
        assert exc_info.value.entity_name == "Category"

    def test_sort_by_related_entity_fails_immediately(self):
        with pytest.raises(InvalidPropertyError, match="not a sortable column"):
            QueryConstraints(Holder).sort_by_descending("category")

    def test_sort_by_optional_scalar(self):
        assert QueryConstraints(Category).sort_by("name").sort_property_name == "name"

    def test_clear_sorting(self):
        constraints = QueryConstraints(Category).sort_by("name").clear_sorting()
        assert constraints.sort_property_name is None
        assert constraints.sort_order is SortOrder.UNSPECIFIED

    def test_sort_order_requires_property(self):
        with pytest.raises(ValueError):
            QueryConstraints(Category, sort_order=SortOrder.ASCENDING)

    @pytest.mark.parametrize("number,size", [(0, 10), (1001, 10), (1, -1), (1, 1001)])
    def test_paging_range(self, number, size):
        with pytest.raises(PagingRangeError):
            QueryConstraints(Category).page(number, size)

    def test_paging_bounds_accepted(self):
        constraints = QueryConstraints(Category).page(1000, 1000)
        assert constraints.start_record == 999 * 1000

    def test_clear_paging(self):
        constraints = QueryConstraints(Category).page(3, 10).clear_paging()
        assert (constraints.page_number, constraints.page_size) == (1, 0)

    def test_include_comma_separated(self):
        constraints = QueryConstraints(Category).include("Products, Products.Parts")
        assert constraints.includes == ("products", "products.parts")

    def test_include_deduplicates_canonical_paths(self):
        constraints = QueryConstraints(Category).include("products").include("PRODUCTS")
        assert constraints.includes == ("products",)

    def test_include_selector(self):
        constraints = QueryConstraints(Category).include(lambda c: c.products.parts)
        assert constraints.includes == ("products.parts",)

    def test_include_invalid_path(self):
        with pytest.raises(InvalidPropertyError):
            QueryConstraints(Category).include("products.widgets")

    def test_include_none(self):
        with pytest.raises(NullArgumentError):
            QueryConstraints(Category).include(None)

    def test_clear_includes(self):
        constraints = QueryConstraints(Category).include("products").clear_includes()
        assert constraints.includes == ()

    def test_entity_class_required(self):
        with pytest.raises(NullArgumentError):
            QueryConstraints(None)


@pytest.mark.unit
class TestApplyConstraints:
    """Test sort then page over in-memory sequences."""

    def test_second_page_of_100(self):
        result = paginate(QueryConstraints(Category).page(2, 40), categories(100))
        assert len(result.items) == 40
        assert result.items[0].id == 41
        assert result.total_count == 100

    def test_page_past_the_end_is_empty(self):
        result = paginate(QueryConstraints(Category).page(4, 40), categories(100))
        assert result.items == ()
        assert result.total_count == 100

    def test_last_partial_page(self):
        result = paginate(QueryConstraints(Category).page(3, 40), categories(100))
        assert [c.id for c in result.items] == list(range(81, 101))

    def test_page_size_zero_returns_everything(self):
        result = paginate(QueryConstraints(Category).page(5, 0), categories(10))
        assert len(result.items) == 10

    def test_sort_descending_then_page(self):
        constraints = QueryConstraints(Category).sort_by_descending("name").page(1, 3)
        items = apply_constraints(constraints, categories(10))
        assert [c.id for c in items] == [10, 9, 8]

    def test_sort_is_stable(self):
        items = [Category(id=i, name="same") for i in range(5)]
        sorted_items = sort_items(QueryConstraints(Category).sort_by("name"), items)
        assert [c.id for c in sorted_items] == [0, 1, 2, 3, 4]

    def test_none_values_first_when_ascending(self):
        items = [Category(id=1, name="b"), Category(id=2, name=None), Category(id=3, name="a")]
        ascending = sort_items(QueryConstraints(Category).sort_by("name"), items)
        descending = sort_items(QueryConstraints(Category).sort_by_descending("name"), items)
        assert [c.id for c in ascending] == [2, 3, 1]
        assert [c.id for c in descending] == [1, 3, 2]

    def test_no_constraints(self):
        assert len(apply_constraints(None, categories(7))) == 7
