"""
Unit tests for storefront query coercion.
"""

import pytest

from service_storefront.app.catalog import CatalogResult, ProductQuery
from shared.errors import ValidationError


class TestProductQuery:
    """Test cases for ProductQuery.from_params."""

    def test_defaults(self):
        query = ProductQuery.from_params({})

        assert query.size == 12
        assert query.sort == "latest"
        assert query.to_upstream_params() == {"size": 12, "sort": "latest"}

    @pytest.mark.parametrize("raw,expected", [
        ("0", 1),
        ("-4", 1),
        ("500", 100),
        ("24", 24),
        ("abc", 12),
        ("", 12),
        ("inf", 12),
        ("1e400", 12),
        ("nan", 12),
    ])
    def test_size_clamped(self, raw, expected):
        """Test size is clamped into [1, 100]."""
        assert ProductQuery.from_params({"size": raw}).size == expected

    @pytest.mark.parametrize("raw,expected", [
        ("undefined", None),
        ("", None),
        ("cheap", None),
        ("inf", None),
        ("-inf", None),
        ("1e400", None),
        ("nan", None),
        ("0", 0),
        ("15000", 15000),
    ])
    def test_price_bounds_coerced(self, raw, expected):
        """Test non-numeric price bounds are dropped, zero is kept."""
        query = ProductQuery.from_params({"minPrice": raw, "maxPrice": raw})

        assert query.min_price == expected
        assert query.max_price == expected

    @pytest.mark.parametrize("raw,expected", [("true", True), ("false", False), ("yes", False), (None, None)])
    def test_free_shipping(self, raw, expected):
        params = {} if raw is None else {"freeShipping": raw}

        assert ProductQuery.from_params(params).free_shipping is expected

    def test_invalid_sort_rejected(self):
        """Test unknown sort values fail validation."""
        with pytest.raises(ValidationError) as exc_info:
            ProductQuery.from_params({"sort": "random"})
        assert exc_info.value.details["field"] == "sort"

    def test_upstream_params_use_marketplace_names(self):
        """Test parameters are forwarded under marketplace names and absent ones omitted."""
        query = ProductQuery.from_params({
            "q": "jacket",
            "categoryId": "320",
            "brandId": "",
            "minPrice": "1000",
            "maxPrice": "undefined",
            "freeShipping": "true",
            "sort": "price_asc",
        })

        assert query.to_upstream_params() == {
            "size": 12,
            "q": "jacket",
            "sort": "price_asc",
            "categoryId": "320",
            "minPrice": 1000,
            "freeShipping": True,
        }


class TestCatalogResult:
    """Test cases for CatalogResult."""

    @pytest.mark.parametrize("source,status", [("cache", "HIT"), ("upstream", "MISS"), ("stale", "STALE")])
    def test_cache_status(self, source, status):
        result = CatalogResult({"products": []}, source=source)

        assert result.cache_status == status
        assert result.stale is (source == "stale")
