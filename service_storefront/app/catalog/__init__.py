"""
Catalog layer for the storefront gateway.
"""

from .models import CatalogResult, NormalizedProduct, ProductQuery, SORT_OPTIONS
from .normalizer import ResponseNormalizer, convert_price, expand_images, round2
from .service import CacheTTLs, CatalogService

__all__ = [
    "CacheTTLs",
    "CatalogResult",
    "CatalogService",
    "NormalizedProduct",
    "ProductQuery",
    "ResponseNormalizer",
    "SORT_OPTIONS",
    "convert_price",
    "expand_images",
    "round2",
]
