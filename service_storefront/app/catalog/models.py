"""
Catalog data types: inbound queries, normalized products and results.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional, Tuple

from shared.errors import ValidationError

SORT_OPTIONS = ("score", "latest", "price_asc", "price_desc")
DEFAULT_PAGE_SIZE = 12
MAX_PAGE_SIZE = 100


def _parse_int(value: Optional[str]) -> Optional[int]:
    if value is None:
        return None
    text = str(value).strip()
    if not text or text == "undefined":
        return None
    try:
        return int(text)
    except ValueError:
        try:
            return int(float(text))
        except (ValueError, OverflowError):
            return None


@dataclass(frozen=True)
class ProductQuery:
    """Storefront product-list query after coercion."""

    size: int = DEFAULT_PAGE_SIZE
    q: Optional[str] = None
    cursor: Optional[str] = None
    sort: str = "latest"
    category_id: Optional[str] = None
    brand_id: Optional[str] = None
    min_price: Optional[int] = None
    max_price: Optional[int] = None
    free_shipping: Optional[bool] = None

    @classmethod
    def from_params(cls, params: Mapping[str, Optional[str]]) -> "ProductQuery":
        """Coerce raw query-string values.

        ``size`` is clamped to [1, 100]; prices that are not numeric (or the
        literal ``"undefined"`` some storefront themes send) are dropped.
        """
        size = _parse_int(params.get("size"))
        if size is None:
            size = DEFAULT_PAGE_SIZE
        size = max(1, min(size, MAX_PAGE_SIZE))

        sort = params.get("sort") or "latest"
        if sort not in SORT_OPTIONS:
            raise ValidationError(
                f"sort must be one of {', '.join(SORT_OPTIONS)}",
                details={"field": "sort", "value": sort},
            )

        free_shipping_raw = params.get("freeShipping")
        free_shipping = None if not free_shipping_raw else free_shipping_raw == "true"

        return cls(
            size=size,
            q=params.get("q") or None,
            cursor=params.get("cursor") or None,
            sort=sort,
            category_id=params.get("categoryId") or None,
            brand_id=params.get("brandId") or None,
            min_price=_parse_int(params.get("minPrice")),
            max_price=_parse_int(params.get("maxPrice")),
            free_shipping=free_shipping,
        )

    def to_upstream_params(self) -> Dict[str, Any]:
        """Marketplace query parameters; absent values are omitted."""
        params: Dict[str, Any] = {
            "size": self.size,
            "q": self.q,
            "cursor": self.cursor,
            "sort": self.sort,
            "categoryId": self.category_id,
            "brandId": self.brand_id,
            "minPrice": self.min_price,
            "maxPrice": self.max_price,
            "freeShipping": self.free_shipping,
        }
        return {key: value for key, value in params.items() if value is not None}


@dataclass(frozen=True)
class NormalizedProduct:
    """Storefront representation of a marketplace product."""

    id: str
    title: str
    description: str
    price: float
    price_source: float
    shipping_fee: float
    shipping_fee_source: float
    currency: str
    source_currency: str
    images: Tuple[str, ...] = ()
    condition: Optional[str] = None
    sale_status: Optional[str] = None
    quantity: int = 0
    seller_ref: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
    category_id: Optional[str] = None
    brand_id: Optional[str] = None
    keywords: Tuple[str, ...] = ()
    options: Tuple[Any, ...] = ()
    url: Optional[str] = None
    image_url_template: Optional[str] = None
    image_count: int = 0

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to the storefront's JSON schema."""
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "price": self.price,
            "priceSource": self.price_source,
            "shippingFee": self.shipping_fee,
            "shippingFeeSource": self.shipping_fee_source,
            "currency": self.currency,
            "sourceCurrency": self.source_currency,
            "images": list(self.images),
            "imageUrlTemplate": self.image_url_template,
            "imageCount": self.image_count,
            "categoryId": self.category_id,
            "brandId": self.brand_id,
            "condition": self.condition,
            "saleStatus": self.sale_status,
            "quantity": self.quantity,
            "keywords": list(self.keywords),
            "options": list(self.options),
            "url": self.url,
            "seller": {"uid": self.seller_ref},
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }


@dataclass(frozen=True)
class CatalogResult:
    """Payload returned by the catalog service and where it came from."""

    data: Dict[str, Any] = field(default_factory=dict)
    source: str = "upstream"

    @property
    def stale(self) -> bool:
        return self.source == "stale"

    @property
    def cache_status(self) -> str:
        return {"cache": "HIT", "upstream": "MISS", "stale": "STALE"}[self.source]
