"""
Normalization of raw marketplace records into storefront products.
"""

from __future__ import annotations

import re
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Iterable, List, Mapping, Optional

from shared.logging import get_logger

from .models import NormalizedProduct

_CENTS = Decimal("0.01")
_PLACEHOLDER = re.compile(r"\{[^{}]*\}")
COUNT_PLACEHOLDER = "{cnt}"

DEFAULT_MARKUP = 0.10


def _to_decimal(value: Any) -> Decimal:
    if value is None or isinstance(value, bool):
        return Decimal(0)
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError):
        return Decimal(0)


def round2(value: Any) -> float:
    """Round half away from zero to two decimal places."""
    return float(_to_decimal(value).quantize(_CENTS, rounding=ROUND_HALF_UP))


def convert_price(amount: Any, rate: float, markup: float = DEFAULT_MARKUP) -> float:
    """Convert a source-currency amount to the target currency with markup."""
    source = _to_decimal(amount)
    if not source:
        return 0.0
    converted = source * _to_decimal(rate) * (Decimal(1) + _to_decimal(markup))
    return float(converted.quantize(_CENTS, rounding=ROUND_HALF_UP))


def _substitute_position(template: str, position: int) -> str:
    # Marketplace templates also carry a {res} placeholder that the storefront fills in.
    if COUNT_PLACEHOLDER in template:
        return template.replace(COUNT_PLACEHOLDER, str(position), 1)
    return _PLACEHOLDER.sub(str(position), template, count=1)


def expand_images(template: Optional[str], count: Any) -> List[str]:
    """Substitute positions 1..count into the template's count placeholder."""
    try:
        total = int(count or 0)
    except (TypeError, ValueError):
        total = 0
    if not template or total <= 0:
        return []
    return [_substitute_position(template, position) for position in range(1, total + 1)]


def _optional_str(value: Any) -> Optional[str]:
    if value is None or value == "":
        return None
    return str(value)


def _as_int(value: Any) -> int:
    try:
        return int(value or 0)
    except (TypeError, ValueError):
        return 0


def _as_tuple(value: Any) -> tuple:
    if value is None:
        return ()
    if isinstance(value, (list, tuple)):
        return tuple(value)
    if isinstance(value, str):
        return tuple(part.strip() for part in value.split(",") if part.strip())
    return (value,)


class ResponseNormalizer:
    """Maps raw marketplace product records to ``NormalizedProduct``."""

    def __init__(
        self,
        *,
        markup: float = DEFAULT_MARKUP,
        target_currency: str = "USD",
        source_currency: str = "KRW",
        product_url_template: Optional[str] = None,
    ) -> None:
        self.markup = markup
        self.target_currency = target_currency
        self.source_currency = source_currency
        self.product_url_template = product_url_template
        self.logger = get_logger("storefront.normalizer")

    def transform(self, raw: Mapping[str, Any], rate: float) -> NormalizedProduct:
        product_id = str(raw.get("pid", raw.get("id", "")))
        price_source = raw.get("price") or 0
        shipping_source = raw.get("shippingFee") or 0
        template = raw.get("imageUrlTemplate")
        image_count = _as_int(raw.get("imageCount"))

        url = None
        if self.product_url_template and product_id:
            url = self.product_url_template.format(pid=product_id)

        return NormalizedProduct(
            id=product_id,
            title=raw.get("name") or "",
            description=raw.get("description") or "",
            price=convert_price(price_source, rate, self.markup),
            price_source=price_source,
            shipping_fee=convert_price(shipping_source, rate, self.markup),
            shipping_fee_source=shipping_source,
            currency=self.target_currency,
            source_currency=self.source_currency,
            images=tuple(expand_images(template, image_count)),
            condition=raw.get("condition"),
            sale_status=raw.get("saleStatus"),
            quantity=_as_int(raw.get("quantity")),
            seller_ref=_optional_str(raw.get("uid")),
            created_at=raw.get("createdAt"),
            updated_at=raw.get("updatedAt"),
            category_id=_optional_str(raw.get("categoryId")),
            brand_id=_optional_str(raw.get("brandId")),
            keywords=_as_tuple(raw.get("keywords")),
            options=_as_tuple(raw.get("options")),
            url=url,
            image_url_template=template,
            image_count=image_count,
        )

    def transform_many(self, records: Iterable[Any], rate: float) -> List[NormalizedProduct]:
        products: List[NormalizedProduct] = []
        for record in records:
            if not isinstance(record, Mapping):
                self.logger.warning("Skipping malformed product record", record_type=type(record).__name__)
                continue
            products.append(self.transform(record, rate))
        return products
