"""
Canonical cache key construction.
"""

import json
from typing import Any, Mapping, Optional


def make_cache_key(endpoint: str, params: Optional[Mapping[str, Any]] = None) -> str:
    """Build an order-independent key from an endpoint and its query parameters.

    ``None`` values are dropped so an omitted parameter and an explicit
    ``None`` address the same entry.
    """
    if not params:
        return endpoint

    canonical = {key: value for key, value in params.items() if value is not None}
    if not canonical:
        return endpoint

    payload = json.dumps(canonical, sort_keys=True, separators=(",", ":"), default=str)
    return f"{endpoint}:{payload}"
