"""
Storefront gateway service package.

The gateway fetches product data from the marketplace API and republishes
it, normalized and price-converted, to the storefront app proxy:
- Credentials: a fresh signed token for every marketplace call
- Caching: in-process TTL cache with stale-on-error fallback
- Pricing: shared exchange rate with single-flight refresh
- Catalog: normalization and the per-query pipeline

Structure:
- app.main: FastAPI app, routes, and wiring.
- app.adapters: HTTP clients for the marketplace and rate provider.
- app.auth: Outbound credentials and inbound app-proxy verification.
- app.caching: TTL cache, cache keys and single-flight registry.
- app.pricing: Exchange rate cache.
- app.catalog: Query parsing, normalization and the catalog service.
"""
