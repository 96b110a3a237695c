"""
Shared configuration management for the Storefront Gateway.
"""

from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class BaseConfig(BaseSettings):
    """Base configuration class with common settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="STOREFRONT_",
        case_sensitive=False,
        extra="ignore",
    )

    # Environment
    env: str = Field(default="local")
    log_level: str = Field(default="info")


class GatewayConfig(BaseConfig):
    """Configuration for the storefront gateway pipeline."""

    service_name: str = "storefront"
    host: str = "0.0.0.0"
    port: int = 3000

    # Marketplace API
    marketplace_api_url: str = Field(default="https://openapi.bunjang.co.kr")
    marketplace_access_key: Optional[str] = Field(default=None)
    marketplace_secret_key: Optional[str] = Field(default=None)
    marketplace_timeout: float = Field(default=10.0)
    credential_lifetime_seconds: int = Field(default=5)
    product_url_template: str = Field(default="https://m.bunjang.co.kr/products/{pid}")

    # Exchange rate provider
    exchange_rate_url: str = Field(default="https://open.er-api.com/v6/latest/KRW")
    exchange_rate_timeout: float = Field(default=5.0)
    exchange_rate_ttl: int = Field(default=3600)
    exchange_rate_failure_backoff: int = Field(default=60)
    fallback_exchange_rate: float = Field(default=0.00074)
    source_currency: str = Field(default="KRW")
    target_currency: str = Field(default="USD")
    price_markup: float = Field(default=0.10)

    # Cache (TTL in seconds)
    cache_products_ttl: int = Field(default=300)
    cache_product_detail_ttl: int = Field(default=600)
    cache_categories_ttl: int = Field(default=3600)
    cache_sweep_interval: float = Field(default=120.0)
    cache_sweep_grace: float = Field(default=60.0)

    # Storefront app proxy
    app_proxy_secret: Optional[str] = Field(default=None)
    verify_app_proxy_signature: bool = Field(default=False)

    # Error reporting
    expose_upstream_errors: bool = Field(default=False)

    @field_validator("fallback_exchange_rate")
    @classmethod
    def _positive_rate(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("fallback_exchange_rate must be positive")
        return value

    @field_validator("price_markup")
    @classmethod
    def _non_negative_markup(cls, value: float) -> float:
        if value < 0:
            raise ValueError("price_markup must not be negative")
        return value

    @field_validator("source_currency", "target_currency")
    @classmethod
    def _upper_currency(cls, value: str) -> str:
        return value.strip().upper()


def get_config(**overrides) -> GatewayConfig:
    """Build gateway configuration from the environment plus explicit overrides."""
    return GatewayConfig(**overrides)
