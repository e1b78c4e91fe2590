"""Store-level settings, read from ``STOREFRONT_*`` environment variables.

Framework settings (databases, brokers, event store) stay with protean's own
configuration; this module only covers knobs the checkout pipeline reads.
"""

from decimal import Decimal
from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="STOREFRONT_", env_file=".env", extra="ignore")

    currency: str = Field(default="USD", min_length=3, max_length=3)
    # Number of decimal places of the currency's minor unit (2 for USD/EUR, 0 for JPY)
    currency_exponent: int = Field(default=2, ge=0, le=4)

    default_tax_rate: Decimal = Field(default=Decimal("0"), ge=0)

    standard_shipping_rate: Decimal = Decimal("9.99")
    expedited_shipping_rate: Decimal = Decimal("19.99")
    free_shipping_threshold: Decimal | None = Decimal("75.00")

    coupon_usage_limit_per_customer: int = Field(default=1, ge=1)
    referral_attribution_days: int = Field(default=30, ge=1)

    checkout_max_attempts: int = Field(default=3, ge=1)
    order_number_prefix: str = "ORD"


@lru_cache
def get_settings() -> Settings:
    return Settings()
