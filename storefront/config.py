from __future__ import annotations
from decimal import Decimal
from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    DATABASE_URL: str = "mongodb://localhost:27017"
    DATABASE_NAME: str = "storefront"

    # Checkout pricing
    TAX_RATE: Decimal = Decimal("0.10")
    FREE_SHIPPING_THRESHOLD: Decimal = Decimal("100")
    FLAT_SHIPPING_PRICE: Decimal = Decimal("10")

    MAX_CART_QUANTITY: int = 10

    CORS_ORIGINS: list[str] = ["*"]
    LOG_LEVEL: str = "INFO"
    PORT: int = 8000


@lru_cache
def get_settings() -> Settings:
    return Settings()
