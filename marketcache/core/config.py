from pydantic_settings import BaseSettings
from typing import Optional


class Settings(BaseSettings):
    """Application settings"""

    # Application
    APP_NAME: str = "skepsis-market-cache"
    APP_VERSION: str = "1.0.0"
    ENVIRONMENT: str = "development"  # development, production
    PORT: int = 8000

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_DIR: str = "logs"
    LOG_TO_FILE: bool = False

    # Sui RPC
    SUI_RPC_URL: str = "https://fullnode.testnet.sui.io:443"
    SUI_RPC_TIMEOUT: float = 30.0
    DEFAULT_SENDER: str = "0x7d30376fa94aadc2886fb5c7faf217f172e04bee91361b833b4feaab3ca34724"

    # Skepsis contracts
    DISTRIBUTION_MARKET_PACKAGE: str = "0x7b9871542550d47c1d3caaac29c4a1d2ad9527c53f666d813a28be2c8155758e"
    DISTRIBUTION_MARKET_MODULE: str = "distribution_market"
    USDC_PACKAGE: str = "0x7c2e2815e1b4d345775fa1494b50625aeabde0a3c49225fa63092367ddb341de"
    USDC_MODULE: str = "usdc"
    USDC_STRUCT: str = "USDC"

    # Cache TTLs (seconds). Static data never expires.
    CACHE_TIMING_TTL: float = 300.0  # 5 minutes
    CACHE_DYNAMIC_TTL: float = 30.0
    CACHE_USER_TTL: float = 10.0
    CACHE_ERROR_TTL: float = 5.0

    # Maintenance
    CACHE_CLEANUP_INTERVAL: float = 300.0  # 5 minutes
    HEALTH_CHECK_INTERVAL: float = 600.0  # 10 minutes
    RESPONSE_TIME_SAMPLES: int = 100

    # Batched prefetch
    BATCH_SIZE: int = 5
    BATCH_DELAY: float = 0.1  # seconds

    # Pricing
    SELL_PRICE_DISCOUNT: float = 0.005  # 0.5% below buy price

    # Subscriptions
    MIN_REFRESH_INTERVAL: float = 5.0
    DEFAULT_REFRESH_INTERVAL: float = 30.0

    # Static market details (JSON)
    MARKET_CATALOG_PATH: Optional[str] = None

    # CORS (comma-separated origins; empty disables the middleware)
    CORS_ORIGINS: str = ""

    # DataDog
    DATADOG_API_KEY: Optional[str] = None
    DATADOG_APP_KEY: Optional[str] = None

    @property
    def usdc_type(self) -> str:
        return f"{self.USDC_PACKAGE}::{self.USDC_MODULE}::{self.USDC_STRUCT}"

    class Config:
        env_file = ".env"
        case_sensitive = True


settings = Settings()
