# storefront/config/settings.py
from pydantic_settings import BaseSettings
from typing import List, Optional

class Settings(BaseSettings):
    # API
    API_V1_STR: str = "/api/v1"
    PROJECT_NAME: str = "Storybook Storefront"

    # CORS
    ALLOWED_HOSTS: List[str] = ["*"]

    # Book/order backend
    BACKEND_API_URL: str = "http://localhost:3002"
    BACKEND_TIMEOUT_SECONDS: float = 120.0
    DEFAULT_CUSTOMER_EMAIL: str = "demo@example.com"

    # Public storefront origin, used when a request carries no Origin header
    STOREFRONT_URL: str = "http://localhost:3000"

    # Stripe
    STRIPE_SECRET_KEY: Optional[str] = None
    STRIPE_WEBHOOK_SECRET: Optional[str] = None
    BRAND_NAME: str = "Little Booky"
    CURRENCY: str = "usd"
    MIN_CHECKOUT_AMOUNT_CENTS: int = 50
    FULL_BOOK_PRICE_CENTS: int = 3999

    # Preview / generation
    PREVIEW_PAGE_LIMIT: int = 4
    POLL_INTERVAL_SECONDS: float = 2.0
    POLL_TIMEOUT_SECONDS: float = 60.0

    # Uploads
    THUMBNAIL_MAX_SIDE: int = 400

    # In-process order sessions
    SESSION_MAX_ENTRIES: int = 1000
    SESSION_TTL_SECONDS: float = 6 * 3600

    # Env
    ENVIRONMENT: str = "development"
    DEBUG: bool = True

    class Config:
        env_file = ".env"
        case_sensitive = True

settings = Settings()
