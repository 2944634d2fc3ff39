"""
Core configuration module for the OTA Market Intelligence backend.
Settings come from environment variables / .env; the cleaning knobs are
frozen into a CleaningConfig that is passed explicitly to every component.
"""

from dataclasses import dataclass, field
from functools import lru_cache
from typing import Dict, Optional
import logging

from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.
    """

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False, extra="ignore")

    # Application
    app_name: str = "OTA Market Intelligence"
    app_version: str = "1.0.0"
    environment: str = "production"
    debug: bool = False

    # Database
    database_url: str = "sqlite:///./market_intel.db"
    database_pool_size: int = 10
    database_max_overflow: int = 20
    database_pool_recycle: int = 1800  # Recycle connections after 30 min
    database_pool_pre_ping: bool = True

    # API Configuration
    api_prefix: str = "/api/v1"
    api_host: str = "0.0.0.0"
    api_port: int = 8890
    api_workers: int = 1

    # Logging
    log_level: str = "INFO"
    log_format: str = "text"  # "text" or "json"

    # CORS
    cors_origins: list = ["http://localhost:3000", "http://127.0.0.1:3000"]
    cors_allow_credentials: bool = False
    cors_allow_methods: list = ["GET", "OPTIONS"]
    cors_allow_headers: list = ["Content-Type", "Accept"]

    # Cleaning pipeline
    cleaning_progress_every: int = 100
    quality_threshold: int = 70

    # Outlier bounds; values outside them are stored as unknown
    cleaning_max_price: float = 500.0  # per currency, applies to £ and €
    cleaning_min_rating: float = 1.0
    cleaning_max_review_count: int = 100_000


DEFAULT_QUALITY_WEIGHTS: Dict[str, int] = {
    "price": 25,
    "rating": 20,
    "reviews": 20,
    "description": 20,
    "duration": 15,
}

# largest value a 32-bit INTEGER column accepts (PostgreSQL, portable SQL)
MAX_STORABLE_COUNT = 2_147_483_647


@dataclass(frozen=True)
class CleaningConfig:
    """
    Knobs for the cleaning pipeline. Built once at process start and
    handed to the orchestrator, deduplicator and reporting code.
    """

    progress_every: int = 100
    quality_threshold: int = 70
    quality_weights: Dict[str, int] = field(default_factory=lambda: dict(DEFAULT_QUALITY_WEIGHTS))
    max_price_by_currency: Dict[str, float] = field(default_factory=lambda: {"£": 500.0, "€": 500.0})
    rating_min: float = 1.0
    max_review_count: int = 100_000

    def __post_init__(self):
        missing = set(DEFAULT_QUALITY_WEIGHTS) - set(self.quality_weights)
        if missing:
            raise ValueError(f"quality_weights missing keys: {sorted(missing)}")
        if any(w < 0 for w in self.quality_weights.values()):
            raise ValueError("quality_weights must be non-negative")
        total = sum(self.quality_weights.values())
        if total != 100:
            raise ValueError(f"quality_weights must sum to 100, got {total}")
        if self.progress_every < 1:
            raise ValueError("progress_every must be >= 1")
        if any(limit <= 0 for limit in self.max_price_by_currency.values()):
            raise ValueError("max_price_by_currency limits must be positive")
        if not 0 <= self.rating_min <= 5:
            raise ValueError(f"rating_min must be within 0..5, got {self.rating_min}")
        if not 0 <= self.max_review_count <= MAX_STORABLE_COUNT:
            raise ValueError(f"max_review_count must be within 0..{MAX_STORABLE_COUNT}")

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "CleaningConfig":
        settings = settings or get_settings()
        return cls(
            progress_every=settings.cleaning_progress_every,
            quality_threshold=settings.quality_threshold,
            max_price_by_currency={"£": settings.cleaning_max_price, "€": settings.cleaning_max_price},
            rating_min=settings.cleaning_min_rating,
            max_review_count=settings.cleaning_max_review_count,
        )


@lru_cache
def get_settings() -> Settings:
    """Construct settings once per process. Call only from entry points."""
    return Settings()
