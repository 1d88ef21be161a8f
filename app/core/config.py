"""
Application configuration.

Centralized environment-based settings using Pydantic v2.
"""

from typing import List, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # --------------------
    # Environment
    # --------------------
    ENV: str = "dev"
    LOG_LEVEL: str = "INFO"

    # --------------------
    # CORS
    # --------------------
    ALLOWED_ORIGINS: List[str] = Field(
        default_factory=lambda: [
            "http://localhost:3000",
            "http://127.0.0.1:3000",
        ],
        description="Allowed CORS origins for the web app",
    )

    # --------------------
    # Database
    # --------------------
    MONGO_URI: Optional[str] = Field(
        None,
        description="MongoDB URI; in-memory stores are used when unset",
    )
    MONGO_DB: str = "routewise"

    # --------------------
    # Auth
    # --------------------
    JWT_SECRET: str
    JWT_ALGORITHM: str = "HS256"

    # --------------------
    # LLM
    # --------------------
    GEMINI_API_KEY: Optional[str] = None
    GEMINI_MODEL: str = "models/gemini-flash-latest"

    # --------------------
    # Observability
    # --------------------
    MLFLOW_TRACKING_URI: Optional[str] = None
    SENTRY_DSN: Optional[str] = None

    # --------------------
    # Consent negotiation policy
    # --------------------
    CONSENT_MIN_DRIVER_RATING: float = 4.5
    NEW_DRIVER_MIN_RIDES: int = 10
    NEGOTIATION_RESPONSE_MINUTES: int = 5

    # --------------------
    # Rate limits
    # --------------------
    DEFAULT_RATE_LIMIT: str = "100/minute"
    NEGOTIATION_RATE_LIMIT: str = "5/minute"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="ROUTEWISE_",
        extra="ignore",
    )


settings = Settings()
