"""
Configuration management for the Splittat API.

Loads and validates environment variables for the application.
"""

from typing import List, Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    All settings can be overridden via environment variables.
    """

    # Service Configuration
    APP_NAME: str = "Splittat API"
    DEBUG: bool = False
    LOG_LEVEL: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    LOG_JSON: bool = False
    HOST: str = "0.0.0.0"
    PORT: int = Field(default=5000, ge=1, le=65535)
    API_PREFIX: str = "/api"

    # Database Configuration
    DATABASE_URL: str = "sqlite:///./splittat.db"
    DATABASE_POOL_SIZE: int = 10
    DATABASE_MAX_OVERFLOW: int = 10

    # JWT Configuration
    JWT_SECRET_KEY: str = "your-super-secret-key-change-in-production-min-32-chars"
    JWT_ALGORITHM: str = "HS256"
    JWT_ISSUER: str = "splittat-api"
    JWT_AUDIENCE: str = "splittat-client"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = Field(default=60, ge=1)

    # Password Policy
    PASSWORD_HASH_ROUNDS: int = Field(default=12, ge=4, le=31)
    MIN_PASSWORD_LENGTH: int = 6

    # Receipt Uploads
    UPLOAD_DIR: str = "./uploads"
    UPLOAD_URL_PREFIX: str = "/uploads"
    MAX_UPLOAD_BYTES: int = 10 * 1024 * 1024

    # Request handling
    SLOW_REQUEST_THRESHOLD_MS: float = 1000.0

    # CORS Configuration (comma-separated string)
    CORS_ORIGINS: str = "http://localhost:5173"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    def get_cors_origins(self) -> List[str]:
        """Get CORS origins as a list."""
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",") if origin.strip()]


# Global settings instance
settings = Settings()
