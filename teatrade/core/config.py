"""
Centralized application configuration
"""
import json
from functools import lru_cache
from typing import List, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings, loaded from the environment and .env"""

    # API Settings
    API_TITLE: str = "Tea Trade API"
    API_VERSION: str = "1.0.0"
    API_DESCRIPTION: str = "Catalogs, stock lots, shipments and contact management for the tea trading platform"
    API_HOST: str = "0.0.0.0"
    API_PORT: int = 3002
    API_DEBUG: bool = False

    # Database
    DATABASE_URL: str = "sqlite:///./teatrade.db"
    DB_POOL_PRE_PING: bool = True
    DB_ECHO: bool = False
    TRANSACTION_MAX_RETRIES: int = 3

    # CORS - Can be string (comma-separated) or JSON array
    # Example: "http://localhost:3000,https://yourdomain.com" or '["http://localhost:3000"]'
    ALLOWED_ORIGINS: Optional[str] = "http://localhost:3000"

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_TIMEZONE: str = "Africa/Nairobi"

    # Cognito (ID tokens issued by the user pool)
    COGNITO_REGION: str = "us-east-1"
    COGNITO_USER_POOL_ID: str = ""
    COGNITO_APP_CLIENT_ID: str = ""
    COGNITO_CLOCK_TOLERANCE: int = 86400
    COGNITO_JWKS_MIN_REFETCH_SECONDS: float = 60.0

    # Public endpoint protection
    CONTACT_RATE_LIMIT: int = 5
    CONTACT_RATE_WINDOW_SECONDS: int = 60
    TRUST_PROXY_HEADERS: bool = False

    # Uploads
    MAX_UPLOAD_BYTES: int = 5 * 1024 * 1024

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=True, extra="ignore")

    def get_allowed_origins(self) -> List[str]:
        """Parse ALLOWED_ORIGINS string into list"""
        if not self.ALLOWED_ORIGINS:
            return ["http://localhost:3000"]

        # Try JSON parse first (for array format)
        try:
            origins = json.loads(self.ALLOWED_ORIGINS)
            if isinstance(origins, list):
                return origins
        except (json.JSONDecodeError, ValueError):
            pass

        # Fall back to comma-separated string
        return [origin.strip() for origin in self.ALLOWED_ORIGINS.split(",")]

    @property
    def cognito_issuer(self) -> str:
        return f"https://cognito-idp.{self.COGNITO_REGION}.amazonaws.com/{self.COGNITO_USER_POOL_ID}"

    @property
    def cognito_jwks_url(self) -> str:
        return f"{self.cognito_issuer}/.well-known/jwks.json"


@lru_cache
def get_settings() -> Settings:
    return Settings()
