"""
Environment configuration for the hotel backend.

Values come from environment variables, optionally loaded from a ``.env``
file in the working directory.
"""
import secrets
from functools import lru_cache
from pathlib import Path
from typing import List, Optional, Set

from dotenv import load_dotenv
from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

env_path = Path(".") / ".env"
load_dotenv(dotenv_path=env_path)


class Settings(BaseSettings):
    """Application settings with environment variable support"""

    model_config = SettingsConfigDict(populate_by_name=True, extra="ignore")

    APP_NAME: str = "Hotel Booking API"
    API_VERSION: str = "1.0.0"
    ENVIRONMENT: str = "development"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "text"

    HOST: str = "0.0.0.0"
    PORT: int = 5000

    # Database
    MONGODB_URI: str = Field(
        default="mongodb://localhost:27017",
        validation_alias=AliasChoices("MONGODB_URI", "DATABASE_URL"),
    )
    DATABASE_NAME: str = "hotel-booking"
    DB_CONNECT_TIMEOUT_MS: int = 5000

    # Security
    JWT_SECRET_KEY: str = Field(default_factory=lambda: secrets.token_urlsafe(32))
    JWT_ALGORITHM: str = "HS256"
    JWT_EXPIRE_MINUTES: int = 60 * 24 * 7
    PASSWORD_BCRYPT_ROUNDS: int = 12
    PASSWORD_MIN_LENGTH: int = 6

    # CORS
    FRONTEND_URL: str = "http://localhost:3000"
    CORS_ORIGINS: List[str] = []

    # Media storage
    CLOUDINARY_URL: Optional[str] = None
    UPLOAD_FOLDER: str = "hotel-uploads"
    MAX_UPLOAD_SIZE: int = 5 * 1024 * 1024
    MAX_UPLOAD_FILES: int = 10
    MAX_IMAGE_DIMENSION: int = 2000
    ALLOWED_IMAGE_EXTENSIONS: Set[str] = {"jpg", "jpeg", "png", "gif", "webp"}

    # Google OAuth
    GOOGLE_CLIENT_ID: Optional[str] = None
    GOOGLE_TOKENINFO_URL: str = "https://oauth2.googleapis.com/tokeninfo"

    def is_development(self) -> bool:
        return self.ENVIRONMENT.lower() in ("development", "dev", "local")

    def is_production(self) -> bool:
        return self.ENVIRONMENT.lower() in ("production", "prod")

    @property
    def allowed_origins(self) -> List[str]:
        return self.CORS_ORIGINS or [self.FRONTEND_URL]


@lru_cache()
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
