"""
Configuration management for the Studio CMS API.
Uses Pydantic Settings for environment variable management.
"""
from pydantic_settings import BaseSettings
from typing import List


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # API Configuration
    API_TITLE: str = "Studio CMS API"
    API_VERSION: str = "1.0.0"
    API_DESCRIPTION: str = "Backend API for the production company website and its admin dashboard"

    # CORS Configuration
    # Public site and admin dashboard origins, plus common local development ports
    CORS_ORIGINS: List[str] = [
        "http://localhost:3000",
        "http://localhost:5173",
        "http://127.0.0.1:3000",
        "http://127.0.0.1:5173",
    ]

    # Database Configuration
    # Empty value falls back to an in-memory SQLite database
    DATABASE_URL: str = ""

    # Cloudinary Configuration (object storage for all content images)
    CLOUDINARY_CLOUD_NAME: str = ""
    CLOUDINARY_API_KEY: str = ""
    CLOUDINARY_API_SECRET: str = ""
    STORAGE_FOLDER: str = "studio"

    # JWT Configuration
    # SECRET_KEY should be a long random string (e.g., generated with: openssl rand -hex 32)
    JWT_SECRET_KEY: str = "your-secret-key-change-this-in-production-use-openssl-rand-hex-32"
    # Previous secret, still accepted while tokens signed with it are rotated out
    JWT_SECRET_PREVIOUS: str = ""
    JWT_EXPIRE_MINUTES: int = 60 * 24

    # Rate limiting
    RATE_LIMIT_ENABLED: bool = True
    LOGIN_RATE_LIMIT: str = "5/minute"

    # Uploads
    MAX_UPLOAD_BYTES: int = 30 * 1024 * 1024
    MOBILE_IMAGE_WIDTH: int = 768

    # Content rules
    GALLERY_MOBILE_VISIBLE_CAP: int = 10

    # Caching
    REGION_CACHE_TTL_SECONDS: int = 300
    PUBLIC_CACHE_TTL_SECONDS: int = 60

    # Region used when detection fails and no default region exists
    DEFAULT_REGION_FALLBACK: str = "IN"

    class Config:
        env_file = ".env"
        case_sensitive = True
        extra = "ignore"  # Ignore extra fields in .env that aren't defined in Settings


# Global settings instance
settings = Settings()
