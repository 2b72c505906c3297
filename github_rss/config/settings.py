"""Application settings and configuration"""

from pydantic_settings import BaseSettings
from typing import Optional


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""

    # Application
    APP_NAME: str = "GitHub RSS Generator"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # Database
    DATABASE_URL: str = "sqlite:///./github_rss.db"

    # GitHub API
    GITHUB_TOKEN: Optional[str] = None
    GITHUB_TOKEN_REQUIRED: bool = False  # Fail at startup instead of running unauthenticated
    GITHUB_API_URL: str = "https://api.github.com"
    GITHUB_PER_PAGE: int = 50  # Clamped to 1..100
    GITHUB_TIMEOUT_SECONDS: float = 30.0
    GITHUB_MAX_RETRIES: int = 3
    GITHUB_BACKOFF_BASE_SECONDS: float = 1.0
    GITHUB_BACKOFF_MAX_SECONDS: float = 16.0
    GITHUB_RATE_LIMIT_BUFFER_SECONDS: int = 2
    USER_AGENT: str = "GitHub-RSS-Generator/1.0"

    # Publishing
    RSS_OUTPUT_DIR: Optional[str] = "./public"
    PUBLIC_BASE_URL: Optional[str] = "http://localhost:8000"

    # Generation policy
    FEED_STALENESS_MINUTES: int = 30
    FEED_FETCH_TIMEOUT_SECONDS: float = 60.0
    GENERATION_LEASE_MINUTES: int = 15  # A `generating` record older than this may be taken over
    VERIFY_REPOSITORY_EXISTS: bool = True
    INLINE_GENERATION: bool = False  # Generate inside the request instead of the background queue

    class Config:
        env_file = ".env"
        case_sensitive = True
        extra = "ignore"  # Ignore extra fields in .env


settings = Settings()
