"""Application configuration via environment variables."""
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """App settings loaded from .env or environment.

    PLEX_ADMIN_TOKEN and TIMEZONE are fallbacks: values saved in the
    ``settings`` table take precedence (see services/settings_service.py).
    """

    DATABASE_URL: str = "sqlite:///./data/guardarr.db"
    PLEX_ADMIN_TOKEN: str = ""
    PLEX_API_URL: str = "https://plex.tv"
    PLEX_REQUEST_TIMEOUT: float = 20.0
    TIMEZONE: str = "America/Los_Angeles"
    ENFORCER_ENABLED: bool = True
    ENFORCER_INTERVAL_SECONDS: int = 60
    ENFORCER_MAX_WORKERS: int = 4
    LOG_LEVEL: str = "INFO"
    CORS_ORIGINS: str = "http://localhost:3000"

    class Config:
        env_file = ".env"


settings = Settings()
