from pydantic_settings import BaseSettings
from functools import lru_cache
from typing import Optional


class Settings(BaseSettings):
    """Application settings."""

    # Application
    APP_NAME: str = "netsweep"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # Host probing
    PING_TIMEOUT_MS: int = 300
    PORT_TIMEOUT_MS: int = 300
    MAX_CONCURRENT_SCANS: int = 20
    ARP_RETRY_COUNT: int = 3
    ARP_RETRY_DELAY_MS: int = 100
    SCAN_PORTS: list[int] = [21, 22, 23, 80, 443]

    # Lookup tables (bundled copies are used when unset)
    OUI_DATABASE_PATH: Optional[str] = None
    VENDOR_MAPPINGS_PATH: Optional[str] = None

    # CORS
    CORS_ORIGINS: list[str] = ["*"]

    class Config:
        env_file = ".env"
        case_sensitive = True


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()
