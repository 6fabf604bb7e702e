from pydantic_settings import BaseSettings
from functools import lru_cache
from typing import Dict

class Settings(BaseSettings):
    # Application
    APP_NAME: str = "Kiosk Sync"
    APP_PORT: int = 9210
    DEBUG: bool = False

    # Database (local SQLite mirror)
    DATA_PATH: str = "./data"
    DATABASE_FILE: str = "customers.db"
    DATABASE_URL_OVERRIDE: str = ""

    # Logs
    LOGS_PATH: str = "./logs"
    LOG_MAX_BYTES: int = 50 * 1024 * 1024  # 50MB
    LOG_BACKUP_COUNT: int = 7

    # POSaBIT
    POSABIT_BASE_URL: str = "https://app.posabit.com/api/v3"
    INTEGRATOR_TOKEN: str = ""
    VENUES: Dict[str, str] = {}  # venue_id -> display name
    VENUE_TOKENS: Dict[str, str] = {}  # venue_id -> venue token
    HTTP_TIMEOUT_SECONDS: float = 30.0

    # Sync
    SYNC_INTERVAL_MINUTES: int = 15
    SYNC_PAGE_SIZE: int = 100
    SYNC_PAGE_DELAY_SECONDS: float = 0.1
    FULL_SYNC_LOOKBACK_DAYS: int = 730

    # Outbox retention (0 = keep synced entries forever)
    OUTBOX_RETENTION_DAYS: int = 0

    @property
    def DATABASE_URL(self) -> str:
        if self.DATABASE_URL_OVERRIDE:
            return self.DATABASE_URL_OVERRIDE
        return f"sqlite:///{self.DATA_PATH}/{self.DATABASE_FILE}"

    class Config:
        env_file = ".env"
        extra = "ignore"

@lru_cache()
def get_settings() -> Settings:
    return Settings()

settings = get_settings()
