from typing import List, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="MANIFEST_MONITOR_",
        env_file=".env",
        extra="ignore",
    )

    APP_NAME: str = "Manifest Monitor"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False
    HOST: str = "0.0.0.0"
    PORT: int = 8080
    CORS_ORIGINS: List[str] = ["*"]

    # Static assets served at "/" when the directory exists
    FRONTEND_DIR: Optional[str] = "./frontend"

    # Event logs
    LOGS_DIR: str = "./data/logs"
    LOG_COMPRESS_DAYS: int = 1
    LOG_DELETE_DAYS: int = 7
    LOG_ROTATION_INTERVAL: int = 3600

    # Monitoring loop
    MANIFEST_POLL_INTERVAL: float = 6.0
    FIRE_ON_START: bool = False
    MANIFEST_TIMEOUT: float = 10.0
    DOWNLOAD_TIMEOUT: float = 30.0
    DELAY_THRESHOLD: float = 2.0
    MAX_HISTORY: int = 10
    DASH_SEGMENT_COUNT: int = 10
    MAX_PLAYLIST_DEPTH: int = 5


settings = Settings()
