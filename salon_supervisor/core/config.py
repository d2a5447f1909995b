from functools import lru_cache
from typing import List, Optional

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""

    # LiveKit Configuration
    livekit_url: str = "wss://your-livekit-server"
    livekit_api_key: Optional[str] = None
    livekit_api_secret: Optional[str] = None

    # Database Configuration
    database_path: str = "salon_data.db"

    # Help Request Configuration
    help_request_timeout_ms: int = Field(default=600_000, gt=0)
    sweeper_interval_ms: int = Field(default=30_000, gt=0)
    sweeper_enabled: bool = True

    # Notification Configuration
    notification_send_timeout_ms: int = Field(default=5_000, gt=0)

    # Application Configuration
    app_name: str = "Salon AI Supervisor"
    debug: bool = False
    log_level: str = "INFO"
    cors_origins: List[str] = ["*"]
    host: str = "0.0.0.0"
    port: int = 4000

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False

    @property
    def livekit_configured(self) -> bool:
        return bool(self.livekit_url and self.livekit_api_key and self.livekit_api_secret)


@lru_cache
def get_settings() -> Settings:
    """Settings read once per process"""
    return Settings()
