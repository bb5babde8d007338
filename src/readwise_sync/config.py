from typing import Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    readwise_api_key: str = ""
    readwise_base_url: str = "https://readwise.io"
    readwise_timeout_seconds: float = 60.0
    sync_interval_minutes: int = 30
    database_url: str = "sqlite:///./readwise.db"
    telegram_bot_token: str = ""
    telegram_allowed_user_id: Optional[int] = None
    api_run_scheduler: bool = False  # the bot process owns the timer by default

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


_settings: Optional[Settings] = None


def get_settings() -> Settings:
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings
