from functools import lru_cache

from dotenv import load_dotenv
from pydantic_settings import BaseSettings, SettingsConfigDict

load_dotenv()


class Settings(BaseSettings):
    app_name: str = "newsflow"
    environment: str = "development"
    log_level: str = "INFO"

    database_url: str = "sqlite:///./news.db"

    # Admin token for mutating endpoints (fetch, process, config); empty disables the check
    admin_token: str = ""

    # Scheduler (crontab syntax)
    scheduler_enabled: bool = True
    fetch_cron: str = "*/30 * * * *"
    process_cron: str = "*/10 * * * *"

    # Processing pipeline
    scheduled_batch_size: int = 5
    manual_batch_size: int = 10
    process_concurrency: int = 3
    progress_interval: int = 10
    # Fallback marker when the filter model does not answer with JSON
    filter_reject_marker: str = "不值得"

    # Transport timeouts in seconds
    llm_timeout: float = 120.0
    feed_timeout: float = 10.0
    # How long shutdown waits for a cancelled job's in-flight articles
    shutdown_timeout: float = 30.0

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", case_sensitive=False)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
