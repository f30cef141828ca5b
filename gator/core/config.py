from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field

class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    admin_token: Optional[str] = Field(default=None, alias="ADMIN_TOKEN")

    db_path: str = Field(default="gator.db", alias="DB_PATH")

    # Compact duration ("30s", "5m"); when set the API process runs the aggregator too
    agg_interval: Optional[str] = Field(default=None, alias="AGG_INTERVAL")

    request_timeout_seconds: int = Field(default=20, alias="REQUEST_TIMEOUT_SECONDS")
    user_agent: str = Field(default="gator", alias="USER_AGENT")

    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

settings = Settings()
