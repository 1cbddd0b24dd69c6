from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from dotenv import load_dotenv
from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

load_dotenv()


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    app_name: str = "hhpilot"
    app_env: str = "development"
    app_host: str = "127.0.0.1"
    app_port: int = 8790
    log_level: str = "INFO"
    cors_origins: str = "http://127.0.0.1:8790"

    database_url: str = "sqlite:///./data/hhpilot.db"
    data_dir: Path = Path("./data")

    hh_client_id: str = ""
    hh_client_secret: str = ""
    hh_redirect_uri: str = ""
    hh_api_base_url: str = "https://api.hh.ru"
    hh_oauth_base_url: str = "https://hh.ru"
    hh_user_agent: str = "hhpilot/0.1 (hhpilot@example.com)"
    hh_timeout_sec: int = 30

    openrouter_api_key: str = ""
    openrouter_base_url: str = "https://openrouter.ai/api/v1"
    ai_model: str = "google/gemini-2.0-flash-001"
    ai_timeout_sec: int = 60
    ai_referer: str = "https://example.com"
    ai_title: str = "hhpilot job search"

    token_refresh_margin_sec: int = 300
    max_queries_per_cycle: int = 5
    apply_delay_sec: float = 3.0
    query_delay_sec: float = 2.0
    chat_delay_sec: float = 1.0
    idle_poll_sec: float = 30.0
    loop_pause_slices: int = 30
    loop_slice_sec: float = 10.0

    daily_hook_hour: int = 3
    daily_hook_window_min: int = 10
    daily_hook_url: str = ""
    autostart_agent: bool = False

    @field_validator("app_env")
    @classmethod
    def validate_env(cls, value: str) -> str:
        allowed = {"development", "staging", "production", "test"}
        if value not in allowed:
            raise ValueError(f"app_env must be one of {sorted(allowed)}")
        return value

    @field_validator("daily_hook_hour")
    @classmethod
    def validate_hook_hour(cls, value: int) -> int:
        if value < 0 or value > 23:
            raise ValueError("daily_hook_hour must be between 0 and 23")
        return value

    @property
    def cors_origin_list(self) -> list[str]:
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
