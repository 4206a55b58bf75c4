from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", case_sensitive=False)

    app_name: str = "Huddle API"
    app_env: str = "dev"
    api_prefix: str = "/api/v1"

    database_url: str
    sql_echo: bool = False

    principal_header: str = "x-ms-client-principal"
    authenticated_role: str = "authenticated"

    max_clock_skew_seconds: int = 300
    message_page_size: int = 100
    invite_code_length: int = 10

    log_level: str = "INFO"
    cors_origins: list[str] = Field(default_factory=lambda: ["http://localhost:3000", "http://localhost:5173"])


@lru_cache
def get_settings() -> Settings:
    return Settings()
