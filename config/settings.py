"""Application settings loaded from the environment and .env."""

from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Bridge configuration (env vars, case-insensitive)."""

    # Local platform (Discord)
    discord_bot_token: str = ""
    discord_guild_id: str = ""

    # Remote account
    remote_username: str = ""
    remote_password: str = ""
    # "module.path:callable" returning a providers.base.RemoteClient
    remote_client_factory: str = ""

    # Storage and logging
    data_dir: str = "./data"
    log_file: str = "server.log"

    # Relay behaviour
    command_prefix: str = "."
    category_name: str = "IG MESSAGES"
    backfill_count: int = Field(5, ge=0)
    backfill_delay: float = Field(1.0, ge=0.0)

    # Login prompts (seconds)
    login_code_timeout: float = Field(300.0, gt=0.0)
    mode_select_timeout: float = Field(60.0, gt=0.0)

    # Outbound remote sends
    remote_rate_limit: int = Field(20, ge=1)
    remote_rate_window: float = Field(60.0, gt=0.0)

    # Media downloads
    http_read_timeout: float = Field(60.0, gt=0.0)
    http_write_timeout: float = Field(10.0, gt=0.0)
    http_connect_timeout: float = Field(5.0, gt=0.0)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @field_validator("command_prefix")
    @classmethod
    def validate_command_prefix(cls, v):
        if not v or " " in v:
            raise ValueError("command_prefix must be a non-empty string without spaces")
        return v

    @field_validator("discord_guild_id", "remote_client_factory", mode="before")
    @classmethod
    def parse_optional_str(cls, v):
        if v is None:
            return ""
        return str(v).strip()

    @field_validator("backfill_count", mode="before")
    @classmethod
    def parse_optional_int(cls, v):
        if v == "" or v is None:
            return 5
        return int(v)


@lru_cache
def get_settings() -> Settings:
    return Settings()
