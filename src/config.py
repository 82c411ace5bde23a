"""Application settings loaded from environment variables."""

import os

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


def _env_file() -> str | None:
    if os.getenv("PYTEST_CURRENT_TEST"):
        return None
    return ".env"


class Settings(BaseSettings):
    """Engine configuration. All values come from environment variables."""

    # Host process
    host_url: str = Field(default="http://127.0.0.1:8765")
    host_timeout_seconds: float = Field(default=15.0)
    instance_id: str = Field(default="")

    # Push receiver
    push_host: str = Field(default="127.0.0.1")
    push_port: int = Field(default=8766)
    push_secret: str = Field(default="")

    # Timeline
    display_timezone: str = Field(default="UTC")
    highlight_decay_ms: int = Field(default=2000)

    # Timers
    countdown_tick_seconds: float = Field(default=1.0)
    check_grace_ms: int = Field(default=1000)
    connection_poll_seconds: float = Field(default=10.0)
    reconcile_poll_seconds: float = Field(default=30.0)

    # Toasts (seconds visible before self-dismissal; 0 = until replaced)
    toast_seconds: float = Field(default=5.0)
    toast_restriction_seconds: float = Field(default=6.0)
    toast_reason_seconds: float = Field(default=8.0)
    toast_sticky_seconds: float = Field(default=0.0)
    toast_reason_delay_seconds: float = Field(default=1.0)

    # Logging
    log_level: str = Field(default="INFO")

    model_config = SettingsConfigDict(env_file=_env_file(), env_file_encoding="utf-8")

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings,
        env_settings,
        dotenv_settings,
        file_secret_settings,
    ):
        if os.getenv("PYTEST_CURRENT_TEST"):
            return (init_settings,)
        return (init_settings, env_settings, dotenv_settings, file_secret_settings)


settings = Settings()
