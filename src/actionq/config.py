from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class EngineSettings(BaseSettings):
    """Environment-driven engine settings (ACTIONQ_* variables or .env)."""

    ENGINE_ID: str = "default"
    QUEUE_PATH: str = ".actionq/queue.json"
    DEAD_LETTER_PATH: str = ".actionq/dead_letters.json"
    AWAIT_WRITES: bool = False
    METRICS_PORT: int | None = None

    model_config = SettingsConfigDict(
        env_prefix="ACTIONQ_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )


@lru_cache()
def get_settings() -> EngineSettings:
    return EngineSettings()
