"""Application configuration via environment variables."""
from typing import Literal

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    app_name: str = "pw-indexed"
    debug: bool = False
    host: str = "127.0.0.1"
    port: int = 8000
    log_level: str = "INFO"

    # Ordinal assignment within a group of same-named nodes:
    # "id" sorts by PipeWire object id, "serial" by object.serial (creation order).
    sort_key: Literal["id", "serial"] = "id"
    # Seconds a fetched graph dump is reused before pw-dump runs again.
    cache_ttl: float = 5.0

    dump_command: list[str] = ["pw-dump"]
    link_command: str = "pw-link"
    command_timeout: float = 10.0

    cors_origins: list[str] = ["http://localhost:5173", "http://localhost:3000"]

    model_config = {"env_prefix": "PWINDEX_"}


settings = Settings()
