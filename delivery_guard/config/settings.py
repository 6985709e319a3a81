# delivery_guard/config/settings.py

from functools import lru_cache
from typing import Literal, Optional

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class AppSettings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # --- Application ---
    app_name: str = "delivery-guard"
    environment: Literal["dev", "test", "prod"] = "dev"
    debug: bool = False
    version: str = "0.1.0"

    # --- Replay protection ---
    replay_window_seconds: int = Field(300, gt=0)
    strict_replay_window_seconds: int = Field(120, gt=0)

    # --- Idempotency ---
    idempotency_ttl_seconds: int = Field(86400, gt=0)

    # --- Risk scoring ---
    risk_decay_interval_seconds: int = Field(60, gt=0)
    risk_record_max_idle_seconds: int = Field(86400, gt=0)
    risk_sweep_interval_seconds: int = Field(3600, gt=0)
    risk_medium_delay_seconds: float = Field(0.5, ge=0)
    risk_high_delay_seconds: float = Field(2.0, ge=0)

    # --- Activity signals ---
    rapid_request_threshold: int = Field(100, gt=0)
    rapid_request_window_seconds: int = Field(60, gt=0)
    repeated_path_threshold: int = Field(20, gt=0)
    repeated_path_window_seconds: int = Field(600, gt=0)
    location_address_threshold: int = Field(5, gt=0)
    location_window_seconds: int = Field(86400, gt=0)

    # --- Payments ---
    payment_rate_limit: int = Field(2, gt=0)
    payment_rate_window_seconds: int = Field(60, gt=0)
    amount_tolerance_minor_units: int = Field(1, ge=0)

    # --- Backends ---
    resource_store_backend: Literal["memory", "database"] = "memory"
    idempotency_backend: Literal["memory", "database"] = "memory"
    replay_store_backend: Literal["memory", "redis"] = "memory"

    database_url: Optional[str] = None
    redis_url: Optional[str] = None
    rabbitmq_url: Optional[str] = None

    # --- Observability ---
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"

    @model_validator(mode="after")
    def backends_have_urls(self) -> "AppSettings":
        uses_db = "database" in (self.resource_store_backend, self.idempotency_backend)
        if uses_db and not self.database_url:
            raise ValueError("database_url is required for the database backend")
        if self.replay_store_backend == "redis" and not self.redis_url:
            raise ValueError("redis_url is required for the redis replay store")
        return self


@lru_cache
def get_settings() -> AppSettings:
    return AppSettings()
