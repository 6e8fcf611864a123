"""Application configuration."""

from functools import lru_cache
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Candle history API
    candle_base_url: str = "https://chart.brokex.trade"
    candle_timeout: float = 30.0

    # Live price feed
    price_feed_url: str = "wss://wss.brokex.trade:8443"
    reconnect_delay: float = 3.0  # Fixed delay, retried forever

    # Persistence (analyses.jsonl / outcomes.jsonl)
    data_dir: Path = Path("data")

    # Scheduling
    check_delay_seconds: float = 3600.0  # Analysis -> outcome check
    run_interval_seconds: float = 3600.0
    first_run_max_delay: float = 15.0
    recovery_grace_seconds: float = 15.0  # Overdue checks after restart

    # Assets, timeframes and thresholds
    engine_config_path: Path = Path("engine.yaml")

    # Server
    host: str = "0.0.0.0"
    port: int = 8000
    debug: bool = False


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
