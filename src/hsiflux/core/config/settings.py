"""Application settings loaded from environment variables."""

from __future__ import annotations

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """HSI Flux server and pipeline configuration."""

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}

    # Server
    # Loopback by default: the baseline bank holds per-person physiological history.
    flux_host: str = "127.0.0.1"
    flux_port: int = 8011
    flux_log_level: str = "info"
    # There is no auth layer; binding elsewhere must be opted into explicitly.
    flux_allow_insecure_bind: bool = False

    # Baselines
    wearable_baseline_window: int = 14
    behavior_baseline_window: int = 20

    # Staleness decay
    decay_half_life_hours: float = 12.0

    # Storage (baseline bank)
    db_path: str = "~/.hsiflux/baselines.db"

    # Encryption
    encryption_key: str = ""
    # Comma-separated old keys; blobs sealed with them are re-sealed on startup.
    encryption_retired_keys: str = ""

    def retired_keys(self) -> list[str]:
        return [k.strip() for k in self.encryption_retired_keys.split(",") if k.strip()]


def get_settings() -> Settings:
    """Create and return a Settings instance."""
    return Settings()
