import logging
from functools import lru_cache
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    classifier_api_key: str
    classifier_base_url: str = "http://localhost:8080"
    classifier_model: str | None = None

    # "strict" rejects frames below min_sharpness_threshold and may declare
    # the video unusable; "permissive" always yields candidates.
    selection_policy: Literal["strict", "permissive"] = "permissive"

    alpha: float = 0.2
    top_k: int = 24
    min_temporal_gap: float = 0.3
    min_sharpness_threshold: float = 5.0
    motion_normalization_factor: float = 255.0
    scoring_workers: int = 4

    batch_size: int = 20
    inter_batch_delay_s: float = 1.0
    batch_timeout_s: float = 120.0

    classifier_max_attempts: int = 3
    classifier_retry_base_delay_s: float = 1.0
    classifier_timeout_s: float = 60.0

    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )


@lru_cache
def get_settings() -> Settings:
    return Settings()


def configure_logging(settings: Settings) -> None:
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO)
    )
