# Alignment Memory - Configuration
# SPDX-License-Identifier: AGPL-3.0

from __future__ import annotations
"""
Settings for the behavioral state store, read from ALIGNMENT_MEMORY_* env vars.
"""

from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="ALIGNMENT_MEMORY_",
        env_file=".env",
        extra="ignore",
    )

    data_dir: Path = Path("~/.alignment_memory")
    event_log_file: str = "memory_event_log.jsonl"

    # Constraint pruning
    strength_threshold: float = 0.15

    # Mood tracking
    distress_threshold: float = 6.0
    decay_half_life_seconds: float = 300.0

    log_level: str = "INFO"

    @property
    def event_log_path(self) -> Path:
        return self.data_dir.expanduser() / self.event_log_file

    @property
    def decay_half_life_ms(self) -> float:
        return self.decay_half_life_seconds * 1000


def get_settings(**overrides) -> Settings:
    """Build settings from the environment, with explicit overrides on top."""
    return Settings(**overrides)
