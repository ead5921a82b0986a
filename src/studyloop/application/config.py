from pathlib import Path
from typing import Any

from pydantic import Field
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)

from studyloop.domain.constants import (
    DEFAULT_ASK_MAX_TOTAL_CHARS,
    DEFAULT_LOOKBACK_DAYS,
    DEFAULT_MAX_HISTORY_TURNS,
    DEFAULT_MAX_QUEUE_SIZE,
    DEFAULT_READING_MAX_CHARS,
    MAX_SIMILARITY,
    MIN_COVERAGE,
)


def config_files() -> list[Path]:
    return [
        Path.home() / ".config/studyloop/config.toml",
        Path.home() / ".studyloop.toml",
    ]


class AppConfig(BaseSettings):
    """
    Configuration model for studyloop.
    Supports loading from:
    1. Environment variables (STUDYLOOP_*)
    2. Config file (~/.config/studyloop/config.toml)
    3. Manual overrides (CLI)
    """

    model_config = SettingsConfigDict(
        env_prefix="STUDYLOOP_",
        extra="ignore",
    )

    # Review queue
    max_queue: int = Field(default=DEFAULT_MAX_QUEUE_SIZE, ge=0)

    # Context budgets
    max_history_turns: int = Field(default=DEFAULT_MAX_HISTORY_TURNS, ge=0)
    ask_max_total_chars: int = Field(default=DEFAULT_ASK_MAX_TOTAL_CHARS, ge=1)
    reading_max_chars: int = Field(default=DEFAULT_READING_MAX_CHARS, ge=0)

    # Learning profile
    lookback_days: int = Field(default=DEFAULT_LOOKBACK_DAYS, ge=1, le=60)
    min_coverage: float = Field(default=MIN_COVERAGE, ge=0.0, le=1.0)
    max_similarity: float = Field(default=MAX_SIMILARITY, ge=0.0, le=1.0)

    verbose: int = 0

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        from pydantic_settings import TomlConfigSettingsSource

        # First existing file wins
        toml_file = next((f for f in config_files() if f.exists()), None)

        # Earlier sources take priority: CLI overrides, then env, then file
        if toml_file:
            return (
                init_settings,
                env_settings,
                TomlConfigSettingsSource(settings_cls, toml_file=toml_file),
            )
        return (
            init_settings,
            env_settings,
        )


def resolve_config(cli_overrides: dict[str, Any] | None = None) -> AppConfig:
    """
    Multi-layered configuration resolution.
    1. Defaults in AppConfig
    2. ~/.config/studyloop/config.toml (if exists)
    3. Environment variables (STUDYLOOP_*)
    4. cli_overrides (passed from Typer)
    """
    overrides = {k: v for k, v in (cli_overrides or {}).items() if v is not None}
    return AppConfig(**overrides)
