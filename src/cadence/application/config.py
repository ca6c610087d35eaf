from pathlib import Path
from typing import Any

from pydantic import Field, field_validator
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)

from cadence.domain.models import StudySettings
from cadence.domain.ports import SettingsProvider


def config_dir() -> Path:
    return Path.home() / ".config/cadence"


class AppConfig(BaseSettings):
    """
    Configuration model for cadence.
    Supports loading from:
    1. Environment variables (CADENCE_*, nested with __, e.g. CADENCE_STUDY__DAILY_NEW_CARDS)
    2. Config file (~/.config/cadence/config.toml or ~/.cadence.toml)
    3. Manual overrides (CLI)
    """

    model_config = SettingsConfigDict(
        env_prefix="CADENCE_",
        env_nested_delimiter="__",
        extra="ignore",
    )

    # Paths
    db_path: Path = Field(default_factory=lambda: config_dir() / "cadence.db")
    log_dir: Path = Field(default_factory=lambda: config_dir() / "logs")
    presets_path: Path = Field(default_factory=lambda: config_dir() / "presets.yaml")

    # Debug: simulate studying N days in the future
    day_offset: int = 0

    # Remote progress sync
    remote_url: str | None = None
    remote_token: str | None = None
    user_id: str | None = None
    auto_sync_after_review: bool = False

    # Server
    server_host: str = "127.0.0.1"
    server_port: int = 8777
    progress_db_path: Path = Field(default_factory=lambda: config_dir() / "progress.db")

    # Study
    preset: str | None = None
    study: StudySettings = Field(default_factory=StudySettings)

    verbose: int = 1

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

        toml_files = [
            config_dir() / "config.toml",
            Path.home() / ".cadence.toml",
        ]

        # Find the first existing file
        toml_file = None
        for f in toml_files:
            if f.exists():
                toml_file = f
                break

        # Earlier sources win: CLI overrides, then environment, then the file
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

    @field_validator("db_path", "log_dir", "presets_path", "progress_db_path", mode="before")
    @classmethod
    def expand_path(cls, v: Any) -> Path:
        return Path(v).expanduser()

    def study_settings(self) -> StudySettings:
        """Study settings from the named preset if one is set, else from config."""
        if self.preset:
            from cadence.application.presets import get_preset

            return get_preset(self.presets_path, self.preset)
        return self.study


def resolve_config(cli_overrides: dict[str, Any] | None = None) -> AppConfig:
    """
    Multi-layered configuration resolution.
    1. Defaults in AppConfig
    2. ~/.config/cadence/config.toml (if exists)
    3. Environment variables (CADENCE_*)
    4. cli_overrides (passed from Typer), None values ignored
    """
    overrides = {k: v for k, v in (cli_overrides or {}).items() if v is not None}
    return AppConfig(**overrides)


class ConfigSettingsProvider(SettingsProvider):
    """Re-resolves configuration on every call so each computation sees fresh settings."""

    def __init__(self, cli_overrides: dict[str, Any] | None = None):
        self._overrides = cli_overrides

    def study_settings(self) -> StudySettings:
        return resolve_config(self._overrides).study_settings()


class StaticSettingsProvider(SettingsProvider):
    def __init__(self, settings: StudySettings | None = None):
        self._settings = settings or StudySettings()

    def study_settings(self) -> StudySettings:
        return self._settings
