from pathlib import Path
from typing import Any

from pydantic import Field, field_validator
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
    TomlConfigSettingsSource,
)

from flashgen.domain.constants import DRAFT_DEBOUNCE_DELAY, REQUEST_TIMEOUT, TICK_INTERVAL


class AppConfig(BaseSettings):
    """
    Configuration model for flashgen.
    Supports loading from:
    1. Config file (~/.config/flashgen/config.toml or ~/.flashgen.toml)
    2. Environment variables (FLASHGEN_*)
    3. Manual overrides (CLI)
    """

    model_config = SettingsConfigDict(
        env_prefix="FLASHGEN_",
        extra="ignore",
    )

    # Server
    api_base_url: str = "http://localhost:3000"
    api_token: str | None = None
    request_timeout: float = Field(default=REQUEST_TIMEOUT, gt=0)

    # Local state
    draft_file: Path = Field(
        default_factory=lambda: Path.home() / ".config/flashgen/drafts.json"
    )
    log_dir: Path = Field(default_factory=lambda: Path.home() / ".config/flashgen/logs")

    # Timers
    draft_debounce: float = Field(default=DRAFT_DEBOUNCE_DELAY, ge=0)
    tick_interval: float = Field(default=TICK_INTERVAL, gt=0)

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
        # Both locations are looked up under the current home directory.
        toml_files = [
            Path.home() / ".config/flashgen/config.toml",
            Path.home() / ".flashgen.toml",
        ]

        # First existing file wins; earlier sources in the tuple take priority.
        toml_file = next((f for f in toml_files if f.exists()), None)
        if toml_file:
            return (
                init_settings,
                env_settings,
                TomlConfigSettingsSource(settings_cls, toml_file=toml_file),
            )
        return (init_settings, env_settings)

    @field_validator("draft_file", "log_dir", mode="before")
    @classmethod
    def expand_path(cls, v: Any) -> Path:
        return Path(v).expanduser()

    @field_validator("api_base_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")


def resolve_config(cli_overrides: dict[str, Any] | None = None) -> AppConfig:
    """
    Multi-layered configuration resolution.
    1. Defaults in AppConfig
    2. TOML config file (if exists)
    3. Environment variables (FLASHGEN_*)
    4. cli_overrides (passed from Typer); None values are ignored
    """
    overrides = {k: v for k, v in (cli_overrides or {}).items() if v is not None}
    return AppConfig(**overrides)
