"""Configuration loading.

Settings are loaded in priority order (highest first):
  1. Environment variables  (HIANIME__API__BASE_URL=https://...)
  2. hianime.yaml           (searched in cwd, then platform config dir)
  3. Hardcoded defaults

The config file is optional; every field has a default.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Literal

import platformdirs
from pydantic import BaseModel, Field
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
    YamlConfigSettingsSource,
)

from hianime_catalog import __version__

_DEFAULT_DATA_DIR = platformdirs.user_data_dir("hianime-catalog")
_DEFAULT_DB_PATH = str(Path(_DEFAULT_DATA_DIR) / "cache.db")


def _find_config_file() -> str | None:
    """Return the path of the first hianime.yaml found, or None."""
    candidates = [
        Path("hianime.yaml"),
        Path(platformdirs.user_config_dir("hianime-catalog")) / "hianime.yaml",
    ]
    for path in candidates:
        if path.exists():
            return str(path)
    return None


class ApiSettings(BaseModel):
    base_url: str = "https://api.hianime.to/anime"
    timeout_seconds: float = Field(default=10.0, gt=0)
    max_attempts: int = Field(default=3, ge=1)
    retry_base_delay_seconds: float = Field(default=1.0, ge=0)
    user_agent: str = f"hianime-catalog/{__version__}"


class CacheSettings(BaseModel):
    ttl_seconds: float = Field(default=300.0, gt=0)
    namespace: str = "hianime_"
    backend: Literal["memory", "sqlite"] = "sqlite"
    db_path: str = _DEFAULT_DB_PATH


class LoggingSettings(BaseModel):
    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    format: Literal["json", "text"] = "json"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        # Double-underscore separates nesting: HIANIME__CACHE__TTL_SECONDS=60
        env_prefix="HIANIME__",
        env_nested_delimiter="__",
        yaml_file=_find_config_file(),
        yaml_file_encoding="utf-8",
    )

    api: ApiSettings = ApiSettings()
    cache: CacheSettings = CacheSettings()
    logging: LoggingSettings = LoggingSettings()

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
        **kwargs: Any,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        return (
            init_settings,  # Constructor args (highest priority)
            env_settings,  # Environment variables
            YamlConfigSettingsSource(settings_cls),  # YAML file
        )
