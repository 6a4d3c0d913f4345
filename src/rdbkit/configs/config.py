"""Configuration management using pydantic-settings.

**Not a singleton**: each call to ``get_app_config()`` re-reads config
from disk so that edits to the override file are picked up without a
restart.

Priority order (highest first):

1. Override YAML (path from ``RDBKIT_CONFIG_FILE`` env var)
2. Environment variables (``RDBKIT_`` prefix, ``__`` nesting)
3. ``.env`` dotenv file
4. Static YAML (``configs/config.yaml``)
5. Init defaults / field defaults
6. File secrets
"""

import os
from pathlib import Path
from typing import Optional

from pydantic import Field
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
    YamlConfigSettingsSource,
)

from .system import BucketDefaults, LoggingConfig, MutexConfig, StoreConfig

# ---------------------------------------------------------------------------
# Path constants
# ---------------------------------------------------------------------------

CONFIG_PY_PATH = Path(__file__).resolve()
PROJECT_ROOT = CONFIG_PY_PATH.parent.parent.parent.parent
CONFIG_DIR = PROJECT_ROOT / "configs"

STATIC_CONFIG_FILE = CONFIG_DIR / "config.yaml"

DOTENV_FILE_PATH = PROJECT_ROOT / ".env"
ENV_DELIMITER = "__"
ENV_PREFIX = "RDBKIT_"
OVERRIDE_FILE_ENV = "RDBKIT_CONFIG_FILE"

DEFAULT_ENCODING = "utf-8"


def _override_config_file() -> Optional[Path]:
    value = os.environ.get(OVERRIDE_FILE_ENV)
    return Path(value) if value else None


class AppConfig(BaseSettings):
    """Application configuration."""

    model_config = SettingsConfigDict(
        env_file=DOTENV_FILE_PATH,
        env_file_encoding=DEFAULT_ENCODING,
        env_nested_delimiter=ENV_DELIMITER,
        env_prefix=ENV_PREFIX,
        case_sensitive=False,
        extra="ignore",
        yaml_file=STATIC_CONFIG_FILE,
        yaml_file_encoding=DEFAULT_ENCODING,
    )

    store: StoreConfig = Field(
        default_factory=StoreConfig,
        description="Backing key-value store",
    )

    mutex: MutexConfig = Field(
        default_factory=MutexConfig,
        description="Mutex defaults",
    )

    bucket: BucketDefaults = Field(
        default_factory=BucketDefaults,
        description="Leaky bucket defaults",
    )

    logging: LoggingConfig = Field(
        default_factory=LoggingConfig,
        description="Logging output",
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        sources: list[PydanticBaseSettingsSource] = []

        # 1. Override YAML -- highest priority
        override = _override_config_file()
        if override is not None and override.is_file():
            sources.append(YamlConfigSettingsSource(settings_cls, yaml_file=override))

        # 2-3. Env vars and dotenv
        sources.append(env_settings)
        sources.append(dotenv_settings)

        # 4. Static YAML
        sources.append(YamlConfigSettingsSource(settings_cls))

        # 5-6. Init defaults and file secrets
        sources.append(init_settings)
        sources.append(file_secret_settings)

        return tuple(sources)


def get_app_config() -> AppConfig:
    """Get the application configuration.

    Re-reads ``configs/config.yaml`` (and the override file when present)
    on every call.
    """
    return AppConfig()
