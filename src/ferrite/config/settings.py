"""
Configuration settings for Ferrite.

Settings are resolved from several sources, highest precedence first:

1. Command-line flags (passed as keyword overrides)
2. Environment variables (``OPENAI_API_KEY``, ``OPENAI_BASE_URL``, ``FERRITE_*``)
3. ``.env`` in the ferrite config directory
4. The YAML config file (``ferriteconf.yaml``)
5. Default values
"""

from contextvars import ContextVar
import os
from pathlib import Path
from typing import Any, Dict, Optional, Tuple, Type

from dotenv import dotenv_values
from pydantic import Field, PrivateAttr, ValidationError, field_validator
from pydantic.fields import FieldInfo
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)

from ..core.client.errors import ConfigurationError
from ..core.client.openai_client import DEFAULT_BASE_URL, ClientConfig
from ..core.models import DEFAULT_MODEL, ChatModel
from .loader import ConfigFileLoader, SettingScope, SettingsFile, user_config_dir

ENV_PREFIX = "FERRITE_"
ENV_FILE_NAME = ".env"
MISSING_API_KEY_MESSAGE = "You need to set API key to the OPENAI_API_KEY"

_active_config_file: ContextVar[Optional[SettingsFile]] = ContextVar("_active_config_file", default=None)


class ConfigFileSettingsSource(PydanticBaseSettingsSource):
    """Settings source backed by ``ferriteconf.yaml``."""

    def __init__(self, settings_cls: Type[BaseSettings]):
        super().__init__(settings_cls)
        settings_file = _active_config_file.get()
        if settings_file is None:
            settings_file = ConfigFileLoader().load()
        self.settings_file = settings_file

    def get_field_value(self, field: FieldInfo, field_name: str) -> Tuple[Any, str, bool]:
        return self.settings_file.settings.get(field_name), field_name, False

    def __call__(self) -> Dict[str, Any]:
        data = self.settings_file.settings
        return {
            name: data[name]
            for name in self.settings_cls.model_fields
            if name in data and data[name] is not None
        }


class FerriteSettings(BaseSettings):
    """Main configuration settings for Ferrite."""

    model_config = SettingsConfigDict(
        env_prefix=ENV_PREFIX,
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # API Configuration
    openai_api_key: Optional[str] = Field(
        default=None,
        validation_alias="openai_api_key",
        description="OpenAI API key"
    )

    openai_base_url: Optional[str] = Field(
        default=None,
        validation_alias="openai_base_url",
        description="Base URL of the OpenAI-compatible API"
    )

    # Model Configuration
    default_model: ChatModel = Field(
        default=DEFAULT_MODEL,
        description="Model used when -m/--model is not given"
    )

    # Request Configuration
    timeout: float = Field(
        default=120.0,
        description="Request timeout in seconds",
        gt=0
    )

    max_retries: int = Field(
        default=3,
        description="Attempts for non-streaming requests",
        ge=1,
        le=10
    )

    # Storage Configuration
    sessions_dir: Optional[Path] = Field(
        default=None,
        description="Directory holding saved chat sessions"
    )

    # Logging Configuration
    log_level: str = Field(
        default="WARNING",
        description="Logging level"
    )

    _config_file: Optional[SettingsFile] = PrivateAttr(default=None)
    _sources: Dict[str, SettingScope] = PrivateAttr(default_factory=dict)

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: Type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> Tuple[PydanticBaseSettingsSource, ...]:
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            ConfigFileSettingsSource(settings_cls),
        )

    @field_validator("default_model", mode="before")
    @classmethod
    def validate_default_model(cls, v: Any) -> ChatModel:
        """Reject model ids outside the catalogue."""
        return ChatModel.parse(v)

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        v_upper = v.upper()
        if v_upper not in valid_levels:
            raise ValueError(f"Invalid log level '{v}'. Valid levels: {', '.join(sorted(valid_levels))}")
        return v_upper

    @classmethod
    def load(
        cls,
        config_file: Optional[Path] = None,
        env_file: Optional[Path] = None,
        **overrides: Any,
    ) -> "FerriteSettings":
        """
        Resolve settings from every source.

        Args:
            config_file: Explicit YAML config file instead of the search path
            env_file: ``.env`` file; defaults to the one in the config directory
            **overrides: Command-line values; ``None`` means "not given"

        Raises:
            ConfigurationError: unreadable config file or invalid values
        """
        overrides = {key: value for key, value in overrides.items() if value is not None}
        settings_file = ConfigFileLoader(config_file).load()
        env_path = Path(env_file) if env_file is not None else user_config_dir() / ENV_FILE_NAME

        token = _active_config_file.set(settings_file)
        try:
            settings = cls(_env_file=env_path if env_path.is_file() else None, **overrides)
        except ValidationError as e:
            problems = "; ".join(
                f"{'.'.join(str(part) for part in error['loc']) or 'settings'}: {error['msg']}"
                for error in e.errors()
            )
            raise ConfigurationError(f"Invalid configuration: {problems}", original_error=e)
        finally:
            _active_config_file.reset(token)

        settings._config_file = settings_file
        settings._sources = resolve_sources(settings_file, env_path, overrides)
        return settings

    @property
    def config_file(self) -> Optional[SettingsFile]:
        return self._config_file

    @property
    def sources(self) -> Dict[str, SettingScope]:
        """Which source supplied each setting."""
        return dict(self._sources)

    @property
    def base_url(self) -> str:
        return self.openai_base_url or DEFAULT_BASE_URL

    @property
    def resolved_sessions_dir(self) -> Path:
        return self.sessions_dir or user_config_dir() / "sessions"

    @property
    def is_configured(self) -> bool:
        """Check if an API key is available."""
        return bool(self.openai_api_key)

    def require_api_key(self) -> str:
        if not self.openai_api_key:
            raise ConfigurationError(MISSING_API_KEY_MESSAGE, config_field="openai_api_key")
        return self.openai_api_key

    def client_config(self) -> ClientConfig:
        return ClientConfig(
            api_key=self.require_api_key(),
            base_url=self.base_url,
            timeout_seconds=self.timeout,
            max_retries=self.max_retries,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert settings to dictionary, excluding sensitive data."""
        data = self.model_dump(mode="json")
        if data.get("openai_api_key"):
            data["openai_api_key"] = "***masked***"
        return data


def env_var_names(field_name: str) -> Tuple[str, ...]:
    """Environment variable names that feed a setting."""
    field = FerriteSettings.model_fields[field_name]
    if isinstance(field.validation_alias, str):
        return (field.validation_alias.upper(),)
    return (f"{ENV_PREFIX}{field_name}".upper(),)


def resolve_sources(
    settings_file: SettingsFile,
    env_file: Optional[Path],
    overrides: Dict[str, Any],
) -> Dict[str, SettingScope]:
    """Work out which source won for every setting."""
    environ = {key.upper() for key in os.environ}
    dotenv_keys = set()
    if env_file is not None and Path(env_file).is_file():
        dotenv_keys = {key.upper() for key in dotenv_values(env_file)}

    sources = {}
    for name in FerriteSettings.model_fields:
        names = env_var_names(name)
        if name in overrides:
            sources[name] = SettingScope.COMMAND_LINE
        elif any(env_name in environ for env_name in names):
            sources[name] = SettingScope.ENVIRONMENT
        elif any(env_name in dotenv_keys for env_name in names):
            sources[name] = SettingScope.ENV_FILE
        elif settings_file.settings.get(name) is not None:
            sources[name] = SettingScope.CONFIG_FILE
        else:
            sources[name] = SettingScope.DEFAULT
    return sources
