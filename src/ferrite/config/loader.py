"""
Config file discovery and loading for Ferrite.

The config file is YAML. It is looked up in order:

1. ``$XDG_CONFIG_HOME/ferrite/ferriteconf.yaml`` (``~/.config`` when unset)
2. ``$HOME/.ferriteconf.yaml`` (legacy location)

The first file that exists is used. String values may reference environment
variables with ``$VAR`` or ``${VAR}``.
"""

import os
import re
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional
import logging

import yaml

from ..core.client.errors import ConfigurationError

logger = logging.getLogger(__name__)

CONFIG_DIR_NAME = "ferrite"
CONFIG_FILE_NAME = "ferriteconf.yaml"
LEGACY_CONFIG_FILE_NAME = ".ferriteconf.yaml"

CONFIG_TEMPLATE = """\
# Ferrite configuration
# Values here are overridden by environment variables and command-line flags.

# openai_api_key: sk-...
# openai_base_url: https://api.openai.com/v1
default_model: gpt-4o
"""


class SettingScope(Enum):
    """Where a setting value came from, lowest precedence first."""
    DEFAULT = "default"
    CONFIG_FILE = "config_file"
    ENV_FILE = "env_file"
    ENVIRONMENT = "environment"
    COMMAND_LINE = "command_line"


@dataclass
class SettingsFile:
    """A config file with its path and parsed content."""
    path: Path
    settings: Dict[str, Any] = field(default_factory=dict)
    exists: bool = False
    errors: List[str] = field(default_factory=list)


def user_config_dir() -> Path:
    """``$XDG_CONFIG_HOME/ferrite``, falling back to ``~/.config/ferrite``."""
    xdg_config_home = os.environ.get("XDG_CONFIG_HOME")
    if xdg_config_home:
        return Path(xdg_config_home) / CONFIG_DIR_NAME
    return home_dir() / ".config" / CONFIG_DIR_NAME


def home_dir() -> Path:
    home = os.environ.get("HOME")
    if home:
        return Path(home)
    try:
        return Path.home()
    except RuntimeError as e:
        raise ConfigurationError("Where is the HOME?", original_error=e)


def config_search_path() -> List[Path]:
    """Candidate config files in lookup order."""
    return [
        user_config_dir() / CONFIG_FILE_NAME,
        home_dir() / LEGACY_CONFIG_FILE_NAME,
    ]


def find_config_file() -> Optional[Path]:
    """The first existing config file, or None."""
    for candidate in config_search_path():
        if candidate.is_file():
            return candidate
    return None


class ConfigFileLoader:
    """Loads the YAML config file and keeps track of where it came from."""

    def __init__(self, path: Optional[Path] = None):
        """
        Args:
            path: Explicit config file; when omitted the search path is used
        """
        self._explicit_path = Path(path) if path is not None else None

    @property
    def path(self) -> Path:
        if self._explicit_path is not None:
            return self._explicit_path
        return find_config_file() or config_search_path()[0]

    def load(self) -> SettingsFile:
        """
        Read and parse the config file.

        Returns:
            The loaded file; ``exists`` is False when there is no config file

        Raises:
            ConfigurationError: the file exists but can't be read or parsed
        """
        path = self.path
        settings_file = SettingsFile(path=path, exists=path.is_file())

        if not settings_file.exists:
            logger.debug(f"No config file at {path}")
            return settings_file

        try:
            content = path.read_text(encoding="utf-8")
        except OSError as e:
            settings_file.errors.append(f"Can't read config file {path}: {e}")
            raise ConfigurationError(f"Can't read config file {path}", original_error=e)

        try:
            parsed = yaml.safe_load(content)
        except yaml.YAMLError as e:
            settings_file.errors.append(f"Invalid YAML in {path}: {e}")
            raise ConfigurationError(f"Can't parse config file {path}", original_error=e)

        if parsed is None:
            parsed = {}
        if not isinstance(parsed, dict):
            settings_file.errors.append(f"Config file {path} is not a mapping")
            raise ConfigurationError(f"Can't parse config file {path}: expected a mapping")

        settings_file.settings = self._resolve_env_vars(parsed)
        logger.debug(f"Loaded {len(settings_file.settings)} settings from {path}")
        return settings_file

    def write_template(self, path: Optional[Path] = None, force: bool = False) -> Path:
        """Write a commented starter config file; existing files are kept unless ``force``."""
        target = Path(path) if path is not None else user_config_dir() / CONFIG_FILE_NAME
        if target.exists() and not force:
            raise ConfigurationError(f"Config file already exists: {target}")
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(CONFIG_TEMPLATE, encoding="utf-8")
        except OSError as e:
            raise ConfigurationError(f"Failed to write config file {target}", original_error=e)
        logger.info(f"Wrote config template to {target}")
        return target

    def _resolve_env_vars(self, obj: Any) -> Any:
        """Resolve ``$VAR`` and ``${VAR}`` references in string values."""
        if isinstance(obj, str):
            return self._resolve_env_vars_in_string(obj)
        elif isinstance(obj, dict):
            return {key: self._resolve_env_vars(value) for key, value in obj.items()}
        elif isinstance(obj, list):
            return [self._resolve_env_vars(item) for item in obj]
        else:
            return obj

    def _resolve_env_vars_in_string(self, value: str) -> str:
        env_var_pattern = re.compile(r'\$(?:(\w+)|\{([^}]+)\})')

        def replace_env_var(match):
            var_name = match.group(1) or match.group(2)
            env_value = os.environ.get(var_name)
            if env_value is not None:
                return env_value
            logger.warning(f"Environment variable not found: {var_name}")
            return match.group(0)

        return env_var_pattern.sub(replace_env_var, value)
