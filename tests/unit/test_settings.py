"""Tests for configuration settings."""

from pathlib import Path

import pytest
from pydantic import ValidationError

from ferrite.config.loader import SettingScope
from ferrite.config.settings import FerriteSettings, MISSING_API_KEY_MESSAGE
from ferrite.core.client.errors import ConfigurationError
from ferrite.core.client.openai_client import DEFAULT_BASE_URL
from ferrite.core.models import ChatModel


class TestFerriteSettings:
    """Test cases for FerriteSettings."""

    def test_default_values(self) -> None:
        """Test that default values are set correctly."""
        settings = FerriteSettings()

        assert settings.openai_api_key is None
        assert settings.default_model == ChatModel.GPT_4O
        assert settings.base_url == DEFAULT_BASE_URL
        assert settings.timeout == 120.0
        assert settings.max_retries == 3
        assert settings.log_level == "WARNING"

    def test_api_key_from_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test API key loading from environment variable."""
        monkeypatch.setenv("OPENAI_API_KEY", "test-key-123")
        settings = FerriteSettings()
        assert settings.openai_api_key == "test-key-123"
        assert settings.is_configured

    def test_base_url_from_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("OPENAI_BASE_URL", "http://localhost:8080/v1")
        assert FerriteSettings().base_url == "http://localhost:8080/v1"

    def test_prefixed_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("FERRITE_DEFAULT_MODEL", "gpt-4.1")
        monkeypatch.setenv("FERRITE_TIMEOUT", "30")
        settings = FerriteSettings()
        assert settings.default_model == ChatModel.GPT_4_1
        assert settings.timeout == 30.0

    def test_unknown_default_model(self) -> None:
        with pytest.raises(ValidationError) as exc_info:
            FerriteSettings(default_model="gpt-0")
        assert "Unknown Model" in str(exc_info.value)

    def test_invalid_log_level(self) -> None:
        """Test validation of invalid log level."""
        with pytest.raises(ValidationError):
            FerriteSettings(log_level="INVALID")

    def test_valid_log_level(self) -> None:
        """Test validation of valid log levels."""
        for level in ["debug", "INFO", "WARNING", "ERROR", "CRITICAL"]:
            settings = FerriteSettings(log_level=level)
            assert settings.log_level == level.upper()

    def test_max_retries_validation(self) -> None:
        FerriteSettings(max_retries=1)
        with pytest.raises(ValidationError):
            FerriteSettings(max_retries=0)
        with pytest.raises(ValidationError):
            FerriteSettings(timeout=0)

    def test_require_api_key(self) -> None:
        with pytest.raises(ConfigurationError) as exc_info:
            FerriteSettings().require_api_key()
        assert exc_info.value.message == MISSING_API_KEY_MESSAGE

        assert FerriteSettings(openai_api_key="sk-1").require_api_key() == "sk-1"

    def test_client_config(self) -> None:
        settings = FerriteSettings(openai_api_key="sk-1", openai_base_url="http://proxy/v1", timeout=10)
        config = settings.client_config()
        assert config.api_key == "sk-1"
        assert config.base_url == "http://proxy/v1"
        assert config.timeout_seconds == 10

    def test_to_dict_masks_api_key(self) -> None:
        data = FerriteSettings(openai_api_key="sk-secret").to_dict()
        assert data["openai_api_key"] == "***masked***"
        assert data["default_model"] == "gpt-4o"

    def test_sessions_dir_default(self, config_dir: Path) -> None:
        assert FerriteSettings().resolved_sessions_dir == config_dir / "sessions"


class TestSettingsLoad:
    """Precedence: flag > environment > .env > config file > default."""

    def write_config(self, config_dir: Path, content: str) -> Path:
        path = config_dir / "ferriteconf.yaml"
        path.write_text(content, encoding="utf-8")
        return path

    def test_config_file_values(self, config_dir: Path) -> None:
        self.write_config(
            config_dir,
            "openai_api_key: file-key\ndefault_model: o3-mini\nopenai_base_url: http://file/v1\n",
        )
        settings = FerriteSettings.load()

        assert settings.openai_api_key == "file-key"
        assert settings.default_model == ChatModel.O3_MINI
        assert settings.base_url == "http://file/v1"
        assert settings.sources["openai_api_key"] == SettingScope.CONFIG_FILE
        assert settings.sources["timeout"] == SettingScope.DEFAULT
        assert settings.config_file is not None and settings.config_file.exists

    def test_environment_beats_config_file(self, config_dir: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        self.write_config(config_dir, "openai_api_key: file-key\n")
        monkeypatch.setenv("OPENAI_API_KEY", "env-key")

        settings = FerriteSettings.load()
        assert settings.openai_api_key == "env-key"
        assert settings.sources["openai_api_key"] == SettingScope.ENVIRONMENT

    def test_flag_beats_environment(self, config_dir: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        self.write_config(config_dir, "openai_api_key: file-key\n")
        monkeypatch.setenv("OPENAI_API_KEY", "env-key")

        settings = FerriteSettings.load(openai_api_key="flag-key", openai_base_url=None)
        assert settings.openai_api_key == "flag-key"
        assert settings.sources["openai_api_key"] == SettingScope.COMMAND_LINE
        assert settings.sources["openai_base_url"] == SettingScope.DEFAULT

    def test_env_file(self, config_dir: Path) -> None:
        self.write_config(config_dir, "openai_api_key: file-key\n")
        (config_dir / ".env").write_text("OPENAI_API_KEY=dotenv-key\n", encoding="utf-8")

        settings = FerriteSettings.load()
        assert settings.openai_api_key == "dotenv-key"
        assert settings.sources["openai_api_key"] == SettingScope.ENV_FILE

    def test_legacy_config_file(self, home_dir: Path) -> None:
        (home_dir / ".ferriteconf.yaml").write_text("default_model: gpt-4\n", encoding="utf-8")
        assert FerriteSettings.load().default_model == ChatModel.GPT_4

    def test_xdg_config_file_wins_over_legacy(self, home_dir: Path, config_dir: Path) -> None:
        (home_dir / ".ferriteconf.yaml").write_text("default_model: gpt-4\n", encoding="utf-8")
        self.write_config(config_dir, "default_model: gpt-4.1-mini\n")
        assert FerriteSettings.load().default_model == ChatModel.GPT_4_1_MINI

    def test_env_var_reference_in_config(self, config_dir: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("MY_OPENAI_KEY", "referenced-key")
        self.write_config(config_dir, "openai_api_key: ${MY_OPENAI_KEY}\n")
        assert FerriteSettings.load().openai_api_key == "referenced-key"

    def test_unknown_keys_are_ignored(self, config_dir: Path) -> None:
        self.write_config(config_dir, "theme: dracula\ndefault_model: gpt-4o-mini\n")
        assert FerriteSettings.load().default_model == ChatModel.GPT_4O_MINI

    def test_unknown_model_in_config_file(self, config_dir: Path) -> None:
        self.write_config(config_dir, "default_model: gpt-0\n")
        with pytest.raises(ConfigurationError) as exc_info:
            FerriteSettings.load()
        assert "Unknown Model" in exc_info.value.message

    def test_invalid_yaml(self, config_dir: Path) -> None:
        self.write_config(config_dir, "openai_api_key: [unterminated\n")
        with pytest.raises(ConfigurationError, match="Can't parse config file"):
            FerriteSettings.load()

    def test_explicit_config_file(self, tmp_path: Path) -> None:
        path = tmp_path / "custom.yaml"
        path.write_text("default_model: o1\n", encoding="utf-8")
        assert FerriteSettings.load(config_file=path).default_model == ChatModel.O1
