"""Shared fixtures: every test runs with its own HOME and no OpenAI variables."""

import logging
from pathlib import Path

import pytest
import pytest_asyncio

from ferrite.core.client.openai_client import ClientConfig, OpenAIClient

ISOLATED_ENV_VARS = (
    "OPENAI_API_KEY",
    "OPENAI_BASE_URL",
    "FERRITE_DEFAULT_MODEL",
    "FERRITE_TIMEOUT",
    "FERRITE_MAX_RETRIES",
    "FERRITE_SESSIONS_DIR",
    "FERRITE_LOG_LEVEL",
)

BASE_URL = "https://api.test/v1"


@pytest.fixture(autouse=True)
def home_dir(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.setenv("XDG_CONFIG_HOME", str(home / ".config"))
    for name in ISOLATED_ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    return home


@pytest.fixture
def config_dir(home_dir: Path) -> Path:
    path = home_dir / ".config" / "ferrite"
    path.mkdir(parents=True)
    return path


@pytest.fixture
def client_config() -> ClientConfig:
    return ClientConfig(api_key="test-key", base_url=BASE_URL, timeout_seconds=5, max_retries=2)


@pytest_asyncio.fixture
async def client(client_config: ClientConfig):
    async with OpenAIClient(client_config) as api_client:
        # no backoff sleeps between retried attempts
        api_client.retry_manager.config.initial_delay_ms = 0
        api_client.retry_manager.config.jitter = False
        yield api_client


@pytest.fixture(autouse=True)
def restore_logging():
    """Commands reconfigure the root logger; put it back after each test."""
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)
