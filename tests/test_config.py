"""Tests for configuration handling."""

from pathlib import Path

import pytest

from assetvcs.config import API_KEY_VAR, API_URL_VAR, PROJECT_ROOT_VAR, Config
from assetvcs.utils import DEFAULT_API_URL


@pytest.fixture
def clean_env(monkeypatch):
    """Remove assetvcs variables from the environment."""
    for name in (API_KEY_VAR, API_URL_VAR, PROJECT_ROOT_VAR):
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


class TestConfig:
    """Tests for Config."""

    def test_defaults(self, tmp_path, clean_env):
        """Without env or file only defaults are available."""
        config = Config(tmp_path)

        assert config.api_key is None
        assert config.api_url == DEFAULT_API_URL
        assert config.project_root == Path.cwd()
        assert not config.is_configured()

    def test_save_api_key(self, tmp_path, clean_env):
        """A saved API key is read back from the config file."""
        config = Config(tmp_path / "assetvcs")

        config.save_api_key("secret")

        assert config.get_config_path().exists()
        assert Config(tmp_path / "assetvcs").api_key == "secret"
        assert config.is_configured()

    def test_environment_wins(self, tmp_path, clean_env):
        """Environment variables override the config file."""
        config = Config(tmp_path)
        config.save_api_key("from-file")
        config.save_api_url("https://file.example/")
        clean_env.setenv(API_KEY_VAR, "from-env")

        assert config.api_key == "from-env"
        assert config.api_url == "https://file.example"

    def test_project_root_from_env(self, tmp_path, clean_env):
        """The project root can be set through the environment."""
        clean_env.setenv(PROJECT_ROOT_VAR, str(tmp_path))

        assert Config(tmp_path / "cfg").project_root == tmp_path
