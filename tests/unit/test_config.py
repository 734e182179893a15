"""
Unit tests for settings loading
"""
import pytest

from shopsync.bootstrap import build_context
from shopsync.cli import main
from shopsync.utils.config import DEV_JWT_SECRET, Settings, get_settings
from shopsync.utils.exceptions import ConfigurationError


@pytest.fixture
def clean_env(monkeypatch, tmp_path):
    """No .env file and a fresh settings cache"""
    monkeypatch.chdir(tmp_path)
    for name in ("JWT_SECRET", "DEBUG_MODE"):
        monkeypatch.delenv(name, raising=False)
    get_settings.cache_clear()
    yield monkeypatch
    get_settings.cache_clear()


class TestJwtSecret:

    def test_dev_secret_refused_outside_debug(self):
        settings = Settings(_env_file=None, jwt_secret=DEV_JWT_SECRET, debug_mode=False)

        with pytest.raises(ConfigurationError) as exc_info:
            settings.check_jwt_secret()

        assert exc_info.value.error_kind == "configuration"

    def test_dev_secret_allowed_in_debug(self):
        Settings(_env_file=None, jwt_secret=DEV_JWT_SECRET, debug_mode=True).check_jwt_secret()

    def test_empty_secret_refused(self):
        with pytest.raises(ConfigurationError):
            Settings(_env_file=None, jwt_secret="", debug_mode=True).check_jwt_secret()

    def test_get_settings_fails_fast_on_default(self, clean_env):
        with pytest.raises(ConfigurationError):
            get_settings()

    def test_get_settings_with_real_secret(self, clean_env):
        clean_env.setenv("JWT_SECRET", "a-long-random-production-secret")

        assert get_settings().jwt_secret == "a-long-random-production-secret"

    def test_build_context_refuses_dev_secret(self, settings):
        with pytest.raises(ConfigurationError):
            build_context(settings.model_copy(update={"jwt_secret": DEV_JWT_SECRET}))

    def test_cli_exits_on_dev_secret(self, clean_env, capsys):
        assert main(["sync"]) == 1
        assert "JWT_SECRET" in capsys.readouterr().out
