"""Unit tests for config module."""

import pytest
from pydantic import ValidationError

from plum_lightpad import const
from plum_lightpad.config import PlumConfig

_ENV_VARS = (
    "PLUM_ACCOUNT_USERNAME",
    "PLUM_ACCOUNT_PASSWORD",
    "PLUM_API_BASE",
    "PLUM_API_TIMEOUT",
    "PLUM_COMMAND_TIMEOUT",
    "PLUM_DISCOVERY_INTERVAL",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for var in _ENV_VARS:
        monkeypatch.delenv(var, raising=False)


class TestPlumConfigDefaults:
    def test_defaults(self):
        config = PlumConfig()

        assert config.username is None
        assert config.password is None
        assert config.api_base == const.PLUM_API_BASE
        assert config.api_timeout == const.PLUM_API_TIMEOUT
        assert config.command_timeout == const.PLUM_COMMAND_TIMEOUT
        assert config.discovery_interval == 0
        assert config.has_credentials is False

    def test_empty_password_is_not_credentials(self):
        assert PlumConfig(username="me@example.com", password="").has_credentials is False

    def test_password_hidden_in_repr(self):
        config = PlumConfig(username="me@example.com", password="hunter2")

        assert "hunter2" not in repr(config)
        assert config.has_credentials is True

    @pytest.mark.parametrize("field", ["api_timeout", "command_timeout"])
    def test_timeouts_must_be_positive(self, field):
        with pytest.raises(ValidationError):
            _ = PlumConfig(**{field: 0})

    def test_discovery_interval_cannot_be_negative(self):
        with pytest.raises(ValidationError):
            _ = PlumConfig(discovery_interval=-1)


class TestPlumConfigFromEnv:
    """Tests for PlumConfig.from_env"""

    def test_reads_credentials_and_overrides(self, monkeypatch):
        monkeypatch.setenv("PLUM_ACCOUNT_USERNAME", "me@example.com")
        monkeypatch.setenv("PLUM_ACCOUNT_PASSWORD", "hunter2")
        monkeypatch.setenv("PLUM_API_TIMEOUT", "12.5")
        monkeypatch.setenv("PLUM_DISCOVERY_INTERVAL", "300")

        config = PlumConfig.from_env()

        assert config.username == "me@example.com"
        assert config.password.get_secret_value() == "hunter2"
        assert config.api_timeout == 12.5
        assert config.discovery_interval == 300
        assert config.command_timeout == const.PLUM_COMMAND_TIMEOUT

    def test_empty_values_fall_back_to_defaults(self, monkeypatch):
        monkeypatch.setenv("PLUM_ACCOUNT_USERNAME", "")
        monkeypatch.setenv("PLUM_COMMAND_TIMEOUT", "")

        config = PlumConfig.from_env()

        assert config.username is None
        assert config.command_timeout == const.PLUM_COMMAND_TIMEOUT

    def test_invalid_number(self, monkeypatch):
        monkeypatch.setenv("PLUM_API_TIMEOUT", "soon")

        with pytest.raises(ValidationError):
            _ = PlumConfig.from_env()


class TestPlumConfigLoad:
    """Tests for PlumConfig.load"""

    def test_file_overrides_env(self, tmp_path, monkeypatch):
        monkeypatch.setenv("PLUM_ACCOUNT_USERNAME", "env@example.com")
        monkeypatch.setenv("PLUM_ACCOUNT_PASSWORD", "from-env")
        path = tmp_path / "plum.yaml"
        _ = path.write_text("username: file@example.com\ncommand_timeout: 2\n", encoding="utf-8")

        config = PlumConfig.load(path)

        assert config.username == "file@example.com"
        assert config.password.get_secret_value() == "from-env"
        assert config.command_timeout == 2

    def test_empty_file(self, tmp_path):
        path = tmp_path / "plum.yaml"
        _ = path.write_text("", encoding="utf-8")

        assert PlumConfig.load(path) == PlumConfig()

    def test_non_mapping_file(self, tmp_path):
        path = tmp_path / "plum.yaml"
        _ = path.write_text("- a\n- b\n", encoding="utf-8")

        with pytest.raises(ValueError, match="must contain a mapping"):
            _ = PlumConfig.load(path)

    def test_invalid_value(self, tmp_path):
        path = tmp_path / "plum.yaml"
        _ = path.write_text("api_timeout: -3\n", encoding="utf-8")

        with pytest.raises(ValidationError):
            _ = PlumConfig.load(path)

    def test_missing_file(self, tmp_path):
        with pytest.raises(OSError):
            _ = PlumConfig.load(tmp_path / "missing.yaml")
