import pytest
from pydantic import ValidationError

from yeep_client.config import ClientSettings, get_settings
from yeep_client.config import settings as settings_module


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch, tmp_path):
    for name in ("YEEP_BASE_URL", "YEEP_CONFIG_FILE", "YEEP_AUTH_TYPE", "YEEP_LOG_LEVEL"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("HOME", str(tmp_path))
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


def test_settings_from_environment(monkeypatch):
    monkeypatch.setenv("YEEP_BASE_URL", "https://demo.yeep.com")
    monkeypatch.setenv("YEEP_AUTH_TYPE", "COOKIE")
    monkeypatch.setenv("YEEP_LOG_LEVEL", "debug")

    settings = get_settings()

    assert str(settings.base_url) == "https://demo.yeep.com/"
    assert settings.resolved_auth_type == "cookie"
    assert settings.log_level == "DEBUG"
    assert get_settings() is settings


def test_defaults():
    settings = ClientSettings(base_url="http://demo.yeep.com")

    assert settings.schema_path == "/api/docs"
    assert settings.operation_method == "post"
    assert settings.refresh_margin_seconds == 10.0
    assert settings.refresh_retry_floor_seconds == 0.3
    assert settings.config_path is None


def test_schema_path_gets_leading_slash():
    settings = ClientSettings(base_url="http://demo.yeep.com", schema_path="api/schema", operation_method="POST")

    assert settings.schema_path == "/api/schema"
    assert settings.operation_method == "post"


def test_yaml_file_seeds_settings(monkeypatch, tmp_path):
    config = tmp_path / "client.yaml"
    config.write_text("base_url: https://yaml.yeep.com\nrefresh_margin_seconds: 30\n", encoding="utf-8")
    monkeypatch.setenv("YEEP_CONFIG_FILE", str(config))

    settings = ClientSettings()

    assert str(settings.base_url) == "https://yaml.yeep.com/"
    assert settings.refresh_margin_seconds == 30
    assert settings.config_path == config


def test_default_config_location_is_used(tmp_path):
    (tmp_path / "config").mkdir()
    (tmp_path / "config" / "yeep.yml").write_text("base_url: https://local.yeep.com\n", encoding="utf-8")

    settings = ClientSettings()

    assert str(settings.base_url) == "https://local.yeep.com/"


def test_non_mapping_config_is_rejected(monkeypatch, tmp_path):
    config = tmp_path / "client.yaml"
    config.write_text("- just\n- a list\n", encoding="utf-8")
    monkeypatch.setenv("YEEP_CONFIG_FILE", str(config))

    with pytest.raises(ValueError):
        ClientSettings()


def test_browser_host_defaults_to_cookie_sessions(monkeypatch):
    monkeypatch.setattr(settings_module, "is_browser", lambda: True)
    settings = ClientSettings(base_url="http://demo.yeep.com")

    assert settings.resolved_auth_type == "cookie"
    assert settings.resolved_visibility_tracking is True


def test_explicit_auth_type_wins_over_host(monkeypatch):
    monkeypatch.setattr(settings_module, "is_browser", lambda: True)
    settings = ClientSettings(base_url="http://demo.yeep.com", auth_type="bearer", visibility_tracking=False)

    assert settings.resolved_auth_type == "bearer"
    assert settings.resolved_visibility_tracking is False


@pytest.mark.parametrize(
    "overrides",
    [
        {"auth_type": "oauth"},
        {"refresh_retry_jitter": 1.5},
        {"request_timeout_seconds": 0},
        {"base_url": "not a url"},
    ],
)
def test_invalid_values_are_rejected(overrides):
    values = {"base_url": "http://demo.yeep.com"}
    values.update(overrides)

    with pytest.raises(ValidationError):
        ClientSettings(**values)


def test_json_config_file_is_supported(monkeypatch, tmp_path):
    config = tmp_path / "client.json"
    config.write_text('{"base_url": "https://json.yeep.com", "auth_type": "Cookie"}', encoding="utf-8")
    monkeypatch.setenv("YEEP_CONFIG_FILE", str(config))

    settings = ClientSettings()

    assert str(settings.base_url) == "https://json.yeep.com/"
    assert settings.resolved_auth_type == "cookie"


def test_malformed_config_file_is_rejected(monkeypatch, tmp_path):
    config = tmp_path / "client.yaml"
    config.write_text("base_url: [unterminated\n", encoding="utf-8")
    monkeypatch.setenv("YEEP_CONFIG_FILE", str(config))

    with pytest.raises(ValueError, match="not valid YAML"):
        ClientSettings()


def test_init_kwargs_override_config_file(monkeypatch, tmp_path):
    config = tmp_path / "client.yml"
    config.write_text("base_url: https://yaml.yeep.com\n", encoding="utf-8")
    monkeypatch.setenv("YEEP_CONFIG_FILE", str(config))

    settings = ClientSettings(base_url="https://kwargs.yeep.com")

    assert str(settings.base_url) == "https://kwargs.yeep.com/"
