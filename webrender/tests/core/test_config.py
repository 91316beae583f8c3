import os

import pytest
import yaml

from webrender.core.config import (
    DEFAULT_ENV,
    ConfigFileNotFoundError,
    ConfigurationManager,
    InvalidYamlError,
    config_manager,
    get_config,
)


@pytest.fixture
def temp_config_files(tmp_path, monkeypatch):
    """
    Writes throwaway YAML files and points the singleton at them.

    ConfigurationManager is a singleton shared with the rest of the package,
    so its loaded state is restored after each test.
    """
    saved_config = config_manager._config
    saved_env = config_manager._current_env
    monkeypatch.setattr(ConfigurationManager, "CONFIG_DIR", str(tmp_path))

    dev_config_content = {
        "server": {"host": "127.0.0.1", "port": 8080},
        "renderer": {"width": 1280, "timeout": 15},
        "flags": ["a", "b"],
    }
    prod_config_content = {
        "server": {"host": "0.0.0.0", "port": 80},
        "renderer": {"width": 1920, "as_pdf": False},
    }
    (tmp_path / "development.yaml").write_text(yaml.dump(dev_config_content))
    (tmp_path / "production.yaml").write_text(yaml.dump(prod_config_content))
    (tmp_path / "invalid.yaml").write_text("server: {host: 'bad_host', port: 1000")  # Missing closing brace
    (tmp_path / "not_dict.yaml").write_text(yaml.dump(["list", "instead", "of", "dict"]))

    yield tmp_path

    config_manager._config = saved_config
    config_manager._current_env = saved_env


def test_load_development_config_default(temp_config_files, monkeypatch):
    """Loads development settings when APP_ENV is not set."""
    monkeypatch.delenv("APP_ENV", raising=False)

    manager = ConfigurationManager()
    manager.load_config()

    assert manager.current_environment == DEFAULT_ENV == "development"
    assert manager.get("server.host") == "127.0.0.1"
    assert manager.get("renderer.timeout") == 15
    assert manager.get("non_existent_key") is None
    assert manager.get("non_existent_key", "default_val") == "default_val"


def test_load_production_config_env_var(temp_config_files, monkeypatch):
    monkeypatch.setenv("APP_ENV", "production")

    manager = ConfigurationManager()
    manager.load_config()

    assert manager.current_environment == "production"
    assert manager.get("server.port") == 80
    assert manager.get("renderer.as_pdf") is False


def test_explicit_env_wins_over_env_var(temp_config_files, monkeypatch):
    monkeypatch.setenv("APP_ENV", "development")

    manager = ConfigurationManager()
    manager.load_config(env="production")

    assert manager.current_environment == "production"
    assert manager.get("server.host") == "0.0.0.0"


def test_get_nested_and_missing_values(temp_config_files):
    manager = ConfigurationManager()
    manager.load_config("development")

    assert manager.get("server") == {"host": "127.0.0.1", "port": 8080}
    assert manager.get("flags") == ["a", "b"]
    assert manager.get("server.host.extra") is None
    assert manager.get("renderer.proxy", "") == ""
    assert manager.get("completely.made.up.path", "fallback") == "fallback"


def test_reload_config(temp_config_files, monkeypatch):
    monkeypatch.setenv("APP_ENV", "development")
    manager = ConfigurationManager()
    manager.load_config()
    assert manager.get("renderer.width") == 1280

    (temp_config_files / "development.yaml").write_text(yaml.dump({"renderer": {"width": 640}}))

    manager.reload_config()
    assert manager.get("renderer.width") == 640

    manager.reload_config(env="production")
    assert manager.current_environment == "production"
    assert manager.get("renderer.width") == 1920


def test_config_file_not_found_error(temp_config_files, monkeypatch):
    monkeypatch.setenv("APP_ENV", "staging")

    with pytest.raises(ConfigFileNotFoundError) as excinfo:
        ConfigurationManager().load_config()
    assert "Configuration file not found for environment 'staging'" in str(excinfo.value)
    assert "staging.yaml" in str(excinfo.value)


def test_invalid_yaml_error(temp_config_files):
    with pytest.raises(InvalidYamlError) as excinfo:
        ConfigurationManager().load_config("invalid")
    assert "Error parsing YAML" in str(excinfo.value)
    assert "invalid.yaml" in str(excinfo.value)


def test_yaml_not_dict_error(temp_config_files):
    with pytest.raises(InvalidYamlError) as excinfo:
        ConfigurationManager().load_config("not_dict")
    assert "does not contain a valid YAML dictionary" in str(excinfo.value)


def test_singleton_behavior(temp_config_files):
    first = ConfigurationManager()
    first.load_config("development")
    second = ConfigurationManager()

    assert first is second is config_manager
    second.load_config("production")
    assert first.get("server.host") == "0.0.0.0"
    assert get_config("server.port") == 80


def test_shipped_config_files_have_renderer_defaults():
    """Every shipped environment defines the settings the service reads."""
    shipped_dir = os.path.join(os.path.dirname(__file__), "..", "..", "config")
    for env in ("development", "production"):
        with open(os.path.join(shipped_dir, f"{env}.yaml")) as f:
            settings = yaml.safe_load(f)
        renderer = settings["renderer"]
        assert renderer["width"] > 0 and renderer["height"] > 0
        assert renderer["timeout"] > 0
        assert renderer["browser_kind"] == "chrome"
        assert settings["server"]["image_url"] == "/image"
        assert settings["server"]["healthcheck_url"] == "/healthcheck"
        assert settings["metrics"]["prefix"] == "webrender"


def test_section_returns_a_copy(temp_config_files):
    manager = ConfigurationManager()
    manager.load_config("development")

    renderer = manager.section("renderer")
    renderer["width"] = 1

    assert manager.get("renderer.width") == 1280
    assert manager.section("missing") == {}
    assert manager.section("flags") == {}
