import json

import pytest

from graph_explorer import config as config_module
from graph_explorer import paths
from graph_explorer.config import DEFAULT_GRAPH_CONFIG, get_graph_config, load_config, save_config


@pytest.fixture
def app_dir(tmp_path, monkeypatch):
    monkeypatch.setattr(config_module, "get_config_path", lambda: tmp_path / "config.json")
    monkeypatch.setattr(config_module, "get_env_path", lambda: tmp_path / ".env")
    # setenv first so values written by load_dotenv are removed on teardown
    for name in ("GRAPH_EXPLORER_LAYOUT_TIMEOUT", "GRAPH_EXPLORER_HOVER_MODE"):
        monkeypatch.setenv(name, "")
        monkeypatch.delenv(name)
    return tmp_path


def test_defaults_without_config_file(app_dir):
    config = get_graph_config()
    assert config == DEFAULT_GRAPH_CONFIG
    assert config is not DEFAULT_GRAPH_CONFIG
    config["layout"]["timeout"] = 99
    assert DEFAULT_GRAPH_CONFIG["layout"]["timeout"] == 5.0


def test_config_file_is_deep_merged(app_dir):
    save_config({"graph": {"layout": {"column_gap": 300}, "colors": {"highlighted": "#000000"}}})
    config = get_graph_config()
    assert config["layout"]["column_gap"] == 300
    assert config["layout"]["row_gap"] == 160
    assert config["colors"]["highlighted"] == "#000000"
    assert config["colors"]["dimmed"] == "#cccccc"


def test_unreadable_config_file(app_dir):
    (app_dir / "config.json").write_text("{not json", encoding="utf-8")
    assert load_config() == {}


def test_env_overrides_from_dotenv(app_dir, monkeypatch):
    (app_dir / ".env").write_text("GRAPH_EXPLORER_LAYOUT_TIMEOUT=1.5\nGRAPH_EXPLORER_HOVER_MODE=off\n", encoding="utf-8")
    config = get_graph_config()
    assert config["layout"]["timeout"] == 1.5
    assert config["hover_mode"] is False


def test_invalid_env_timeout_is_ignored(app_dir, monkeypatch):
    monkeypatch.setenv("GRAPH_EXPLORER_LAYOUT_TIMEOUT", "soon")
    assert get_graph_config()["layout"]["timeout"] == 5.0


def test_explicit_overrides_win(app_dir, monkeypatch):
    monkeypatch.setenv("GRAPH_EXPLORER_HOVER_MODE", "1")
    save_config({"graph": {"hover_mode": False}})
    config = get_graph_config({"hover_mode": False, "expansion": {"max_children": 4}})
    assert config["hover_mode"] is False
    assert config["expansion"] == {"min_children": 3, "max_children": 4, "max_extra_links": 2}
    with open(app_dir / "config.json", encoding="utf-8") as f:
        assert json.load(f) == {"graph": {"hover_mode": False}}


def test_app_dir_override(tmp_path, monkeypatch):
    monkeypatch.setenv(paths.APP_DIR_ENV, str(tmp_path))
    assert paths.get_config_path() == tmp_path / "config.json"
    assert paths.get_env_path() == tmp_path / ".env"
