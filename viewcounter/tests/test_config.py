import json

import pytest

from viewcounter.__main__ import build_parser, config_from_args, main
from viewcounter.config import ConfigManager
from viewcounter.constants import HOST_ALL_INTERFACES, MAX_VIEWS_DEFAULT, PORT_DEFAULT
from viewcounter.exceptions import ConfigurationError


def test_defaults():
    cfg = ConfigManager(environ={})
    assert cfg.server.port == PORT_DEFAULT
    assert cfg.server.host == "127.0.0.1"
    assert cfg.badge.max_views == MAX_VIEWS_DEFAULT
    assert cfg.badge.get_palette_path().endswith("colors.txt")
    assert cfg.validate() == []


def test_environment_overrides_defaults(tmp_path):
    cfg = ConfigManager(environ={
        "VIEWCOUNTER_PORT": "8080",
        "VIEWCOUNTER_DATA_DIR": str(tmp_path),
        "VIEWCOUNTER_STORE_TIMEOUT": "1.5",
        "LOG_LEVEL": "debug",
    })
    assert cfg.server.port == 8080
    assert cfg.store.get_data_dir() == str(tmp_path)
    assert cfg.store.timeout == 1.5
    assert cfg.server.log_level == "DEBUG"


def test_bad_environment_value_raises():
    with pytest.raises(ConfigurationError) as exc:
        ConfigManager(environ={"VIEWCOUNTER_PORT": "http"})
    assert exc.value.setting_name == "VIEWCOUNTER_PORT"


def test_json_file_overrides_environment(tmp_path):
    path = tmp_path / "config.json"
    path.write_text(json.dumps({"server": {"port": 9000}, "badge": {"max_views": 50}}), encoding="utf-8")
    cfg = ConfigManager(environ={"VIEWCOUNTER_PORT": "8080", "VIEWCOUNTER_CONFIG": str(path)})
    assert cfg.server.port == 9000
    assert cfg.badge.max_views == 50
    assert cfg.config_file == str(path)


def test_missing_config_file_raises(tmp_path):
    with pytest.raises(ConfigurationError):
        ConfigManager(config_file=str(tmp_path / "missing.json"), environ={})


def test_require_valid_collects_errors():
    cfg = ConfigManager(environ={})
    cfg.server.port = 0
    cfg.store.timeout = -1
    with pytest.raises(ConfigurationError) as exc:
        cfg.require_valid()
    assert len(exc.value.errors) == 2


def test_cli_flags_override(monkeypatch, tmp_path):
    monkeypatch.delenv("VIEWCOUNTER_CONFIG", raising=False)
    monkeypatch.delenv("VIEWCOUNTER_PORT", raising=False)
    args = build_parser().parse_args(["-i", "-p", "4000", "--max-views", "99", "--data-dir", str(tmp_path)])
    cfg = config_from_args(args)
    assert cfg.server.host == HOST_ALL_INTERFACES
    assert cfg.server.port == 4000
    assert cfg.badge.max_views == 99
    assert cfg.store.data_dir == str(tmp_path)


def test_non_object_section_raises(tmp_path):
    path = tmp_path / "config.json"
    path.write_text(json.dumps({"server": "x"}), encoding="utf-8")
    with pytest.raises(ConfigurationError) as exc:
        ConfigManager(config_file=str(path), environ={})
    assert exc.value.setting_name == "server"


def test_cli_reports_bad_config_without_traceback(tmp_path, capsys):
    path = tmp_path / "config.json"
    path.write_text(json.dumps({"badge": [1, 2]}), encoding="utf-8")
    assert main(["--config", str(path)]) == 2
    assert capsys.readouterr().err.startswith("viewcounter: ")
