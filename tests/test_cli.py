import json
import logging

import pytest

from bladeagent.cli import configure_logging, load_config, main

BASE_CONFIG = """\
log:
  mode: production
listen:
  grpc: /tmp/agent.sock
stealth_mode: false
fan_controller:
  steps:
    - temperature: 45
      percent: 40
    - temperature: 55
      percent: 80
idle_led_color:
  red: 0
  green: 16
  blue: 0
"""


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text(BASE_CONFIG, encoding="utf-8")
    return path


@pytest.fixture(autouse=True)
def _reset_logger():
    yield
    logger = logging.getLogger("bladeagent")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
    logger.propagate = True
    logger.setLevel(logging.NOTSET)


def test_load_config_reads_file(config_file):
    config = load_config(config_file, {})
    assert config["log"]["mode"] == "production"
    assert config["listen"]["grpc"] == "/tmp/agent.sock"
    assert config["fan_controller"]["steps"][1] == {"temperature": 55, "percent": 80}
    assert config["idle_led_color"]["green"] == 16


def test_env_overrides_existing_keys_with_typed_values(config_file):
    environ = {
        "BLADE_STEALTH_MODE": "true",
        "BLADE_IDLE_LED_COLOR_GREEN": "200",
        "BLADE_LOG_MODE": "development",
    }
    config = load_config(config_file, environ)
    assert config["stealth_mode"] is True
    assert config["idle_led_color"]["green"] == 200
    assert config["log"]["mode"] == "development"


def test_env_supplies_command_keys_missing_from_file(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text("stealth_mode: true\n", encoding="utf-8")
    config = load_config(path, {"BLADE_LOG_MODE": "production"})
    assert config["log"] == {"mode": "production"}
    assert config["stealth_mode"] is True


def test_unknown_env_variables_are_ignored(config_file):
    config = load_config(config_file, {"BLADE_SOMETHING_ELSE": "1", "OTHER": "x"})
    assert "something_else" not in config
    assert config == load_config(config_file, {})


def test_load_config_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_config(tmp_path / "absent.yaml", {})


def test_load_config_rejects_non_mapping(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text("- a\n- b\n", encoding="utf-8")
    with pytest.raises(ValueError):
        load_config(path, {})


def test_empty_file_gives_empty_config(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text("", encoding="utf-8")
    assert load_config(path, {}) == {}


def test_configure_logging_levels():
    assert configure_logging("development").level == logging.DEBUG
    assert configure_logging("production").level == logging.INFO


def test_configure_logging_does_not_stack_handlers():
    configure_logging("production")
    logger = configure_logging("production")
    assert len(logger.handlers) == 1


def test_configure_logging_invalid_mode():
    with pytest.raises(ValueError, match="invalid log.mode: verbose"):
        configure_logging("verbose")


def test_production_logging_is_json(capsys):
    logger = configure_logging("production")
    logger.getChild("agent").info("hello")
    line = capsys.readouterr().err.strip().splitlines()[-1]
    entry = json.loads(line)
    assert entry["msg"] == "hello"
    assert entry["app"] == "compute-blade-agent"
    assert entry["level"] == "info"


def test_main_missing_config_fails(tmp_path):
    assert main(["--config", str(tmp_path / "absent.yaml")]) == 1


def test_main_invalid_log_mode_fails(tmp_path, capsys):
    path = tmp_path / "config.yaml"
    path.write_text("log:\n  mode: loud\n", encoding="utf-8")
    assert main(["--config", str(path)]) == 1
    assert "invalid log.mode: loud" in capsys.readouterr().err


def test_main_invalid_fan_controller_fails(tmp_path, capsys):
    path = tmp_path / "config.yaml"
    path.write_text(
        "log:\n  mode: production\nfan_controller:\n  steps:\n"
        "    - temperature: 20\n      percent: 30\n",
        encoding="utf-8",
    )
    assert main(["--config", str(path)]) == 1
    assert "exactly two steps must be defined" in capsys.readouterr().err