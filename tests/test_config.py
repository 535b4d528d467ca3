#!/usr/bin/env python3
"""
Tests for YAML settings loading and logger setup.
"""

import logging

import pytest

from locformat.config import CONFIG_ENV_VAR, Settings, load_settings
from locformat.logging_config import LOGGER_NAME, setup_logger, setup_logger_from_settings
from locformat.validation import ValidationService


@pytest.fixture
def config_file(tmp_path):
    def write(text):
        path = tmp_path / "locformat.yaml"
        path.write_text(text, encoding='utf-8')
        return str(path)
    return write


@pytest.fixture(autouse=True)
def no_env_config(monkeypatch):
    monkeypatch.delenv(CONFIG_ENV_VAR, raising=False)


def test_defaults_without_config():
    settings = load_settings()
    assert settings == Settings()
    assert settings.json_indent == 2
    assert settings.logging == {'level': 'INFO', 'file': None, 'console': True}


def test_load_from_path(config_file):
    """Test 1: File values override defaults, logging merges with defaults"""
    path = config_file("json_indent: 4\nstrict_mode: true\nlogging:\n  level: DEBUG\n")
    settings = load_settings(path)
    assert settings.json_indent == 4
    assert settings.strict_mode
    assert settings.csv_dialect == "default"
    assert settings.logging == {'level': 'DEBUG', 'file': None, 'console': True}


def test_load_from_environment(config_file, monkeypatch):
    monkeypatch.setenv(CONFIG_ENV_VAR, config_file("csv_dialect: excel\n"))
    assert load_settings().csv_dialect == "excel"


def test_unusable_files_fall_back_to_defaults(config_file, tmp_path):
    assert load_settings(str(tmp_path / "missing.yaml")) == Settings()
    assert load_settings(config_file("")) == Settings()
    assert load_settings(config_file("- just\n- a list\n")) == Settings()


def test_invalid_yaml(config_file):
    with pytest.raises(ValueError, match="Invalid YAML in configuration file"):
        load_settings(config_file("json_indent: [4\n"))


def test_unknown_keys_are_ignored(caplog):
    with caplog.at_level(logging.WARNING, logger="locformat.config"):
        settings = Settings.from_dict({'json_indent': 8, 'colour': 'blue'})
    assert settings.json_indent == 8
    assert "Ignoring unknown configuration keys: colour" in caplog.text


@pytest.mark.parametrize("settings, format, expected", [
    (Settings(), "json", {'indent': 2}),
    (Settings(json_indent=4), "arb", {'indent': 4}),
    (Settings(), "xliff", {}),
    (Settings(xml_declaration=False), "android-xml", {'xml_declaration': False}),
    (Settings(), "csv", {}),
    (Settings(csv_dialect="excel"), "tsv", {'dialect': "excel"}),
    (Settings(), "po", {}),
])
def test_serialize_options(settings, format, expected):
    assert settings.serialize_options(format) == expected


def test_validation_options_drive_the_service():
    """Test 2: Strict mode from settings turns warnings into failures"""
    settings = Settings(strict_mode=True, include_guidance=False)
    service = ValidationService.from_settings(settings)

    report = service.validate_file('{"bad key": "x"}', "en.json", **settings.validation_options())
    assert not report.success
    assert report.guidance is None


def test_max_json_depth_from_settings():
    service = ValidationService.from_settings(Settings(max_json_depth=1))
    result = service.validate_data({"a": {"b": {"c": "deep"}}}, "json")
    assert 'JSON_DEEP_NESTING' in result.codes()


def test_setup_logger(tmp_path):
    log_file = tmp_path / "logs" / "locformat.log"
    logger = setup_logger("debug", str(log_file), log_to_console=False)
    try:
        assert logger.name == LOGGER_NAME
        assert logger.level == logging.DEBUG
        assert not logger.propagate
        assert len(logger.handlers) == 1

        logging.getLogger("locformat.recovery").debug("hello from recovery")
        for handler in logger.handlers:
            handler.flush()
        assert "DEBUG - hello from recovery" in log_file.read_text(encoding='utf-8')

        # Setting up again replaces the handlers instead of adding more
        setup_logger("INFO", log_to_console=True)
        assert len(logger.handlers) == 1
        assert logger.level == logging.INFO
    finally:
        for handler in list(logger.handlers):
            handler.close()
        logger.handlers.clear()
        logger.propagate = True


def test_setup_logger_from_settings():
    settings = Settings.from_dict({'logging': {'level': 'WARNING', 'console': False}})
    logger = setup_logger_from_settings(settings)
    try:
        assert logger.level == logging.WARNING
        assert logger.handlers == []
    finally:
        logger.propagate = True
