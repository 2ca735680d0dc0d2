import logging
import os
import sys

import pytest

sys.path.append(os.path.dirname(os.path.dirname(__file__)))
import logging_setup
from logging_setup import (
    LOG_FILE_ENV_VAR,
    configure_logging,
    get_logger,
    get_tag_for_module,
    reset_logging,
)


@pytest.fixture(autouse=True)
def clean_logger():
    reset_logging()
    yield
    reset_logging()


def test_tag_mapping():
    assert get_tag_for_module("csv_import") == "IMPORT"
    assert get_tag_for_module("planner_service") == "PLAN"
    assert get_tag_for_module("rest_api") == "API"
    assert get_tag_for_module("something_else") == "GEN"


def test_file_handler_writes_tagged_lines(tmp_path):
    log_file = tmp_path / "logs" / "ironquest.log"
    configure_logging(log_path=log_file, level="DEBUG")
    get_logger("progression").info("weight bumped")
    for handler in logging.getLogger(logging_setup.LOGGER_NAME).handlers:
        handler.flush()
    content = log_file.read_text(encoding="utf-8")
    assert "[INFO] [PROG] weight bumped" in content


def test_env_var_log_file(tmp_path, monkeypatch):
    log_file = tmp_path / "env.log"
    monkeypatch.setenv(LOG_FILE_ENV_VAR, str(log_file))
    configure_logging(force=True)
    get_logger("db").warning("migrated")
    for handler in logging.getLogger(logging_setup.LOGGER_NAME).handlers:
        handler.flush()
    assert "[DB] migrated" in log_file.read_text(encoding="utf-8")


def test_unknown_level_falls_back_to_info(capsys):
    logger = configure_logging(level="LOUD", force=True)
    assert logger.level == logging.INFO
    assert "unknown log level" in capsys.readouterr().err


def test_reconfigure_only_changes_level():
    logger = configure_logging(level="INFO")
    handlers = list(logger.handlers)
    configure_logging(level="ERROR")
    assert logger.level == logging.ERROR
    assert logger.handlers == handlers
