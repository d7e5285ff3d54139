"""
Where: lambdasync/tests/test_logging_config.py
What: Unit tests for the JSON formatter and logging setup.
"""

import json
import logging

import pytest

from lambdasync.core.logging_config import JsonFormatter, build_logging_config


def test_json_formatter_includes_extra_fields():
    record = logging.LogRecord(
        "lambdasync.apply", logging.INFO, __file__, 10, "Applying %s", ("api",), None
    )
    record.function_name = "api"

    payload = json.loads(JsonFormatter().format(record))

    assert payload["message"] == "Applying api"
    assert payload["level"] == "INFO"
    assert payload["logger"] == "lambdasync.apply"
    assert payload["function_name"] == "api"
    assert "_time" in payload


def test_build_logging_config_selects_formatter():
    config = build_logging_config("debug", "json")

    assert config["formatters"]["default"]["()"].endswith("JsonFormatter")
    assert config["loggers"]["lambdasync"]["level"] == "DEBUG"
    assert config["loggers"]["botocore"]["level"] == "WARNING"


def test_build_logging_config_rejects_unknown_format():
    with pytest.raises(ValueError, match="xml"):
        build_logging_config("INFO", "xml")
