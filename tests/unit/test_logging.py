import json
import logging
import sys

import pytest

from tmplstack.error.exceptions import ErrorContext, TemplateSourceError
from tmplstack.logging import JsonFormatter, LogConfig


@pytest.fixture
def package_logger():
    logger = logging.getLogger("tmplstack")
    handlers, level = logger.handlers[:], logger.level
    yield logger
    logger.handlers[:] = handlers
    logger.setLevel(level)


def test_configure_replaces_handlers(package_logger, tmp_path):
    log_file = tmp_path / "logs" / "tmplstack.log"
    logger = LogConfig(log_level="debug", log_file=log_file).configure()

    assert logger is package_logger
    assert logger.level == logging.DEBUG
    assert len(logger.handlers) == 2

    logging.getLogger("tmplstack.templates.manager").debug("rebuilt")
    for handler in logger.handlers:
        handler.flush()
    assert "rebuilt" in log_file.read_text(encoding="utf-8")


def test_invalid_level():
    with pytest.raises(ValueError):
        LogConfig(log_level="chatty")


def test_json_formatter_includes_error_context():
    try:
        raise TemplateSourceError("gone", context=ErrorContext("DirectorySource", "scan"))
    except TemplateSourceError:
        record = logging.LogRecord("tmplstack", logging.ERROR, __file__, 1, "scan failed", None, None)
        record.exc_info = sys.exc_info()

    data = json.loads(JsonFormatter().format(record))
    assert data["message"] == "scan failed"
    assert data["level"] == "ERROR"
    assert data["error_type"] == "TemplateSourceError"
    assert data["component"] == "DirectorySource"
    assert data["operation"] == "scan"
