import logging
from unittest.mock import patch

import pytest

from orgmirror.config import settings
from orgmirror.utils.logger import LevelFilter, logger, setup_logger


@pytest.fixture(autouse=True)
def restore_handlers():
    saved = list(logger.handlers)
    yield
    logger.handlers = saved


@patch("orgmirror.config.settings.LOG_DRIVER", "console")
def test_console_driver_splits_levels_between_streams(capsys):
    setup_logger()

    logger.info("mirror pass started")
    logger.warning("repository skipped")
    logger.error("installation token rejected")

    captured = capsys.readouterr()
    assert "mirror pass started" in captured.out
    assert "mirror pass started" not in captured.err
    assert "repository skipped" in captured.err
    assert "installation token rejected" in captured.err


@patch("orgmirror.config.settings.LOG_DRIVER", "console")
def test_setup_logger_replaces_previous_handlers():
    setup_logger()
    setup_logger()

    assert len(logger.handlers) == 2


@patch("orgmirror.config.settings.LOG_DRIVER", "file")
@patch("orgmirror.utils.logger.RotatingFileHandler")
def test_file_driver_rotates(mock_rotating_file_handler):
    mock_instance = mock_rotating_file_handler.return_value

    setup_logger()

    mock_rotating_file_handler.assert_called_once_with(
        settings.LOG_FILE, maxBytes=10 * 1024 * 1024, backupCount=5
    )
    mock_instance.setFormatter.assert_called_once()
    assert logger.handlers == [mock_instance]


@patch("orgmirror.config.settings.LOG_DRIVER", "syslog")
@patch("orgmirror.utils.logger.SysLogHandler")
def test_syslog_driver(mock_syslog_handler):
    setup_logger()

    mock_syslog_handler.assert_called_once_with()
    assert mock_syslog_handler.return_value in logger.handlers


@patch("orgmirror.config.settings.LOG_DRIVER", "carrier_pigeon")
def test_invalid_driver():
    with pytest.raises(ValueError, match="Invalid LOG_DRIVER: carrier_pigeon"):
        setup_logger()


def test_level_filter_bounds_are_inclusive():
    level_filter = LevelFilter(logging.DEBUG, logging.INFO)

    def record(level):
        return logging.LogRecord("orgmirror", level, __file__, 1, "msg", None, None)

    assert level_filter.filter(record(logging.DEBUG))
    assert level_filter.filter(record(logging.INFO))
    assert not level_filter.filter(record(logging.WARNING))
