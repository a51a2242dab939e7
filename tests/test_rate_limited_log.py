"""
Tests for rate-limited logging.
"""
from unittest.mock import MagicMock

from warp_sdk._rate_limited_log import rate_limited_log, reset_rate_limits


def test_repeated_message_is_suppressed():
    mock_logger = MagicMock()
    assert rate_limited_log("Still waiting", level="debug", logger_instance=mock_logger) is True
    assert rate_limited_log("Still waiting", level="debug", logger_instance=mock_logger) is False
    mock_logger.debug.assert_called_once_with("Still waiting")


def test_different_level_or_message_is_logged():
    mock_logger = MagicMock()
    rate_limited_log("Still waiting", level="debug", logger_instance=mock_logger)
    rate_limited_log("Still waiting", level="info", logger_instance=mock_logger)
    rate_limited_log("Bundle 2 is PENDING", level="debug", logger_instance=mock_logger)
    assert mock_logger.debug.call_count == 2
    mock_logger.info.assert_called_once_with("Still waiting")


def test_reset_allows_message_again():
    mock_logger = MagicMock()
    rate_limited_log("Once", logger_instance=mock_logger)
    reset_rate_limits()
    rate_limited_log("Once", logger_instance=mock_logger)
    assert mock_logger.warning.call_count == 2


def test_default_logger(caplog):
    with caplog.at_level("WARNING", logger="warp_sdk._rate_limited_log"):
        rate_limited_log("Module logger message")
    assert "Module logger message" in caplog.text
