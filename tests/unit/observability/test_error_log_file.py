"""Tests for the rotating error log file handler."""

import logging

import pytest

from pepper_cleanup.config import CleanupConfig
from pepper_cleanup.observability import get_error_log_handler, setup_error_log_file


@pytest.fixture
def detach_handler():
    yield
    handler = get_error_log_handler()
    if handler is not None:
        logging.getLogger().removeHandler(handler)
        handler.close()


def make_config(**overrides) -> CleanupConfig:
    return CleanupConfig(jwt_secret="test-secret", **overrides)


def test_disabled_returns_none():
    assert setup_error_log_file(make_config(error_log_file_enabled=False)) is None


def test_failed_deletions_reach_the_file(tmp_path, detach_handler):
    log_path = tmp_path / "logs" / "errors.log"

    handler = setup_error_log_file(make_config(error_log_file_path=str(log_path)))
    logging.getLogger("pepper_cleanup.services.case_cleanup_service").error(
        "Failed to delete case folder for %s", "CASE-1"
    )
    logging.getLogger("pepper_cleanup.test").info("not an error")
    handler.flush()

    content = log_path.read_text(encoding="utf-8")
    assert "Failed to delete case folder for CASE-1" in content
    assert "not an error" not in content


def test_second_setup_replaces_handler(tmp_path, detach_handler):
    first = setup_error_log_file(make_config(error_log_file_path=str(tmp_path / "a.log")))
    second = setup_error_log_file(make_config(error_log_file_path=str(tmp_path / "b.log")))

    root_handlers = logging.getLogger().handlers
    assert second in root_handlers
    assert first not in root_handlers
    assert get_error_log_handler() is second
