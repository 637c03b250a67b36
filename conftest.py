"""Global pytest configuration."""

import logging

import pytest

from core.logging import APP_LOGGER_NAME

pytest_plugins = ["tests.fixtures.webcache"]


@pytest.fixture(autouse=True)
def _isolate_app_logger():
    """Drop handlers a test attached to the application logger."""
    app_logger = logging.getLogger(APP_LOGGER_NAME)
    before = list(app_logger.handlers)
    level = app_logger.level
    yield
    for handler in list(app_logger.handlers):
        if handler not in before:
            app_logger.removeHandler(handler)
            handler.close()
    app_logger.setLevel(level)
