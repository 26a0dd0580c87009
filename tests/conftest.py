import logging

import pytest

from deploykit.constants import ENV_ACTION, LOGGER_NAME

log_capture: list[str] = []


class ListLogHandler(logging.Handler):
    def emit(self, record):
        log_capture.append(self.format(record))


@pytest.fixture(autouse=True)
def reset_logging_capture():
    log_capture.clear()
    handler = ListLogHandler()
    logger = logging.getLogger(LOGGER_NAME)
    logger.addHandler(handler)
    yield
    logger.removeHandler(handler)


@pytest.fixture(autouse=True)
def no_env_action(monkeypatch):
    monkeypatch.delenv(ENV_ACTION, raising=False)
