import logging

import pytest

from sprig import Container, ContainerSettings

log_capture: list[str] = []


class ListLogHandler(logging.Handler):
    def emit(self, record):
        log_capture.append(self.format(record))


@pytest.fixture(autouse=True)
def reset_logging_capture():
    log_capture.clear()


@pytest.fixture
def sprig_logs():
    handler = ListLogHandler()
    logger = logging.getLogger("sprig")
    previous = logger.level
    logger.addHandler(handler)
    logger.setLevel(logging.DEBUG)
    yield log_capture
    logger.removeHandler(handler)
    logger.setLevel(previous)


@pytest.fixture
def make_container():
    """Build containers from classes; every container is closed at teardown."""
    created = []

    def _make(*classes, settings=None, hooks=(), refresh=True, eager=True):
        if settings is None:
            settings = ContainerSettings(eager_init=eager)
        c = Container(settings=settings, hooks=hooks)
        for cls in classes:
            c.register(cls)
        if refresh:
            c.refresh()
        created.append(c)
        return c

    yield _make
    for c in created:
        c.close()
