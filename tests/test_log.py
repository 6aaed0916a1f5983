import logging

import pytest

from shadergraph import log


@pytest.fixture
def records():
    collected = []
    log.set_level(logging.DEBUG)
    handler = log.set_callback(lambda level, message: collected.append((level, message)))
    yield collected
    log.remove_callback(handler)


def test_messages_reach_callback(records):
    log.debug("debug message")
    log.info("info message")
    log.warn("warn message")
    log.warning("warning message")
    log.error("error message")

    assert records == [
        (logging.DEBUG, "debug message"),
        (logging.INFO, "info message"),
        (logging.WARNING, "warn message"),
        (logging.WARNING, "warning message"),
        (logging.ERROR, "error message"),
    ]


def test_exception_is_logged_with_context_and_traceback(records):
    try:
        raise ValueError("bad value")
    except ValueError as e:
        log.error(e, "Failed to parse")

    level, message = records[-1]
    assert level == logging.ERROR
    assert message.startswith("Failed to parse: ValueError: bad value\n")
    assert "Traceback" in message


def test_level_filters_messages(records):
    log.set_level(logging.WARNING)
    log.info("hidden")
    log.warn("shown")
    assert records == [(logging.WARNING, "shown")]
