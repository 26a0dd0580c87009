import io
import json
import logging

import pytest

from deploykit import EnvExposer, configure_logging, drain, flow_scope
from deploykit.exceptions import ConfigurationError
from deploykit.log import StructuredFormatter, current_flow


def test_expose_writes_prefixed_sanitized_values():
    environ = {}
    exposer = EnvExposer(environ=environ)

    written = exposer.expose({
        "url": "http://svc",
        "empty": "",
        "none": None,
        "cfg": {"a": "b"},
        "text": "line one\n\tline   two",
    })

    assert environ == written
    assert environ["DEPLOYKIT_PL_URL"] == "http://svc"
    assert environ["DEPLOYKIT_PL_CFG"] == "{§a§: §b§}"
    assert environ["DEPLOYKIT_PL_TEXT"] == "line one line two"
    assert "DEPLOYKIT_PL_EMPTY" not in environ
    assert "DEPLOYKIT_PL_NONE" not in environ


def test_expose_custom_prefix_limit_and_quote():
    environ = {}
    exposer = EnvExposer(prefix="app", limit=5, quote="'", environ=environ)
    exposer.expose({"long": "abcdefgh", "q": '"x"'}, prefix="run")
    assert environ == {"RUN_LONG": "abcde", "RUN_Q": "'x'"}


def test_empty_prefix_keeps_key_as_is():
    environ = {}
    EnvExposer(prefix="", environ=environ).expose({"Mixed": "v"})
    assert environ == {"Mixed": "v"}


def test_expose_rejects_non_mapping():
    with pytest.raises(ConfigurationError):
        EnvExposer(environ={}).expose(["not", "a", "mapping"])


# --- Logging ---

def test_structured_logging_carries_flow_and_data():
    stream = io.StringIO()
    logger = configure_logging(logging.DEBUG, stream=stream)
    try:
        with flow_scope("p-s"):
            assert current_flow() == "p-s"
            logger.info("hello %s", "world", extra={"src": "Test:log", "data": {"k": 1}})
        drain()
    finally:
        for h in list(logger.handlers):
            if getattr(h, "_deploykit", False):
                logger.removeHandler(h)
        logger.setLevel(logging.NOTSET)

    record = json.loads(stream.getvalue().strip().splitlines()[-1])
    assert record["message"] == "hello world"
    assert record["flow"] == "p-s"
    assert record["src"] == "Test:log"
    assert record["data"] == {"k": 1}
    assert current_flow() is None


def test_formatter_without_extras():
    record = logging.LogRecord("deploykit", logging.INFO, __file__, 1, "plain", None, None)
    payload = json.loads(StructuredFormatter().format(record))
    assert payload["message"] == "plain"
    assert payload["flow"] is None
    assert "data" not in payload
