import logging

from samlsp.logging_util import get_message_id
from samlsp.logging_util import samlsp_logging


def test_get_message_id():
    assert get_message_id("_abc") == "_abc"
    assert get_message_id(None) == "UNKNOWN"


def test_message_id_is_prefixed(caplog):
    logger = logging.getLogger("test_prefix")
    logger.setLevel(logging.DEBUG)
    samlsp_logging(logger, logging.INFO, "testmessage", "_abc")
    assert "[_abc] testmessage" in caplog.messages


def test_unknown_message_id(caplog):
    logger = logging.getLogger("test_unknown")
    logger.setLevel(logging.DEBUG)
    samlsp_logging(logger, logging.WARNING, "testmessage", None)
    assert "[UNKNOWN] testmessage" in caplog.messages
    assert caplog.records[-1].levelno == logging.WARNING


def test_level_is_honoured(caplog):
    logger = logging.getLogger("test_level")
    logger.setLevel(logging.INFO)
    samlsp_logging(logger, logging.DEBUG, "hidden", "_abc")
    assert "[_abc] hidden" not in caplog.messages


def test_exc_info_is_passed_on(caplog):
    logger = logging.getLogger("test_exc_info")
    logger.setLevel(logging.DEBUG)
    try:
        raise ValueError("boom")
    except ValueError:
        samlsp_logging(logger, logging.ERROR, "failed", "_abc", exc_info=True)
    assert caplog.records[-1].exc_info[0] is ValueError
