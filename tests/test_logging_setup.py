import logging

from taskrelay.logging_setup import _ThirdPartyNoiseFilter, setup_logging


def _record(name, level):
    return logging.LogRecord(name, level, __file__, 1, "msg", None, None)


def test_filter_quiets_http_client_and_access_logs():
    f = _ThirdPartyNoiseFilter()

    assert f.filter(_record("taskrelay.services.dispatcher", logging.INFO))
    assert not f.filter(_record("httpx", logging.INFO))
    assert not f.filter(_record("uvicorn.access", logging.INFO))
    assert f.filter(_record("httpx", logging.WARNING))


def test_setup_logging_installs_single_handler():
    root = logging.getLogger()
    saved_handlers, saved_level = list(root.handlers), root.level
    try:
        setup_logging("debug")
        setup_logging("warning")

        assert len(root.handlers) == 1
        assert root.level == logging.WARNING

        setup_logging("no-such-level")
        assert root.level == logging.INFO
    finally:
        for h in list(root.handlers):
            root.removeHandler(h)
        for h in saved_handlers:
            root.addHandler(h)
        root.setLevel(saved_level)
        logging.captureWarnings(False)
