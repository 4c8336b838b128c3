import json
import logging

from autoheal.utils.logger import (
    ContextLogger,
    JsonFormatter,
    get_logger,
    log_with_context,
    set_log_level,
)


def test_scoped_context_lands_on_records(caplog):
    log = get_logger("autoheal.healing")
    scoped = log_with_context(log, cache_key="get_by_role_ab12")
    nested = log_with_context(scoped, target="login_button")

    with caplog.at_level(logging.INFO, logger="autoheal"):
        nested.info("Healed locator")
        log.info("Unscoped line")

    scoped_record, plain_record = caplog.records[-2:]
    assert isinstance(nested, ContextLogger)
    assert scoped_record.context == {"cache_key": "get_by_role_ab12", "target": "login_button"}
    assert not hasattr(plain_record, "context")
    # the parent adapter is not mutated by derivation
    assert scoped.extra == {"cache_key": "get_by_role_ab12"}


def test_json_formatter_merges_context():
    record = logging.LogRecord("autoheal.cache", logging.INFO, __file__, 1, "saved %d entries", (3,), None)
    record.context = {"cache_key": "k1"}

    payload = json.loads(JsonFormatter().format(record))
    assert payload["msg"] == "saved 3 entries"
    assert payload["level"] == "INFO"
    assert payload["logger"] == "autoheal.cache"
    assert payload["cache_key"] == "k1"
    assert "thread" in payload and "ts" in payload


def test_set_log_level_applies_to_handlers():
    get_logger()
    root = logging.getLogger("autoheal")
    previous = root.level
    try:
        set_log_level("debug")
        assert root.level == logging.DEBUG
        assert all(h.level == logging.DEBUG for h in root.handlers)
    finally:
        set_log_level(logging.getLevelName(previous))
