import json
import logging
import sys

from inbox_api.logging_config import (
    JSONFormatter,
    LoggerAdapter,
    get_logger,
    redact_context,
    resolve_level,
    setup_logging,
)


def _format(**attrs):
    record = logging.makeLogRecord({"name": "inbox.test", "levelname": "INFO", "msg": "hello", **attrs})
    return json.loads(JSONFormatter().format(record))


class TestJSONFormatter:
    def test_basic_fields(self):
        entry = _format(threadName="dispatch_0")

        assert entry["message"] == "hello"
        assert entry["level"] == "INFO"
        assert entry["logger"] == "inbox.test"
        assert entry["thread"] == "dispatch_0"
        assert entry["timestamp"].endswith("+00:00")
        assert "context" not in entry

    def test_context_secrets_are_masked(self):
        entry = _format(
            context={
                "page_id": "1000",
                "access_token": "EAAB-page-token",
                "headers": {"X-Hub-Signature-256": "sha256=abc", "content-length": 10},
                "attempts": [{"app_secret": "shh"}],
            }
        )

        assert entry["context"] == {
            "page_id": "1000",
            "access_token": "***",
            "headers": {"X-Hub-Signature-256": "***", "content-length": 10},
            "attempts": [{"app_secret": "***"}],
        }
        assert "EAAB-page-token" not in json.dumps(entry)

    def test_non_json_values_are_stringified(self):
        entry = _format(context={"kind": object})
        assert entry["context"]["kind"] == str(object)

    def test_exception_is_included(self):
        try:
            raise ValueError("bad payload")
        except ValueError:
            entry = _format(exc_info=sys.exc_info())

        assert "ValueError: bad payload" in entry["exception"]


class TestRedactContext:
    def test_input_is_not_mutated(self):
        context = {"access_token": "tok"}
        assert redact_context(context) == {"access_token": "***"}
        assert context == {"access_token": "tok"}

    def test_plain_values_pass_through(self):
        assert redact_context("access_token") == "access_token"


class TestSetup:
    def test_resolve_level(self):
        assert resolve_level("debug") == logging.DEBUG
        assert resolve_level("WARNING") == logging.WARNING
        assert resolve_level("loud") == logging.INFO

    def test_single_json_handler(self):
        root = logging.getLogger()
        saved_handlers, saved_level = root.handlers[:], root.level
        try:
            setup_logging("debug")
            setup_logging("debug")

            assert root.level == logging.DEBUG
            assert len(root.handlers) == 1
            assert isinstance(root.handlers[0].formatter, JSONFormatter)
            assert logging.getLogger("httpx").level == logging.WARNING
        finally:
            root.handlers[:] = saved_handlers
            root.setLevel(saved_level)


class TestLoggerAdapter:
    def test_call_context_merges_over_fixed_fields(self, caplog):
        log = LoggerAdapter(get_logger("dispatcher"), {"platform": "facebook", "stage": "parse"})

        with caplog.at_level(logging.INFO, logger="inbox.dispatcher"):
            log.info("done", context={"stage": "store", "processed": 2})

        record = caplog.records[-1]
        assert record.name == "inbox.dispatcher"
        assert record.context == {"platform": "facebook", "stage": "store", "processed": 2}
