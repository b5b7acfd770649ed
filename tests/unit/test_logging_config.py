import json
import logging

import app.main  # noqa: F401  configures logging on import
from app.utils.logging_config import JSONFormatter
from app.utils.trace_id import trace_id_var


def test_console_handler_stamps_trace_id():
    handler = next(h for h in logging.getLogger().handlers if h.get_name() == "console")
    record = logging.makeLogRecord({"name": "app.test", "levelname": "INFO", "msg": "hello"})

    token = trace_id_var.set("trace-123")
    try:
        assert handler.filter(record)
    finally:
        trace_id_var.reset(token)

    payload = json.loads(JSONFormatter().format(record))
    assert payload["trace_id"] == "trace-123"
    assert payload["message"] == "hello"
