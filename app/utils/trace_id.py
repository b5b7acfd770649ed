import uuid
from contextvars import ContextVar
from typing import Optional

# Trace ID for the current HTTP request or chat socket connection.
# The default value is None, indicating no trace ID is set.
trace_id_var: ContextVar[Optional[str]] = ContextVar("trace_id", default=None)


def new_trace_id() -> str:
    trace_id = uuid.uuid4().hex
    trace_id_var.set(trace_id)
    return trace_id
