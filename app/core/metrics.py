"""
Custom Prometheus metrics for the application.
"""
from prometheus_client import Counter, Gauge, Histogram

# A counter to track the total number of LLM calls, labeled by provider and outcome.
LLM_CALLS_TOTAL = Counter(
    "broughtby_llm_calls_total",
    "Total number of LLM calls",
    ["provider", "outcome"] # outcome can be "success" or "failure"
)

# A histogram to track the latency of LLM calls, labeled by provider.
LLM_LATENCY_SECONDS = Histogram(
    "broughtby_llm_latency_seconds",
    "Latency of LLM calls in seconds",
    ["provider"]
)

# A histogram to track the latency of database queries.
DB_QUERY_DURATION = Histogram(
    "broughtby_db_query_duration_seconds",
    "Duration of database queries in seconds",
    ["query_type"] # e.g., "read", "write"
)

# --- Chat Metrics ---

WS_CONNECTIONS_ACTIVE = Gauge(
    "broughtby_ws_connections_active",
    "Number of open chat socket connections in this process"
)

CHAT_MESSAGES_TOTAL = Counter(
    "broughtby_chat_messages_total",
    "Chat messages persisted",
    ["origin"] # "human" or "auto_reply"
)

AUTO_REPLY_TOTAL = Counter(
    "broughtby_auto_reply_total",
    "Automated reply attempts",
    ["trigger", "outcome"] # trigger: first|followup; outcome: sent|lock_busy|skipped|failed
)

NOTIFICATIONS_TOTAL = Counter(
    "broughtby_notifications_total",
    "Out-of-band message notifications",
    ["outcome"] # sent|skipped|failed
)
