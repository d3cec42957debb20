from prometheus_client import Counter, Gauge, Histogram
from prometheus_client.utils import INF

PING_CYCLES = Counter("keepalive_ping_cycles", "Number of ping cycles started", ["target"])
PING_ATTEMPTS = Counter(
    "keepalive_ping_attempts", "Number of individual ping attempts", ["target", "outcome"]
)
PING_DURATION_SECONDS = Histogram(
    "keepalive_ping_duration_seconds",
    "Duration (seconds) of a single health check request",
    ["target"],
    buckets=(0.5, 1, 2.5, 5, 7.5, 10, 12, 14, 16, 18, 20, INF),
)
CONSECUTIVE_FAILURES = Gauge(
    "keepalive_consecutive_failures", "Failed attempts since the last success", ["target"]
)
TARGET_AVAILABILITY = Gauge(
    "keepalive_target_availability", "1 if the last attempt succeeded, else 0", ["target"]
)
RETRY_DELAY_SECONDS = Gauge(
    "keepalive_retry_delay_seconds", "Backoff delay scheduled after the last failure", ["target"]
)
