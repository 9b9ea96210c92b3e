"""
Prometheus metrics for the action queue engine.

Metrics live in the global REGISTRY; expose them with
``prometheus_client.start_http_server`` in the host application.
"""

from prometheus_client import Counter, Gauge, Histogram


ACTIONS_ENQUEUED_TOTAL = Counter(
    "actionq_actions_enqueued_total",
    "Total number of actions accepted by enqueue",
    ["engine", "action_type"],
)

ACTIONS_PROCESSED_TOTAL = Counter(
    "actionq_actions_processed_total",
    "Total number of processed actions by outcome",
    ["engine", "action_type", "outcome"],  # delivered | dead_lettered | fatal
)

QUEUE_DEPTH = Gauge(
    "actionq_queue_depth",
    "Current number of actions in the live queue",
    ["engine"],
)

DEAD_LETTER_DEPTH = Gauge(
    "actionq_dead_letter_depth",
    "Current number of items in the dead-letter queue",
    ["engine"],
)

HOOK_LATENCY_SECONDS = Histogram(
    "actionq_hook_latency_seconds",
    "Execution hook latency in seconds",
    ["action_type"],
    buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1, 2.5, 5, 10, 30],
)

PERSIST_WRITES_TOTAL = Counter(
    "actionq_persist_writes_total",
    "Snapshot writes handed to persistence by outcome",
    ["engine", "channel", "outcome"],  # channel: queue | dead_letter
)

LOOP_HALTS_TOTAL = Counter(
    "actionq_loop_halts_total",
    "Number of times the processing loop halted on a fatal error",
    ["engine"],
)


class MetricsRegistry:
    """Centralized access to actionq metrics."""

    actions_enqueued_total = ACTIONS_ENQUEUED_TOTAL
    actions_processed_total = ACTIONS_PROCESSED_TOTAL
    queue_depth = QUEUE_DEPTH
    dead_letter_depth = DEAD_LETTER_DEPTH
    hook_latency_seconds = HOOK_LATENCY_SECONDS
    persist_writes_total = PERSIST_WRITES_TOTAL
    loop_halts_total = LOOP_HALTS_TOTAL


# Singleton instance
metrics_registry = MetricsRegistry()
