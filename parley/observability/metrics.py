"""Prometheus metrics for Parley."""

from prometheus_client import Counter, Gauge

# Admission queue
QUEUE_DEPTH = Gauge(
    "parley_input_queue_depth",
    "Number of turns waiting for admission",
    labelnames=["runtime"],
)

TURNS_ADMITTED = Counter(
    "parley_turns_admitted_total",
    "Turns granted admission by the input queue",
    labelnames=["runtime"],
)

TURNS_ABANDONED = Counter(
    "parley_turns_abandoned_total",
    "In-flight turns reclaimed after exceeding the queue timeout",
    labelnames=["runtime"],
)

OUT_OF_ORDER_COMPLETIONS = Counter(
    "parley_out_of_order_completions_total",
    "Turn completions that did not match the in-flight marker",
    labelnames=["runtime"],
)

# Memory store
STORE_OPERATIONS = Counter(
    "parley_store_operations_total",
    "Operations issued against the persistent store",
    labelnames=["operation"],
)

CACHE_HITS = Counter(
    "parley_cache_hits_total",
    "Reads and writes satisfied by the process-local value cache",
    labelnames=["operation"],
)

# Replay
REPLAY_DISCREPANCIES = Counter(
    "parley_replay_discrepancies_total",
    "Training dialog replays halted by an entity discrepancy",
)

# Turn processing
TURN_ERRORS = Counter(
    "parley_turn_errors_total",
    "Turns that ended with a structural failure",
    labelnames=["error_type"],
)
