from prometheus_client import Counter

backend_call_count = Counter(
    "ghsync_backend_calls",
    "Number of backend calls issued by the sync layer",
    labelnames=["operation", "result"],
)

cache_hit_count = Counter(
    "ghsync_cache_hits",
    "Number of fetches answered from a fresh, non-empty cache",
    labelnames=["entity"],
)

coalescer_request_count = Counter(
    "ghsync_coalescer_requests",
    "Requests seen by an in-flight coalescer",
    labelnames=["coalescer", "result"],
)

delta_count = Counter(
    "ghsync_deltas",
    "Status deltas handled by a throttled applier",
    labelnames=["applier", "result"],
)

delta_flush_count = Counter(
    "ghsync_delta_flushes",
    "Number of trailing batch flushes",
    labelnames=["applier"],
)

listener_error_count = Counter(
    "ghsync_listener_errors",
    "Number of store listeners that raised",
)
