from prometheus_client import Counter, Histogram, Gauge
import time
from functools import wraps
from typing import Callable
import logging

logger = logging.getLogger(__name__)

# Metrics
REQUEST_COUNT = Counter(
    'isodoc_request_count',
    'HTTP requests served',
    ['method', 'endpoint', 'http_status']
)

REQUEST_LATENCY = Histogram(
    'isodoc_request_latency_seconds',
    'HTTP request latency',
    ['method', 'endpoint']
)

SYNC_PASS_DURATION = Histogram(
    'isodoc_sync_pass_seconds',
    'Time spent on one tenant sync pass'
)

SYNC_FILES = Counter(
    'isodoc_sync_files_total',
    'Files seen by sync passes, by outcome',
    ['outcome']
)

SYNC_PASS_ERRORS = Counter(
    'isodoc_sync_pass_errors_total',
    'Sync passes aborted before processing files',
    ['error_type']
)

ACTIVE_SYNC_TIMERS = Gauge(
    'isodoc_active_sync_timers',
    'Tenants with an armed sync timer'
)

def track_time(metric: Histogram) -> Callable:
    def decorator(func: Callable) -> Callable:
        @wraps(func)
        async def wrapper(*args, **kwargs):
            start_time = time.time()
            try:
                return await func(*args, **kwargs)
            finally:
                metric.observe(time.time() - start_time)
        return wrapper
    return decorator
