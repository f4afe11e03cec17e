"""
Prometheus metrics for the API server.

Metrics are organized by category:
- API metrics (request rate, latency, payload sizes, rejections)
- Startup metrics (route module loads, data store connection attempts)
"""
from prometheus_client import Counter, Histogram

# ============================================================================
# API Metrics
# ============================================================================

http_requests_total = Counter(
    'http_requests_total',
    'Total number of HTTP requests',
    ['method', 'endpoint', 'status_code']
)

http_request_duration_seconds = Histogram(
    'http_request_duration_seconds',
    'HTTP request duration in seconds',
    ['method', 'endpoint'],
    buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0]
)

http_request_size_bytes = Histogram(
    'http_request_size_bytes',
    'HTTP request size in bytes',
    ['method', 'endpoint'],
    buckets=[100, 500, 1000, 5000, 10000, 50000, 100000, 500000, 1000000]
)

http_response_size_bytes = Histogram(
    'http_response_size_bytes',
    'HTTP response size in bytes',
    ['method', 'endpoint'],
    buckets=[100, 500, 1000, 5000, 10000, 50000, 100000, 500000, 1000000]
)

http_requests_rejected_total = Counter(
    'http_requests_rejected_total',
    'Requests rejected before reaching a route handler',
    ['reason']
)

# ============================================================================
# Startup Metrics
# ============================================================================

route_modules_loaded_total = Counter(
    'route_modules_loaded_total',
    'Route module load attempts at startup',
    ['status']  # success, failure
)

database_connection_attempts_total = Counter(
    'database_connection_attempts_total',
    'Data store connection attempts',
    ['status']  # success, failure
)
