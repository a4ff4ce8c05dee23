from prometheus_client import Counter, Histogram, generate_latest
from fastapi import Response

# HTTP
http_requests_total = Counter(
    'http_requests_total',
    'Total HTTP requests',
    ['method', 'endpoint', 'status']
)

http_request_duration_seconds = Histogram(
    'http_request_duration_seconds',
    'HTTP request duration in seconds',
    ['method', 'endpoint']
)

# Auth
auth_failures_total = Counter(
    'auth_failures_total',
    'Requests rejected by an authorization guard',
    ['reason']
)
logins_total = Counter('logins_total', 'Login attempts', ['role', 'outcome'])

def metrics_endpoint():
    return Response(content=generate_latest(), media_type="text/plain")
