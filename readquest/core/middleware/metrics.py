from starlette.middleware.base import BaseHTTPMiddleware

from readquest.core.metrics import HttpMetrics, normalize_path


class MetricsMiddleware(BaseHTTPMiddleware):
    """Record HTTP request metrics (Prometheus-style)."""

    def __init__(self, app, metrics: HttpMetrics):
        super().__init__(app)
        self.metrics = metrics

    async def dispatch(self, request, call_next):
        response = await call_next(request)
        _record_request_metric(self.metrics, request, response)
        return response


def _record_request_metric(metrics: HttpMetrics, request, response) -> None:
    method = request.method.upper()
    path = normalize_path(request.url.path)
    status = getattr(response, "status_code", None) or 0
    metrics.requests.inc(labels={
        "method": method,
        "path": path,
        "status": str(status),
    })
