import logging
import time

from starlette.middleware.base import BaseHTTPMiddleware

from readquest.core.logging import latency_bucket_ms, request_context


class RequestIdMiddleware(BaseHTTPMiddleware):
    """Bind a request id (incoming header or generated) and log completion."""

    def __init__(self, app, header_name: str = "x-request-id"):
        super().__init__(app)
        self.header_name = header_name

    async def dispatch(self, request, call_next):
        with request_context(request.headers.get(self.header_name)) as rid:
            request.state.request_id = rid
            start = time.perf_counter()
            response = await call_next(request)
            duration_ms = (time.perf_counter() - start) * 1000

            response.headers[self.header_name] = rid
            logging.getLogger("readquest").info(
                "request.complete",
                extra={
                    "request_id": rid,
                    "path": request.url.path,
                    "method": request.method,
                    "status": getattr(response, "status_code", None),
                    "latency_bucket": latency_bucket_ms(duration_ms),
                },
            )
            return response
