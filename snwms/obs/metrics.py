# snwms/obs/metrics.py
import time

from fastapi import APIRouter
from fastapi.responses import Response
from prometheus_client import CONTENT_TYPE_LATEST, REGISTRY, Counter, Histogram, generate_latest
from starlette.middleware.base import BaseHTTPMiddleware

http_requests_total = Counter(
    "snwms_http_requests_total", "HTTP requests", ["method", "path", "code"]
)
http_request_duration = Histogram(
    "snwms_http_request_duration_seconds", "HTTP request duration seconds", ["method", "path"]
)

# 库存核心操作：outcome = ok | <error_code>
inventory_ops_total = Counter(
    "snwms_inventory_ops_total", "Inventory core operations", ["op", "outcome"]
)
# 乐观并发冲突触发的重试
tx_retries_total = Counter("snwms_tx_retries_total", "Transaction retries on conflict", ["op"])


class PrometheusMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request, call_next):
        start = time.perf_counter()
        response = await call_next(request)
        elapsed = time.perf_counter() - start
        http_requests_total.labels(
            request.method, request.url.path, str(response.status_code)
        ).inc()
        http_request_duration.labels(request.method, request.url.path).observe(elapsed)
        return response


router = APIRouter()


@router.get("/metrics")
def metrics() -> Response:
    return Response(content=generate_latest(REGISTRY), media_type=CONTENT_TYPE_LATEST)
