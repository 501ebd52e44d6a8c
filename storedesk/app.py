import logging
import os
import time

from quart import Quart, jsonify, request

# Prometheus metrics
from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST

from .common.errors import (
    ForbiddenTransition,
    LookupNotFound,
    MalformedEvent,
    StoreDeskError,
    TransportFailure,
    ValidationFailed,
)
from .common.http_client import close_session
from .common.redis_client import close_redis
from .discounts.controller import bp as discounts_bp
from .orders.controller import bp as orders_bp, registry
from .realtime.controller import bp as realtime_bp

log = logging.getLogger(__name__)

INSTANCE_ID = os.getenv("INSTANCE_ID", "unknown")

REQUEST_COUNT = Counter("http_requests_total", "Total HTTP requests", ["method", "endpoint", "status"])
REQUEST_LATENCY = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency",
    ["endpoint"],
    buckets=(0.005, 0.01, 0.025, 0.05, 0.075, 0.1, 0.25, 0.5, 0.75, 1.0, 2.5, 5.0, 7.5, 10.0, float("inf"))
)

ERROR_STATUS = {
    ForbiddenTransition: 409,
    ValidationFailed: 422,
    LookupNotFound: 404,
    TransportFailure: 502,
    MalformedEvent: 400,
}


def normalize_endpoint(path: str) -> str:
    """Collapse ids out of the path to keep metric label cardinality bounded."""
    parts = path.strip("/").split("/")
    if len(parts) >= 2 and parts[0] == "businesses":
        parts[1] = "<business_id>"
        if len(parts) >= 4 and parts[2] in ("orders", "discounts") and parts[3] not in ("events", "refresh"):
            parts[3] = "<id>"
    return "/" + "/".join(parts)


def create_app() -> Quart:
    app = Quart(__name__)

    # Blueprints
    app.register_blueprint(orders_bp)
    app.register_blueprint(discounts_bp)
    app.register_blueprint(realtime_bp)

    @app.errorhandler(StoreDeskError)
    async def handle_storedesk_error(error: StoreDeskError):
        status = ERROR_STATUS.get(type(error), 500)
        if status >= 500:
            log.error("Request failed | %s %s err=%s", request.method, request.path, error)
        return jsonify(error.to_dict()), status

    @app.before_request
    async def before_request():
        request._start_time = time.time()
        log.info("[Instance %s] %s %s", INSTANCE_ID, request.method, request.path)

    @app.after_request
    async def after_request(response):
        try:
            if hasattr(request, "_start_time"):
                duration = time.time() - request._start_time
                endpoint = normalize_endpoint(request.path)
                REQUEST_LATENCY.labels(endpoint=endpoint).observe(duration)
                REQUEST_COUNT.labels(
                    method=request.method,
                    endpoint=endpoint,
                    status=str(response.status_code)
                ).inc()
                response.headers["X-Instance-ID"] = INSTANCE_ID
        except Exception as e:
            log.error("Error recording metrics: %s", e)
        return response

    @app.get("/metrics")
    async def metrics():
        data = generate_latest()
        return app.response_class(data, mimetype=CONTENT_TYPE_LATEST)

    @app.get("/health")
    async def health():
        return jsonify({"status": "ok"})

    @app.before_serving
    async def startup():
        logging.basicConfig(level=logging.INFO)
        log.info("Store desk ready.")

    @app.after_serving
    async def shutdown():
        # stop every order channel before the shared connections go away
        await registry.close_all()
        await close_session()
        await close_redis()
        log.info("Shutdown complete.")

    return app
