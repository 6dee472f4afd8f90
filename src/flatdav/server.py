"""FastAPI application factory and route setup for flatdav."""

import email.utils
import json
import logging
import secrets
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, Response
from starlette.exceptions import HTTPException as StarletteHTTPException

from flatdav.auth import BasicAuthenticator
from flatdav.config import FlatDavConfig
from flatdav.errors import BadRequest, DavError, MethodNotAllowed, Unauthorized
from flatdav.handlers.dav import DavHandler
from flatdav.storage.backend import ObjectStore
from flatdav.storage.memory import MemoryObjectStore

logger = logging.getLogger(__name__)

# Every verb routed to the DAV handler. Verbs outside ALLOWED_METHODS
# are answered with 405 by DavHandler.not_allowed.
_ROUTED_METHODS = [
    "GET",
    "HEAD",
    "PUT",
    "DELETE",
    "PROPFIND",
    "MKCOL",
    "OPTIONS",
    "POST",
    "PATCH",
    "PROPPATCH",
    "COPY",
    "MOVE",
    "LOCK",
    "UNLOCK",
]

# Module-level singleton so multiple create_app() calls (e.g. in tests)
# don't re-register the same Prometheus collectors in the global registry.
_instrumentator = None


def _get_instrumentator():
    global _instrumentator
    if _instrumentator is None:
        from prometheus_fastapi_instrumentator import Instrumentator

        _instrumentator = Instrumentator(
            should_instrument_requests_inprogress=True,
            excluded_handlers=["/metrics"],
        )
    return _instrumentator


# ---------------------------------------------------------------------------
# Application factory
# ---------------------------------------------------------------------------


def create_app(config: FlatDavConfig) -> FastAPI:
    """Create and configure the flatdav FastAPI application.

    Middleware applies the auth gate and common headers to ALL responses
    (including error responses), and DavError exceptions are rendered as
    plain-text (or XML) bodies with their HTTP status.

    The lifespan context manager opens the object store on startup and
    closes it on shutdown.

    Args:
        config: The loaded flatdav configuration.

    Returns:
        A configured FastAPI application ready to run.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Lifespan hook: open the object store, close it on shutdown."""
        storage = create_object_store(config)
        await storage.init()
        app.state.storage = storage
        logger.info("Object store initialized: %s", config.storage.backend)

        yield

        await storage.close()
        logger.info("Object store closed")

    app = FastAPI(
        title="flatdav",
        version="0.1.0",
        lifespan=lifespan,
        openapi_url=None,
        docs_url=None,
        redoc_url=None,
    )
    app.state.config = config
    app.state.authenticator = BasicAuthenticator(config.auth)

    _register_exception_handlers(app)
    _register_middleware(app, config)

    # Wire Prometheus metrics BEFORE the DAV catch-all route so /metrics
    # is registered first and not shadowed by /{path:path}.
    if config.observability.metrics:
        import flatdav.metrics as _metrics

        _metrics.init_metrics()
        _get_instrumentator().instrument(app, metric_namespace="flatdav").expose(
            app, endpoint="/metrics"
        )

    _register_request_guards(app)

    _setup_routes(app, config)

    return app


def create_object_store(config: FlatDavConfig) -> ObjectStore:
    """Create an object store instance based on configuration.

    Supports 'memory', 'sqlite', and 's3' backends.

    Args:
        config: The flatdav configuration.

    Returns:
        An uninitialized object store.
    """
    backend = config.storage.backend
    if backend == "memory":
        return MemoryObjectStore(max_size_bytes=config.storage.memory_max_size_bytes)
    elif backend == "sqlite":
        from flatdav.storage.sqlite import SQLiteObjectStore

        return SQLiteObjectStore(db_path=config.storage.sqlite_path)
    elif backend == "s3":
        if not config.storage.s3_bucket:
            raise ValueError("storage.s3.bucket is required when backend is 's3'")
        try:
            from flatdav.storage.s3 import S3ObjectStore
        except ImportError as exc:
            raise ImportError(
                "aiobotocore is required for the S3 backend. "
                "Install with: pip install flatdav[s3]"
            ) from exc
        return S3ObjectStore(
            bucket_name=config.storage.s3_bucket,
            region=config.storage.s3_region,
            prefix=config.storage.s3_prefix,
            endpoint_url=config.storage.s3_endpoint_url,
            use_path_style=config.storage.s3_use_path_style,
            access_key_id=config.storage.s3_access_key_id,
            secret_access_key=config.storage.s3_secret_access_key,
        )
    else:
        raise ValueError(f"Unknown storage backend: {backend}")


# ---------------------------------------------------------------------------
# Exception handlers
# ---------------------------------------------------------------------------


def _error_response(request: Request, exc: DavError) -> Response:
    """Render a DavError. HEAD responses carry headers but no body."""
    if request.method == "HEAD":
        return Response(status_code=exc.http_status, headers=exc.headers)
    return Response(
        content=exc.message,
        status_code=exc.http_status,
        headers=exc.headers,
        media_type=exc.content_type,
    )


def _register_exception_handlers(app: FastAPI) -> None:
    """Register exception handlers on the FastAPI app."""

    @app.exception_handler(DavError)
    async def dav_error_handler(request: Request, exc: DavError) -> Response:
        """Map DavError exceptions to their status, headers, and body."""
        return _error_response(request, exc)

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException) -> Response:
        """Render routing errors raised by Starlette as plain text.

        Verbs outside the routed set arrive here as a 405 and get the same
        answer as every other unsupported method.
        """
        if exc.status_code == 405:
            not_allowed = MethodNotAllowed(f"Method {request.method} not allowed")
            return _error_response(request, not_allowed)
        if request.method == "HEAD":
            return Response(status_code=exc.status_code, headers=exc.headers)
        return Response(
            content=str(exc.detail),
            status_code=exc.status_code,
            headers=exc.headers,
            media_type="text/plain",
        )

    @app.exception_handler(Exception)
    async def generic_error_handler(request: Request, exc: Exception) -> Response:
        """Catch unexpected exceptions (including store failures) as 500.

        The failure description is surfaced in the body.
        """
        logger.exception("Unhandled exception in request handler")
        if request.method == "HEAD":
            return Response(status_code=500)
        return Response(
            content=f"Internal Server Error: {exc}",
            status_code=500,
            media_type="text/plain",
        )


# ---------------------------------------------------------------------------
# Middleware
# ---------------------------------------------------------------------------


def _register_middleware(app: FastAPI, config: FlatDavConfig) -> None:
    """Register middleware on the FastAPI app.

    In FastAPI, middleware is registered in reverse order (last registered
    runs first). We register auth first, then common_headers, so the
    execution order is: common_headers -> auth -> handler, and 401
    responses still carry the common headers and get logged.
    """

    # Operational paths that skip auth and per-request logging
    OPERATIONAL_PATHS = {"/health", "/healthz", "/readyz", "/metrics"}

    metrics_enabled = config.observability.metrics

    @app.middleware("http")
    async def auth_middleware(request: Request, call_next) -> Response:
        """Basic-auth gate.

        Runs before handlers but after common-headers middleware. Skips
        operational endpoints and OPTIONS (CORS preflights carry no
        credentials). On failure returns 401 directly, since FastAPI
        exception handlers do not catch exceptions raised in middleware.
        """
        if request.url.path in OPERATIONAL_PATHS and request.method == "GET":
            return await call_next(request)
        if request.method == "OPTIONS":
            return await call_next(request)

        result = app.state.authenticator.authenticate(request)
        if not result.authenticated:
            return _error_response(request, Unauthorized(realm=config.auth.realm))

        request.state.auth = result
        return await call_next(request)

    @app.middleware("http")
    async def common_headers_middleware(request: Request, call_next) -> Response:
        """Add common response headers and log every DAV request.

        Generates a request id (16-char uppercase hex) and stores it on
        request.state, sets Date (RFC 1123) and Server headers. When
        metrics are enabled, counts the operation and its body sizes.
        """
        request_id = secrets.token_hex(8).upper()
        request.state.request_id = request_id
        start = time.monotonic()

        response = await call_next(request)

        duration_ms = round((time.monotonic() - start) * 1000, 2)

        response.headers["X-Request-Id"] = request_id
        response.headers["Date"] = email.utils.formatdate(usegmt=True)
        response.headers["Server"] = "flatdav"

        is_operational = request.url.path in OPERATIONAL_PATHS and request.method == "GET"
        if is_operational:
            return response

        if metrics_enabled:
            import flatdav.metrics as _m

            _m.record_operation(request.method, response.status_code)
            req_size = _content_length(request.headers.get("content-length"))
            if req_size > 0 and _m.bytes_received_total is not None:
                _m.bytes_received_total.inc(req_size)
            resp_size = _content_length(response.headers.get("content-length"))
            if resp_size > 0 and _m.bytes_sent_total is not None and request.method != "HEAD":
                _m.bytes_sent_total.inc(resp_size)

        auth = getattr(request.state, "auth", None)
        logger.info(
            "%s %s %d %.2fms",
            request.method,
            request.url.path,
            response.status_code,
            duration_ms,
            extra={
                "method": request.method,
                "path": request.url.path,
                "status": response.status_code,
                "duration_ms": duration_ms,
                "request_id": request_id,
                "user": auth.username if auth is not None else None,
            },
        )

        return response


def _register_request_guards(app: FastAPI) -> None:
    """Register the outermost middleware, ahead of the Prometheus instrumentation.

    The instrumentator parses Content-Length itself, so a malformed value
    has to be refused before it gets there.
    """

    @app.middleware("http")
    async def content_length_guard(request: Request, call_next) -> Response:
        declared = request.headers.get("content-length")
        if declared is not None:
            try:
                int(declared)
            except ValueError:
                logger.info(
                    "Rejected %s %s: invalid Content-Length", request.method, request.url.path
                )
                return _error_response(request, BadRequest(f"Invalid Content-Length: {declared}"))
        return await call_next(request)


def _content_length(value: str | None) -> int:
    if not value:
        return 0
    try:
        return int(value)
    except ValueError:
        return 0


# ---------------------------------------------------------------------------
# Health check helpers
# ---------------------------------------------------------------------------

# Sentinel key probed by the health checks; it never needs to exist.
_HEALTH_PROBE_KEY = ".flatdav-health"


async def _check_storage(app: FastAPI) -> dict:
    """Probe the object store with a metadata lookup.

    Returns a dict with ``status`` and ``latency_ms`` keys.
    """
    storage = getattr(app.state, "storage", None)
    if storage is None:
        return {"status": "error", "error": "object store not initialized", "latency_ms": 0}
    try:
        start = time.monotonic()
        await storage.head(_HEALTH_PROBE_KEY)
        latency = round((time.monotonic() - start) * 1000, 1)
        return {"status": "ok", "latency_ms": latency}
    except Exception as exc:
        return {"status": "error", "error": str(exc), "latency_ms": 0}


# ---------------------------------------------------------------------------
# Route handlers
# ---------------------------------------------------------------------------


def _setup_routes(app: FastAPI, config: FlatDavConfig) -> None:
    """Register the operational routes and the DAV catch-all route.

    Args:
        app: The FastAPI application to attach routes to.
        config: The flatdav configuration.
    """
    dav_handler = DavHandler(app)

    health_check_enabled = config.observability.health_check

    @app.get("/health")
    async def health_check(request: Request) -> Response:
        """Return health status.

        When health_check is enabled: probe the object store and return
        JSON with the check result and latency_ms.
        When disabled: return static ``{"status": "ok"}``.
        """
        if not health_check_enabled:
            return Response(content='{"status":"ok"}', media_type="application/json")

        storage_check = await _check_storage(app)
        ok = storage_check["status"] == "ok"
        body = json.dumps(
            {"status": "ok" if ok else "degraded", "checks": {"storage": storage_check}}
        )
        return Response(
            content=body,
            status_code=200 if ok else 503,
            media_type="application/json",
        )

    if health_check_enabled:

        @app.get("/healthz")
        async def healthz() -> Response:
            """Liveness probe. Returns 200 with empty body."""
            return Response(status_code=200)

        @app.get("/readyz")
        async def readyz() -> Response:
            """Readiness probe. 200 (empty) if the store answers, 503 otherwise."""
            storage_check = await _check_storage(app)
            return Response(status_code=200 if storage_check["status"] == "ok" else 503)

    @app.api_route("/{path:path}", methods=_ROUTED_METHODS, include_in_schema=False)
    async def handle_dav(path: str, request: Request) -> Response:
        """Dispatch a DAV request by method."""
        method = request.method
        if method == "GET":
            return await dav_handler.get(request, path)
        if method == "HEAD":
            return await dav_handler.get(request, path, head=True)
        if method == "PUT":
            return await dav_handler.put(request, path)
        if method == "DELETE":
            return await dav_handler.delete(request, path)
        if method == "PROPFIND":
            return await dav_handler.propfind(request, path)
        if method == "MKCOL":
            return await dav_handler.mkcol(request, path)
        if method == "OPTIONS":
            return await dav_handler.options(request, path)
        return await dav_handler.not_allowed(request, path)
