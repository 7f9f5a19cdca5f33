"""
Base service class for Professional Fees services.

Subclasses register their own routes in `_setup_routes` after calling the
base implementation, and report dependency state from `_check_dependencies`.
"""

from fastapi import FastAPI, Request, Response
from fastapi.responses import JSONResponse
from typing import Any, Dict, Optional, Tuple
import time

from prometheus_client import generate_latest, CONTENT_TYPE_LATEST

from shared.config import ServiceConfig, get_config
from shared.logging import configure_logging, get_logger, set_request_id, clear_context
from shared.metrics import MetricsCollector, get_metrics_collector
from shared.errors import PaymentsLayerException

SERVICE_VERSION = "1.0.0"
REQUEST_ID_HEADER = "x-request-id"


class BaseService:
    """FastAPI application with request correlation, health, metrics and error mapping."""

    def __init__(self, service_name: str, port: int, config: Optional[ServiceConfig] = None):
        self.service_name = service_name
        self.port = port
        self.config = config or get_config(service_name, port)
        self.logger = get_logger(service_name)
        self.metrics: MetricsCollector = get_metrics_collector(service_name)
        self._start_time = time.time()

        configure_logging(service_name, self.config.log_level)

        self.app = FastAPI(
            title=f"{self.service_name.title()} Service",
            description=f"Professional Fees - {self.service_name.title()} Service",
            version=SERVICE_VERSION,
            docs_url="/docs" if self.config.env == "local" else None,
            redoc_url=None,
        )
        self._setup_middleware()
        self._setup_routes()

    def _setup_middleware(self):
        @self.app.middleware("http")
        async def correlate_request(request: Request, call_next):
            started = time.time()
            request_id = set_request_id(request.headers.get(REQUEST_ID_HEADER))
            try:
                response = await call_next(request)
            finally:
                clear_context()

            duration = time.time() - started
            response.headers[REQUEST_ID_HEADER] = request_id
            self.metrics.record_http_request(
                method=request.method,
                endpoint=request.url.path,
                status_code=response.status_code,
                duration=duration,
            )
            self.logger.info(
                "HTTP request",
                method=request.method,
                path=request.url.path,
                status_code=response.status_code,
                request_id=request_id,
                duration_ms=round(duration * 1000, 2),
            )
            return response

    def _setup_routes(self):
        """Register /health, /metrics and the exception handlers."""

        @self.app.get("/health")
        async def health_check():
            status_code, body = await self._health_report()
            if status_code != 200:
                return JSONResponse(status_code=status_code, content=body)
            return body

        @self.app.get("/metrics")
        async def metrics_endpoint():
            return Response(
                content=generate_latest(self.metrics.registry),
                media_type=CONTENT_TYPE_LATEST,
            )

        @self.app.exception_handler(PaymentsLayerException)
        async def payments_layer_exception_handler(request: Request, exc: PaymentsLayerException):
            self.logger.error("Payments layer error", code=exc.code, message=exc.message,
                              details=exc.details, path=request.url.path)
            self.metrics.record_error(exc.code)
            return JSONResponse(status_code=exc.status_code, content=exc.to_response().model_dump())

        @self.app.exception_handler(Exception)
        async def general_exception_handler(request: Request, exc: Exception):
            self.logger.error("Unhandled exception", error=str(exc), path=request.url.path, exc_info=True)
            self.metrics.record_error("INTERNAL_ERROR")
            return JSONResponse(
                status_code=500,
                content={"code": "INTERNAL_ERROR", "message": "Internal server error", "details": {}},
            )

    async def _health_report(self) -> Tuple[int, Dict[str, Any]]:
        """HTTP status and body for /health; degraded dependencies still answer 200."""
        try:
            dependencies = await self._check_dependencies()
        except Exception as e:
            self.logger.error("Health check failed", error=str(e))
            self.metrics.record_health_check("error")
            return 503, {"service": self.service_name, "status": "error", "error": str(e)}

        status = "ok" if all(v == "ok" for v in dependencies.values()) else "degraded"
        self.metrics.record_health_check(status)
        return 200, {
            "service": self.service_name,
            "status": status,
            "uptime_seconds": time.time() - self._start_time,
            "dependencies": dependencies,
            "version": SERVICE_VERSION,
        }

    async def _check_dependencies(self) -> Dict[str, str]:
        """Check service dependencies. Override in subclasses."""
        return {}

    def run(self):
        """Serve the app with uvicorn."""
        import uvicorn
        uvicorn.run(
            self.app,
            host=self.config.host,
            port=self.config.port,
            log_level=self.config.log_level.lower(),
        )
