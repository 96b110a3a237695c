"""
Base service class for Storefront Gateway services.
"""

import os
import time
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from shared.config import GatewayConfig, get_config
from shared.errors import GatewayError
from shared.logging import clear_context, configure_logging, get_logger, set_request_id
from shared.metrics import get_metrics_collector

VERSION = "1.0.0"
REQUEST_ID_HEADER = "X-Request-ID"
STOREFRONT_ORIGINS = r"https://.*\.myshopify\.com"


class BaseService:
    """FastAPI application shell shared by gateway services.

    Provides request-id propagation, access logging, Prometheus export,
    ``/health`` and the mapping of ``GatewayError`` to the storefront error
    envelope. Subclasses add routes and override ``_render_error`` or
    ``_check_dependencies`` as needed.
    """

    def __init__(self, service_name: str, config: Optional[GatewayConfig] = None):
        self.service_name = service_name
        self.config = config or get_config()

        configure_logging(service_name, self.config.log_level, json_output=self.config.env != "local")
        self.logger = get_logger(service_name)
        self.metrics = get_metrics_collector(service_name)
        self._start_time = time.time()

        self.app = self._create_app()
        self._setup_middleware()
        self._setup_routes()
        self._setup_exception_handlers()

    def _create_app(self) -> FastAPI:
        local = self.config.env == "local"
        return FastAPI(
            title=f"{self.service_name.title()} Gateway",
            description="Storefront gateway for marketplace product data",
            version=VERSION,
            docs_url="/docs" if local else None,
            redoc_url="/redoc" if local else None,
        )

    def _setup_middleware(self):
        # Storefront pages call the proxy from the shop's own domain.
        self.app.add_middleware(
            CORSMiddleware,
            allow_origin_regex=".*" if self.config.env == "local" else STOREFRONT_ORIGINS,
            allow_credentials=True,
            allow_methods=["GET", "OPTIONS"],
            allow_headers=["*"],
        )

        @self.app.middleware("http")
        async def request_context(request: Request, call_next):
            request_id = set_request_id(request.headers.get(REQUEST_ID_HEADER))
            started = time.perf_counter()
            try:
                response = await call_next(request)
                duration = time.perf_counter() - started

                self.metrics.record_http_request(request.method, request.url.path, response.status_code, duration)
                self.logger.info(
                    "HTTP request",
                    method=request.method,
                    path=request.url.path,
                    status_code=response.status_code,
                    duration_ms=round(duration * 1000, 2),
                    cache=response.headers.get("X-Cache"),
                )
                response.headers[REQUEST_ID_HEADER] = request_id
                return response
            finally:
                clear_context()

    def _setup_routes(self):
        @self.app.get("/health")
        async def health_check():
            """Service health with dependency readiness."""
            try:
                dependencies = await self._check_dependencies()
            except Exception as exc:
                self.logger.error("Health check failed", error=str(exc))
                self.metrics.record_health_check("error")
                return JSONResponse(
                    status_code=503,
                    content={"success": False, "service": self.service_name, "status": "error", "error": str(exc)},
                )

            self.metrics.record_health_check("ok")
            return self._health_payload(dependencies)

        @self.app.get("/metrics")
        async def metrics_endpoint():
            """Prometheus metrics endpoint."""
            return Response(content=generate_latest(self.metrics.registry), media_type=CONTENT_TYPE_LATEST)

    def _setup_exception_handlers(self):
        @self.app.exception_handler(GatewayError)
        async def gateway_error_handler(request: Request, exc: GatewayError):
            log = self.logger.warning if exc.status_code < 500 else self.logger.error
            log("Request failed", code=exc.code, message=exc.message, details=exc.details, path=request.url.path)
            self.metrics.record_error(exc.code)
            return self._render_error(exc)

        @self.app.exception_handler(Exception)
        async def unhandled_error_handler(request: Request, exc: Exception):
            self.logger.error("Unhandled exception", path=request.url.path, error=str(exc), exc_info=True)
            self.metrics.record_error("INTERNAL_ERROR")
            return JSONResponse(
                status_code=500,
                content={"success": False, "error": "Internal Server Error", "code": "INTERNAL_ERROR"},
            )

    def _render_error(self, exc: GatewayError) -> JSONResponse:
        """Render a GatewayError as the storefront error envelope."""
        return JSONResponse(
            status_code=exc.status_code,
            content=exc.to_response().model_dump(exclude_none=True),
        )

    def _health_payload(self, dependencies: Dict[str, Any]) -> Dict[str, Any]:
        return {
            "success": True,
            "service": self.service_name,
            "status": "ok",
            "environment": self.config.env,
            "uptime_seconds": round(time.time() - self._start_time, 3),
            "dependencies": dependencies,
            "version": VERSION,
            "commit": os.getenv("GIT_COMMIT", "unknown"),
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }

    async def _check_dependencies(self) -> Dict[str, str]:
        """Report dependency status. Override in subclasses."""
        return {}

    def run(self):
        import uvicorn

        uvicorn.run(self.app, host=self.config.host, port=self.config.port, log_level=self.config.log_level.lower())
