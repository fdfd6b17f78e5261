"""
Metrics and health endpoints for the forwarder.

/metrics exposes one gauge per splunkd health component, /livez reports
whether splunkd is still running and /healthz reports splunkd's own health.
"""

import logging
import threading

from fastapi import FastAPI, Request
from fastapi.responses import PlainTextResponse, Response
from prometheus_client import CONTENT_TYPE_LATEST, CollectorRegistry, Gauge, generate_latest

from .health import HealthMonitor
from .process import SupervisedProcess

logger = logging.getLogger(__name__)

OK = "ok"
NOT_OK = "not ok"


def _status_text(healthy: bool) -> str:
    return OK if healthy else NOT_OK


def create_app(monitor: HealthMonitor, process: SupervisedProcess) -> FastAPI:
    """Build the app around a health monitor and the splunkd process."""
    app = FastAPI(
        title="Splunk forwarder runner",
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )

    registry = CollectorRegistry()
    unhealthy = Gauge(
        "unhealthy",
        "Whether a splunkd health component is not green",
        ["component"],
        namespace="splunk_forwarder",
        subsystem="component",
        registry=registry,
    )
    metrics_lock = threading.Lock()

    app.state.monitor = monitor
    app.state.process = process
    app.state.registry = registry

    @app.get("/metrics")
    def metrics():
        """Poll splunkd and expose per-component health gauges."""
        with metrics_lock:
            # Components missing from the tree only drop out on a healthy poll.
            if monitor.check():
                unhealthy.clear()
            for component, status in monitor.snapshot().items():
                unhealthy.labels(component=component).set(0 if status.healthy else 1)
            body = generate_latest(registry)
        return Response(content=body, media_type=CONTENT_TYPE_LATEST)

    @app.get("/livez", response_class=PlainTextResponse)
    def livez():
        """Liveness of the splunkd process, independent of its health."""
        status = process.status()
        if status.terminal_exit:
            logger.debug(f"livez failing, {process.name} state {status.to_dict()}")
            return PlainTextResponse(NOT_OK, status_code=500)
        return PlainTextResponse(OK)

    @app.get("/healthz", response_class=PlainTextResponse)
    def healthz(request: Request):
        """Health of splunkd; add ?verbose for per-component lines."""
        healthy = monitor.check()
        body = _status_text(healthy)
        if "verbose" in request.query_params:
            for component, status in sorted(monitor.snapshot().items()):
                body += f"\n[+]{component} {_status_text(status.healthy)}"
            body += "\n"
        return PlainTextResponse(body, status_code=200 if healthy else 500)

    return app
