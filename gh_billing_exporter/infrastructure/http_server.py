"""HTTP endpoint serving the health check and the Prometheus metrics."""
import logging
import time
from typing import Awaitable, Callable
from aiohttp import web
from gh_billing_exporter.infrastructure.prometheus_metrics import ExporterMetrics


logger = logging.getLogger(__name__)

METRICS_KEY = web.AppKey("metrics", ExporterMetrics)

Handler = Callable[[web.Request], Awaitable[web.StreamResponse]]


@web.middleware
async def instrument_requests(request: web.Request, handler: Handler) -> web.StreamResponse:
    """Count, time and log every request, including unknown paths."""
    metrics = request.app[METRICS_KEY]
    path = request.path
    start = time.perf_counter()
    status = 500

    try:
        response = await handler(request)
        status = response.status
        return response
    except web.HTTPException as e:
        status = e.status
        raise
    finally:
        metrics.http_request_duration_seconds.labels(path).observe(time.perf_counter() - start)
        metrics.http_requests_total.labels(str(status), path).inc()
        logger.info(f"{request.method} {path} -> {status}")


async def healthz(request: web.Request) -> web.Response:
    return web.Response(text="OK")


async def metrics_endpoint(request: web.Request) -> web.Response:
    body, content_type = request.app[METRICS_KEY].render()
    return web.Response(body=body, headers={"Content-Type": content_type})


def create_app(metrics: ExporterMetrics) -> web.Application:
    """Build the aiohttp application exposing /healthz and /metrics."""
    app = web.Application(middlewares=[instrument_requests])
    app[METRICS_KEY] = metrics
    app.router.add_get("/healthz", healthz)
    app.router.add_get("/metrics", metrics_endpoint)
    return app


async def start_server(app: web.Application, host: str, port: int) -> web.AppRunner:
    """Start serving ``app`` on host:port.

    Returns:
        Runner to clean up when shutting down
    """
    runner = web.AppRunner(app, access_log=None)
    await runner.setup()
    site = web.TCPSite(runner, host, port)
    await site.start()
    logger.info(f"Listening on {host}:{port}")
    return runner
