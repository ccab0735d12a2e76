"""Main entry point for the GitHub billing exporter.

This script wires the polling services, the workflow cache and the metrics
endpoint together and runs them until the process is stopped.
"""
import asyncio
import signal
import sys
import logging
from dotenv import load_dotenv
from gh_billing_exporter.application.org_billing_service import OrgBillingService
from gh_billing_exporter.application.scheduler import PollingScheduler
from gh_billing_exporter.application.workflow_discovery_service import WorkflowDiscoveryService
from gh_billing_exporter.application.workflow_usage_service import WorkflowUsageService
from gh_billing_exporter.config import ExporterConfig, parse_config
from gh_billing_exporter.domain.models import ConfigurationError
from gh_billing_exporter.domain.workflow_cache import WorkflowCache
from gh_billing_exporter.infrastructure.github_client import GitHubRestClient
from gh_billing_exporter.infrastructure.http_server import create_app, start_server
from gh_billing_exporter.infrastructure.prometheus_metrics import ExporterMetrics


logger = logging.getLogger(__name__)

TEXT_LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
JSON_LOG_FORMAT = (
    '{"time": "%(asctime)s", "level": "%(levelname)s", '
    '"logger": "%(name)s", "message": "%(message)s"}'
)


def setup_logging(config: ExporterConfig) -> None:
    """Configure application logging."""
    logging.basicConfig(
        level=getattr(logging, config.log_level),
        format=JSON_LOG_FORMAT if config.log_format == "json" else TEXT_LOG_FORMAT,
        handlers=[logging.StreamHandler(sys.stdout)],
    )


async def main(config: ExporterConfig):
    """Run the polling loops and the metrics endpoint until stopped."""
    logger.info(f"Configured repos: {', '.join(map(str, config.repositories)) or 'none'}")
    logger.info(f"Configured organisations: {', '.join(config.organisations) or 'none'}")

    # Initialize infrastructure components
    metrics = ExporterMetrics()
    github_client = GitHubRestClient(
        config.github_token,
        base_url=config.github_base_url,
        request_timeout=config.request_timeout_seconds,
    )
    cache = WorkflowCache(config.repositories)

    # Initialize application services
    discovery = WorkflowDiscoveryService(
        github_client, cache, refresh_interval_seconds=config.workflows_refresh_seconds
    )
    usage = WorkflowUsageService(
        github_client, cache, metrics, poll_interval_seconds=config.poll_interval_seconds
    )
    org_billing = OrgBillingService(
        github_client,
        config.organisations,
        metrics,
        poll_interval_seconds=config.poll_interval_seconds,
    )
    scheduler = PollingScheduler({
        "poll_workflows": discovery.run_forever,
        "poll_billable_ms": usage.run_forever,
        "poll_orgs_billing": org_billing.run_forever,
    })

    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop.set)
        except NotImplementedError:
            pass

    runner = await start_server(create_app(metrics), config.bind_host, config.bind_port)
    try:
        await scheduler.start()
        await stop.wait()
        logger.info("Shutdown requested")
    finally:
        await scheduler.stop()
        await runner.cleanup()
        await github_client.close()


def run() -> None:
    """Console script entry point."""
    # Load environment variables from .env or env file
    load_dotenv('.env') or load_dotenv('env')

    try:
        config = parse_config()
    except ConfigurationError as e:
        logging.basicConfig(level=logging.ERROR, format=TEXT_LOG_FORMAT)
        logger.error(f"Invalid configuration: {e}")
        sys.exit(1)

    setup_logging(config)

    try:
        asyncio.run(main(config))
    except OSError as e:
        logger.error(f"Exporter failed: {e}", exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    run()
