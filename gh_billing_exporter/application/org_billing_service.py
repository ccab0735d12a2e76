"""Organisation billing polling."""
import asyncio
import logging
from typing import Sequence
from gh_billing_exporter.application.scheduler import run_periodically
from gh_billing_exporter.domain.github_interface import IGitHubClient
from gh_billing_exporter.domain.models import GitHubApiError, Organisation
from gh_billing_exporter.infrastructure.prometheus_metrics import ExporterMetrics


logger = logging.getLogger(__name__)


class OrgBillingService:
    """Application service polling Actions, Packages and shared storage billing.

    The three categories of an organisation are fetched concurrently and
    published together: if any of them fails, nothing is published for that
    organisation in the cycle and its previous values stay in place.
    """

    def __init__(
        self,
        github_client: IGitHubClient,
        organisations: Sequence[Organisation],
        metrics: ExporterMetrics,
        poll_interval_seconds: float = 300,
    ):
        """Initialize org billing service.

        Args:
            github_client: GitHub API client implementation
            organisations: Organisation logins to poll
            metrics: Metrics to publish into
            poll_interval_seconds: Pause between two polling cycles
        """
        self._github_client = github_client
        self._organisations = tuple(organisations)
        self._metrics = metrics
        self._poll_interval = poll_interval_seconds

    async def poll_organisation(self, org: Organisation) -> None:
        """Fetch and publish all billing categories of one organisation.

        Raises:
            GitHubApiError: The first failure among the three fetches
        """
        actions, packages, shared_storage = await asyncio.gather(
            self._github_client.get_org_actions_billing(org),
            self._github_client.get_org_packages_billing(org),
            self._github_client.get_org_shared_storage_billing(org),
            return_exceptions=True,
        )

        for result in (actions, packages, shared_storage):
            if isinstance(result, BaseException):
                raise result

        self._metrics.publish_actions_billing(org, actions)
        self._metrics.publish_packages_billing(org, packages)
        self._metrics.publish_shared_storage_billing(org, shared_storage)

        logger.info(f"Polled org billing for `{org}`")

    async def poll_all(self) -> int:
        """Run one billing cycle over every organisation.

        Returns:
            Number of organisations polled successfully
        """
        polled = 0
        for org in self._organisations:
            try:
                await self.poll_organisation(org)
                polled += 1
            except GitHubApiError as e:
                logger.error(f"Failed to poll org billing for org `{org}`: {e}")
            except Exception as e:
                logger.exception(f"Unexpected error polling org billing for org `{org}`: {e}")
        return polled

    async def run_forever(self) -> None:
        await run_periodically("org billing", self.poll_all, self._poll_interval)
