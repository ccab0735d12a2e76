"""Per-workflow billable time polling."""
import logging
from gh_billing_exporter.application.scheduler import run_periodically
from gh_billing_exporter.domain.github_interface import IGitHubClient
from gh_billing_exporter.domain.models import GitHubApiError, RepositoryRef, Workflow
from gh_billing_exporter.domain.workflow_cache import WorkflowCache
from gh_billing_exporter.infrastructure.prometheus_metrics import ExporterMetrics


logger = logging.getLogger(__name__)


class WorkflowUsageService:
    """Application service polling billable time of every cached workflow.

    The workflow list of each repository is read fresh at every cycle, so
    workflows found or dropped by discovery take effect on the next cycle.
    """

    def __init__(
        self,
        github_client: IGitHubClient,
        cache: WorkflowCache,
        metrics: ExporterMetrics,
        poll_interval_seconds: float = 300,
    ):
        """Initialize usage service.

        Args:
            github_client: GitHub API client implementation
            cache: Workflow cache to read workflows from
            metrics: Metrics to publish into
            poll_interval_seconds: Pause between two polling cycles
        """
        self._github_client = github_client
        self._cache = cache
        self._metrics = metrics
        self._poll_interval = poll_interval_seconds

    async def poll_workflow(self, repo: RepositoryRef, workflow: Workflow) -> None:
        """Fetch and publish billable time of a single workflow."""
        usage = await self._github_client.get_workflow_usage(repo, workflow.id)
        self._metrics.publish_workflow_usage(repo, workflow, usage)

    async def poll_all(self) -> int:
        """Run one usage cycle over every cached workflow.

        Returns:
            Number of workflows polled successfully
        """
        polled = 0
        for repo in self._cache.repositories():
            for workflow in self._cache.snapshot(repo):
                try:
                    await self.poll_workflow(repo, workflow)
                except GitHubApiError as e:
                    logger.error(
                        f"Failed to poll billable time for workflow {workflow} "
                        f"in repo {repo}: {e}"
                    )
                    continue
                except Exception as e:
                    logger.exception(
                        f"Unexpected error polling workflow {workflow} in repo {repo}: {e}"
                    )
                    continue
                polled += 1
                logger.info(f"Polled usage for {repo}:{workflow.name}")
        return polled

    async def run_forever(self) -> None:
        await run_periodically("workflow usage", self.poll_all, self._poll_interval)
