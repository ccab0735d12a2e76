"""Workflow discovery: keeps the workflow cache in step with GitHub."""
import logging
from gh_billing_exporter.application.scheduler import run_periodically
from gh_billing_exporter.domain.github_interface import IGitHubClient
from gh_billing_exporter.domain.models import GitHubApiError, RepositoryRef
from gh_billing_exporter.domain.workflow_cache import WorkflowCache


logger = logging.getLogger(__name__)


class WorkflowDiscoveryService:
    """Application service refreshing the workflow list of every tracked repository.

    Each refresh replaces a repository's cached list wholesale. A repository
    whose listing fails keeps its previous list until a later cycle succeeds.
    """

    def __init__(
        self,
        github_client: IGitHubClient,
        cache: WorkflowCache,
        refresh_interval_seconds: float = 1800,
    ):
        """Initialize discovery service.

        Args:
            github_client: GitHub API client implementation
            cache: Workflow cache to keep up to date
            refresh_interval_seconds: Pause between two discovery cycles
        """
        self._github_client = github_client
        self._cache = cache
        self._refresh_interval = refresh_interval_seconds

    async def refresh_repository(self, repo: RepositoryRef) -> None:
        """Fetch the workflows of one repository and replace its cache entry.

        Raises:
            GitHubApiError: If listing fails; the cache entry is left untouched
        """
        workflows = await self._github_client.list_workflows(repo)
        logger.info(
            f"Found workflows for repo `{repo}`: "
            f"{', '.join(str(w) for w in workflows) or 'none'}"
        )
        self._cache.replace(repo, workflows)

    async def refresh_all(self) -> int:
        """Run one discovery cycle over every tracked repository.

        Returns:
            Number of repositories refreshed successfully
        """
        refreshed = 0
        for repo in self._cache.repositories():
            try:
                await self.refresh_repository(repo)
                refreshed += 1
            except GitHubApiError as e:
                logger.error(f"Failed to fetch workflows for repo {repo}: {e}")
            except Exception as e:
                logger.exception(f"Unexpected error fetching workflows for repo {repo}: {e}")
        return refreshed

    async def run_forever(self) -> None:
        await run_periodically("workflow discovery", self.refresh_all, self._refresh_interval)
