"""GitHub API interface (port) for fetching workflow usage and billing data.

This is the anti-corruption layer that shields the domain from GitHub API specifics.
"""
from abc import ABC, abstractmethod
from typing import List
from gh_billing_exporter.domain.models import (
    ActionsBilling,
    Organisation,
    PackagesBilling,
    RepositoryRef,
    SharedStorageBilling,
    Workflow,
    WorkflowUsage,
)


class IGitHubClient(ABC):
    """Abstract interface for GitHub API operations.

    Every method raises GitHubApiError when the call fails in transport,
    returns an error status, or yields a payload that cannot be decoded.
    """

    @abstractmethod
    async def list_workflows(self, repo: RepositoryRef) -> List[Workflow]:
        """List every workflow of a repository, following pagination to the end.

        Args:
            repo: Repository to list workflows for

        Returns:
            Workflows in the order GitHub returned them
        """
        pass

    @abstractmethod
    async def get_workflow_usage(self, repo: RepositoryRef, workflow_id: int) -> WorkflowUsage:
        """Fetch billable time of a workflow for the current billing cycle."""
        pass

    @abstractmethod
    async def get_org_actions_billing(self, org: Organisation) -> ActionsBilling:
        """Fetch GitHub Actions billing of an organisation."""
        pass

    @abstractmethod
    async def get_org_packages_billing(self, org: Organisation) -> PackagesBilling:
        """Fetch GitHub Packages billing of an organisation."""
        pass

    @abstractmethod
    async def get_org_shared_storage_billing(self, org: Organisation) -> SharedStorageBilling:
        """Fetch shared storage billing of an organisation."""
        pass

    @abstractmethod
    async def close(self) -> None:
        """Close any open connections."""
        pass
