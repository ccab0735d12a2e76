"""Cache of discovered workflows shared by the discovery and usage loops."""
import threading
from typing import Dict, Iterable, Iterator, Tuple
from gh_billing_exporter.domain.models import RepositoryRef, Workflow


class _CacheEntry:
    """Workflow list of one repository, replaced wholesale under its own lock."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._workflows: Tuple[Workflow, ...] = ()

    def replace(self, workflows: Iterable[Workflow]) -> None:
        updated = tuple(workflows)
        with self._lock:
            self._workflows = updated

    def snapshot(self) -> Tuple[Workflow, ...]:
        with self._lock:
            return self._workflows


class WorkflowCache:
    """Mapping of tracked repositories to their last discovered workflows.

    The key set is fixed at construction and equals the configured repositories
    for the lifetime of the cache. Each entry is locked independently: a writer
    swaps in a complete new list, so readers always observe either the previous
    list or the new one in full.
    """

    def __init__(self, repositories: Iterable[RepositoryRef]):
        """Initialize the cache with an empty workflow list per repository.

        Args:
            repositories: Tracked repositories; duplicates collapse to one entry
        """
        self._entries: Dict[RepositoryRef, _CacheEntry] = {
            repo: _CacheEntry() for repo in repositories
        }

    def repositories(self) -> Tuple[RepositoryRef, ...]:
        """Returns the tracked repositories in cache iteration order."""
        return tuple(self._entries)

    def snapshot(self, repo: RepositoryRef) -> Tuple[Workflow, ...]:
        """Returns the current workflow list of a repository.

        Raises:
            KeyError: If the repository is not tracked
        """
        return self._entries[repo].snapshot()

    def replace(self, repo: RepositoryRef, workflows: Iterable[Workflow]) -> None:
        """Replace the workflow list of a repository with a fresh one.

        Raises:
            KeyError: If the repository is not tracked
        """
        self._entries[repo].replace(workflows)

    def __contains__(self, repo: object) -> bool:
        return repo in self._entries

    def __iter__(self) -> Iterator[RepositoryRef]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)
