"""Tests for the workflow cache."""
import threading
import pytest
from gh_billing_exporter.domain.models import RepositoryRef, Workflow
from gh_billing_exporter.domain.workflow_cache import WorkflowCache


WIDGETS = RepositoryRef("acme", "widgets")
GADGETS = RepositoryRef("acme", "gadgets")


def test_cache_starts_with_empty_entry_per_repository():
    cache = WorkflowCache([WIDGETS, GADGETS])

    assert cache.repositories() == (WIDGETS, GADGETS)
    assert len(cache) == 2
    assert WIDGETS in cache
    assert cache.snapshot(WIDGETS) == ()
    assert cache.snapshot(GADGETS) == ()


def test_duplicate_repositories_collapse():
    cache = WorkflowCache([WIDGETS, RepositoryRef.parse("acme/widgets")])

    assert cache.repositories() == (WIDGETS,)


def test_replace_swaps_whole_list():
    cache = WorkflowCache([WIDGETS])
    cache.replace(WIDGETS, [Workflow(1, "build"), Workflow(2, "lint")])

    cache.replace(WIDGETS, [Workflow(3, "release")])

    assert cache.snapshot(WIDGETS) == (Workflow(3, "release"),)


def test_replace_leaves_other_entries_alone():
    cache = WorkflowCache([WIDGETS, GADGETS])
    cache.replace(GADGETS, [Workflow(7, "docs")])

    cache.replace(WIDGETS, [Workflow(1, "build")])

    assert cache.snapshot(GADGETS) == (Workflow(7, "docs"),)


def test_unknown_repository_is_rejected():
    cache = WorkflowCache([WIDGETS])
    stranger = RepositoryRef("acme", "stranger")

    with pytest.raises(KeyError):
        cache.replace(stranger, [])
    with pytest.raises(KeyError):
        cache.snapshot(stranger)
    assert cache.repositories() == (WIDGETS,)


def test_snapshot_is_not_affected_by_later_replace():
    """A reader iterating a snapshot keeps seeing the list it took."""
    cache = WorkflowCache([WIDGETS])
    old = [Workflow(1, "build"), Workflow(2, "lint"), Workflow(3, "test")]
    new = [Workflow(10, "ci")]
    cache.replace(WIDGETS, old)

    seen = []
    for workflow in cache.snapshot(WIDGETS):
        seen.append(workflow)
        cache.replace(WIDGETS, new)

    assert seen == old
    assert cache.snapshot(WIDGETS) == tuple(new)


def test_concurrent_readers_see_whole_lists():
    """Readers racing a writer only ever observe one of the written lists in full."""
    cache = WorkflowCache([WIDGETS])
    lists = [
        tuple(Workflow(i * 100 + j, f"wf-{i}") for j in range(50))
        for i in range(5)
    ]
    cache.replace(WIDGETS, lists[0])
    stop = threading.Event()
    observed = []

    def reader():
        while True:
            observed.append(cache.snapshot(WIDGETS))
            if stop.is_set():
                break

    def writer():
        for _ in range(200):
            for workflows in lists:
                cache.replace(WIDGETS, list(workflows))
        stop.set()

    threads = [threading.Thread(target=reader) for _ in range(3)]
    threads.append(threading.Thread(target=writer))
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=10)

    assert observed
    assert all(snapshot in lists for snapshot in observed)
