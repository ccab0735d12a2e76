"""Tests for organisation billing polling."""
import asyncio
import pytest
from gh_billing_exporter.application.org_billing_service import OrgBillingService
from gh_billing_exporter.domain.models import (
    ActionsBilling,
    GitHubApiError,
    HostClass,
    PackagesBilling,
    SharedStorageBilling,
)


ORG_GAUGES = [
    "github_org_billing_actions_total_minutes_used",
    "github_org_billing_actions_total_paid_minutes_used",
    "github_org_billing_actions_included_minutes",
    "github_org_billing_packages_total_gigabytes_bandwidth_used",
    "github_org_billing_packages_total_paid_gigabytes_bandwidth_used",
    "github_org_billing_packages_included_gigabytes_bandwidth",
    "github_org_billing_shared_storage_days_left_in_billing_cycle",
    "github_org_billing_shared_storage_estimated_paid_storage_for_month",
    "github_org_billing_shared_storage_estimated_storage_for_month",
]


def seed_billing(client, org, scale=1.0):
    client.actions[org] = ActionsBilling(
        total_minutes_used=120.5 * scale,
        total_paid_minutes_used=20.0 * scale,
        included_minutes=3000.0,
        minutes_used_breakdown={HostClass.UBUNTU: 100.0 * scale, HostClass.MACOS: 20.5 * scale},
    )
    client.packages[org] = PackagesBilling(
        total_gigabytes_bandwidth_used=50.0 * scale,
        total_paid_gigabytes_bandwidth_used=40.0 * scale,
        included_gigabytes_bandwidth=10.0,
    )
    client.shared_storage[org] = SharedStorageBilling(
        days_left_in_billing_cycle=20.0,
        estimated_paid_storage_for_month=15.0 * scale,
        estimated_storage_for_month=40.0 * scale,
    )


def org_values(registry, org):
    values = {
        name: registry.get_sample_value(name, {"organisation": org}) for name in ORG_GAUGES
    }
    for host_class in HostClass:
        values[f"breakdown_{host_class.value}"] = registry.get_sample_value(
            "github_org_billing_actions_minutes_used_breakdown",
            {"organisation": org, "os": host_class.value},
        )
    return values


@pytest.mark.asyncio
async def test_publishes_all_categories(github_client, metrics, registry):
    seed_billing(github_client, "acme")
    service = OrgBillingService(github_client, ["acme"], metrics)

    polled = await service.poll_all()

    values = org_values(registry, "acme")
    assert polled == 1
    assert values["github_org_billing_actions_total_minutes_used"] == 120.5
    assert values["github_org_billing_actions_total_paid_minutes_used"] == 20.0
    assert values["github_org_billing_actions_included_minutes"] == 3000.0
    assert values["github_org_billing_packages_total_gigabytes_bandwidth_used"] == 50.0
    assert values["github_org_billing_packages_total_paid_gigabytes_bandwidth_used"] == 40.0
    assert values["github_org_billing_packages_included_gigabytes_bandwidth"] == 10.0
    assert values["github_org_billing_shared_storage_days_left_in_billing_cycle"] == 20.0
    assert values["github_org_billing_shared_storage_estimated_paid_storage_for_month"] == 15.0
    assert values["github_org_billing_shared_storage_estimated_storage_for_month"] == 40.0
    assert values["breakdown_ubuntu"] == 100.0
    assert values["breakdown_macos"] == 20.5
    assert values["breakdown_windows"] is None


@pytest.mark.asyncio
@pytest.mark.parametrize("failing", ["actions", "packages", "shared_storage"])
async def test_any_failure_publishes_nothing(github_client, metrics, registry, failing):
    seed_billing(github_client, "acme")
    getattr(github_client, failing)["acme"] = GitHubApiError("403 forbidden")
    service = OrgBillingService(github_client, ["acme"], metrics)

    polled = await service.poll_all()

    assert polled == 0
    assert all(value is None for value in org_values(registry, "acme").values())


@pytest.mark.asyncio
@pytest.mark.parametrize("failing", ["actions", "packages", "shared_storage"])
async def test_any_failure_keeps_previous_values(github_client, metrics, registry, failing):
    seed_billing(github_client, "acme")
    service = OrgBillingService(github_client, ["acme"], metrics)
    await service.poll_all()
    before = org_values(registry, "acme")

    seed_billing(github_client, "acme", scale=2.0)
    getattr(github_client, failing)["acme"] = GitHubApiError("502 bad gateway")
    await service.poll_all()

    assert org_values(registry, "acme") == before


@pytest.mark.asyncio
async def test_failing_organisation_does_not_stop_the_others(github_client, metrics, registry):
    seed_billing(github_client, "broken")
    github_client.packages["broken"] = GitHubApiError("timeout")
    seed_billing(github_client, "acme")
    service = OrgBillingService(github_client, ["broken", "acme"], metrics)

    polled = await service.poll_all()

    assert polled == 1
    assert registry.get_sample_value(
        "github_org_billing_actions_total_minutes_used", {"organisation": "acme"}
    ) == 120.5
    assert registry.get_sample_value(
        "github_org_billing_actions_total_minutes_used", {"organisation": "broken"}
    ) is None


@pytest.mark.asyncio
async def test_poll_organisation_raises_failure(github_client, metrics):
    seed_billing(github_client, "acme")
    github_client.actions["acme"] = GitHubApiError("403 forbidden")
    service = OrgBillingService(github_client, ["acme"], metrics)

    with pytest.raises(GitHubApiError, match="403"):
        await service.poll_organisation("acme")


@pytest.mark.asyncio
async def test_categories_are_fetched_concurrently(metrics):
    started = []
    release = asyncio.Event()

    class SlowClient:
        async def _wait(self, name):
            started.append(name)
            await release.wait()

        async def get_org_actions_billing(self, org):
            await self._wait("actions")
            return ActionsBilling(1.0, 1.0, 1.0)

        async def get_org_packages_billing(self, org):
            await self._wait("packages")
            return PackagesBilling(1.0, 1.0, 1.0)

        async def get_org_shared_storage_billing(self, org):
            await self._wait("shared_storage")
            return SharedStorageBilling(1.0, 1.0, 1.0)

    service = OrgBillingService(SlowClient(), ["acme"], metrics)
    task = asyncio.create_task(service.poll_organisation("acme"))
    await asyncio.sleep(0.05)

    assert sorted(started) == ["actions", "packages", "shared_storage"]
    release.set()
    await task


@pytest.mark.asyncio
async def test_unexpected_error_does_not_stop_the_others(github_client, metrics, registry, caplog):
    seed_billing(github_client, "broken")
    github_client.shared_storage["broken"] = OverflowError("int too large to convert to float")
    seed_billing(github_client, "acme")
    service = OrgBillingService(github_client, ["broken", "acme"], metrics)

    polled = await service.poll_all()

    assert polled == 1
    assert org_values(registry, "acme")["github_org_billing_actions_total_minutes_used"] == 120.5
    assert org_values(registry, "broken")["github_org_billing_actions_total_minutes_used"] is None
    assert "`broken`" in caplog.text
