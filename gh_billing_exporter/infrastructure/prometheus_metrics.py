"""Prometheus gauges the exporter publishes, and their text exposition."""
from typing import Optional, Tuple
from prometheus_client import (
    CONTENT_TYPE_LATEST,
    REGISTRY,
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
)
from gh_billing_exporter.domain.models import (
    ActionsBilling,
    Organisation,
    PackagesBilling,
    RepositoryRef,
    SharedStorageBilling,
    Workflow,
    WorkflowUsage,
)


class ExporterMetrics:
    """Owns every metric the exporter exposes.

    Gauges hold the last successfully polled value of each series. Host classes
    missing from a payload are not published, so a series only exists once
    GitHub has reported it.
    """

    def __init__(self, registry: Optional[CollectorRegistry] = None):
        """Register all metrics.

        Args:
            registry: Registry to register on (defaults to the global registry)
        """
        self.registry = registry if registry is not None else REGISTRY

        # --- Workflow usage ---
        self.actions_billable_ms = Gauge(
            "github_actions_billable_ms",
            "Github Actions billable milliseconds",
            ["owner", "repository", "workflow", "os"],
            registry=self.registry,
        )

        # --- Organisation Actions billing ---
        self.org_actions_total_minutes_used = Gauge(
            "github_org_billing_actions_total_minutes_used",
            "Github Actions organisation billing total minutes used",
            ["organisation"],
            registry=self.registry,
        )
        self.org_actions_total_paid_minutes_used = Gauge(
            "github_org_billing_actions_total_paid_minutes_used",
            "Github Actions organisation billing total paid minutes used",
            ["organisation"],
            registry=self.registry,
        )
        self.org_actions_included_minutes = Gauge(
            "github_org_billing_actions_included_minutes",
            "Github Actions organisation billing included minutes",
            ["organisation"],
            registry=self.registry,
        )
        self.org_actions_minutes_used_breakdown = Gauge(
            "github_org_billing_actions_minutes_used_breakdown",
            "Github Actions organisation billing minutes breakdown",
            ["organisation", "os"],
            registry=self.registry,
        )

        # --- Organisation Packages billing ---
        self.org_packages_total_gigabytes_bandwidth_used = Gauge(
            "github_org_billing_packages_total_gigabytes_bandwidth_used",
            "Github Packages organisation billing total gigabytes bandwidth used",
            ["organisation"],
            registry=self.registry,
        )
        self.org_packages_total_paid_gigabytes_bandwidth_used = Gauge(
            "github_org_billing_packages_total_paid_gigabytes_bandwidth_used",
            "Github Packages organisation billing total paid gigabytes bandwidth used",
            ["organisation"],
            registry=self.registry,
        )
        self.org_packages_included_gigabytes_bandwidth = Gauge(
            "github_org_billing_packages_included_gigabytes_bandwidth",
            "Github Packages organisation billing included gigabytes bandwidth",
            ["organisation"],
            registry=self.registry,
        )

        # --- Organisation shared storage billing ---
        self.org_shared_storage_days_left_in_billing_cycle = Gauge(
            "github_org_billing_shared_storage_days_left_in_billing_cycle",
            "Github Shared Storage organisation billing days left in billing cycle",
            ["organisation"],
            registry=self.registry,
        )
        self.org_shared_storage_estimated_paid_storage_for_month = Gauge(
            "github_org_billing_shared_storage_estimated_paid_storage_for_month",
            "Github Shared Storage organisation billing estimated paid storage for month",
            ["organisation"],
            registry=self.registry,
        )
        self.org_shared_storage_estimated_storage_for_month = Gauge(
            "github_org_billing_shared_storage_estimated_storage_for_month",
            "Github Shared Storage organisation billing estimated storage for month",
            ["organisation"],
            registry=self.registry,
        )

        # --- HTTP server ---
        self.http_requests_total = Counter(
            "http_requests_total",
            "Number of HTTP requests made.",
            ["status_code", "path"],
            registry=self.registry,
        )
        self.http_request_duration_seconds = Histogram(
            "http_request_duration_seconds",
            "The HTTP request latencies in seconds.",
            ["path"],
            registry=self.registry,
        )

    def publish_workflow_usage(
        self, repo: RepositoryRef, workflow: Workflow, usage: WorkflowUsage
    ) -> None:
        for host_class, total_ms in usage.billable_ms.items():
            self.actions_billable_ms.labels(
                repo.owner, repo.name, workflow.name, host_class.value
            ).set(total_ms)

    def publish_actions_billing(self, org: Organisation, billing: ActionsBilling) -> None:
        self.org_actions_total_minutes_used.labels(org).set(billing.total_minutes_used)
        self.org_actions_total_paid_minutes_used.labels(org).set(billing.total_paid_minutes_used)
        self.org_actions_included_minutes.labels(org).set(billing.included_minutes)

        for host_class, minutes in billing.minutes_used_breakdown.items():
            self.org_actions_minutes_used_breakdown.labels(org, host_class.value).set(minutes)

    def publish_packages_billing(self, org: Organisation, billing: PackagesBilling) -> None:
        self.org_packages_total_gigabytes_bandwidth_used.labels(org).set(
            billing.total_gigabytes_bandwidth_used
        )
        self.org_packages_total_paid_gigabytes_bandwidth_used.labels(org).set(
            billing.total_paid_gigabytes_bandwidth_used
        )
        self.org_packages_included_gigabytes_bandwidth.labels(org).set(
            billing.included_gigabytes_bandwidth
        )

    def publish_shared_storage_billing(
        self, org: Organisation, billing: SharedStorageBilling
    ) -> None:
        self.org_shared_storage_days_left_in_billing_cycle.labels(org).set(
            billing.days_left_in_billing_cycle
        )
        self.org_shared_storage_estimated_paid_storage_for_month.labels(org).set(
            billing.estimated_paid_storage_for_month
        )
        self.org_shared_storage_estimated_storage_for_month.labels(org).set(
            billing.estimated_storage_for_month
        )

    def render(self) -> Tuple[bytes, str]:
        """Render the registry in the Prometheus text format.

        Returns:
            Exposition body and its content type
        """
        return generate_latest(self.registry), CONTENT_TYPE_LATEST
