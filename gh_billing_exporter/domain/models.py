"""Domain models representing the resources and usage data the exporter tracks."""
from dataclasses import dataclass, field
from enum import Enum
from typing import Mapping


Organisation = str


class ConfigurationError(Exception):
    """Raised when startup configuration is invalid."""
    pass


class GitHubApiError(Exception):
    """Raised when an upstream GitHub call fails in transport or with a bad status."""
    pass


class PayloadDecodeError(GitHubApiError):
    """Raised when an upstream response cannot be decoded into a domain model."""
    pass


class HostClass(Enum):
    """Runner operating system a billed job executed on.

    The value is the label exposed on metrics; ``api_key`` is the key GitHub
    uses for the same class in billing payloads.
    """
    UBUNTU = "ubuntu"
    MACOS = "macos"
    WINDOWS = "windows"

    @property
    def api_key(self) -> str:
        return self.name


@dataclass(frozen=True)
class RepositoryRef:
    """Immutable identifier of a tracked GitHub repository.

    Hashable by (owner, name) so it can key the workflow cache.
    """
    owner: str
    name: str

    @classmethod
    def parse(cls, value: str) -> 'RepositoryRef':
        """Parse an ``owner/name`` string.

        Raises:
            ConfigurationError: If the separator, owner or name is missing
        """
        owner, sep, name = value.partition("/")
        if not sep:
            raise ConfigurationError(
                f"repo must be in format {{owner}}/{{name}}, got {value!r}"
            )
        if not owner or not name:
            raise ConfigurationError(
                f"repo owner and name must not be empty, got {value!r}"
            )
        return cls(owner=owner, name=name)

    @property
    def full_name(self) -> str:
        """Returns the full repository name (owner/name)."""
        return f"{self.owner}/{self.name}"

    def __str__(self) -> str:
        return self.full_name


@dataclass(frozen=True)
class Workflow:
    """A CI workflow definition as last observed for a repository."""
    id: int
    name: str

    def __str__(self) -> str:
        return f"({self.id}) {self.name}"


@dataclass(frozen=True)
class WorkflowUsage:
    """Billable milliseconds of one workflow, per host class.

    Host classes GitHub did not report are absent from the mapping.
    """
    billable_ms: Mapping[HostClass, float] = field(default_factory=dict)


@dataclass(frozen=True)
class ActionsBilling:
    """GitHub Actions billing summary of an organisation."""
    total_minutes_used: float
    total_paid_minutes_used: float
    included_minutes: float
    minutes_used_breakdown: Mapping[HostClass, float] = field(default_factory=dict)


@dataclass(frozen=True)
class PackagesBilling:
    """GitHub Packages billing summary of an organisation."""
    total_gigabytes_bandwidth_used: float
    total_paid_gigabytes_bandwidth_used: float
    included_gigabytes_bandwidth: float


@dataclass(frozen=True)
class SharedStorageBilling:
    """Shared storage billing summary of an organisation."""
    days_left_in_billing_cycle: float
    estimated_paid_storage_for_month: float
    estimated_storage_for_month: float
