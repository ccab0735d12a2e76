"""GitHub REST API client implementation for workflow usage and billing endpoints."""
import asyncio
import logging
from typing import Any, Callable, Dict, List, Mapping, Optional, Set, Tuple, TypeVar
import aiohttp
from gh_billing_exporter.domain.github_interface import IGitHubClient
from gh_billing_exporter.domain.models import (
    ActionsBilling,
    GitHubApiError,
    HostClass,
    Organisation,
    PackagesBilling,
    PayloadDecodeError,
    RepositoryRef,
    SharedStorageBilling,
    Workflow,
    WorkflowUsage,
)


logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.github.com"

T = TypeVar("T")


def _as_float(payload: Mapping[str, Any], key: str) -> float:
    """Read a numeric field that GitHub may send as a number or a decimal string."""
    if key not in payload:
        raise PayloadDecodeError(f"missing field `{key}`")
    value = payload[key]
    if isinstance(value, bool) or not isinstance(value, (int, float, str)):
        raise PayloadDecodeError(f"field `{key}` is not numeric: {value!r}")
    try:
        return float(value)
    except (ValueError, OverflowError) as e:
        raise PayloadDecodeError(f"field `{key}` is not numeric: {value!r}") from e


def _as_mapping(payload: Any, what: str) -> Mapping[str, Any]:
    if not isinstance(payload, dict):
        raise PayloadDecodeError(f"expected an object for {what}, got {type(payload).__name__}")
    return payload


def decode_workflows(payload: Any) -> List[Workflow]:
    """Decode one page of the list-workflows response."""
    page = _as_mapping(payload, "workflows page")
    items = page.get("workflows")
    if not isinstance(items, list):
        raise PayloadDecodeError("missing field `workflows`")

    workflows = []
    for item in items:
        item = _as_mapping(item, "workflow")
        workflow_id = item.get("id")
        name = item.get("name")
        if isinstance(workflow_id, bool) or not isinstance(workflow_id, int):
            raise PayloadDecodeError(f"workflow id is not an integer: {workflow_id!r}")
        if not isinstance(name, str):
            raise PayloadDecodeError(f"workflow name is not a string: {name!r}")
        workflows.append(Workflow(id=workflow_id, name=name))
    return workflows


def decode_workflow_usage(payload: Any) -> WorkflowUsage:
    """Decode a workflow timing response; host classes with no entry are skipped."""
    billable = _as_mapping(_as_mapping(payload, "workflow timing").get("billable"), "billable")

    billable_ms: Dict[HostClass, float] = {}
    for host_class in HostClass:
        entry = billable.get(host_class.api_key)
        if entry is None:
            continue
        billable_ms[host_class] = _as_float(_as_mapping(entry, host_class.api_key), "total_ms")
    return WorkflowUsage(billable_ms=billable_ms)


def decode_actions_billing(payload: Any) -> ActionsBilling:
    """Decode an organisation's Actions billing response."""
    data = _as_mapping(payload, "actions billing")
    breakdown = _as_mapping(data.get("minutes_used_breakdown"), "minutes_used_breakdown")

    minutes: Dict[HostClass, float] = {}
    for host_class in HostClass:
        if breakdown.get(host_class.api_key) is not None:
            minutes[host_class] = _as_float(breakdown, host_class.api_key)

    return ActionsBilling(
        total_minutes_used=_as_float(data, "total_minutes_used"),
        total_paid_minutes_used=_as_float(data, "total_paid_minutes_used"),
        included_minutes=_as_float(data, "included_minutes"),
        minutes_used_breakdown=minutes,
    )


def decode_packages_billing(payload: Any) -> PackagesBilling:
    """Decode an organisation's Packages billing response."""
    data = _as_mapping(payload, "packages billing")
    return PackagesBilling(
        total_gigabytes_bandwidth_used=_as_float(data, "total_gigabytes_bandwidth_used"),
        total_paid_gigabytes_bandwidth_used=_as_float(data, "total_paid_gigabytes_bandwidth_used"),
        included_gigabytes_bandwidth=_as_float(data, "included_gigabytes_bandwidth"),
    )


def decode_shared_storage_billing(payload: Any) -> SharedStorageBilling:
    """Decode an organisation's shared storage billing response."""
    data = _as_mapping(payload, "shared storage billing")
    return SharedStorageBilling(
        days_left_in_billing_cycle=_as_float(data, "days_left_in_billing_cycle"),
        estimated_paid_storage_for_month=_as_float(data, "estimated_paid_storage_for_month"),
        estimated_storage_for_month=_as_float(data, "estimated_storage_for_month"),
    )


class GitHubRestClient(IGitHubClient):
    """GitHub REST API client over a shared aiohttp session.

    Implements the IGitHubClient port, providing an anti-corruption layer
    between the domain and GitHub's API. Every request is bounded by
    ``request_timeout``; timeouts surface as GitHubApiError like any other
    transport failure.
    """

    WORKFLOWS_PER_PAGE = 100
    MAX_WORKFLOW_PAGES = 50

    def __init__(
        self,
        access_token: str,
        base_url: Optional[str] = None,
        request_timeout: float = 30.0,
    ):
        """Initialize GitHub client.

        Args:
            access_token: GitHub personal access token
            base_url: API base URL, e.g. for GitHub Enterprise (defaults to api.github.com)
            request_timeout: Total timeout in seconds for a single request
        """
        self._access_token = access_token
        self._base_url = (base_url or DEFAULT_BASE_URL).rstrip("/")
        self._timeout = aiohttp.ClientTimeout(total=request_timeout)
        self._session: Optional[aiohttp.ClientSession] = None

    @property
    def base_url(self) -> str:
        return self._base_url

    async def _init_session(self) -> aiohttp.ClientSession:
        """Initialize the HTTP session (lazy initialization)."""
        if self._session is None or self._session.closed:
            headers = {
                "Authorization": f"Bearer {self._access_token}",
                "Accept": "application/vnd.github+json",
                "X-GitHub-Api-Version": "2022-11-28",
            }
            self._session = aiohttp.ClientSession(headers=headers, timeout=self._timeout)
        return self._session

    def _url(self, path: str) -> str:
        return f"{self._base_url}/{path}"

    async def _get_json(
        self, url: str, params: Optional[Dict[str, Any]] = None
    ) -> Tuple[Any, Optional[str]]:
        """Execute a GET request.

        Args:
            url: Absolute request URL
            params: Optional query parameters

        Returns:
            Decoded JSON body and the URL of the next page, if any

        Raises:
            GitHubApiError: On transport failure, timeout or error status
            PayloadDecodeError: When the body is not valid JSON
        """
        session = await self._init_session()

        try:
            async with session.get(url, params=params) as response:
                remaining = response.headers.get("X-RateLimit-Remaining")
                if remaining is not None:
                    logger.debug(f"Rate limit remaining: {remaining}")

                if response.status >= 400:
                    body = await response.text()
                    raise GitHubApiError(
                        f"GET {url} returned {response.status}: {body[:200]}"
                    )

                try:
                    data = await response.json(content_type=None)
                except ValueError as e:
                    raise PayloadDecodeError(f"GET {url} returned invalid JSON: {e}") from e

                next_link = response.links.get("next")
                next_url = str(next_link["url"]) if next_link else None
                return data, next_url

        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise GitHubApiError(f"GET {url} failed: {e!r}") from e

    async def _get_decoded(self, path: str, decoder: Callable[[Any], T]) -> T:
        data, _ = await self._get_json(self._url(path))
        try:
            return decoder(data)
        except PayloadDecodeError as e:
            raise PayloadDecodeError(f"GET {path}: {e}") from e

    async def list_workflows(self, repo: RepositoryRef) -> List[Workflow]:
        """List workflows of a repository, following `Link: rel="next"` to the last page.

        Raises:
            GitHubApiError: Also when a next link repeats an already fetched
                page or the listing exceeds MAX_WORKFLOW_PAGES
        """
        url: Optional[str] = self._url(
            f"repos/{repo.owner}/{repo.name}/actions/workflows"
        )
        params: Optional[Dict[str, Any]] = {"per_page": self.WORKFLOWS_PER_PAGE}
        workflows: List[Workflow] = []
        seen: Set[str] = set()
        pages = 0

        while url is not None:
            if pages >= self.MAX_WORKFLOW_PAGES:
                raise GitHubApiError(
                    f"workflows of {repo}: gave up after {pages} pages"
                )
            data, next_url = await self._get_json(url, params)
            seen.add(url if params is None else f"{url}?per_page={self.WORKFLOWS_PER_PAGE}")
            if next_url is not None and next_url in seen:
                raise GitHubApiError(
                    f"workflows of {repo}: next page {next_url} was already fetched"
                )
            url = next_url
            # the next link already carries the query string
            params = None
            pages += 1
            try:
                workflows.extend(decode_workflows(data))
            except PayloadDecodeError as e:
                raise PayloadDecodeError(f"workflows of {repo}: {e}") from e

        logger.debug(f"Fetched {len(workflows)} workflows of {repo} in {pages} page(s)")
        return workflows

    async def get_workflow_usage(self, repo: RepositoryRef, workflow_id: int) -> WorkflowUsage:
        return await self._get_decoded(
            f"repos/{repo.owner}/{repo.name}/actions/workflows/{workflow_id}/timing",
            decode_workflow_usage,
        )

    async def get_org_actions_billing(self, org: Organisation) -> ActionsBilling:
        return await self._get_decoded(
            f"orgs/{org}/settings/billing/actions", decode_actions_billing
        )

    async def get_org_packages_billing(self, org: Organisation) -> PackagesBilling:
        return await self._get_decoded(
            f"orgs/{org}/settings/billing/packages", decode_packages_billing
        )

    async def get_org_shared_storage_billing(self, org: Organisation) -> SharedStorageBilling:
        return await self._get_decoded(
            f"orgs/{org}/settings/billing/shared-storage", decode_shared_storage_billing
        )

    async def close(self) -> None:
        """Close the HTTP session."""
        if self._session:
            await self._session.close()
            self._session = None
