"""Pytest configuration and fixtures."""
import pytest
import pytest_asyncio
from aiohttp import web
from aiohttp.test_utils import TestServer
from prometheus_client import CollectorRegistry
from gh_billing_exporter.domain.github_interface import IGitHubClient
from gh_billing_exporter.domain.models import GitHubApiError
from gh_billing_exporter.infrastructure.prometheus_metrics import ExporterMetrics


class FakeGitHubClient(IGitHubClient):
    """In-memory GitHub client; a stored exception is raised instead of returned."""

    def __init__(self):
        self.workflows = {}
        self.usage = {}
        self.actions = {}
        self.packages = {}
        self.shared_storage = {}
        self.calls = []
        self.closed = False

    @staticmethod
    def _answer(table, key, what):
        if key not in table:
            raise GitHubApiError(f"{what} for {key} returned 404")
        value = table[key]
        if isinstance(value, Exception):
            raise value
        return value

    async def list_workflows(self, repo):
        self.calls.append(("list_workflows", repo))
        return list(self._answer(self.workflows, repo, "workflows"))

    async def get_workflow_usage(self, repo, workflow_id):
        self.calls.append(("get_workflow_usage", repo, workflow_id))
        return self._answer(self.usage, (repo, workflow_id), "timing")

    async def get_org_actions_billing(self, org):
        self.calls.append(("get_org_actions_billing", org))
        return self._answer(self.actions, org, "actions billing")

    async def get_org_packages_billing(self, org):
        self.calls.append(("get_org_packages_billing", org))
        return self._answer(self.packages, org, "packages billing")

    async def get_org_shared_storage_billing(self, org):
        self.calls.append(("get_org_shared_storage_billing", org))
        return self._answer(self.shared_storage, org, "shared storage billing")

    async def close(self):
        self.closed = True


@pytest.fixture
def github_client():
    """Provide a fake GitHub client."""
    return FakeGitHubClient()


@pytest.fixture
def registry():
    """Provide a private Prometheus registry per test."""
    return CollectorRegistry()


@pytest.fixture
def metrics(registry):
    """Provide exporter metrics registered on the test registry."""
    return ExporterMetrics(registry)


class FakeGitHubApi:
    """aiohttp application standing in for the GitHub REST API.

    Routes map a request path to ``(status, json_body, headers)`` or to an
    async handler; unknown paths answer 404 like GitHub does.
    """

    def __init__(self):
        self.routes = {}
        self.requests = []
        self.app = web.Application()
        self.app.router.add_route("GET", "/{tail:.*}", self._handle)

    def set(self, path, body, status=200, headers=None):
        self.routes[path] = (status, body, headers)

    async def _handle(self, request):
        self.requests.append(
            (request.path, dict(request.query), dict(request.headers))
        )
        route = self.routes.get(request.path)
        if route is None:
            return web.json_response({"message": "Not Found"}, status=404)
        if callable(route):
            return await route(request)
        status, body, headers = route
        return web.json_response(body, status=status, headers=headers)


@pytest_asyncio.fixture
async def github_api():
    """Serve a fake GitHub API; yields it with ``base_url`` set."""
    api = FakeGitHubApi()
    server = TestServer(api.app)
    await server.start_server()
    api.base_url = str(server.make_url("/"))
    yield api
    await server.close()
