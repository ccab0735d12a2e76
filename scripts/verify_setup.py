"""Verify that the setup is correct before running the exporter."""
import asyncio
import os
import sys
from dotenv import load_dotenv
from gh_billing_exporter.config import parse_config
from gh_billing_exporter.domain.models import ConfigurationError, GitHubApiError
from gh_billing_exporter.infrastructure.github_client import GitHubRestClient

# Load environment variables from .env or env file
load_dotenv('.env') or load_dotenv('env')


def check_environment_variables():
    """Check required environment variables."""
    print("Checking environment variables...")

    required_vars = ["GH_TOKEN"]
    optional_vars = [
        "GH_EXPORTER_BIND", "GH_API_BASEURL", "GH_REPOS", "GH_ORGS",
        "GH_WORKFLOWS_REFRESH", "GH_POLL_INTERVAL", "GH_REQUEST_TIMEOUT",
    ]

    missing = [var for var in required_vars if not os.getenv(var)]
    if missing:
        print(f"❌ Missing required environment variables: {', '.join(missing)}")
        return False

    print("✅ Required environment variables set")

    for var in optional_vars:
        if os.getenv(var):
            print(f"   {var}: {os.getenv(var)}")

    return True


def check_configuration():
    """Check that the exporter accepts the configuration."""
    print("\nChecking exporter configuration...")

    try:
        config = parse_config([])
    except ConfigurationError as e:
        print(f"❌ Invalid configuration: {e}")
        return False

    print("✅ Configuration is valid")
    print(f"   Repositories: {len(config.repositories)}")
    print(f"   Organisations: {len(config.organisations)}")
    if not config.repositories and not config.organisations:
        print("⚠️  Neither GH_REPOS nor GH_ORGS is set, nothing will be polled")
    return True


def check_github_token():
    """Verify GitHub token format."""
    print("\nChecking GitHub token...")

    token = os.getenv("GH_TOKEN")
    if not token:
        print("❌ GH_TOKEN not set")
        return False

    # Simple check - token format
    if token.startswith("ghp_") or token.startswith("github_pat_"):
        print("✅ GitHub token format looks valid")
        print(f"   Token prefix: {token[:10]}...")
        return True
    else:
        print("⚠️  Token format may be invalid (expected ghp_* or github_pat_*)")
        return True  # Don't fail, might be old format


async def _probe_github(config):
    client = GitHubRestClient(
        config.github_token,
        base_url=config.github_base_url,
        request_timeout=config.request_timeout_seconds,
    )
    ok = True
    try:
        for repo in config.repositories:
            try:
                workflows = await client.list_workflows(repo)
                print(f"✅ {repo}: {len(workflows)} workflows")
            except GitHubApiError as e:
                print(f"❌ {repo}: {e}")
                ok = False
        for org in config.organisations:
            try:
                await client.get_org_actions_billing(org)
                print(f"✅ {org}: billing readable")
            except GitHubApiError as e:
                print(f"❌ {org}: {e}")
                ok = False
    finally:
        await client.close()
    return ok


def check_github_access():
    """Check that every configured repository and organisation is readable."""
    print("\nChecking GitHub API access...")

    try:
        config = parse_config([])
    except ConfigurationError as e:
        print(f"❌ Skipped, invalid configuration: {e}")
        return False

    return asyncio.run(_probe_github(config))


def main():
    """Run all verification checks."""
    print("=" * 60)
    print("GitHub Billing Exporter - Setup Verification")
    print("=" * 60)

    checks = [
        ("Environment Variables", check_environment_variables),
        ("Configuration", check_configuration),
        ("GitHub Token", check_github_token),
        ("GitHub API Access", check_github_access),
    ]

    results = {}
    for name, check_func in checks:
        try:
            results[name] = check_func()
        except Exception as e:
            print(f"❌ {name} check failed with exception: {e}")
            results[name] = False

    print("\n" + "=" * 60)
    print("Verification Summary")
    print("=" * 60)

    for name, passed in results.items():
        status = "✅ PASS" if passed else "❌ FAIL"
        print(f"{status}: {name}")

    all_passed = all(results.values())

    if all_passed:
        print("\n✅ All checks passed! Ready to run the exporter.")
        print("\nNext steps:")
        print("  python run_exporter.py")
        sys.exit(0)
    else:
        print("\n❌ Some checks failed. Please fix the issues above.")
        print("\nCommon solutions:")
        print("  - Set GH_TOKEN: export GH_TOKEN=your_token")
        print("  - List repositories as owner/name: export GH_REPOS=acme/widgets")
        print("  - Grant the token read access to organisation billing")
        sys.exit(1)


if __name__ == "__main__":
    main()
