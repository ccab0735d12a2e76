"""Exporter configuration from command-line arguments and environment variables."""
import argparse
import ipaddress
import logging
import os
from dataclasses import dataclass
from typing import List, Mapping, Optional, Sequence, Tuple
from gh_billing_exporter.domain.models import ConfigurationError, Organisation, RepositoryRef
from gh_billing_exporter.infrastructure.github_client import DEFAULT_BASE_URL


LOG_FORMATS = ("text", "json")


@dataclass(frozen=True)
class ExporterConfig:
    """Validated exporter settings."""
    bind_host: str
    bind_port: int
    github_token: str
    github_base_url: str
    repositories: Tuple[RepositoryRef, ...]
    organisations: Tuple[Organisation, ...]
    workflows_refresh_seconds: int
    poll_interval_seconds: int
    request_timeout_seconds: int
    log_level: str
    log_format: str

    @property
    def bind(self) -> str:
        host = f"[{self.bind_host}]" if ":" in self.bind_host else self.bind_host
        return f"{host}:{self.bind_port}"


def build_parser(environ: Mapping[str, str]) -> argparse.ArgumentParser:
    """Build the argument parser; every option falls back to an environment variable."""
    parser = argparse.ArgumentParser(
        prog="gh-billing-exporter",
        description="Prometheus exporter for GitHub Actions usage and organisation billing",
    )
    parser.add_argument(
        "-b", "--bind",
        default=environ.get("GH_EXPORTER_BIND", "0.0.0.0:8000"),
        help="bind to address (env: GH_EXPORTER_BIND)",
    )
    parser.add_argument(
        "-t", "--github-token",
        default=environ.get("GH_TOKEN"),
        help="GitHub token (env: GH_TOKEN)",
    )
    parser.add_argument(
        "-u", "--github-base-url",
        default=environ.get("GH_API_BASEURL", DEFAULT_BASE_URL),
        help="GitHub API base url (env: GH_API_BASEURL)",
    )
    parser.add_argument(
        "-r", "--github-repos",
        default=environ.get("GH_REPOS", ""),
        help="GitHub repos list, formatted as owner/repo, delimited by `,` (env: GH_REPOS)",
    )
    parser.add_argument(
        "-o", "--github-orgs",
        default=environ.get("GH_ORGS", ""),
        help="GitHub organisations, delimited by `,` (env: GH_ORGS)",
    )
    parser.add_argument(
        "-w", "--github-workflows-refresh",
        default=environ.get("GH_WORKFLOWS_REFRESH", "1800"),
        help="interval when to refresh workflows cache for each GitHub repository, "
             "in seconds (env: GH_WORKFLOWS_REFRESH)",
    )
    parser.add_argument(
        "-p", "--github-poll-interval",
        default=environ.get("GH_POLL_INTERVAL", "300"),
        help="poll interval from GitHub API, in seconds (env: GH_POLL_INTERVAL)",
    )
    parser.add_argument(
        "--request-timeout",
        default=environ.get("GH_REQUEST_TIMEOUT", "30"),
        help="timeout of a single GitHub API request, in seconds (env: GH_REQUEST_TIMEOUT)",
    )
    parser.add_argument(
        "--log-level",
        default=environ.get("LOG_LEVEL", "INFO"),
        help="logging level (env: LOG_LEVEL)",
    )
    parser.add_argument(
        "--log-format",
        default=environ.get("LOG_FORMAT", "text"),
        help="log format, text or json (env: LOG_FORMAT)",
    )
    return parser


def split_list(value: str) -> List[str]:
    """Split a comma-delimited option, dropping blanks and repeated items."""
    items: List[str] = []
    for item in value.split(","):
        item = item.strip()
        if item and item not in items:
            items.append(item)
    return items


def parse_bind(value: str) -> Tuple[str, int]:
    """Parse a ``host:port`` bind address; IPv6 hosts go in brackets."""
    host, sep, port = value.strip().rpartition(":")
    if not sep:
        raise ConfigurationError(f"invalid bind address {value!r}: expected host:port")

    host = host[1:-1] if host.startswith("[") and host.endswith("]") else host
    try:
        ipaddress.ip_address(host)
    except ValueError:
        raise ConfigurationError(f"invalid bind address {value!r}: bad IP address {host!r}")

    if not port.isdigit() or not 0 <= int(port) <= 65535:
        raise ConfigurationError(f"invalid bind address {value!r}: bad port {port!r}")
    return host, int(port)


def _positive_int(value: str, option: str) -> int:
    try:
        number = int(str(value).strip())
    except ValueError:
        raise ConfigurationError(f"{option} must be an integer, got {value!r}")
    if number <= 0:
        raise ConfigurationError(f"{option} must be positive, got {number}")
    return number


def parse_config(
    argv: Optional[Sequence[str]] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> ExporterConfig:
    """Parse and validate the exporter configuration.

    Args:
        argv: Command-line arguments (defaults to sys.argv[1:])
        environ: Environment to read fallbacks from (defaults to os.environ)

    Raises:
        ConfigurationError: If any option is missing or invalid
    """
    environ = os.environ if environ is None else environ
    args = build_parser(environ).parse_args(argv)

    token = (args.github_token or "").strip()
    if not token:
        raise ConfigurationError("GitHub token is required (--github-token or GH_TOKEN)")

    host, port = parse_bind(args.bind)

    log_level = args.log_level.strip().upper()
    if not isinstance(logging.getLevelName(log_level), int):
        raise ConfigurationError(f"unknown log level {args.log_level!r}")

    log_format = args.log_format.strip().lower()
    if log_format not in LOG_FORMATS:
        raise ConfigurationError(
            f"log format must be one of {', '.join(LOG_FORMATS)}, got {args.log_format!r}"
        )

    return ExporterConfig(
        bind_host=host,
        bind_port=port,
        github_token=token,
        github_base_url=args.github_base_url.strip() or DEFAULT_BASE_URL,
        repositories=tuple(
            dict.fromkeys(RepositoryRef.parse(r) for r in split_list(args.github_repos))
        ),
        organisations=tuple(split_list(args.github_orgs)),
        workflows_refresh_seconds=_positive_int(
            args.github_workflows_refresh, "--github-workflows-refresh"
        ),
        poll_interval_seconds=_positive_int(args.github_poll_interval, "--github-poll-interval"),
        request_timeout_seconds=_positive_int(args.request_timeout, "--request-timeout"),
        log_level=log_level,
        log_format=log_format,
    )
