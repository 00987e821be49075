#!/usr/bin/env python3
"""Command line argument parsing and configuration building."""

from __future__ import annotations

import argparse
import os
import sys
from typing import List, Optional, Union

from config import (DEFAULT_CACHE_DIR, DEFAULT_GIT_TIMEOUT_S,
                    DEFAULT_REMOTE_NAME, DEFAULT_STALE_FORK_DAYS, Config,
                    DestinationConfig, DestinationKind, GitOperationConfig,
                    MirrorBehaviorConfig, PairConfig, SourceConfig)
from logging_utils import Logger
from models import Credentials
from security import SecurityValidator

# Exit codes
EXIT_AUTH_ERROR = 40
EXIT_MISSING_ARGUMENTS = 2

DEFAULT_GITLAB_URL = "https://gitlab.com"
DEFAULT_GITHUB_API = "https://api.github.com"


def _create_argument_parser() -> argparse.ArgumentParser:
    """Create the top-level parser with its two subcommands."""
    parser = argparse.ArgumentParser(
        description="Mirror repositories and their metadata to another forge",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s account --gh-user alice --dest-namespace mirrors
  %(prog)s account --gh-user alice --dest-namespace mirrors --dry-run
  %(prog)s account --gh-user acme --dest github --dest-namespace acme-archive
  %(prog)s pair --src-url https://github.com/alice/widget.git \\
           --dst-url https://gitlab.com/mirrors/widget.git --dst-user alice
        """,
    )
    subparsers = parser.add_subparsers(dest="command", required=True)
    account = subparsers.add_parser(
        "account", help="mirror every repository of a GitHub user or organization"
    )
    _add_source_arguments(account)
    _add_destination_arguments(account)
    _add_git_arguments(account)
    _add_behavior_arguments(account)

    pair = subparsers.add_parser("pair", help="mirror one repository URL to another")
    _add_pair_arguments(pair)
    _add_git_arguments(pair)
    return parser


def _add_source_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--gh-user",
        dest="gh_user",
        required=True,
        help="GitHub user or organization whose repositories are mirrored",
    )
    parser.add_argument(
        "--gh-api",
        dest="gh_api_url",
        default=DEFAULT_GITHUB_API,
        help="Base URL of the GitHub API",
    )
    parser.add_argument(
        "--gh-token",
        dest="gh_token",
        help="GitHub API token, optional for public repositories (or GITHUB_TOKEN)",
    )
    parser.add_argument(
        "--gh-username",
        dest="gh_username",
        help="Username for HTTPS clone auth (or GITHUB_USERNAME)",
    )


def _add_destination_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--dest",
        dest="dest_kind",
        choices=[kind.value for kind in DestinationKind],
        default=DestinationKind.GITLAB.value,
        help="Destination provider (default: gitlab)",
    )
    parser.add_argument(
        "--dest-url",
        dest="dest_url",
        help="GitLab instance URL or GitHub API URL of the destination",
    )
    parser.add_argument(
        "--dest-namespace",
        dest="dest_namespace",
        required=True,
        help="Destination group (GitLab) or owner (GitHub)",
    )
    parser.add_argument(
        "--dest-token",
        dest="dest_token",
        help="Destination API token (or GITLAB_TOKEN / GITHUB_DEST_TOKEN)",
    )
    parser.add_argument(
        "--dest-username",
        dest="dest_username",
        help="Username for HTTPS push auth (or GITLAB_USERNAME)",
    )


def _add_git_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--cache-dir",
        dest="cache_dir",
        default=DEFAULT_CACHE_DIR,
        help=f"Directory holding the local mirrors (default: {DEFAULT_CACHE_DIR})",
    )
    parser.add_argument(
        "--remote-name",
        dest="remote_name",
        default=DEFAULT_REMOTE_NAME,
        help=f"Name of the destination remote (default: {DEFAULT_REMOTE_NAME})",
    )
    parser.add_argument(
        "--git-timeout",
        dest="git_timeout_s",
        type=float,
        default=DEFAULT_GIT_TIMEOUT_S,
        help="Seconds before a clone or fetch is aborted; pushes get twice "
        f"as long (default: {DEFAULT_GIT_TIMEOUT_S:.0f})",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        dest="verbose",
        help="Print debug output",
    )


def _add_behavior_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "-d",
        "--dry-run",
        action="store_true",
        dest="dry_run",
        help="List the repository pairs without mirroring them",
    )
    parser.add_argument(
        "-e",
        "--exclude",
        dest="exclude",
        help="Skip repositories whose full name contains this string",
    )
    parser.add_argument(
        "--stale-fork-days",
        dest="stale_fork_days",
        type=int,
        default=DEFAULT_STALE_FORK_DAYS,
        help="Archive mirrors of forks not updated for this many days "
        f"(default: {DEFAULT_STALE_FORK_DAYS})",
    )


def _add_pair_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--src-url", dest="src_url", required=True, help="Source git URL")
    parser.add_argument(
        "--dst-url", dest="dst_url", required=True, help="Destination git URL"
    )
    parser.add_argument(
        "--src-user", dest="src_user", help="Source username (or MIRROR_SRC_USER)"
    )
    parser.add_argument(
        "--src-token",
        dest="src_token",
        help="Source password or token (or MIRROR_SRC_TOKEN)",
    )
    parser.add_argument(
        "--dst-user", dest="dst_user", help="Destination username (or MIRROR_DST_USER)"
    )
    parser.add_argument(
        "--dst-token",
        dest="dst_token",
        help="Destination password or token (or MIRROR_DST_TOKEN)",
    )


def _fail_validation(error: ValueError) -> None:
    Logger.security_event(
        "CONFIG_VALIDATION_FAILED", f"configuration validation failed: {error}"
    )
    Logger.error(f"configuration validation error: {error}")
    sys.exit(EXIT_MISSING_ARGUMENTS)


def _build_git_config(args) -> GitOperationConfig:
    if args.git_timeout_s <= 0 or args.git_timeout_s > 7200:
        raise ValueError("git timeout must be between 0 and 7200 seconds")
    return GitOperationConfig(
        cache_dir=SecurityValidator.validate_file_path(args.cache_dir),
        remote_name=SecurityValidator.validate_remote_name(args.remote_name),
        timeout_s=float(args.git_timeout_s),
    )


def _build_account_config(args) -> Config:
    kind = DestinationKind(args.dest_kind)
    try:
        source = SourceConfig(
            api_url=SecurityValidator.validate_url(args.gh_api_url, ["https"]).rstrip("/"),
            owner=SecurityValidator.validate_username(args.gh_user),
            token=args.gh_token or os.getenv("GITHUB_TOKEN"),
            username="",
        )
        gh_username = args.gh_username or os.getenv("GITHUB_USERNAME")
        if gh_username:
            source.username = SecurityValidator.validate_username(gh_username)

        if kind == DestinationKind.GITLAB:
            dest_url = args.dest_url or DEFAULT_GITLAB_URL
            namespace = SecurityValidator.validate_namespace(args.dest_namespace)
        else:
            dest_url = args.dest_url or DEFAULT_GITHUB_API
            namespace = SecurityValidator.validate_username(args.dest_namespace)
        destination = DestinationConfig(
            kind=kind,
            url=SecurityValidator.validate_url(dest_url, ["https", "http"]).rstrip("/"),
            namespace=namespace,
            token="",
        )
        dest_username = args.dest_username or os.getenv("GITLAB_USERNAME")
        if dest_username:
            destination.username = SecurityValidator.validate_username(dest_username)

        if args.stale_fork_days < 0:
            raise ValueError("stale fork window must not be negative")
        if args.exclude and len(args.exclude) > 100:
            raise ValueError("exclude pattern too long (max 100 characters)")

        git_config = _build_git_config(args)
    except ValueError as e:
        _fail_validation(e)

    if kind == DestinationKind.GITLAB:
        dest_token = args.dest_token or os.getenv("GITLAB_TOKEN")
    else:
        dest_token = args.dest_token or os.getenv("GITHUB_DEST_TOKEN")
    if not dest_token:
        env_name = "GITLAB_TOKEN" if kind == DestinationKind.GITLAB else "GITHUB_DEST_TOKEN"
        Logger.error(
            f"error: destination API credentials missing, set {env_name}/--dest-token"
        )
        sys.exit(EXIT_AUTH_ERROR)
    destination.token = dest_token

    if not source.token:
        Logger.warn("no GitHub credentials given; only public repositories are visible")

    Logger.security_event(
        "CONFIG_VALIDATION", "successfully validated all configuration inputs"
    )
    return Config(
        source=source,
        destination=destination,
        behavior=MirrorBehaviorConfig(
            dry_run=args.dry_run,
            exclude=args.exclude or None,
            stale_fork_days=args.stale_fork_days,
        ),
        git=git_config,
        verbose=args.verbose,
    )


def _build_pair_config(args) -> PairConfig:
    try:
        src_url = SecurityValidator.validate_url(args.src_url)
        dst_url = SecurityValidator.validate_url(args.dst_url)
        git_config = _build_git_config(args)
    except ValueError as e:
        _fail_validation(e)

    return PairConfig(
        src_url=src_url,
        dst_url=dst_url,
        src_credentials=Credentials(
            args.src_user or os.getenv("MIRROR_SRC_USER", ""),
            args.src_token or os.getenv("MIRROR_SRC_TOKEN", ""),
        ),
        dst_credentials=Credentials(
            args.dst_user or os.getenv("MIRROR_DST_USER", ""),
            args.dst_token or os.getenv("MIRROR_DST_TOKEN", ""),
        ),
        git=git_config,
        verbose=args.verbose,
    )


def parse_arguments(argv: Optional[List[str]] = None) -> Union[Config, PairConfig]:
    """Parse command line arguments and return the matching configuration."""
    parser = _create_argument_parser()
    args = parser.parse_args(argv)
    if args.command == "pair":
        return _build_pair_config(args)
    return _build_account_config(args)
