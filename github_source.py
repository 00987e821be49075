#!/usr/bin/env python3
"""GitHub API wrapper for discovering the repositories of an account."""

from __future__ import annotations

from typing import List, Optional

import github
import requests

from errors import DiscoveryError
from logging_utils import Logger
from models import SourceRepository
from utils import RateLimiter, as_utc, web_host_from_api_url

PUBLIC_GITHUB_API = "https://api.github.com"


class GitHubSource:
    """Lists repositories of a GitHub user or organization."""

    def __init__(self, api_url: str = PUBLIC_GITHUB_API, token: Optional[str] = None) -> None:
        self.api_url = api_url.rstrip("/")
        self.token = token
        self.host = web_host_from_api_url(self.api_url)
        self.api: Optional[github.Github] = None
        self.rate_limiter = RateLimiter(max_requests_per_minute=50)

    def connect(self) -> None:
        Logger.info(f"init github API: {self.api_url}")
        auth = github.Auth.Token(self.token) if self.token else None
        if self.api_url != PUBLIC_GITHUB_API:
            self.api = github.Github(base_url=self.api_url, auth=auth)
        else:
            self.api = github.Github(auth=auth)

    def _to_source_repository(self, repo) -> SourceRepository:
        return SourceRepository(
            full_name=repo.full_name,
            name=repo.name,
            clone_url=repo.clone_url,
            description=repo.description or "",
            archived=bool(repo.archived),
            fork=bool(repo.fork),
            updated_at=as_utc(repo.updated_at),
            host=self.host,
        )

    def list_repositories(
        self, owner: str, exclude: Optional[str] = None
    ) -> List[SourceRepository]:
        """Return every repository of ``owner``, following all result pages."""
        if self.api is None:
            raise DiscoveryError(owner, "github API not initialized")

        Logger.info(f"discovering repositories of: {owner}")
        repositories: List[SourceRepository] = []
        try:
            self.rate_limiter.wait_if_needed("GitHub API")
            account = self.api.get_user(owner)
            for repo in account.get_repos():
                if exclude and exclude in repo.full_name:
                    Logger.warn(f"excluding: {repo.full_name}")
                    continue
                repositories.append(self._to_source_repository(repo))
                Logger.debug(f"found: {repo.full_name}")
        except github.BadCredentialsException as e:
            raise DiscoveryError(owner, f"authentication failed: {e}") from e
        except github.GithubException as e:
            raise DiscoveryError(owner, f"listing repositories: {e}") from e
        except requests.RequestException as e:
            raise DiscoveryError(owner, f"contacting github api: {e}") from e

        Logger.info(f"found {len(repositories)} repositories to process")
        return repositories
