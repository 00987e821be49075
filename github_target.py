#!/usr/bin/env python3
"""GitHub API wrapper for reading and updating mirror repositories."""

from __future__ import annotations

import sys
from typing import Optional
from urllib.parse import urlparse

import github
import requests

from config import Visibility
from errors import DestinationError
from logging_utils import Logger
from models import DestinationProjectState, TransferResult
from utils import RateLimiter

# Exit codes
EXIT_AUTH_ERROR = 40
EXIT_GITHUB_ERROR = 31

PUBLIC_GITHUB_API = "https://api.github.com"


class GitHubTarget:
    """Destination repositories owned by a GitHub user or organization."""

    def __init__(self, api_url: str, token: str, owner: str) -> None:
        self.api_url = api_url.rstrip("/")
        self.token = token
        self.owner = owner
        self.api: Optional[github.Github] = None
        self.rate_limiter = RateLimiter(
            max_requests_per_minute=50
        )  # GitHub's standard rate limit

    def connect(self) -> None:
        Logger.info(f"init github API: {self.api_url}")
        try:
            auth = github.Auth.Token(self.token)
            if self.api_url != PUBLIC_GITHUB_API:
                self.api = github.Github(base_url=self.api_url, auth=auth)
            else:
                self.api = github.Github(auth=auth)
            self._check_owner_visibility()
        except github.BadCredentialsException:
            Logger.error("authentication failed (github): invalid credentials")
            sys.exit(EXIT_AUTH_ERROR)
        except github.GithubException as e:
            Logger.error(f"github error: {e}")
            sys.exit(EXIT_GITHUB_ERROR)

    def _get_api_headers(self) -> dict:
        return {
            "Accept": "application/vnd.github+json",
            "Authorization": f"Bearer {self.token}",
            "X-GitHub-Api-Version": "2022-11-28",
        }

    def _check_owner_visibility(self) -> None:
        """Fail early if the destination owner is not visible to the token."""
        url = f"{self.api_url}/users/{self.owner}"
        try:
            self.rate_limiter.wait_if_needed("GitHub API")
            response = requests.get(url, headers=self._get_api_headers(), timeout=30)
        except requests.RequestException as e:
            Logger.error(f"failed to contact github api: {e}")
            sys.exit(EXIT_GITHUB_ERROR)

        if response.status_code == 401:
            Logger.error("unauthorized (401): credentials rejected by the GitHub API")
            sys.exit(EXIT_AUTH_ERROR)
        if response.status_code == 404:
            Logger.error(
                f"not found (404): owner '{self.owner}' does not exist or is not "
                "visible with these credentials"
            )
            sys.exit(EXIT_GITHUB_ERROR)
        if response.status_code != 200:
            Logger.warn(
                f"unexpected response checking owner visibility: {response.status_code}"
            )

    def _require_api(self) -> github.Github:
        if self.api is None:
            raise DestinationError("github API not initialized")
        return self.api

    def _get_repo(self, full_name_or_id):
        api = self._require_api()
        self.rate_limiter.wait_if_needed("GitHub API")
        return api.get_repo(full_name_or_id)

    def get_project(self, namespace: str, name: str) -> DestinationProjectState:
        try:
            repo = self._get_repo(f"{namespace}/{name}")
        except (github.GithubException, requests.RequestException) as e:
            raise DestinationError(f"getting repository {namespace}/{name}: {e}") from e
        return DestinationProjectState(
            id=repo.id,
            description=repo.description or "",
            visibility=(Visibility.PRIVATE if repo.private else Visibility.PUBLIC).value,
            archived=bool(repo.archived),
        )

    def edit_project(
        self, project_id: int, description: str, visibility: str
    ) -> TransferResult:
        private = visibility != Visibility.PUBLIC.value
        try:
            repo = self._get_repo(project_id)
            if (repo.description or "") == description and bool(repo.private) == private:
                return TransferResult.NO_CHANGE
            self.rate_limiter.wait_if_needed("GitHub API")
            repo.edit(description=description, private=private)
        except (github.GithubException, requests.RequestException) as e:
            raise DestinationError(f"editing repository {project_id}: {e}") from e
        return TransferResult.UPDATED

    def _set_archived(self, project_id: int, archived: bool) -> TransferResult:
        try:
            repo = self._get_repo(project_id)
            if bool(repo.archived) == archived:
                return TransferResult.NO_CHANGE
            self.rate_limiter.wait_if_needed("GitHub API")
            repo.edit(archived=archived)
        except (github.GithubException, requests.RequestException) as e:
            action = "archiving" if archived else "unarchiving"
            raise DestinationError(f"{action} repository {project_id}: {e}") from e
        return TransferResult.UPDATED

    def archive_project(self, project_id: int) -> TransferResult:
        return self._set_archived(project_id, True)

    def unarchive_project(self, project_id: int) -> TransferResult:
        return self._set_archived(project_id, False)

    def _git_base_url(self) -> str:
        """Return base URL for Git operations derived from API endpoint."""
        parsed = urlparse(self.api_url)
        if parsed.netloc == "api.github.com":
            return "https://github.com"

        base_path = parsed.path.rstrip("/")
        if base_path.endswith("/api/v3"):
            base_path = base_path[: -len("/api/v3")]
        return f"{parsed.scheme}://{parsed.netloc}{base_path}"

    def remote_url(self, namespace: str, name: str) -> str:
        return f"{self._git_base_url()}/{namespace}/{name}.git"
