#!/usr/bin/env python3
"""GitLab API wrapper for reading and updating mirror projects."""

from __future__ import annotations

import sys
from typing import Optional

import gitlab
import requests

from errors import DestinationError
from logging_utils import Logger
from models import DestinationProjectState, TransferResult
from utils import RateLimiter

# Exit codes
EXIT_AUTH_ERROR = 40
EXIT_GITLAB_ERROR = 31

_API_ERRORS = (gitlab.exceptions.GitlabError, requests.RequestException)


class GitLabTarget:
    """Destination projects living in a GitLab group."""

    def __init__(self, url: str, token: str) -> None:
        self.url = url.rstrip("/")
        self.token = token
        self.api: Optional[gitlab.Gitlab] = None
        self.rate_limiter = RateLimiter(
            max_requests_per_minute=30
        )  # Conservative GitLab rate limit

    def connect(self) -> None:
        Logger.info(f"init gitlab API: {self.url}")
        try:
            self.api = gitlab.Gitlab(url=self.url, private_token=self.token)
            self.api.auth()
        except gitlab.exceptions.GitlabAuthenticationError as e:
            Logger.error(f"authentication error (gitlab): {e}")
            sys.exit(EXIT_AUTH_ERROR)
        except Exception as e:
            Logger.error(f"failed to initialize gitlab API: {e}")
            sys.exit(EXIT_GITLAB_ERROR)

    def _require_api(self) -> gitlab.Gitlab:
        if self.api is None:
            raise DestinationError("gitlab API not initialized")
        return self.api

    def get_project(self, namespace: str, name: str) -> DestinationProjectState:
        api = self._require_api()
        path = f"{namespace}/{name}"
        try:
            self.rate_limiter.wait_if_needed("GitLab API")
            project = api.projects.get(path)
        except _API_ERRORS as e:
            raise DestinationError(f"getting project {path}: {e}") from e
        return DestinationProjectState(
            id=project.id,
            description=getattr(project, "description", None) or "",
            visibility=getattr(project, "visibility", ""),
            archived=bool(getattr(project, "archived", False)),
        )

    def edit_project(
        self, project_id: int, description: str, visibility: str
    ) -> TransferResult:
        api = self._require_api()
        try:
            self.rate_limiter.wait_if_needed("GitLab API")
            api.projects.update(
                project_id, {"description": description, "visibility": visibility}
            )
        except _API_ERRORS as e:
            raise DestinationError(f"editing project {project_id}: {e}") from e
        return TransferResult.UPDATED

    def archive_project(self, project_id: int) -> TransferResult:
        api = self._require_api()
        try:
            self.rate_limiter.wait_if_needed("GitLab API")
            api.projects.get(project_id, lazy=True).archive()
        except _API_ERRORS as e:
            raise DestinationError(f"archiving project {project_id}: {e}") from e
        return TransferResult.UPDATED

    def unarchive_project(self, project_id: int) -> TransferResult:
        api = self._require_api()
        try:
            self.rate_limiter.wait_if_needed("GitLab API")
            api.projects.get(project_id, lazy=True).unarchive()
        except _API_ERRORS as e:
            raise DestinationError(f"unarchiving project {project_id}: {e}") from e
        return TransferResult.UPDATED

    def remote_url(self, namespace: str, name: str) -> str:
        return f"{self.url}/{namespace}/{name}.git"
