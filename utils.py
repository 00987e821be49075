#!/usr/bin/env python3
"""Utility functions for repo-mirror-sync."""

import re
import threading
import time
from datetime import datetime, timezone
from typing import List, Optional
from urllib.parse import urlparse

from logging_utils import Logger


class RateLimiter:
    """Sliding one-minute window limiter for provider API calls."""

    def __init__(self, max_requests_per_minute: int = 60):
        self.max_requests = max_requests_per_minute
        self.requests: List[float] = []
        self.lock = threading.Lock()

    def wait_if_needed(self, operation_type: str = "API") -> None:
        """Block until another request fits in the window."""
        current_time = time.time()

        with self.lock:
            self._clean_old_requests(current_time)
            if len(self.requests) >= self.max_requests:
                wait_time = 60 - (current_time - self.requests[0])
                if wait_time > 0:
                    Logger.debug(
                        f"rate limit reached for {operation_type}, "
                        f"waiting {wait_time:.2f}s"
                    )
                    time.sleep(wait_time)
                    current_time = time.time()
                    self._clean_old_requests(current_time)
            self.requests.append(current_time)

    def _clean_old_requests(self, current_time: float) -> None:
        cutoff_time = current_time - 60
        self.requests = [
            req_time for req_time in self.requests if req_time > cutoff_time
        ]


def sanitize_path_component(name: str) -> str:
    """Reduce a repository name to a filesystem-safe path component."""
    name = re.sub(r"[^A-Za-z0-9._-]+", "-", name)
    name = re.sub(r"-+", "-", name).strip("-.")
    return name or "repo"


def repo_name_from_url(url: str) -> str:
    """Return the last path segment of a git URL without ``.git``.

    Works for both ``https://host/a/b.git`` and ``git@host:a/b.git``.
    """
    path = url.rstrip("/")
    if "://" in path:
        path = urlparse(path).path
    elif ":" in path:
        path = path.split(":", 1)[1]
    last = path.rstrip("/").rsplit("/", 1)[-1]
    if last.endswith(".git"):
        last = last[: -len(".git")]
    return last


def web_host_from_api_url(api_url: str) -> str:
    """Map a GitHub API endpoint to the host used in repository identities."""
    parsed = urlparse(api_url)
    if parsed.netloc == "api.github.com":
        return "github.com"
    return parsed.netloc


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Treat naive timestamps from the API as UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value
