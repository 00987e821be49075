#!/usr/bin/env python3
"""Local cache of bare source mirrors, one per source URL."""

from __future__ import annotations

import hashlib
import os

from errors import FetchError, GitCommandError
from git_transport import SOURCE_REMOTE, GitTransport
from logging_utils import Logger
from models import LocalMirror, RepositoryRef, TransferResult
from security import SecurityValidator
from utils import repo_name_from_url, sanitize_path_component

# Hex digits of the sha256 of the source URL kept in the directory name
PATH_HASH_LENGTH = 32


class LocalMirrorCache:
    """Maps source repositories to bare clones under ``cache_dir``.

    The directory for a source is ``<name>-<hash>.git`` where ``hash`` is
    derived from the credential-free source URL, so it is stable across runs
    and distinct for distinct sources. Mirrors are never removed here; the
    cache only grows.
    """

    def __init__(self, cache_dir: str, transport: GitTransport) -> None:
        self.cache_dir = cache_dir
        self.transport = transport

    def path_for(self, source_url: str) -> str:
        url = SecurityValidator.strip_credentials(source_url.strip())
        digest = hashlib.sha256(url.encode("utf-8")).hexdigest()[:PATH_HASH_LENGTH]
        name = sanitize_path_component(repo_name_from_url(url))
        return os.path.join(self.cache_dir, f"{name}-{digest}.git")

    def _prepare_cache_dir(self) -> None:
        """Create the cache root with owner-only permissions."""
        os.makedirs(self.cache_dir, mode=0o700, exist_ok=True)
        if os.stat(self.cache_dir).st_mode & 0o777 != 0o700:
            Logger.security_event(
                "INSECURE_PERMISSIONS", f"fixing permissions on {self.cache_dir}"
            )
            os.chmod(self.cache_dir, 0o700)

    def ensure(self, source: RepositoryRef) -> LocalMirror:
        """Clone ``source`` if it is not cached yet, otherwise fetch it."""
        path = self.path_for(source.url)
        Logger.debug(f"{source.name}: local mirror path is {path}")

        if not os.path.exists(path):
            try:
                self._prepare_cache_dir()
            except OSError as e:
                raise FetchError(source.name, f"cannot create cache directory: {e}") from e
            Logger.info(f"{source.name}: cloning {source.url}")
            try:
                self.transport.clone(source.url, path, source.credentials)
            except GitCommandError as e:
                raise FetchError(source.name, str(e)) from e
            return LocalMirror(path=path, created=True, fetch_result=TransferResult.UPDATED)

        Logger.info(f"{source.name}: fetching {source.url}")
        try:
            self.transport.open(path)
            result = self.transport.fetch(path, SOURCE_REMOTE, source.credentials)
        except GitCommandError as e:
            raise FetchError(source.name, str(e)) from e
        if result == TransferResult.NO_CHANGE:
            Logger.debug(f"{source.name}: already up to date")
        return LocalMirror(path=path, created=False, fetch_result=result)
