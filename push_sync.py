#!/usr/bin/env python3
"""Pushes every local branch and tag of a mirror to its destination."""

from __future__ import annotations

from typing import Optional

from errors import GitCommandError, PushError
from git_transport import PUSH_REFSPECS, GitTransport
from logging_utils import Logger
from models import Credentials, LocalMirror, TransferResult


class PushSynchronizer:
    """Force-pushes heads and tags; destination-only refs are left alone."""

    def __init__(self, transport: GitTransport) -> None:
        self.transport = transport

    def push_all(
        self,
        mirror: LocalMirror,
        remote: str,
        destination: str,
        credentials: Optional[Credentials] = None,
    ) -> TransferResult:
        Logger.info(f"{destination}: pushing branches and tags to '{remote}'")
        try:
            result = self.transport.push(
                mirror.path, remote, PUSH_REFSPECS, credentials
            )
        except GitCommandError as e:
            raise PushError(destination, str(e)) from e
        if result == TransferResult.NO_CHANGE:
            Logger.debug(f"{destination}: everything up to date")
        return result
