#!/usr/bin/env python3
"""Keeps the destination remote of a local mirror pointed at one URL."""

from __future__ import annotations

from errors import GitCommandError, RemoteConfigError
from git_transport import GitTransport, remote_tracking_refspec
from logging_utils import Logger
from models import LocalMirror, RemoteChange


def ensure_remote(
    transport: GitTransport,
    mirror: LocalMirror,
    name: str,
    url: str,
    repository: str = "",
) -> RemoteChange:
    """Make remote ``name`` exist with exactly ``[url]`` as its URL list.

    A remote with a different or extra URL is removed and recreated rather
    than edited in place.
    """
    label = repository or mirror.path
    try:
        remotes = transport.list_remotes(mirror.path)
        current = remotes.get(name)
        if current == [url]:
            return RemoteChange.UNCHANGED

        change = RemoteChange.CREATED
        if current is not None:
            Logger.debug(f"{label}: remote '{name}' has a different URL, removing")
            transport.delete_remote(mirror.path, name)
            change = RemoteChange.REPLACED

        Logger.debug(f"{label}: adding remote '{name}' for {url}")
        transport.add_remote(mirror.path, name, url, remote_tracking_refspec(name))
        return change
    except GitCommandError as e:
        raise RemoteConfigError(label, str(e)) from e
