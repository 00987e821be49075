#!/usr/bin/env python3
"""Domain types shared by the mirror pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import List, Optional


class TransferResult(Enum):
    """Outcome of an operation that may legitimately change nothing."""
    UPDATED = "updated"
    NO_CHANGE = "no-change"


class RemoteChange(Enum):
    """What the remote reconciler had to do."""
    UNCHANGED = "unchanged"
    CREATED = "created"
    REPLACED = "replaced"


class SyncPhase(Enum):
    """Pipeline phase, used to tag failures."""
    LOOKUP = "lookup"
    FETCH = "fetch"
    REMOTE = "remote"
    PUSH = "push"
    METADATA = "metadata"


@dataclass(frozen=True)
class Credentials:
    """Basic-auth style credentials for a git remote."""
    username: str = ""
    token: str = ""

    def present(self) -> bool:
        return bool(self.username or self.token)


@dataclass(frozen=True)
class RepositoryRef:
    """Identity of a repository at a provider."""
    name: str
    url: str
    credentials: Optional[Credentials] = None


@dataclass(frozen=True)
class SourceRepository:
    """A repository as listed by the source provider."""
    full_name: str
    name: str
    clone_url: str
    description: str
    archived: bool
    fork: bool
    updated_at: Optional[datetime]
    host: str = "github.com"

    @property
    def identity(self) -> str:
        return f"{self.host}/{self.full_name}"


@dataclass
class DestinationProjectState:
    """Destination project metadata as last observed."""
    id: int
    description: str
    visibility: str
    archived: bool


@dataclass(frozen=True)
class MirrorPair:
    source: RepositoryRef
    destination: RepositoryRef
    destination_state: Optional[DestinationProjectState] = None


@dataclass
class LocalMirror:
    """A bare repository in the local cache."""
    path: str
    created: bool
    fetch_result: TransferResult


@dataclass
class SyncOutcome:
    """Per-repository result of one reconciliation pass."""
    repository: str
    phase: Optional[SyncPhase] = None
    error: Optional[str] = None
    fetch_result: Optional[TransferResult] = None
    remote_change: Optional[RemoteChange] = None
    push_result: Optional[TransferResult] = None
    metadata_actions: List[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def changed(self) -> bool:
        """True if anything was written locally or remotely."""
        return (
            self.fetch_result == TransferResult.UPDATED
            or self.push_result == TransferResult.UPDATED
            or self.remote_change not in (None, RemoteChange.UNCHANGED)
            or bool(self.metadata_actions)
        )
