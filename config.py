#!/usr/bin/env python3
"""Configuration dataclasses for repo-mirror-sync."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from models import Credentials

DEFAULT_CACHE_DIR = "/tmp/repo-mirror-sync"
DEFAULT_REMOTE_NAME = "dest"
DEFAULT_STALE_FORK_DAYS = 2 * 365
DEFAULT_GIT_TIMEOUT_S = 300.0


class Visibility(Enum):
    """Enumeration for repository visibility levels."""
    PRIVATE = "private"
    PUBLIC = "public"
    INTERNAL = "internal"


class DestinationKind(Enum):
    """Supported destination providers."""
    GITLAB = "gitlab"
    GITHUB = "github"


@dataclass
class SourceConfig:
    """GitHub source account configuration."""
    api_url: str
    owner: str
    token: Optional[str]
    username: str = ""

    @property
    def credentials(self) -> Credentials:
        if not self.token:
            return Credentials()
        return Credentials(self.username or "x-access-token", self.token)


@dataclass
class DestinationConfig:
    """Destination provider configuration."""
    kind: DestinationKind
    url: str
    namespace: str
    token: str
    username: str = ""

    @property
    def credentials(self) -> Credentials:
        if self.kind == DestinationKind.GITHUB:
            default_user = "x-access-token"
        else:
            default_user = "oauth2"
        return Credentials(self.username or default_user, self.token)


@dataclass
class GitOperationConfig:
    """Git operation configuration."""
    cache_dir: str = DEFAULT_CACHE_DIR
    remote_name: str = DEFAULT_REMOTE_NAME
    timeout_s: float = DEFAULT_GIT_TIMEOUT_S


@dataclass
class MirrorBehaviorConfig:
    """Batch mirroring behavior."""
    dry_run: bool = False
    exclude: Optional[str] = None
    stale_fork_days: int = DEFAULT_STALE_FORK_DAYS


@dataclass
class Config:
    """Main configuration for account-to-namespace mirroring."""
    source: SourceConfig
    destination: DestinationConfig
    behavior: MirrorBehaviorConfig
    git: GitOperationConfig
    verbose: bool = False


@dataclass
class PairConfig:
    """Configuration for mirroring one explicit URL pair."""
    src_url: str
    dst_url: str
    src_credentials: Credentials
    dst_credentials: Credentials
    git: GitOperationConfig
    verbose: bool = False
