#!/usr/bin/env python3
"""Exception types raised by the mirror pipeline."""

from __future__ import annotations

from typing import Optional

from models import SyncPhase


class GitCommandError(Exception):
    """A git subprocess failed.

    ``stderr`` is already sanitized so it can be logged as is.
    """

    def __init__(self, operation: str, returncode: int, stderr: str = "") -> None:
        self.operation = operation
        self.returncode = returncode
        self.stderr = stderr
        detail = stderr.strip().splitlines()[-1] if stderr.strip() else ""
        message = f"git {operation} failed (exit {returncode})"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


class MirrorError(Exception):
    """Base class for failures tagged with a repository and a phase."""

    phase: Optional[SyncPhase] = None

    def __init__(
        self, repository: str, message: str, phase: Optional[SyncPhase] = None
    ) -> None:
        self.repository = repository
        self.message = message
        if phase is not None:
            self.phase = phase
        super().__init__(repository, message)

    def __str__(self) -> str:
        label = f"{self.phase.value}: " if self.phase else ""
        return f"{self.repository}: {label}{self.message}"


class DiscoveryError(MirrorError):
    """Listing the source account failed; nothing to iterate."""
    phase = SyncPhase.LOOKUP


class FetchError(MirrorError):
    phase = SyncPhase.FETCH


class RemoteConfigError(MirrorError):
    phase = SyncPhase.REMOTE


class PushError(MirrorError):
    phase = SyncPhase.PUSH


class MetadataError(MirrorError):
    """Destination project lookup or update failed."""
    phase = SyncPhase.METADATA


class DestinationError(Exception):
    """A destination provider API call failed."""
