#!/usr/bin/env python3
"""Reconciles destination description and archive state with the source."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, List, Optional

from config import Visibility
from destination import ProjectHost
from errors import DestinationError, MetadataError
from logging_utils import Logger
from models import DestinationProjectState, SourceRepository, TransferResult
from utils import as_utc

STALE_FORK_WINDOW = timedelta(days=2 * 365)
DESCRIPTION_SUFFIX_TEMPLATE = "{description} (mirror of {identity})"
DESCRIPTION_SENTENCE_TEMPLATE = "Mirror of {identity}"
MIRROR_VISIBILITY = Visibility.PUBLIC.value


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class MetadataPolicy:
    """Tunable rules for the desired destination metadata."""
    stale_fork_window: timedelta = STALE_FORK_WINDOW
    suffix_template: str = DESCRIPTION_SUFFIX_TEMPLATE
    sentence_template: str = DESCRIPTION_SENTENCE_TEMPLATE
    visibility: str = MIRROR_VISIBILITY

    def desired_description(self, source: SourceRepository) -> str:
        description = (source.description or "").strip()
        if description:
            return self.suffix_template.format(
                description=description, identity=source.identity
            )
        return self.sentence_template.format(identity=source.identity)

    @staticmethod
    def needs_description_update(current: Optional[str], desired: str) -> bool:
        return not (current or "").startswith(desired)

    def is_stale_fork(self, source: SourceRepository, now: datetime) -> bool:
        updated_at = as_utc(source.updated_at)
        if not source.fork or updated_at is None:
            return False
        return now - updated_at > self.stale_fork_window

    def desired_archived(self, source: SourceRepository, now: datetime) -> bool:
        return source.archived or self.is_stale_fork(source, now)


class MetadataReconciler:
    """Applies the minimal set of metadata writes to one destination project."""

    def __init__(
        self,
        host: ProjectHost,
        policy: Optional[MetadataPolicy] = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.host = host
        self.policy = policy or MetadataPolicy()
        self.clock = clock

    def reconcile(
        self, source: SourceRepository, state: DestinationProjectState
    ) -> List[str]:
        """Return the names of the actions that changed the destination.

        ``state`` is updated in place to reflect successful writes.
        """
        actions: List[str] = []
        name = source.full_name

        desired = self.policy.desired_description(source)
        if self.policy.needs_description_update(state.description, desired):
            Logger.info(f"{name}: updating description to '{desired}'")
            try:
                result = self.host.edit_project(
                    state.id, desired, self.policy.visibility
                )
            except DestinationError as e:
                raise MetadataError(name, f"updating project: {e}") from e
            state.description = desired
            state.visibility = self.policy.visibility
            if result == TransferResult.UPDATED:
                actions.append("description")

        if self.policy.desired_archived(source, self.clock()) and not state.archived:
            Logger.info(f"{name}: archiving destination project")
            try:
                result = self.host.archive_project(state.id)
            except DestinationError as e:
                raise MetadataError(name, f"archiving project: {e}") from e
            state.archived = True
            if result == TransferResult.UPDATED:
                actions.append("archive")

        return actions
