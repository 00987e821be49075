#!/usr/bin/env python3
"""Capability interface implemented by each destination provider."""

from __future__ import annotations

from typing import Protocol

from models import DestinationProjectState, TransferResult


class ProjectHost(Protocol):
    """Project operations the mirror pipeline needs from a destination.

    Implementations raise ``errors.DestinationError`` on API failures and
    report writes that changed nothing as ``TransferResult.NO_CHANGE``.
    """

    def connect(self) -> None:
        ...

    def get_project(self, namespace: str, name: str) -> DestinationProjectState:
        ...

    def edit_project(
        self, project_id: int, description: str, visibility: str
    ) -> TransferResult:
        ...

    def archive_project(self, project_id: int) -> TransferResult:
        ...

    def unarchive_project(self, project_id: int) -> TransferResult:
        ...

    def remote_url(self, namespace: str, name: str) -> str:
        ...
