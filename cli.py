#!/usr/bin/env python3
"""Entry point wiring configuration, providers and the orchestrator."""

from __future__ import annotations

import sys
from typing import List, NoReturn, Optional

from argument_parser import parse_arguments
from config import DestinationConfig, DestinationKind, PairConfig
from destination import ProjectHost
from github_source import GitHubSource
from github_target import GitHubTarget
from gitlab_target import GitLabTarget
from logging_utils import Logger
from mirror_orchestrator import MirrorOrchestrator, run_pair


def build_destination(cfg: DestinationConfig) -> ProjectHost:
    if cfg.kind == DestinationKind.GITHUB:
        return GitHubTarget(cfg.url, cfg.token, cfg.namespace)
    return GitLabTarget(cfg.url, cfg.token)


def main(argv: Optional[List[str]] = None) -> NoReturn:
    cfg = parse_arguments(argv)
    Logger.configure(cfg.verbose)

    if isinstance(cfg, PairConfig):
        sys.exit(run_pair(cfg))

    source = GitHubSource(cfg.source.api_url, cfg.source.token)
    orchestrator = MirrorOrchestrator(cfg, source, build_destination(cfg.destination))
    sys.exit(orchestrator.run())
