#!/usr/bin/env python3
"""Runs the mirror pipeline over every repository of the source account."""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Callable, List, Optional

from config import Config, PairConfig
from destination import ProjectHost
from errors import DestinationError, DiscoveryError, MetadataError, MirrorError, PushError
from git_transport import GitTransport
from github_source import GitHubSource
from logging_utils import Logger
from metadata import MetadataPolicy, MetadataReconciler, utcnow
from mirror_cache import LocalMirrorCache
from models import (LocalMirror, MirrorPair, RemoteChange, RepositoryRef,
                    SourceRepository, SyncOutcome, SyncPhase, TransferResult)
from push_sync import PushSynchronizer
from remote_reconciler import ensure_remote
from utils import repo_name_from_url

# Exit codes
EXIT_SUCCESS = 0
EXIT_EXECUTION_ERROR = 1
EXIT_DISCOVERY_ERROR = 30


def _credentials_or_none(credentials):
    return credentials if credentials.present() else None


class MirrorOrchestrator:
    def __init__(
        self,
        cfg: Config,
        source: GitHubSource,
        destination: ProjectHost,
        transport: Optional[GitTransport] = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.cfg = cfg
        self.source = source
        self.destination = destination
        self.transport = transport or GitTransport(timeout_s=cfg.git.timeout_s)
        self.cache = LocalMirrorCache(cfg.git.cache_dir, self.transport)
        self.pusher = PushSynchronizer(self.transport)
        policy = MetadataPolicy(
            stale_fork_window=timedelta(days=cfg.behavior.stale_fork_days)
        )
        self.metadata = MetadataReconciler(destination, policy, clock)
        self.outcomes: List[SyncOutcome] = []

    def run(self) -> int:
        try:
            self.source.connect()
            self.destination.connect()

            repositories = self.source.list_repositories(
                self.cfg.source.owner, exclude=self.cfg.behavior.exclude
            )

            namespace = self.cfg.destination.namespace
            total = len(repositories)
            if self.cfg.behavior.dry_run:
                for idx, repo in enumerate(repositories, start=1):
                    Logger.info(
                        f"[{idx}/{total}] would mirror: {repo.identity} -> "
                        f"{namespace}/{repo.name}"
                    )
                Logger.info("dry-run completed")
                return EXIT_SUCCESS

            for idx, repo in enumerate(repositories, start=1):
                Logger.info(
                    f"[{idx}/{total}] sync: {repo.identity} -> {namespace}/{repo.name}"
                )
                self.outcomes.append(self.process_repository(repo))

            self._log_summary()
            return EXIT_SUCCESS
        except DiscoveryError as e:
            Logger.error(f"failed to list repositories: {e}")
            return EXIT_DISCOVERY_ERROR
        except SystemExit as e:
            return int(e.code) if isinstance(e.code, int) else EXIT_EXECUTION_ERROR
        except Exception as e:
            Logger.error(f"unexpected error: {e}")
            return EXIT_EXECUTION_ERROR

    def build_pair(self, repo: SourceRepository) -> MirrorPair:
        """Look up the destination project and assemble the pair to reconcile."""
        namespace = self.cfg.destination.namespace
        try:
            state = self.destination.get_project(namespace, repo.name)
        except DestinationError as e:
            raise MetadataError(repo.full_name, str(e), phase=SyncPhase.LOOKUP) from e
        return MirrorPair(
            source=RepositoryRef(
                repo.full_name,
                repo.clone_url,
                _credentials_or_none(self.cfg.source.credentials),
            ),
            destination=RepositoryRef(
                f"{namespace}/{repo.name}",
                self.destination.remote_url(namespace, repo.name),
                _credentials_or_none(self.cfg.destination.credentials),
            ),
            destination_state=state,
        )

    def process_repository(self, repo: SourceRepository) -> SyncOutcome:
        """Reconcile one repository; failures are recorded, never raised."""
        outcome = SyncOutcome(repository=repo.full_name)
        try:
            pair = self.build_pair(repo)
            mirror = self.cache.ensure(pair.source)
            outcome.fetch_result = mirror.fetch_result
            outcome.remote_change = ensure_remote(
                self.transport,
                mirror,
                self.cfg.git.remote_name,
                pair.destination.url,
                repo.full_name,
            )
            if self._archived_in_sync(repo, pair, outcome):
                Logger.debug(
                    f"{repo.full_name}: nothing new for an archived destination, skipping push"
                )
                outcome.push_result = TransferResult.NO_CHANGE
            else:
                outcome.push_result = self._push_with_retry(mirror, pair, outcome)
            outcome.metadata_actions.extend(
                self.metadata.reconcile(repo, pair.destination_state)
            )
        except MirrorError as e:
            outcome.phase = e.phase
            outcome.error = e.message
            phase = e.phase.value if e.phase else "error"
            Logger.error(f"{repo.full_name}: {phase}: {e.message}")
        except Exception as e:
            outcome.error = str(e)
            Logger.error(f"{repo.full_name}: unexpected error: {e}")
        return outcome

    def _archived_in_sync(
        self, repo: SourceRepository, pair: MirrorPair, outcome: SyncOutcome
    ) -> bool:
        """True when an archived destination stays archived and has nothing to receive."""
        state = pair.destination_state
        return (
            state is not None
            and state.archived
            and outcome.fetch_result is TransferResult.NO_CHANGE
            and outcome.remote_change is RemoteChange.UNCHANGED
            and self.metadata.policy.desired_archived(repo, self.metadata.clock())
        )

    def _push_with_retry(
        self, mirror: LocalMirror, pair: MirrorPair, outcome: SyncOutcome
    ) -> TransferResult:
        remote = self.cfg.git.remote_name
        destination = pair.destination
        try:
            return self.pusher.push_all(
                mirror, remote, destination.name, destination.credentials
            )
        except PushError as e:
            state = pair.destination_state
            if state is None or not state.archived:
                raise
            Logger.warn(
                f"{destination.name}: push failed on an archived project, "
                "unarchiving and retrying once"
            )
            try:
                self.destination.unarchive_project(state.id)
            except DestinationError as err:
                raise PushError(
                    destination.name, f"{e.message}; unarchive failed: {err}"
                ) from err
            state.archived = False
            outcome.metadata_actions.append("unarchive")
            return self.pusher.push_all(
                mirror, remote, destination.name, destination.credentials
            )

    def _log_summary(self) -> None:
        failed = [o for o in self.outcomes if not o.ok]
        changed = [o for o in self.outcomes if o.ok and o.changed]
        Logger.info(
            f"mirrored {len(self.outcomes) - len(failed)}/{len(self.outcomes)} "
            f"repositories ({len(changed)} changed, {len(failed)} failed)"
        )
        for outcome in failed:
            phase = outcome.phase.value if outcome.phase else "unknown"
            Logger.warn(f"failed: {outcome.repository} ({phase})")
        if not failed:
            Logger.success("mission accomplished")


def sync_pair(cfg: PairConfig, transport: Optional[GitTransport] = None) -> SyncOutcome:
    """Mirror one explicit source URL into one destination URL."""
    transport = transport or GitTransport(timeout_s=cfg.git.timeout_s)
    cache = LocalMirrorCache(cfg.git.cache_dir, transport)
    source = RepositoryRef(
        repo_name_from_url(cfg.src_url),
        cfg.src_url,
        _credentials_or_none(cfg.src_credentials),
    )
    destination = RepositoryRef(
        repo_name_from_url(cfg.dst_url),
        cfg.dst_url,
        _credentials_or_none(cfg.dst_credentials),
    )
    outcome = SyncOutcome(repository=source.name)
    try:
        mirror = cache.ensure(source)
        outcome.fetch_result = mirror.fetch_result
        outcome.remote_change = ensure_remote(
            transport, mirror, cfg.git.remote_name, destination.url, source.name
        )
        outcome.push_result = PushSynchronizer(transport).push_all(
            mirror, cfg.git.remote_name, destination.name, destination.credentials
        )
    except MirrorError as e:
        outcome.phase = e.phase
        outcome.error = e.message
        Logger.error(str(e))
    return outcome


def run_pair(cfg: PairConfig, transport: Optional[GitTransport] = None) -> int:
    outcome = sync_pair(cfg, transport)
    if not outcome.ok:
        return EXIT_EXECUTION_ERROR
    if outcome.changed:
        Logger.success(f"{outcome.repository}: mirrored")
    else:
        Logger.info(f"{outcome.repository}: already up to date")
    return EXIT_SUCCESS
