"""Tests for the per-repository mirror pipeline."""

from __future__ import annotations

import os
from dataclasses import replace
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Dict, List
from unittest.mock import MagicMock

from config import (Config, DestinationConfig, DestinationKind,
                    GitOperationConfig, MirrorBehaviorConfig, PairConfig,
                    SourceConfig)
from errors import DestinationError, DiscoveryError, GitCommandError
from mirror_orchestrator import (EXIT_DISCOVERY_ERROR, EXIT_EXECUTION_ERROR,
                                 EXIT_SUCCESS, MirrorOrchestrator, run_pair,
                                 sync_pair)
from models import (Credentials, DestinationProjectState, RemoteChange,
                    SourceRepository, SyncPhase, TransferResult)

NOW = datetime(2026, 10, 17, 12, 0, tzinfo=timezone.utc)


def _make_config(tmp_path: Path, dry_run: bool = False) -> Config:
    return Config(
        source=SourceConfig(
            api_url='https://api.github.com', owner='alice', token='gh-token'
        ),
        destination=DestinationConfig(
            kind=DestinationKind.GITLAB,
            url='https://gitlab.example.com',
            namespace='mirrors',
            token='gl-token',
        ),
        behavior=MirrorBehaviorConfig(dry_run=dry_run),
        git=GitOperationConfig(cache_dir=str(tmp_path / 'cache'), remote_name='dest'),
    )


def _repo(name: str, **overrides) -> SourceRepository:
    fields = dict(
        full_name=f'alice/{name}',
        name=name,
        clone_url=f'https://github.com/alice/{name}.git',
        description=f'The {name}',
        archived=False,
        fork=False,
        updated_at=NOW - timedelta(days=1),
    )
    fields.update(overrides)
    return SourceRepository(**fields)


class FakeTransport:
    """Simulates git: pushes change things once, then report up to date."""

    def __init__(self) -> None:
        self.remotes: Dict[str, Dict[str, List[str]]] = {}
        self.pushed: Dict[str, int] = {}
        self.failing_urls: set = set()
        self.push_failures = 0
        self.calls: List[tuple] = []

    def clone(self, url, path, credentials=None):
        self.calls.append(('clone', url))
        if url in self.failing_urls:
            raise GitCommandError('clone', 128, 'fatal: repository not found')
        os.makedirs(path)
        self.remotes[path] = {'origin': [url]}

    def open(self, path):
        self.calls.append(('open', path))

    def fetch(self, path, remote='origin', credentials=None):
        self.calls.append(('fetch', path))
        return TransferResult.NO_CHANGE

    def list_remotes(self, path):
        return {k: list(v) for k, v in self.remotes.setdefault(path, {}).items()}

    def add_remote(self, path, name, url, fetch_refspec=None):
        self.calls.append(('add_remote', name, url))
        self.remotes[path][name] = [url]

    def delete_remote(self, path, name):
        self.calls.append(('delete_remote', name))
        del self.remotes[path][name]

    def push(self, path, remote, refspecs, credentials=None):
        self.calls.append(('push', path, remote))
        if self.push_failures:
            self.push_failures -= 1
            raise GitCommandError('push', 1, 'remote: project is archived and read-only')
        count = self.pushed.get(path, 0)
        self.pushed[path] = count + 1
        return TransferResult.UPDATED if count == 0 else TransferResult.NO_CHANGE


class FakeDestination:
    """GitLab-like destination returning fresh state on every lookup."""

    def __init__(self, projects: Dict[str, DestinationProjectState]) -> None:
        self.projects = projects
        self.writes: List[tuple] = []
        self.missing: set = set()

    def connect(self) -> None:
        pass

    def _by_id(self, project_id):
        return next(p for p in self.projects.values() if p.id == project_id)

    def get_project(self, namespace, name):
        if name in self.missing:
            raise DestinationError(f'getting project {namespace}/{name}: 404 Not Found')
        return replace(self.projects[name])

    def edit_project(self, project_id, description, visibility):
        self.writes.append(('edit', project_id, description))
        project = self._by_id(project_id)
        project.description = description
        project.visibility = visibility
        return TransferResult.UPDATED

    def archive_project(self, project_id):
        self.writes.append(('archive', project_id))
        self._by_id(project_id).archived = True
        return TransferResult.UPDATED

    def unarchive_project(self, project_id):
        self.writes.append(('unarchive', project_id))
        self._by_id(project_id).archived = False
        return TransferResult.UPDATED

    def remote_url(self, namespace, name):
        return f'https://gitlab.example.com/{namespace}/{name}.git'


def _projects(*names: str) -> Dict[str, DestinationProjectState]:
    return {
        name: DestinationProjectState(id=idx, description='', visibility='private', archived=False)
        for idx, name in enumerate(names, start=1)
    }


def _make_orchestrator(tmp_path, repos, destination, transport=None, dry_run=False):
    source = MagicMock()
    source.list_repositories.return_value = repos
    orchestrator = MirrorOrchestrator(
        _make_config(tmp_path, dry_run=dry_run),
        source,
        destination,
        transport=transport or FakeTransport(),
        clock=lambda: NOW,
    )
    return orchestrator


def test_failure_in_one_repository_does_not_stop_the_batch(tmp_path: Path) -> None:
    repos = [_repo('one'), _repo('two'), _repo('three')]
    transport = FakeTransport()
    transport.failing_urls.add(repos[1].clone_url)
    destination = FakeDestination(_projects('one', 'two', 'three'))
    orchestrator = _make_orchestrator(tmp_path, repos, destination, transport)

    assert orchestrator.run() == EXIT_SUCCESS

    first, second, third = orchestrator.outcomes
    assert first.ok and third.ok
    assert first.push_result is TransferResult.UPDATED
    assert third.metadata_actions == ['description']
    assert not second.ok
    assert second.phase is SyncPhase.FETCH
    assert 'repository not found' in second.error
    pushed_remotes = [c for c in transport.calls if c[0] == 'push']
    assert len(pushed_remotes) == 2


def test_second_run_changes_nothing(tmp_path: Path) -> None:
    repos = [_repo('widget'), _repo('gadget', description='')]
    transport = FakeTransport()
    destination = FakeDestination(_projects('widget', 'gadget'))

    first = _make_orchestrator(tmp_path, repos, destination, transport)
    first.run()
    writes_after_first = list(destination.writes)
    assert all(o.ok and o.changed for o in first.outcomes)
    assert destination.projects['widget'].description == \
        'The widget (mirror of github.com/alice/widget)'
    assert destination.projects['gadget'].description == 'Mirror of github.com/alice/gadget'

    second = _make_orchestrator(tmp_path, repos, destination, transport)
    second.run()

    assert destination.writes == writes_after_first
    for outcome in second.outcomes:
        assert outcome.ok
        assert not outcome.changed
        assert outcome.fetch_result is TransferResult.NO_CHANGE
        assert outcome.remote_change is RemoteChange.UNCHANGED
        assert outcome.push_result is TransferResult.NO_CHANGE
    assert len([c for c in transport.calls if c[0] == 'clone']) == 2


def test_stale_fork_destination_is_archived(tmp_path: Path) -> None:
    repos = [_repo('old-fork', fork=True, updated_at=NOW - timedelta(days=3 * 365))]
    destination = FakeDestination(_projects('old-fork'))
    orchestrator = _make_orchestrator(tmp_path, repos, destination)

    orchestrator.run()

    assert [w for w in destination.writes if w[0] == 'archive'] == [('archive', 1)]
    assert orchestrator.outcomes[0].metadata_actions == ['description', 'archive']


def test_archived_mirror_in_sync_is_left_alone(tmp_path: Path) -> None:
    repos = [_repo('widget', archived=True)]
    transport = FakeTransport()
    destination = FakeDestination(_projects('widget'))

    _make_orchestrator(tmp_path, repos, destination, transport).run()
    assert destination.projects['widget'].archived is True
    writes_after_first = list(destination.writes)
    pushes_after_first = len([c for c in transport.calls if c[0] == 'push'])

    # An archived project rejects every push, even one with nothing to send.
    transport.push_failures = 10
    second = _make_orchestrator(tmp_path, repos, destination, transport)
    second.run()

    outcome = second.outcomes[0]
    assert outcome.ok
    assert not outcome.changed
    assert outcome.push_result is TransferResult.NO_CHANGE
    assert destination.writes == writes_after_first
    assert len([c for c in transport.calls if c[0] == 'push']) == pushes_after_first


def test_archived_mirror_with_new_commits_is_still_pushed(tmp_path: Path) -> None:
    repos = [_repo('widget', archived=True)]
    transport = FakeTransport()
    destination = FakeDestination(_projects('widget'))
    _make_orchestrator(tmp_path, repos, destination, transport).run()

    transport.fetch = lambda path, remote='origin', credentials=None: TransferResult.UPDATED
    transport.push_failures = 1
    second = _make_orchestrator(tmp_path, repos, destination, transport)
    second.run()

    outcome = second.outcomes[0]
    assert outcome.ok
    assert outcome.metadata_actions == ['unarchive', 'archive']
    assert destination.projects['widget'].archived is True


def test_push_to_archived_project_unarchives_and_retries_once(tmp_path: Path) -> None:
    repos = [_repo('widget')]
    projects = _projects('widget')
    projects['widget'].archived = True
    projects['widget'].description = 'The widget (mirror of github.com/alice/widget)'
    transport = FakeTransport()
    transport.push_failures = 1
    destination = FakeDestination(projects)
    orchestrator = _make_orchestrator(tmp_path, repos, destination, transport)

    orchestrator.run()

    outcome = orchestrator.outcomes[0]
    assert outcome.ok
    assert outcome.push_result is TransferResult.UPDATED
    assert outcome.metadata_actions == ['unarchive']
    assert destination.writes == [('unarchive', 1)]
    assert len([c for c in transport.calls if c[0] == 'push']) == 2


def test_retry_happens_only_once(tmp_path: Path) -> None:
    repos = [_repo('widget')]
    projects = _projects('widget')
    projects['widget'].archived = True
    transport = FakeTransport()
    transport.push_failures = 2
    destination = FakeDestination(projects)
    orchestrator = _make_orchestrator(tmp_path, repos, destination, transport)

    orchestrator.run()

    outcome = orchestrator.outcomes[0]
    assert outcome.phase is SyncPhase.PUSH
    assert len([c for c in transport.calls if c[0] == 'push']) == 2
    assert destination.writes == [('unarchive', 1)]


def test_push_failure_on_active_project_is_not_retried(tmp_path: Path) -> None:
    transport = FakeTransport()
    transport.push_failures = 1
    destination = FakeDestination(_projects('widget'))
    orchestrator = _make_orchestrator(tmp_path, [_repo('widget')], destination, transport)

    orchestrator.run()

    assert orchestrator.outcomes[0].phase is SyncPhase.PUSH
    assert destination.writes == []


def test_missing_destination_project_is_a_lookup_failure(tmp_path: Path) -> None:
    transport = FakeTransport()
    destination = FakeDestination(_projects('widget'))
    destination.missing.add('widget')
    orchestrator = _make_orchestrator(tmp_path, [_repo('widget')], destination, transport)

    orchestrator.run()

    assert orchestrator.outcomes[0].phase is SyncPhase.LOOKUP
    assert transport.calls == []


def test_metadata_failure_keeps_successful_push(tmp_path: Path) -> None:
    destination = FakeDestination(_projects('widget'))

    def broken_edit(project_id, description, visibility):
        raise DestinationError('editing project 1: 403 Forbidden')

    destination.edit_project = broken_edit
    orchestrator = _make_orchestrator(tmp_path, [_repo('widget')], destination)

    orchestrator.run()

    outcome = orchestrator.outcomes[0]
    assert outcome.phase is SyncPhase.METADATA
    assert outcome.push_result is TransferResult.UPDATED


def test_discovery_failure_is_fatal(tmp_path: Path) -> None:
    orchestrator = _make_orchestrator(tmp_path, [], FakeDestination({}))
    orchestrator.source.list_repositories.side_effect = DiscoveryError(
        'alice', 'listing repositories: 502 Bad Gateway'
    )
    assert orchestrator.run() == EXIT_DISCOVERY_ERROR


def test_dry_run_touches_nothing(tmp_path: Path) -> None:
    transport = FakeTransport()
    destination = FakeDestination(_projects('widget'))
    orchestrator = _make_orchestrator(
        tmp_path, [_repo('widget')], destination, transport, dry_run=True
    )

    assert orchestrator.run() == EXIT_SUCCESS
    assert transport.calls == []
    assert destination.writes == []
    assert orchestrator.outcomes == []


def test_credentials_are_passed_to_git(tmp_path: Path) -> None:
    transport = MagicMock()
    transport.fetch.return_value = TransferResult.NO_CHANGE
    transport.list_remotes.return_value = {}
    transport.push.return_value = TransferResult.UPDATED
    destination = FakeDestination(_projects('widget'))
    orchestrator = _make_orchestrator(tmp_path, [_repo('widget')], destination, transport)

    orchestrator.run()

    clone_creds = transport.clone.call_args.args[2]
    push_creds = transport.push.call_args.args[3]
    assert clone_creds == Credentials('x-access-token', 'gh-token')
    assert push_creds == Credentials('oauth2', 'gl-token')


def _pair_config(tmp_path: Path) -> PairConfig:
    return PairConfig(
        src_url='https://github.com/alice/widget.git',
        dst_url='https://gitlab.example.com/mirrors/widget.git',
        src_credentials=Credentials(),
        dst_credentials=Credentials('alice', 'secret'),
        git=GitOperationConfig(cache_dir=str(tmp_path / 'cache'), remote_name='dest'),
    )


def test_sync_pair_runs_fetch_remote_and_push(tmp_path: Path) -> None:
    transport = FakeTransport()
    outcome = sync_pair(_pair_config(tmp_path), transport)

    assert outcome.ok
    assert outcome.repository == 'widget'
    assert outcome.remote_change is RemoteChange.CREATED
    assert outcome.push_result is TransferResult.UPDATED

    again = sync_pair(_pair_config(tmp_path), transport)
    assert not again.changed


def test_run_pair_exit_code_reflects_failure(tmp_path: Path) -> None:
    transport = FakeTransport()
    transport.failing_urls.add('https://github.com/alice/widget.git')
    assert run_pair(_pair_config(tmp_path), transport) == EXIT_EXECUTION_ERROR
