"""Tests for destination remote reconciliation."""

from __future__ import annotations

from typing import Dict, List

import pytest

from errors import GitCommandError, RemoteConfigError
from models import LocalMirror, RemoteChange, TransferResult
from remote_reconciler import ensure_remote

URL = 'https://gitlab.com/mirrors/widget.git'


class FakeRemotes:
    """In-memory stand-in for the remote operations of GitTransport."""

    def __init__(self, remotes: Dict[str, List[str]]) -> None:
        self.remotes = remotes
        self.calls: List[tuple] = []
        self.refspecs: Dict[str, str] = {}

    def list_remotes(self, path):
        return {name: list(urls) for name, urls in self.remotes.items()}

    def delete_remote(self, path, name):
        self.calls.append(('delete', name))
        del self.remotes[name]

    def add_remote(self, path, name, url, fetch_refspec=None):
        self.calls.append(('add', name, url))
        self.remotes[name] = [url]
        self.refspecs[name] = fetch_refspec


def _mirror() -> LocalMirror:
    return LocalMirror(path='/cache/widget.git', created=False, fetch_result=TransferResult.NO_CHANGE)


@pytest.mark.parametrize(
    'existing, expected_change',
    [
        ({}, RemoteChange.CREATED),
        ({'dest': [URL]}, RemoteChange.UNCHANGED),
        ({'dest': ['https://gitlab.com/old/widget.git']}, RemoteChange.REPLACED),
        ({'dest': [URL, 'https://backup.example.com/widget.git']}, RemoteChange.REPLACED),
    ],
)
def test_remote_converges(existing, expected_change) -> None:
    """Whatever the starting state, the remote ends with exactly one URL."""
    transport = FakeRemotes(dict(existing, origin=['https://github.com/alice/widget.git']))

    change = ensure_remote(transport, _mirror(), 'dest', URL)

    assert change is expected_change
    assert transport.remotes['dest'] == [URL]
    assert transport.remotes['origin'] == ['https://github.com/alice/widget.git']


def test_second_run_is_a_no_op() -> None:
    transport = FakeRemotes({'dest': ['https://gitlab.com/old/widget.git']})

    ensure_remote(transport, _mirror(), 'dest', URL)
    calls_after_first = list(transport.calls)
    assert ensure_remote(transport, _mirror(), 'dest', URL) is RemoteChange.UNCHANGED

    assert transport.calls == calls_after_first
    assert calls_after_first == [('delete', 'dest'), ('add', 'dest', URL)]


def test_new_remote_tracks_branches_under_its_own_namespace() -> None:
    transport = FakeRemotes({})
    ensure_remote(transport, _mirror(), 'dest', URL)
    assert transport.refspecs['dest'] == '+refs/heads/*:refs/remotes/dest/*'


def test_transport_failure_raises_remote_config_error() -> None:
    transport = FakeRemotes({'dest': ['https://gitlab.com/old/widget.git']})

    def broken_delete(path, name):
        raise GitCommandError('remote remove', 2, 'error: could not lock config file')

    transport.delete_remote = broken_delete

    with pytest.raises(RemoteConfigError) as excinfo:
        ensure_remote(transport, _mirror(), 'dest', URL, 'alice/widget')
    assert excinfo.value.repository == 'alice/widget'
    assert str(excinfo.value).startswith('alice/widget: remote: ')
