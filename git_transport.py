#!/usr/bin/env python3
"""Thin wrapper around the git executable for mirror operations."""

from __future__ import annotations

import os
import subprocess
import tempfile
from typing import Dict, List, Optional, Sequence

from errors import GitCommandError
from logging_utils import Logger
from models import Credentials, TransferResult
from security import SecurityValidator

SOURCE_REMOTE = "origin"
FETCH_REFSPECS = ["+refs/heads/*:refs/heads/*"]
PUSH_REFSPECS = ["+refs/heads/*:refs/heads/*", "+refs/tags/*:refs/tags/*"]

# git push --porcelain status flags that mean a ref was written
_PUSH_CHANGED_FLAGS = {" ", "+", "-", "*"}

_ASKPASS_USER_ENV = "REPO_MIRROR_GIT_USERNAME"
_ASKPASS_PASS_ENV = "REPO_MIRROR_GIT_PASSWORD"


def remote_tracking_refspec(name: str) -> str:
    return f"+refs/heads/*:refs/remotes/{name}/*"


def parse_push_porcelain(output: str) -> TransferResult:
    """Classify ``git push --porcelain`` output.

    Only ``=`` (up to date) status lines, or no status lines at all, count as
    no change.
    """
    for line in output.splitlines():
        if len(line) > 1 and line[1] == "\t" and line[0] in _PUSH_CHANGED_FLAGS:
            return TransferResult.UPDATED
    return TransferResult.NO_CHANGE


class GitTransport:
    """Runs clone, fetch, remote and push commands against bare repositories."""

    def __init__(
        self,
        timeout_s: float = 300.0,
        push_timeout_s: Optional[float] = None,
        git_binary: str = "git",
    ) -> None:
        self.timeout_s = timeout_s
        self.push_timeout_s = push_timeout_s or timeout_s * 2
        self.git_binary = git_binary

    # -- credential helper -------------------------------------------------

    @staticmethod
    def _create_askpass_script() -> str:
        """Write a GIT_ASKPASS helper that answers from the environment."""
        fd, path = tempfile.mkstemp(prefix="rms_askpass_", text=True)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as script:
                script.write("#!/bin/sh\n")
                script.write('case "$1" in\n')
                script.write(f'  *Username*) echo "${_ASKPASS_USER_ENV}" ;;\n')
                script.write(f'  *Password*) echo "${_ASKPASS_PASS_ENV}" ;;\n')
                script.write("  *) exit 1 ;;\n")
                script.write("esac\n")
            os.chmod(path, 0o700)
        except Exception:
            os.unlink(path)
            raise
        return path

    @staticmethod
    def _cleanup_askpass_script(path: Optional[str]) -> None:
        if not path:
            return
        try:
            if os.path.exists(path):
                os.remove(path)
        except OSError as error:
            Logger.warn(f"failed to clean up temporary credential helper: {error}")

    # -- subprocess plumbing -----------------------------------------------

    def _run(
        self,
        operation: str,
        args: Sequence[str],
        git_dir: Optional[str] = None,
        credentials: Optional[Credentials] = None,
        timeout: Optional[float] = None,
    ) -> subprocess.CompletedProcess:
        cmd = [self.git_binary]
        if git_dir is not None:
            cmd.append(f"--git-dir={git_dir}")
        cmd.extend(args)

        env = os.environ.copy()
        env["GIT_TERMINAL_PROMPT"] = "0"
        askpass_script: Optional[str] = None
        try:
            if credentials is not None and credentials.present():
                askpass_script = self._create_askpass_script()
                env.update(
                    {
                        "GIT_ASKPASS": askpass_script,
                        _ASKPASS_USER_ENV: credentials.username,
                        _ASKPASS_PASS_ENV: credentials.token,
                    }
                )
            Logger.debug(f"git {operation}: {' '.join(cmd[1:])}")
            return subprocess.run(
                cmd,
                check=True,
                capture_output=True,
                text=True,
                timeout=timeout or self.timeout_s,
                env=env,
            )
        except subprocess.TimeoutExpired:
            raise GitCommandError(
                operation, -1, f"timed out after {timeout or self.timeout_s:.0f}s"
            ) from None
        except subprocess.CalledProcessError as e:
            output = e.stderr or e.stdout or ""
            raise GitCommandError(
                operation, e.returncode, SecurityValidator.sanitize_for_logging(output)
            ) from None
        except FileNotFoundError:
            raise GitCommandError(
                operation, 127, f"{self.git_binary} executable not found"
            ) from None
        finally:
            self._cleanup_askpass_script(askpass_script)

    # -- repository operations ---------------------------------------------

    def clone(
        self, url: str, path: str, credentials: Optional[Credentials] = None
    ) -> None:
        """Create a bare clone of ``url`` at ``path``."""
        self._run("clone", ["clone", "--bare", "--", url, path], credentials=credentials)

    def open(self, path: str) -> None:
        """Check that ``path`` holds a usable bare repository."""
        result = self._run("open", ["rev-parse", "--is-bare-repository"], git_dir=path)
        if result.stdout.strip() != "true":
            raise GitCommandError("open", 0, f"{path} is not a bare repository")

    def list_refs(self, path: str) -> Dict[str, str]:
        """Return ``{refname: object id}`` for all branches and tags."""
        result = self._run(
            "for-each-ref",
            ["for-each-ref", "--format=%(objectname) %(refname)", "refs/heads", "refs/tags"],
            git_dir=path,
        )
        refs: Dict[str, str] = {}
        for line in result.stdout.splitlines():
            if not line.strip():
                continue
            oid, refname = line.split(" ", 1)
            refs[refname] = oid
        return refs

    def fetch(
        self,
        path: str,
        remote: str = SOURCE_REMOTE,
        credentials: Optional[Credentials] = None,
    ) -> TransferResult:
        """Fetch all branches and tags from ``remote`` into local heads/tags.

        Local refs deleted upstream are pruned. The destination never is.
        """
        before = self.list_refs(path)
        self._run(
            "fetch",
            ["fetch", "--prune", "--tags", remote, *FETCH_REFSPECS],
            git_dir=path,
            credentials=credentials,
        )
        after = self.list_refs(path)
        if before == after:
            return TransferResult.NO_CHANGE
        return TransferResult.UPDATED

    def list_remotes(self, path: str) -> Dict[str, List[str]]:
        """Return ``{remote name: [urls]}``."""
        try:
            result = self._run(
                "remote",
                ["config", "--get-regexp", r"^remote\..*\.url$"],
                git_dir=path,
            )
        except GitCommandError as e:
            # git config exits 1 when nothing matches
            if e.returncode == 1:
                return {}
            raise
        remotes: Dict[str, List[str]] = {}
        for line in result.stdout.splitlines():
            if not line.strip():
                continue
            key, _, url = line.partition(" ")
            name = key[len("remote."):-len(".url")]
            remotes.setdefault(name, []).append(url)
        return remotes

    def add_remote(
        self, path: str, name: str, url: str, fetch_refspec: Optional[str] = None
    ) -> None:
        self._run("remote add", ["remote", "add", name, url], git_dir=path)
        self._run(
            "remote add",
            ["config", f"remote.{name}.fetch", fetch_refspec or remote_tracking_refspec(name)],
            git_dir=path,
        )

    def delete_remote(self, path: str, name: str) -> None:
        self._run("remote remove", ["remote", "remove", name], git_dir=path)

    def push(
        self,
        path: str,
        remote: str,
        refspecs: Sequence[str] = PUSH_REFSPECS,
        credentials: Optional[Credentials] = None,
    ) -> TransferResult:
        """Push ``refspecs`` to ``remote`` without pruning."""
        # git refuses to push from a repository without refs
        if not self.list_refs(path):
            return TransferResult.NO_CHANGE
        result = self._run(
            "push",
            ["push", "--porcelain", remote, *refspecs],
            git_dir=path,
            credentials=credentials,
            timeout=self.push_timeout_s,
        )
        return parse_push_porcelain(result.stdout)
