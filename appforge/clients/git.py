"""Local version control through the ``git`` CLI.

Commit-and-push is two-phase: the local phase (init on first use, identity,
add, commit) must fully succeed before any network push is attempted.  The
commit is made with ``--allow-empty`` so the operation still succeeds when
nothing new was staged.  Failures are reported by phase: ``LocalCommitError``
for the working directory, ``PushRejectedError`` for the remote, whose
stderr (token redacted) is carried in the message.
"""

from __future__ import annotations

import logging
import os
import subprocess
from collections.abc import Iterable, Sequence
from pathlib import Path

from appforge.core.errors import (
    LocalCommitError,
    PushRejectedError,
    StepTimeoutError,
    VersionControlError,
)

logger = logging.getLogger(__name__)

REDACTED = "***"


class GitRunner:
    """Runs git commands in a workspace directory.

    Parameters
    ----------
    author_name / author_email:
        Commit identity configured in each new repository.
    timeout:
        Seconds allowed per git invocation (the push is a network call).
    secrets:
        Strings to redact from any command output that reaches logs or errors.
    git_binary:
        Path or name of the git executable.
    """

    def __init__(
        self,
        *,
        author_name: str,
        author_email: str,
        timeout: float = 120.0,
        secrets: Iterable[str] = (),
        git_binary: str = "git",
    ) -> None:
        self._author_name = author_name
        self._author_email = author_email
        self._timeout = timeout
        self._secrets = [s for s in secrets if s]
        self._git = git_binary

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def redact(self, text: str) -> str:
        for secret in self._secrets:
            text = text.replace(secret, REDACTED)
        return text

    def _run(
        self,
        args: Sequence[str],
        cwd: Path,
        error_cls: type[VersionControlError],
    ) -> str:
        command = [self._git, *args]
        env = {**os.environ, "GIT_TERMINAL_PROMPT": "0"}
        try:
            result = subprocess.run(
                command,
                cwd=cwd,
                capture_output=True,
                text=True,
                timeout=self._timeout,
                env=env,
                check=False,
            )
        except subprocess.TimeoutExpired as exc:
            raise StepTimeoutError(
                f"git {args[0]} timed out after {self._timeout:.0f}s"
            ) from exc
        except OSError as exc:
            raise error_cls(f"git {args[0]} could not run: {exc}") from exc

        if result.returncode != 0:
            detail = self.redact((result.stderr or result.stdout).strip())
            raise error_cls(f"git {self.redact(' '.join(args))} failed: {detail}")
        return result.stdout

    # ------------------------------------------------------------------
    # Local phase
    # ------------------------------------------------------------------

    def ensure_repository(self, path: Path, *, remote_url: str, branch: str) -> None:
        """Initialise *path* as a repository on *branch* with ``origin`` set.

        A no-op apart from refreshing ``origin`` when *path* is already a
        repository, so the second push of a run reuses the first one's history.
        """
        if (path / ".git").exists():
            self._run(["remote", "set-url", "origin", remote_url], path, LocalCommitError)
            return

        self._run(["init"], path, LocalCommitError)
        self._run(["symbolic-ref", "HEAD", f"refs/heads/{branch}"], path, LocalCommitError)
        self._run(["config", "user.name", self._author_name], path, LocalCommitError)
        self._run(["config", "user.email", self._author_email], path, LocalCommitError)
        self._run(["config", "commit.gpgsign", "false"], path, LocalCommitError)
        self._run(["remote", "add", "origin", remote_url], path, LocalCommitError)
        logger.info("Initialised git repository in %s", path)

    def commit(self, path: Path, files: Iterable[str], message: str) -> str:
        """Stage *files* and commit; returns the new HEAD sha."""
        paths = sorted(files)
        if paths:
            self._run(["add", "--", *paths], path, LocalCommitError)
        self._run(["commit", "--allow-empty", "-m", message], path, LocalCommitError)
        sha = self._run(["rev-parse", "HEAD"], path, LocalCommitError).strip()
        logger.info("Committed %d file(s) as %s", len(paths), sha[:12])
        return sha

    # ------------------------------------------------------------------
    # Remote phase
    # ------------------------------------------------------------------

    def push(self, path: Path, branch: str) -> None:
        """Push *branch* to ``origin``; raises ``PushRejectedError`` on any failure."""
        self._run(["push", "origin", f"{branch}:{branch}"], path, PushRejectedError)
        logger.info("Pushed %s from %s", branch, path)

    def commit_and_push(
        self,
        path: Path,
        *,
        remote_url: str,
        branch: str,
        files: Iterable[str],
        message: str,
    ) -> str:
        """Local commit, then push.  Returns the pushed commit sha."""
        self.ensure_repository(path, remote_url=remote_url, branch=branch)
        sha = self.commit(path, files, message)
        self.push(path, branch)
        return sha
