"""Workspace staging — an exclusively owned directory per run.

Layout: {workspace_root}/app-{slug}/  (the slug already carries the run's
uniqueness suffix, so a fresh directory is expected every time).

Files are written atomically (temp file in the target directory, then
``os.replace``) and never overwritten.  Staging is additive: the artifact and
build descriptor land first, the CI workflow later in the same run.
"""

from __future__ import annotations

import logging
import os
import tempfile
from collections.abc import Mapping
from pathlib import Path, PurePosixPath

from appforge.core.descriptors import artifact_files
from appforge.core.errors import WorkspaceConflictError, WorkspaceUnavailableError
from appforge.models.provisioning import AppSlug, GeneratedArtifact, Workspace

logger = logging.getLogger(__name__)


def _write_atomic(path: Path, content: str) -> None:
    """Write *content* so readers see either nothing or the whole file."""
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8", newline="\n") as handle:
            handle.write(content)
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise


def _safe_relative(name: str) -> PurePosixPath:
    """Reject absolute paths and ``..`` so staging stays inside the workspace."""
    relative = PurePosixPath(name)
    if relative.is_absolute() or ".." in relative.parts or not relative.parts:
        raise WorkspaceConflictError(f"Refusing to stage outside the workspace: {name!r}")
    return relative


class WorkspaceStager:
    """Creates and populates run workspaces under a common root.

    Parameters
    ----------
    root:
        Directory holding one sub-directory per run.
    """

    def __init__(self, root: Path) -> None:
        self._root = Path(root)

    def path_for(self, slug: AppSlug) -> Path:
        return self._root / f"app-{slug.name}"

    def create(self, run_id: str, slug: AppSlug) -> Workspace:
        """Claim a fresh directory for *run_id*.

        An existing empty directory is claimed; one with content belongs to
        another run and raises ``WorkspaceConflictError``.
        """
        path = self.path_for(slug)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise WorkspaceUnavailableError(
                f"Cannot create workspace root {path.parent}: {exc}"
            ) from exc
        try:
            path.mkdir()
        except FileExistsError:
            if not path.is_dir() or any(path.iterdir()):
                raise WorkspaceConflictError(
                    f"Workspace {path} already exists with content from another run"
                ) from None
        except OSError as exc:
            raise WorkspaceUnavailableError(f"Cannot create workspace {path}: {exc}") from exc
        logger.info("Workspace created: %s", path)
        return Workspace(run_id=run_id, path=path)

    def stage(
        self,
        workspace: Workspace,
        artifact: GeneratedArtifact | None = None,
        descriptors: Mapping[str, str] | None = None,
    ) -> set[str]:
        """Write the artifact and/or descriptors into *workspace*.

        Every parent directory is created before any file is written, and the
        whole batch is checked for collisions first, so a conflict leaves the
        workspace untouched.

        Returns the set of POSIX-style relative paths written.
        """
        files: dict[str, str] = {}
        if artifact is not None:
            files.update(artifact_files(artifact))
        if descriptors:
            files.update(descriptors)

        planned: dict[str, tuple[Path, str]] = {}
        for name, content in files.items():
            relative = _safe_relative(name).as_posix()
            target = workspace.path / relative
            if relative in planned or target.exists():
                raise WorkspaceConflictError(
                    f"{relative} already exists in {workspace.path}; refusing to overwrite"
                )
            planned[relative] = (target, content)

        try:
            for target, _content in planned.values():
                target.parent.mkdir(parents=True, exist_ok=True)
            for relative, (target, content) in planned.items():
                _write_atomic(target, content)
                logger.debug("Staged %s (%d bytes)", relative, len(content.encode("utf-8")))
        except OSError as exc:
            raise WorkspaceUnavailableError(
                f"Cannot write into workspace {workspace.path}: {exc}"
            ) from exc

        logger.info("Staged %d file(s) into %s", len(planned), workspace.path)
        return set(planned)
