"""Two-phase (stage, then commit) application of a resolved deployment plan."""

from __future__ import annotations

import os
import shutil
import tempfile
from pathlib import Path
from typing import List

import structlog

from reforge.core.exceptions import CommitError, StagingError
from reforge.core.models import ResolvedPlan

logger = structlog.get_logger()

STAGING_PREFIX = ".reforge-staging-"


def _write_bytes(path: Path, content: bytes) -> None:
    with open(path, "wb") as f:
        f.write(content)
        f.flush()
        os.fsync(f.fileno())


def _missing_ancestors(path: Path) -> List[Path]:
    """Directories from path upwards that do not exist yet, outermost last."""
    missing: List[Path] = []
    current = path
    while not current.exists() and current != current.parent:
        missing.append(current)
        current = current.parent
    return missing


class AtomicApplier:
    """Writes a resolved plan so that staging is all-or-nothing and commit is per-file atomic.

    Everything is first written into a private staging directory inside the
    destination root, so the final moves are same-filesystem renames. If any
    staged write fails, the staging directory is removed and the destination is
    left as it was. Commit moves staged files into place in plan order; a
    failure there is reported with the paths that did and did not make it,
    and already-moved files are left in place.
    """

    def apply(self, resolved: ResolvedPlan) -> List[Path]:
        """Apply the plan and return the destination paths now present, in plan order.

        Raises:
            StagingError: Nothing was changed at the destination
            CommitError: Some files were replaced; see ``committed`` and ``pending``
        """
        plan = resolved.plan
        root = plan.destination_root
        created_dirs = _missing_ancestors(root)

        try:
            root.mkdir(parents=True, exist_ok=True)
            staging = Path(tempfile.mkdtemp(prefix=STAGING_PREFIX, dir=root))
        except OSError as e:
            self._remove_created(created_dirs)
            raise StagingError(f"Cannot create staging area in '{root}': {e}", path=root) from e

        logger.debug("Created staging area", staging=str(staging), files=len(plan))
        try:
            staged = self._stage(resolved, staging, created_dirs)
            return self._commit(resolved, staged)
        finally:
            shutil.rmtree(staging, ignore_errors=True)

    def _stage(self, resolved: ResolvedPlan, staging: Path, created_dirs: List[Path]) -> List[Path]:
        staged: List[Path] = []
        for entry in resolved.plan.entries:
            target = staging.joinpath(*entry.relative_path.parts)
            try:
                target.parent.mkdir(parents=True, exist_ok=True)
                _write_bytes(target, entry.content)
            except OSError as e:
                logger.error(
                    "Staging failed, discarding staged files",
                    path=str(entry.destination),
                    staged=len(staged),
                    error=str(e),
                )
                shutil.rmtree(staging, ignore_errors=True)
                self._remove_created(created_dirs)
                raise StagingError(
                    f"Failed to stage '{entry.relative_path}': {e}", path=entry.destination
                ) from e
            staged.append(target)
        logger.debug("Staged all files", files=len(staged))
        return staged

    def _commit(self, resolved: ResolvedPlan, staged: List[Path]) -> List[Path]:
        entries = resolved.plan.entries
        committed: List[Path] = []
        for index, (entry, source) in enumerate(zip(entries, staged)):
            destination = entry.destination
            try:
                if not resolved.overwrite and os.path.lexists(destination):
                    raise FileExistsError(f"'{destination}' appeared after planning")
                destination.parent.mkdir(parents=True, exist_ok=True)
                os.replace(source, destination)
            except OSError as e:
                pending = [e2.destination for e2 in entries[index:]]
                logger.error(
                    "Commit failed partway",
                    path=str(destination),
                    committed=len(committed),
                    pending=len(pending),
                    error=str(e),
                )
                raise CommitError(
                    f"Failed to move '{entry.relative_path}' into place: {e}",
                    committed=committed,
                    pending=pending,
                ) from e
            committed.append(destination)

        logger.info("Committed deployment", files=len(committed), overwrite=resolved.overwrite)
        return committed

    @staticmethod
    def _remove_created(created_dirs: List[Path]) -> None:
        for directory in created_dirs:
            try:
                directory.rmdir()
            except OSError:
                break
