"""Deployment planning: map pack entries to destination paths and classify conflicts."""

from __future__ import annotations

import os
import stat
from pathlib import Path, PurePosixPath
from typing import Dict, List, Optional

import structlog

from reforge.core.exceptions import PlanningError
from reforge.core.models import DeploymentPlan, EntryStatus, PlanEntry, VariantLayout
from reforge.deploy.archive import TemplateArchive

logger = structlog.get_logger()


def _stat(path: Path, follow: bool = True) -> Optional[os.stat_result]:
    try:
        return path.stat() if follow else path.lstat()
    except FileNotFoundError:
        return None
    except NotADirectoryError:
        # A parent component is a file; the caller reports that component.
        return None
    except OSError as e:
        raise PlanningError(f"Cannot inspect '{path}': {e}") from e


def _classify(
    root: Path,
    relative: PurePosixPath,
    cache: Dict[Path, Optional[os.stat_result]],
) -> EntryStatus:
    # Every intermediate component must be a directory or not exist yet.
    current = root
    for part in relative.parts[:-1]:
        current = current / part
        if current not in cache:
            cache[current] = _stat(current)
        st = cache[current]
        if st is None:
            return EntryStatus.NEW
        if not stat.S_ISDIR(st.st_mode):
            return EntryStatus.PATH_TYPE_CONFLICT

    st = _stat(root.joinpath(*relative.parts), follow=False)
    if st is None:
        return EntryStatus.NEW
    if stat.S_ISDIR(st.st_mode):
        return EntryStatus.PATH_TYPE_CONFLICT
    return EntryStatus.EXISTING


def plan_deployment(
    archive: TemplateArchive,
    layout: VariantLayout,
    destination_root: Path,
    record_filename: str = ".reforge.json",
) -> DeploymentPlan:
    """Compute the deployment plan for a variant without touching the destination.

    Args:
        archive: Opened template pack
        layout: Resolved variant layout
        destination_root: Project directory to deploy into (may not exist yet)
        record_filename: Deployment record file name, which templates may not overwrite

    Returns:
        Plan with one entry per file in the variant's subtree, in archive order

    Raises:
        ArchiveIntegrityViolation: If the archive contains an unsafe entry
        PlanningError: If the destination root cannot be inspected or the pack lacks the variant
    """
    root = Path(destination_root)
    root_stat = _stat(root)
    if root_stat is not None and not stat.S_ISDIR(root_stat.st_mode):
        raise PlanningError(f"Target path '{root}' exists but is not a directory")
    if root_stat is not None and not os.access(root, os.R_OK | os.X_OK):
        raise PlanningError(f"Permission denied: cannot read destination directory '{root}'")

    cache: Dict[Path, Optional[os.stat_result]] = {}
    entries: List[PlanEntry] = []
    for relative, content in archive.entries_under(layout.archive_prefix):
        if relative == PurePosixPath(record_filename):
            raise PlanningError(
                f"Template pack entry '{layout.archive_prefix}{relative}' would overwrite the deployment record"
            )
        status = EntryStatus.NEW if root_stat is None else _classify(root, relative, cache)
        entries.append(
            PlanEntry(
                relative_path=relative,
                destination=root.joinpath(*relative.parts),
                content=content,
                status=status,
            )
        )

    if not entries:
        raise PlanningError(
            f"Template pack '{archive.source}' has no files for agent '{layout.agent.value}' "
            f"(expected entries under '{layout.archive_prefix}')"
        )

    plan = DeploymentPlan(layout=layout, destination_root=root, entries=entries)
    logger.info(
        "Planned deployment",
        agent=layout.agent.value,
        files=len(plan),
        conflicts=len(plan.conflicts),
        path_type_conflicts=len(plan.path_type_conflicts),
    )
    return plan
