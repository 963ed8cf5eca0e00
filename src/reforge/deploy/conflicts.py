"""Conflict resolution: one accept/decline decision for the whole plan."""

from typing import Callable, Optional, Union

import structlog

from reforge.core.exceptions import PathTypeConflict
from reforge.core.models import Aborted, ConflictSummary, DeploymentPlan, ResolvedPlan

logger = structlog.get_logger()

ConfirmFn = Callable[[ConflictSummary], bool]


def resolve_conflicts(
    plan: DeploymentPlan,
    confirm: Optional[ConfirmFn] = None,
    force: bool = False,
) -> Union[ResolvedPlan, Aborted]:
    """Decide whether the plan may proceed.

    ``confirm`` is called at most once, and only when the plan would overwrite
    existing files and ``force`` is not set. Interrupting the prompt counts as
    declining.

    Raises:
        PathTypeConflict: If a planned path collides with a directory, or a file
            sits where a directory is needed. Not overridable by ``force``.
    """
    blocked = plan.path_type_conflicts
    if blocked:
        raise PathTypeConflict([e.destination for e in blocked])

    conflicts = [e.destination for e in plan.conflicts]
    if not conflicts:
        return ResolvedPlan(plan=plan, overwrite=False)

    if force:
        logger.info("Force enabled, overwriting existing files", conflicts=len(conflicts))
        return ResolvedPlan(plan=plan, overwrite=True)

    if confirm is None:
        logger.info("Existing files found and no confirmation available", conflicts=len(conflicts))
        return Aborted(conflicts=conflicts, reason="Existing files would be overwritten")

    summary = ConflictSummary(paths=conflicts, total_files=len(plan))
    try:
        accepted = bool(confirm(summary))
    except (KeyboardInterrupt, EOFError):
        accepted = False

    if not accepted:
        logger.info("Overwrite declined", conflicts=len(conflicts))
        return Aborted(conflicts=conflicts)

    logger.info("Overwrite accepted", conflicts=len(conflicts))
    return ResolvedPlan(plan=plan, overwrite=True)
