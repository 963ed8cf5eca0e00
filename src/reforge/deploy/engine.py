"""Deployment engine entry point."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, Optional, Union

import structlog
from pydantic import ValidationError

from reforge.core.config import Settings, get_settings
from reforge.core.exceptions import ConfigurationError, RecordError
from reforge.core.models import Aborted, Agent, DeploymentRecord, DeploymentResult, Package
from reforge.deploy.applier import AtomicApplier
from reforge.deploy.archive import ArchiveSource, TemplateArchive
from reforge.deploy.conflicts import ConfirmFn, resolve_conflicts
from reforge.deploy.planner import plan_deployment
from reforge.deploy.record import RecordStore, serialize_record
from reforge.deploy.variants import resolve_variant
from reforge.utils.logging import bind_deployment_context

logger = structlog.get_logger()

INITIALIZED_BY = "reforge-cli"


def build_record(
    agent: Agent,
    package: Package,
    project_name: Optional[str] = None,
    metadata: Optional[Dict[str, Any]] = None,
) -> DeploymentRecord:
    """Assemble the record for a deployment of one pack."""
    from reforge import __version__

    try:
        record = DeploymentRecord.new(agent, project_name=project_name)
        record.add_package(package)
        record.set_metadata("initialized_by", INITIALIZED_BY)
        record.set_metadata("version", __version__)
        for key, value in (metadata or {}).items():
            if key != "created_at":
                record.set_metadata(key, value)
        record = DeploymentRecord.model_validate(record.model_dump())
        serialize_record(record)
    except (TypeError, ValueError, ValidationError) as e:
        raise ConfigurationError(f"Invalid deployment record: {e}") from e
    return record


def deploy(
    archive_source: ArchiveSource,
    variant_id: Union[str, Agent],
    destination_root: Union[str, Path],
    *,
    force: bool = False,
    confirm: Optional[ConfirmFn] = None,
    project_name: Optional[str] = None,
    package_url: Optional[str] = None,
    metadata: Optional[Dict[str, Any]] = None,
    settings: Optional[Settings] = None,
) -> Union[DeploymentResult, Aborted]:
    """Deploy a variant's templates from a pack into destination_root and record it.

    Args:
        archive_source: Path to a pack zip, or its bytes
        variant_id: Agent to deploy for
        destination_root: Project directory
        force: Overwrite existing files without asking
        confirm: Called once with the conflicts when files would be overwritten
        project_name: Optional project name stored in the record metadata
        package_url: Where the pack came from, stored in the record
        metadata: Extra record metadata
        settings: Overrides the process settings

    Returns:
        DeploymentResult on success, Aborted when the overwrite was declined

    Raises:
        UnsupportedVariant, ArchiveUnreadable, ArchiveIntegrityViolation,
        PlanningError, StagingError, CommitError, RecordError, ConfigurationError
    """
    settings = settings or get_settings()
    layout = resolve_variant(variant_id)
    root = Path(destination_root).expanduser().absolute()
    bind_deployment_context(layout.agent.value, root)
    logger.info("Starting deployment", agent=layout.agent.value, destination=str(root), force=force)

    store = RecordStore(settings.record_filename)

    with TemplateArchive.open(archive_source) as archive:
        manifest = archive.manifest()
        try:
            package = Package(id=layout.package_id, url=package_url, version=manifest.version)
        except ValidationError as e:
            raise ConfigurationError(f"Invalid package descriptor: {e}") from e
        record = build_record(layout.agent, package, project_name=project_name, metadata=metadata)
        plan = plan_deployment(archive, layout, root, record_filename=settings.record_filename)

    outcome = resolve_conflicts(plan, confirm=confirm, force=force)
    if isinstance(outcome, Aborted):
        logger.info("Deployment aborted, nothing written", conflicts=len(outcome.conflicts))
        return outcome

    written = AtomicApplier().apply(outcome)

    try:
        record_path = store.write(root, record)
    except RecordError as e:
        raise RecordError(
            f"Templates were deployed but the deployment record was not written: {e}",
            path=e.path,
            deployed=written,
        ) from e

    logger.info("Deployment complete", files=len(written), record=str(record_path))
    return DeploymentResult(written=written, record_path=record_path, record=record)
