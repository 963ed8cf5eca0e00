"""Deployment engine: pack reading, planning, conflict resolution, atomic apply, records."""

from .archive import TemplateArchive, build_pack, bundled_pack
from .variants import resolve_variant, supported_variants
from .planner import plan_deployment
from .conflicts import resolve_conflicts
from .applier import AtomicApplier
from .record import RecordStore
from .engine import deploy

__all__ = [
    "TemplateArchive",
    "build_pack",
    "bundled_pack",
    "resolve_variant",
    "supported_variants",
    "plan_deployment",
    "resolve_conflicts",
    "AtomicApplier",
    "RecordStore",
    "deploy",
]
