"""Custom exceptions for Reforge."""

from pathlib import Path
from typing import List, Optional, Sequence


class ReforgeError(Exception):
    """Base exception for all reforge errors."""

    def __init__(self, message: str, code: Optional[str] = None):
        super().__init__(message)
        self.code = code


class ArchiveError(ReforgeError):
    """Template pack archive errors."""
    pass


class ArchiveUnreadable(ArchiveError):
    """Archive cannot be opened or parsed."""
    pass


class ArchiveIntegrityViolation(ArchiveError):
    """Archive contains an entry that escapes its subtree."""

    def __init__(self, message: str, entry: Optional[str] = None):
        super().__init__(message, code="archive_integrity")
        self.entry = entry


class UnsupportedVariant(ReforgeError):
    """Requested variant is not one of the supported agents."""

    def __init__(self, variant: str, supported: Sequence[str]):
        self.variant = variant
        self.supported = list(supported)
        super().__init__(
            f"Invalid agent '{variant}'. Supported agents: {', '.join(self.supported)}",
            code="unsupported_variant",
        )


class PlanningError(ReforgeError):
    """Destination root cannot be planned against."""
    pass


class PathTypeConflict(PlanningError):
    """A planned file collides with a directory, or needs a directory where a file sits."""

    def __init__(self, paths: Sequence[Path]):
        self.paths = list(paths)
        listing = ", ".join(str(p) for p in self.paths)
        super().__init__(
            f"Cannot deploy over {len(self.paths)} path(s) of the wrong type: {listing}",
            code="path_type_conflict",
        )


class ApplyError(ReforgeError):
    """Applying a deployment plan failed."""
    pass


class StagingError(ApplyError):
    """Staging failed; the destination was not touched."""

    def __init__(self, message: str, path: Optional[Path] = None):
        super().__init__(message, code="staging")
        self.path = path


class CommitError(ApplyError):
    """Commit failed partway; the destination holds a mix of old and new files."""

    def __init__(self, message: str, committed: Sequence[Path], pending: Sequence[Path]):
        self.committed: List[Path] = list(committed)
        self.pending: List[Path] = list(pending)
        super().__init__(
            f"{message}. The directory is now in a mixed state: "
            f"{len(self.committed)} file(s) were updated and {len(self.pending)} were not",
            code="commit",
        )


class RecordError(ReforgeError):
    """Deployment record could not be written or read."""

    def __init__(
        self,
        message: str,
        path: Optional[Path] = None,
        deployed: Optional[Sequence[Path]] = None,
        code: Optional[str] = "record",
    ):
        super().__init__(message, code=code)
        self.path = path
        self.deployed = list(deployed or [])


class RecordMissing(RecordError):
    """No deployment record exists at the destination."""

    def __init__(self, path: Path):
        super().__init__(f"Configuration file does not exist: '{path}'", path=path, code="record_missing")


class RecordCorrupt(RecordError):
    """Deployment record exists but cannot be parsed."""

    def __init__(self, path: Path, reason: str):
        super().__init__(
            f"Configuration file '{path}' is corrupted: {reason}", path=path, code="record_corrupt"
        )
        self.reason = reason


class ConfigurationError(ReforgeError):
    """Configuration error."""
    pass


class FetchError(ReforgeError):
    """Remote template pack could not be downloaded."""
    pass
