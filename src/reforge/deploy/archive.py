"""Template pack archive reader."""

from __future__ import annotations

import io
import os
import zipfile
from pathlib import Path, PurePosixPath
from typing import Iterator, List, Optional, Tuple, Union

import structlog
import yaml
from pydantic import ValidationError

from reforge.core.exceptions import ArchiveIntegrityViolation, ArchiveUnreadable
from reforge.core.models import PackManifest

logger = structlog.get_logger()

MANIFEST_NAME = "pack.yaml"

ArchiveSource = Union[str, "os.PathLike[str]", bytes]


def _check_member_name(name: str) -> PurePosixPath:
    """Reject member names that could escape the directory they are extracted into."""
    if "\\" in name or "\x00" in name:
        raise ArchiveIntegrityViolation(f"Archive entry has an unsafe name: {name!r}", entry=name)
    path = PurePosixPath(name)
    if path.is_absolute() or ".." in path.parts:
        raise ArchiveIntegrityViolation(f"Archive contains unsafe path (zip-slip): {name!r}", entry=name)
    if path.parts and len(path.parts[0]) == 2 and path.parts[0][1] == ":":
        raise ArchiveIntegrityViolation(f"Archive entry has a drive letter: {name!r}", entry=name)
    return path


class TemplateArchive:
    """A read-only template pack opened for the duration of one deployment."""

    def __init__(self, zf: zipfile.ZipFile, source: str):
        self._zf = zf
        self.source = source

    @classmethod
    def open(cls, source: ArchiveSource) -> "TemplateArchive":
        """Open a pack from a filesystem path or raw zip bytes.

        Raises:
            ArchiveUnreadable: If the source cannot be opened as a zip archive
        """
        if isinstance(source, (bytes, bytearray)):
            label = f"<{len(source)} bytes>"
            fileobj: Union[str, io.BytesIO] = io.BytesIO(bytes(source))
        else:
            label = os.fspath(source)
            fileobj = label

        try:
            zf = zipfile.ZipFile(fileobj, "r")
        except (OSError, zipfile.BadZipFile) as e:
            logger.error("Failed to open template pack", source=label, error=str(e))
            raise ArchiveUnreadable(f"Cannot read template pack '{label}': {e}") from e

        logger.debug("Opened template pack", source=label, entries=len(zf.infolist()))
        return cls(zf, label)

    def close(self) -> None:
        self._zf.close()

    def __enter__(self) -> "TemplateArchive":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def verify(self) -> None:
        """Check every member name before anything is read out of the archive.

        Raises:
            ArchiveIntegrityViolation: If a name is unsafe, or two file members
                resolve to the same path
        """
        seen = set()
        for member in self._zf.infolist():
            path = _check_member_name(member.filename)
            if member.is_dir():
                continue
            if path in seen:
                raise ArchiveIntegrityViolation(
                    f"Archive contains duplicate entry: {member.filename!r}", entry=member.filename
                )
            seen.add(path)

    def names(self) -> List[str]:
        return [m.filename for m in self._zf.infolist() if not m.is_dir()]

    def prefixes(self) -> List[str]:
        """Top-level directory prefixes in archive order."""
        found: List[str] = []
        for member in self._zf.infolist():
            parts = PurePosixPath(member.filename).parts
            if len(parts) > 1 or (parts and member.is_dir()):
                prefix = f"{parts[0]}/"
                if prefix not in found:
                    found.append(prefix)
        return found

    def entries_under(self, prefix: str) -> Iterator[Tuple[PurePosixPath, bytes]]:
        """Yield (path relative to prefix, content) for files under prefix, in archive order.

        The whole archive is checked for unsafe names first, so a bad entry fails
        the read before any content is handed out.

        Raises:
            ArchiveIntegrityViolation: If any member name is unsafe
            ArchiveUnreadable: If a member cannot be decompressed
        """
        self.verify()
        root = PurePosixPath(prefix.rstrip("/"))
        for member in self._zf.infolist():
            if member.is_dir():
                continue
            path = PurePosixPath(member.filename)
            if path.parts[: len(root.parts)] != root.parts or len(path.parts) == len(root.parts):
                continue
            relative = path.relative_to(root)
            try:
                content = self._zf.read(member)
            except (OSError, zipfile.BadZipFile, RuntimeError) as e:
                raise ArchiveUnreadable(f"Cannot read '{member.filename}' from template pack: {e}") from e
            yield relative, content

    def manifest(self) -> PackManifest:
        """Parse pack.yaml at the archive root, or defaults when the pack has none."""
        try:
            raw = self._zf.read(MANIFEST_NAME)
        except KeyError:
            return PackManifest()
        except (OSError, zipfile.BadZipFile) as e:
            raise ArchiveUnreadable(f"Cannot read {MANIFEST_NAME}: {e}") from e

        try:
            data = yaml.safe_load(raw) or {}
            if not isinstance(data, dict):
                raise ArchiveUnreadable(f"{MANIFEST_NAME} must be a mapping")
            return PackManifest.model_validate(data)
        except yaml.YAMLError as e:
            raise ArchiveUnreadable(f"Invalid {MANIFEST_NAME}: {e}") from e
        except ValidationError as e:
            raise ArchiveUnreadable(f"Invalid {MANIFEST_NAME}: {e}") from e


def build_pack(directory: Path) -> bytes:
    """Zip a template directory tree into pack bytes, with stable member order."""
    directory = Path(directory)
    if not directory.is_dir():
        raise ArchiveUnreadable(f"Template directory not found: {directory}")

    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w", compression=zipfile.ZIP_DEFLATED) as zf:
        for path in sorted(p for p in directory.rglob("*") if p.is_file()):
            if "__pycache__" in path.parts or path.suffix == ".pyc":
                continue
            zf.write(path, path.relative_to(directory).as_posix())
    return buffer.getvalue()


def bundled_pack(templates_dir: Optional[Path] = None) -> bytes:
    """Build the pack shipped with reforge."""
    if templates_dir is None:
        templates_dir = Path(__file__).resolve().parent.parent / "templates"
    return build_pack(templates_dir)
