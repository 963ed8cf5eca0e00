"""Deployment record persistence (.reforge.json)."""

from __future__ import annotations

import json
import os
import tempfile
from pathlib import Path
from typing import Any, Dict

import structlog
from pydantic import ValidationError

from reforge.core.exceptions import RecordCorrupt, RecordError, RecordMissing
from reforge.core.models import DeploymentRecord

logger = structlog.get_logger()

DEFAULT_RECORD_FILENAME = ".reforge.json"


def _sorted_value(value: Any) -> Any:
    if isinstance(value, dict):
        return {k: _sorted_value(value[k]) for k in sorted(value)}
    if isinstance(value, (list, tuple)):
        return [_sorted_value(v) for v in value]
    return value


def _to_document(record: DeploymentRecord) -> Dict[str, Any]:
    # Fixed field order; metadata keys sorted at every depth so equal records serialize identically.
    return {
        "agent": record.agent.value,
        "packages": [
            {"id": p.id, "url": p.url, "version": p.version} for p in record.packages
        ],
        "metadata": _sorted_value(record.metadata),
    }


def serialize_record(record: DeploymentRecord) -> str:
    """Render the record as JSON. Raises TypeError or ValueError for metadata JSON cannot hold."""
    return json.dumps(_to_document(record), indent=2, ensure_ascii=False, allow_nan=False) + "\n"


def parse_record(text: str) -> DeploymentRecord:
    """Parse record JSON. Raises ValueError or ValidationError on bad input."""
    data = json.loads(text)
    if not isinstance(data, dict):
        raise ValueError("expected a JSON object")
    return DeploymentRecord.model_validate(data)


class RecordStore:
    """Reads and writes the deployment record kept in a project directory."""

    def __init__(self, filename: str = DEFAULT_RECORD_FILENAME):
        self.filename = filename

    def path_for(self, destination_root: Path) -> Path:
        return Path(destination_root) / self.filename

    def exists(self, destination_root: Path) -> bool:
        return self.path_for(destination_root).is_file()

    def write(self, destination_root: Path, record: DeploymentRecord) -> Path:
        """Write the record beside a temp file, then rename it over the final path.

        Raises:
            RecordError: If the record is invalid or cannot be written
        """
        path = self.path_for(destination_root)
        try:
            record = DeploymentRecord.model_validate(record.model_dump())
        except ValidationError as e:
            raise RecordError(f"Refusing to write invalid deployment record: {e}", path=path) from e

        try:
            content = serialize_record(record)
        except (TypeError, ValueError) as e:
            raise RecordError(f"Deployment record is not JSON serializable: {e}", path=path) from e

        tmp_name = None
        try:
            fd, tmp_name = tempfile.mkstemp(prefix=f"{self.filename}.", suffix=".tmp", dir=path.parent)
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(content)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_name, path)
        except OSError as e:
            if tmp_name is not None and os.path.exists(tmp_name):
                os.remove(tmp_name)
            logger.error("Failed to write deployment record", path=str(path), error=str(e))
            raise RecordError(f"Failed to write deployment record '{path}': {e}", path=path) from e

        logger.info("Wrote deployment record", path=str(path), agent=record.agent.value)
        return path

    def read(self, destination_root: Path) -> DeploymentRecord:
        """Read the record back.

        Raises:
            RecordMissing: No record file exists
            RecordCorrupt: The file exists but is not a valid record
            RecordError: The file exists but cannot be read
        """
        path = self.path_for(destination_root)
        try:
            text = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            raise RecordMissing(path) from None
        except IsADirectoryError as e:
            raise RecordCorrupt(path, "path is a directory") from e
        except UnicodeDecodeError as e:
            raise RecordCorrupt(path, f"not valid UTF-8: {e}") from e
        except OSError as e:
            raise RecordError(f"Cannot read deployment record '{path}': {e}", path=path) from e

        try:
            return parse_record(text)
        except (ValueError, ValidationError) as e:
            logger.warning("Deployment record is corrupt", path=str(path), error=str(e))
            raise RecordCorrupt(path, str(e)) from e
