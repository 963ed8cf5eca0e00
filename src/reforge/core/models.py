"""Core data models for Reforge."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path, PurePosixPath
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from reforge.core.exceptions import UnsupportedVariant

MAX_PACKAGES = 100
MAX_METADATA_FIELDS = 50
MAX_METADATA_KEY_LENGTH = 100
MAX_METADATA_VALUE_LENGTH = 1000
MAX_PROJECT_NAME_LENGTH = 200

_CONTROL_CHARS = re.compile(r"[\x00-\x1f\x7f-\x9f]")


class Agent(str, Enum):
    """AI agents a template pack can be deployed for."""

    COPILOT = "copilot"
    CLAUDE = "claude"

    @classmethod
    def names(cls) -> List[str]:
        return [agent.value for agent in cls]

    @classmethod
    def parse(cls, value: "str | Agent") -> "Agent":
        """Parse an agent name case-insensitively."""
        if isinstance(value, Agent):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise UnsupportedVariant(str(value), cls.names()) from None

    @property
    def description(self) -> str:
        if self is Agent.COPILOT:
            return "GitHub Copilot - AI pair programmer integrated with your editor"
        return "Anthropic Claude - Advanced AI assistant for code and conversation"

    def __str__(self) -> str:
        return self.value


def _validate_semantic_version(version: str) -> str:
    trimmed = version.strip()
    if not trimmed:
        raise ValueError("Package version cannot be empty")
    if not trimmed[0].isdigit():
        raise ValueError(f"Version '{version}' must start with a number (e.g., '1.0.0')")
    if trimmed.endswith("-"):
        raise ValueError(f"Version '{version}' has empty pre-release identifier")
    if trimmed.endswith("+"):
        raise ValueError(f"Version '{version}' has empty build metadata")

    core = trimmed.split("+", 1)[0].split("-", 1)[0]
    parts = core.split(".")
    if len(parts) < 3:
        raise ValueError(
            f"Version '{version}' should have at least major.minor.patch format (e.g., '1.0.0')"
        )
    names = ("major", "minor", "patch")
    for i, part in enumerate(parts):
        if not part:
            raise ValueError(f"Version '{version}' has empty version component at position {i}")
        if not part.isdigit():
            component = names[i] if i < len(names) else "version component"
            raise ValueError(
                f"Version '{version}' has invalid {component} component '{part}' (must be numeric)"
            )
        if len(part) > 1 and part.startswith("0"):
            raise ValueError(f"Version '{version}' component '{part}' cannot have leading zeros")
    return trimmed


def _validate_project_name(name: str) -> None:
    trimmed = name.strip()
    if not trimmed:
        raise ValueError("project_name cannot be empty")
    if len(trimmed) > MAX_PROJECT_NAME_LENGTH:
        raise ValueError(f"project_name is too long (max {MAX_PROJECT_NAME_LENGTH} characters)")
    if _CONTROL_CHARS.search(trimmed):
        raise ValueError("project_name cannot contain control characters")


def utc_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


class Package(BaseModel):
    """A template package contributing to a deployment."""

    id: str = Field(..., description="Unique package identifier")
    url: Optional[str] = Field(None, description="Where the package can be downloaded")
    version: str = Field(..., description="Semantic version")

    @field_validator("id")
    @classmethod
    def validate_id(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Package ID cannot be empty")
        if any(c.isspace() for c in v):
            raise ValueError(f"Package ID '{v}' cannot contain whitespace characters")
        if len(v) > 100:
            raise ValueError(f"Package ID '{v}' is too long (max 100 characters)")
        return v

    @field_validator("version")
    @classmethod
    def validate_version(cls, v: str) -> str:
        return _validate_semantic_version(v)

    @field_validator("url")
    @classmethod
    def validate_url(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        trimmed = v.strip()
        if not trimmed:
            raise ValueError("Package URL cannot be empty when specified")
        if trimmed.startswith("https://"):
            rest = trimmed[len("https://"):]
        elif trimmed.startswith("http://"):
            rest = trimmed[len("http://"):]
        else:
            raise ValueError(f"Package URL '{v}' must start with 'http://' or 'https://'")
        if not rest:
            raise ValueError(f"Package URL '{v}' is missing domain name")
        if len(trimmed) > 500:
            raise ValueError("Package URL is too long (max 500 characters)")
        return trimmed


class DeploymentRecord(BaseModel):
    """Contents of the deployment record file (.reforge.json)."""

    agent: Agent = Field(..., description="Agent the templates were deployed for")
    packages: List[Package] = Field(default_factory=list, description="Deployed template packages")
    metadata: Dict[str, Any] = Field(default_factory=dict, description="Free-form project metadata")

    @field_validator("packages")
    @classmethod
    def validate_packages(cls, v: List[Package]) -> List[Package]:
        if len(v) > MAX_PACKAGES:
            raise ValueError(f"Too many packages (max {MAX_PACKAGES} allowed)")
        seen = set()
        for package in v:
            if package.id in seen:
                raise ValueError(
                    f"Duplicate package ID: '{package.id}'. Each package must have a unique identifier"
                )
            seen.add(package.id)
        return v

    @field_validator("metadata")
    @classmethod
    def validate_metadata(cls, v: Dict[str, Any]) -> Dict[str, Any]:
        if "created_at" not in v:
            raise ValueError("Missing required field: created_at")
        created_at = v["created_at"]
        if not isinstance(created_at, str):
            raise ValueError("created_at must be a string in ISO 8601 format")
        try:
            datetime.fromisoformat(created_at.replace("Z", "+00:00"))
        except ValueError:
            raise ValueError(
                f"Invalid created_at timestamp format: '{created_at}'. Expected ISO 8601/RFC3339 format"
            ) from None

        if len(v) > MAX_METADATA_FIELDS:
            raise ValueError(f"Too many metadata fields (max {MAX_METADATA_FIELDS} allowed)")
        for key, value in v.items():
            if not key.strip():
                raise ValueError("Metadata keys cannot be empty")
            if len(key) > MAX_METADATA_KEY_LENGTH:
                raise ValueError(
                    f"Metadata key '{key}' is too long (max {MAX_METADATA_KEY_LENGTH} characters)"
                )
            if _CONTROL_CHARS.search(key):
                raise ValueError(f"Metadata key '{key}' contains invalid control characters")
            if key == "project_name":
                if not isinstance(value, str):
                    raise ValueError("project_name must be a string")
                _validate_project_name(value)
            if isinstance(value, str) and len(value) > MAX_METADATA_VALUE_LENGTH:
                raise ValueError(
                    f"Metadata value for key '{key}' is too long (max {MAX_METADATA_VALUE_LENGTH} characters)"
                )
        return v

    @classmethod
    def new(cls, agent: Agent, project_name: Optional[str] = None) -> "DeploymentRecord":
        metadata: Dict[str, Any] = {"created_at": utc_timestamp()}
        if project_name is not None:
            metadata["project_name"] = project_name
        return cls(agent=agent, metadata=metadata)

    def add_package(self, package: Package) -> None:
        if self.get_package(package.id) is not None:
            raise ValueError(f"Package with ID '{package.id}' already exists")
        if len(self.packages) >= MAX_PACKAGES:
            raise ValueError(f"Too many packages (max {MAX_PACKAGES} allowed)")
        self.packages.append(package)

    def get_package(self, package_id: str) -> Optional[Package]:
        return next((p for p in self.packages if p.id == package_id), None)

    def remove_package(self, package_id: str) -> Optional[Package]:
        package = self.get_package(package_id)
        if package is not None:
            self.packages.remove(package)
        return package

    def set_metadata(self, key: str, value: Any) -> None:
        self.metadata[key] = value

    def get_metadata(self, key: str) -> Optional[Any]:
        return self.metadata.get(key)

    @property
    def created_at(self) -> Optional[str]:
        value = self.metadata.get("created_at")
        return value if isinstance(value, str) else None

    @property
    def project_name(self) -> Optional[str]:
        value = self.metadata.get("project_name")
        return value if isinstance(value, str) else None


class PackManifest(BaseModel):
    """Template pack manifest (pack.yaml at the archive root)."""

    name: str = Field("reforge-templates", description="Pack name")
    version: str = Field("1.0.0", description="Pack version")
    description: Optional[str] = Field(None, description="Pack description")

    @field_validator("version", mode="before")
    @classmethod
    def validate_version(cls, v: Any) -> str:
        return _validate_semantic_version(str(v))


class VariantLayout(BaseModel):
    """Where a variant's templates live in the pack and how they land on disk."""

    model_config = {"frozen": True}

    agent: Agent
    archive_prefix: str = Field(..., description="Top-level archive prefix, with trailing slash")
    documentation_file: str = Field(..., description="Agent documentation file at the destination root")
    agent_dir: str = Field(..., description="Agent-specific directory at the destination root")
    package_id: str = Field(..., description="Package id recorded for this variant")

    @model_validator(mode="after")
    def check_prefix(self) -> "VariantLayout":
        if not self.archive_prefix.endswith("/") or self.archive_prefix.startswith("/"):
            raise ValueError(f"Archive prefix must be relative and end with '/': {self.archive_prefix}")
        return self


class EntryStatus(str, Enum):
    NEW = "new"
    EXISTING = "existing"
    PATH_TYPE_CONFLICT = "path_type_conflict"


@dataclass(frozen=True)
class PlanEntry:
    """One file the deployment will write."""

    relative_path: PurePosixPath
    destination: Path
    content: bytes = field(repr=False)
    status: EntryStatus = EntryStatus.NEW

    @property
    def existing(self) -> bool:
        return self.status is EntryStatus.EXISTING


@dataclass
class DeploymentPlan:
    """Ordered, unexecuted mapping from archive entries to destination paths."""

    layout: VariantLayout
    destination_root: Path
    entries: List[PlanEntry] = field(default_factory=list)

    def __post_init__(self) -> None:
        seen = set()
        for entry in self.entries:
            if entry.destination in seen:
                raise ValueError(f"Duplicate destination in plan: {entry.destination}")
            seen.add(entry.destination)

    @property
    def conflicts(self) -> List[PlanEntry]:
        return [e for e in self.entries if e.existing]

    @property
    def path_type_conflicts(self) -> List[PlanEntry]:
        return [e for e in self.entries if e.status is EntryStatus.PATH_TYPE_CONFLICT]

    @property
    def destinations(self) -> List[Path]:
        return [e.destination for e in self.entries]

    @property
    def is_safe(self) -> bool:
        return not self.conflicts and not self.path_type_conflicts

    def __len__(self) -> int:
        return len(self.entries)


@dataclass(frozen=True)
class ConflictSummary:
    """What the confirmation callback is shown."""

    paths: List[Path]
    total_files: int

    @property
    def count(self) -> int:
        return len(self.paths)


@dataclass(frozen=True)
class ResolvedPlan:
    plan: DeploymentPlan
    overwrite: bool


@dataclass(frozen=True)
class Aborted:
    """Deployment declined by the caller. Nothing was written."""

    conflicts: List[Path]
    reason: str = "Operation cancelled by user"


@dataclass(frozen=True)
class DeploymentResult:
    written: List[Path]
    record_path: Path
    record: DeploymentRecord
