"""Reforge - deploys agent prompt template packs into project directories."""

__version__ = "0.1.0"
__author__ = "Reforge Contributors"

from reforge.core.config import Settings
from reforge.core.models import Agent, DeploymentRecord, Package

__all__ = ["Settings", "Agent", "DeploymentRecord", "Package", "__version__"]
