"""
Pytest configuration and fixtures for reforge tests.
"""

import io
import zipfile
from typing import Dict

import pytest
import structlog

from reforge.core.config import get_settings

CLAUDE_FILES = {
    "claude/CLAUDE.md": b"# Claude guide\n",
    "claude/.claude/commands/specify.md": b"specify\n",
    "claude/.claude/commands/plan.md": b"plan\n",
}

COPILOT_FILES = {
    "copilot/AGENTS.md": b"# Copilot guide\n",
    "copilot/.github/copilot-instructions.md": b"instructions\n",
    "copilot/.github/prompts/specify.prompt.md": b"specify\n",
}


def make_pack(files: Dict[str, bytes]) -> bytes:
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as zf:
        for name, data in files.items():
            zf.writestr(name, data)
    return buffer.getvalue()


@pytest.fixture(autouse=True)
def isolate_settings(monkeypatch, tmp_path):
    """
    Keep tests independent of the developer's environment.

    Clears REFORGE_* variables, points the download cache into tmp_path and
    drops the cached settings instance before and after every test. Logging
    configuration and bound context are reset afterwards.
    """
    import os
    for key in list(os.environ):
        if key.startswith("REFORGE_"):
            monkeypatch.delenv(key, raising=False)
    monkeypatch.setenv("REFORGE_CACHE_DIR", str(tmp_path / "cache"))
    monkeypatch.chdir(tmp_path)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()
    structlog.reset_defaults()
    structlog.contextvars.clear_contextvars()


@pytest.fixture
def pack_files() -> Dict[str, bytes]:
    files = {"pack.yaml": b"name: test-pack\nversion: 2.1.0\n"}
    files.update(CLAUDE_FILES)
    files.update(COPILOT_FILES)
    return files


@pytest.fixture
def pack_bytes(pack_files) -> bytes:
    return make_pack(pack_files)


@pytest.fixture
def pack_path(tmp_path, pack_bytes):
    path = tmp_path / "templates.zip"
    path.write_bytes(pack_bytes)
    return path
