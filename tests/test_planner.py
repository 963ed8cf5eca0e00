from pathlib import Path, PurePosixPath

import pytest

from conftest import make_pack
from reforge.core.exceptions import ArchiveIntegrityViolation, PlanningError
from reforge.core.models import EntryStatus
from reforge.deploy.archive import TemplateArchive
from reforge.deploy.planner import plan_deployment
from reforge.deploy.variants import resolve_variant


def _plan(pack: bytes, agent: str, root: Path):
    with TemplateArchive.open(pack) as archive:
        return plan_deployment(archive, resolve_variant(agent), root)


def _snapshot(root: Path):
    return sorted(str(p.relative_to(root)) for p in root.rglob("*"))


def test_plan_into_missing_root_is_all_new(tmp_path: Path, pack_bytes: bytes):
    root = tmp_path / "does" / "not" / "exist"
    plan = _plan(pack_bytes, "claude", root)

    assert len(plan) == 3
    assert all(e.status is EntryStatus.NEW for e in plan.entries)
    assert plan.destinations == [
        root / "CLAUDE.md",
        root / ".claude" / "commands" / "specify.md",
        root / ".claude" / "commands" / "plan.md",
    ]
    assert plan.is_safe
    assert not root.exists()


def test_plan_only_contains_variant_subtree(tmp_path: Path, pack_bytes: bytes):
    plan = _plan(pack_bytes, "copilot", tmp_path)
    assert [e.relative_path for e in plan.entries] == [
        PurePosixPath("AGENTS.md"),
        PurePosixPath(".github/copilot-instructions.md"),
        PurePosixPath(".github/prompts/specify.prompt.md"),
    ]
    assert plan.entries[0].content == b"# Copilot guide\n"


def test_conflict_detection_is_exact(tmp_path: Path, pack_bytes: bytes):
    (tmp_path / ".claude" / "commands").mkdir(parents=True)
    (tmp_path / ".claude" / "commands" / "plan.md").write_text("mine")
    # Siblings at other paths never conflict
    (tmp_path / ".claude" / "commands" / "custom.md").write_text("mine")
    (tmp_path / "README.md").write_text("mine")

    plan = _plan(pack_bytes, "claude", tmp_path)

    assert [e.destination for e in plan.conflicts] == [tmp_path / ".claude" / "commands" / "plan.md"]
    assert plan.conflicts[0].existing
    assert not plan.is_safe
    # Existing intermediate directories are not conflicts
    assert plan.entries[1].status is EntryStatus.NEW


def test_file_in_place_of_directory_is_path_type_conflict(tmp_path: Path, pack_bytes: bytes):
    (tmp_path / ".claude").write_text("I am a file")

    plan = _plan(pack_bytes, "claude", tmp_path)

    statuses = {str(e.relative_path): e.status for e in plan.entries}
    assert statuses["CLAUDE.md"] is EntryStatus.NEW
    assert statuses[".claude/commands/specify.md"] is EntryStatus.PATH_TYPE_CONFLICT
    assert statuses[".claude/commands/plan.md"] is EntryStatus.PATH_TYPE_CONFLICT
    assert plan.conflicts == []
    assert len(plan.path_type_conflicts) == 2


def test_directory_in_place_of_file_is_path_type_conflict(tmp_path: Path, pack_bytes: bytes):
    (tmp_path / "CLAUDE.md").mkdir()
    plan = _plan(pack_bytes, "claude", tmp_path)
    assert plan.entries[0].status is EntryStatus.PATH_TYPE_CONFLICT


def test_planning_is_read_only(tmp_path: Path, pack_bytes: bytes):
    (tmp_path / "CLAUDE.md").write_text("original")
    before = _snapshot(tmp_path)

    _plan(pack_bytes, "claude", tmp_path)
    _plan(pack_bytes, "claude", tmp_path)

    assert _snapshot(tmp_path) == before
    assert (tmp_path / "CLAUDE.md").read_text() == "original"


def test_root_that_is_a_file_fails(tmp_path: Path, pack_bytes: bytes):
    target = tmp_path / "not_a_dir"
    target.write_text("x")
    with pytest.raises(PlanningError) as exc_info:
        _plan(pack_bytes, "claude", target)
    assert "not a directory" in str(exc_info.value)


def test_pack_without_variant_fails(tmp_path: Path):
    pack = make_pack({"copilot/AGENTS.md": b"x"})
    with pytest.raises(PlanningError) as exc_info:
        _plan(pack, "claude", tmp_path)
    assert "no files for agent 'claude'" in str(exc_info.value)


def test_entry_over_record_file_fails(tmp_path: Path):
    pack = make_pack({"claude/CLAUDE.md": b"x", "claude/.reforge.json": b"{}"})
    with pytest.raises(PlanningError):
        _plan(pack, "claude", tmp_path)


def test_traversal_entry_fails_planning(tmp_path: Path):
    pack = make_pack({"claude/CLAUDE.md": b"x", "claude/../../evil.md": b"x"})
    with pytest.raises(ArchiveIntegrityViolation):
        _plan(pack, "claude", tmp_path)
    assert _snapshot(tmp_path) == []
